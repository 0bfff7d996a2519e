"""
Runner for executing a full sync with log bookkeeping.
"""

import logging
import traceback
from dataclasses import dataclass
from typing import Optional

from ..batching import ProgressCallback
from ..db import LogStatus, SQLiteDatabase, SyncLog, TriggerType
from ..db.models import utcnow
from .sync import SyncError, SyncInProgress, SyncOrchestrator, SyncReport

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Result of a full sync run."""
    log: Optional[SyncLog]
    report: Optional[SyncReport]
    error: Optional[str]

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def partial(self) -> bool:
        return self.report is not None and self.report.partial


async def sync_store(
    db: SQLiteDatabase,
    orchestrator: SyncOrchestrator,
    triggered_by: TriggerType = TriggerType.MANUAL,
    progress: Optional[ProgressCallback] = None,
) -> SyncResult:
    """
    Run the complete sync and record it in the sync log.

    Raises:
        SyncInProgress: If a sync is already running (nothing is logged)
        SyncError: If the sync fails
    """
    if orchestrator.is_running:
        raise SyncInProgress()

    log = await db.create_log(triggered_by)
    logger.info(f"Starting sync (log: {log.id})")

    try:
        report = await orchestrator.sync_all(progress)
    except SyncInProgress:
        await db.update_log(
            log.id,
            finished_at=utcnow(),
            status=LogStatus.FAILED,
            error_message="A sync is already in progress",
        )
        raise
    except Exception as e:
        logger.error(f"Sync failed: {e}")
        logger.debug(traceback.format_exc())

        await db.update_log(
            log.id,
            finished_at=utcnow(),
            status=LogStatus.FAILED,
            error_message=str(e),
            error_details=traceback.format_exc(),
            failed_fetches=len(orchestrator.failures),
        )
        raise SyncError(f"Sync failed: {e}") from e

    details = None
    if report.failures:
        details = "\n".join(failure.describe() for failure in report.failures)
        logger.warning(f"Sync completed with {len(report.failures)} failed fetches")

    logger.info(
        f"Sync completed: {len(report.products)} products, "
        f"{report.orders_added} new orders, {len(report.inventory)} inventory records"
    )

    updated = await db.update_log(
        log.id,
        finished_at=utcnow(),
        status=LogStatus.SUCCESS,
        products_synced=len(report.products),
        orders_synced=report.orders_added,
        inventory_synced=len(report.inventory),
        failed_fetches=len(report.failures),
        error_details=details,
    )
    return SyncResult(log=updated, report=report, error=None)


async def run_sync(
    db: SQLiteDatabase,
    orchestrator: SyncOrchestrator,
    triggered_by: TriggerType = TriggerType.SCHEDULER,
    progress: Optional[ProgressCallback] = None,
) -> SyncResult:
    """Run a full sync with error handling."""
    try:
        return await sync_store(db, orchestrator, triggered_by, progress)
    except SyncInProgress as e:
        logger.warning(str(e))
        return SyncResult(log=None, report=None, error=str(e))
    except SyncError as e:
        return SyncResult(log=None, report=None, error=str(e))
    except Exception as e:
        logger.exception("Unexpected error during sync")
        return SyncResult(log=None, report=None, error=f"Unexpected error: {e}")
