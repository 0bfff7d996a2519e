"""
Sync trigger API routes.
"""

import asyncio
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, model_validator

from ..config import settings
from ..dependencies import get_db, get_orchestrator, require_auth
from ..db import LogStatus, TriggerType
from ..processor import SyncInProgress, run_sync
from ..woocommerce import CredentialsMissing, FetchStrategy, WooCommerceError
from ..woocommerce.dates import get_timezone, local_day_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", dependencies=[Depends(require_auth)])

# Background sync tasks, kept referenced until they finish
_tasks: set = set()


class SyncResponse(BaseModel):
    message: str
    success: bool


class OrdersSyncRequest(BaseModel):
    start: date
    end: date
    strategy: FetchStrategy = FetchStrategy.REGULAR

    @model_validator(mode="after")
    def _ordered(self) -> "OrdersSyncRequest":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self


@router.post("", response_model=SyncResponse)
async def start_full_sync():
    """Start a full sync in the background."""
    orchestrator = get_orchestrator()
    if orchestrator.is_running:
        raise HTTPException(status_code=409, detail="A sync is already in progress")
    if orchestrator.credentials is None:
        raise HTTPException(status_code=400, detail="API credentials not set")

    task = asyncio.create_task(run_sync(get_db(), orchestrator, TriggerType.MANUAL))
    _tasks.add(task)
    task.add_done_callback(_tasks.discard)

    return SyncResponse(message="Sync started", success=True)


@router.post("/orders")
async def sync_orders(body: OrdersSyncRequest):
    """Fetch and merge orders for a local date range; waits for the result."""
    orchestrator = get_orchestrator()
    date_range = local_day_range(body.start, body.end, get_timezone(settings.reporting_timezone))

    try:
        orders = await orchestrator.sync_orders(date_range, body.strategy)
    except SyncInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CredentialsMissing as e:
        raise HTTPException(status_code=400, detail=str(e))
    except WooCommerceError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {
        "success": True,
        "strategy": body.strategy.value,
        "order_count": len(orders),
        "failed_fetches": [f.describe() for f in orchestrator.failures],
    }


@router.get("/status")
async def get_sync_status(limit: int = Query(10, ge=1, le=100)):
    """Current orchestrator state, last sync markers and recent logs."""
    orchestrator = get_orchestrator()
    db = get_db()

    markers = await db.get_last_sync_times()
    logs = await db.get_logs(limit=limit)

    return {
        "state": orchestrator.state.value,
        "running": orchestrator.is_running,
        "progress": orchestrator.progress,
        "last_error": orchestrator.last_error,
        "last_sync": {k: v.isoformat() if v else None for k, v in markers.items()},
        "logs": [log.model_dump(mode="json") for log in logs],
    }


@router.get("/logs")
async def list_logs(
    status: Optional[LogStatus] = Query(None),
    page: int = Query(1, ge=1),
):
    """Paginated sync log history."""
    limit = 25
    logs = await get_db().get_logs(status=status, limit=limit + 1, offset=(page - 1) * limit)
    return {
        "logs": [log.model_dump(mode="json") for log in logs[:limit]],
        "page": page,
        "has_next": len(logs) > limit,
    }


@router.get("/test-connection")
async def test_connection():
    """Issue a minimal request with the configured credentials."""
    return await get_orchestrator().test_connection()


@router.delete("/orders/{order_id}")
async def delete_order(order_id: int):
    """Remove one stored order."""
    try:
        deleted = await get_orchestrator().delete_order(order_id)
    except SyncInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"success": True}
