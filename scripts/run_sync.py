#!/usr/bin/env python3
"""
Cron job script to run a full WooCommerce sync.
Add to crontab: 0 1 * * * cd /path/to/app && /path/to/venv/bin/python scripts/run_sync.py

This runs the sync as a standalone script, not through the web server.
"""

import asyncio
import logging
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from woo_pnl.config import settings
from woo_pnl.db import SQLiteDatabase, TriggerType
from woo_pnl.processor import SyncOrchestrator, run_sync

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


async def main():
    logger.info("Starting scheduled sync...")

    db = SQLiteDatabase(settings.database_path)
    await db.initialize()
    orchestrator = SyncOrchestrator.from_settings(db, settings)

    try:
        result = await run_sync(db, orchestrator, TriggerType.SCHEDULER)

        if not result.success:
            logger.error(f"Sync failed: {result.error}")
            sys.exit(1)

        if result.partial:
            for failure in result.report.failures:
                logger.warning(f"  {failure.describe()}")

        logger.info(f"Sync completed (log: {result.log.id})")

    finally:
        await orchestrator.close()
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
