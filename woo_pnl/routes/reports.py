"""
P&L report routes.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from ..config import settings
from ..dependencies import get_db, require_auth
from ..pnl.report import build_pnl_report
from ..woocommerce.dates import get_timezone, local_day_range

router = APIRouter(prefix="/api/reports", dependencies=[Depends(require_auth)])


@router.get("/pnl")
async def pnl_report(
    start: date = Query(..., description="First local day, inclusive"),
    end: date = Query(..., description="Last local day, inclusive"),
    include_orders: bool = Query(True),
):
    """Profit and loss for whole local days in the reporting timezone."""
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")

    date_range = local_day_range(start, end, get_timezone(settings.reporting_timezone))
    result = await build_pnl_report(get_db(), date_range)

    payload = result.to_dict()
    if not include_orders:
        payload.pop("orders")
    payload["range"] = {
        "start": date_range.start.isoformat(),
        "end": date_range.end.isoformat(),
    }
    return payload
