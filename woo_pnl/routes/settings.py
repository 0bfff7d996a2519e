"""
Overhead, expense and additional revenue configuration routes.
Each PUT replaces the whole collection.
"""

from typing import List

from fastapi import APIRouter, Depends

from ..dependencies import get_db, require_auth
from ..db import AdditionalRevenue, Expense, OverheadCost

router = APIRouter(prefix="/api/settings", dependencies=[Depends(require_auth)])


@router.get("/overhead-costs", response_model=List[OverheadCost])
async def get_overhead_costs():
    return await get_db().get_overhead_costs()


@router.put("/overhead-costs", response_model=List[OverheadCost])
async def put_overhead_costs(costs: List[OverheadCost]):
    await get_db().save_overhead_costs(costs)
    return costs


@router.get("/expenses", response_model=List[Expense])
async def get_expenses():
    return await get_db().get_expenses()


@router.put("/expenses", response_model=List[Expense])
async def put_expenses(expenses: List[Expense]):
    await get_db().save_expenses(expenses)
    return expenses


@router.get("/additional-revenue", response_model=List[AdditionalRevenue])
async def get_additional_revenue():
    return await get_db().get_additional_revenue()


@router.put("/additional-revenue", response_model=List[AdditionalRevenue])
async def put_additional_revenue(revenue: List[AdditionalRevenue]):
    await get_db().save_additional_revenue(revenue)
    return revenue
