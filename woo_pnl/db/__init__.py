"""
Database package - SQLite only.
"""

from .models import (
    AdditionalRevenue, DateRange, EntityType, Expense, InventoryRecord, LineItem,
    LogStatus, Order, OverheadCost, OverheadType, Period, Product, ProductVariation,
    StoreCredentials, SyncEntity, SyncLog, SyncMarker, SyncState, TriggerType,
    generate_uuid
)
from .sqlite import SQLiteDatabase

__all__ = [
    "SQLiteDatabase",
    "AdditionalRevenue",
    "DateRange",
    "EntityType",
    "Expense",
    "InventoryRecord",
    "LineItem",
    "LogStatus",
    "Order",
    "OverheadCost",
    "OverheadType",
    "Period",
    "Product",
    "ProductVariation",
    "StoreCredentials",
    "SyncEntity",
    "SyncLog",
    "SyncMarker",
    "SyncState",
    "TriggerType",
    "generate_uuid",
]
