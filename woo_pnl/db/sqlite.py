"""
SQLite database implementation.
Collections are replaced wholesale on save; there is no partial update.
"""

import aiosqlite
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Type, TypeVar
import os

from pydantic import BaseModel

from .models import (
    AdditionalRevenue, EntityType, Expense, InventoryRecord, LogStatus, Order,
    OverheadCost, Product, ProductVariation, SyncEntity, SyncLog, TriggerType,
    ensure_utc, utcnow
)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _record_id(record: BaseModel) -> Optional[str]:
    record_id = getattr(record, "id", None)
    return None if record_id is None else str(record_id)


class SQLiteDatabase:
    """SQLite database for all operations."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def initialize(self) -> None:
        """Create database tables."""
        conn = await self._get_connection()

        await conn.executescript("""
            CREATE TABLE IF NOT EXISTS collections (
                entity TEXT NOT NULL,
                position INTEGER NOT NULL,
                record_id TEXT,
                payload TEXT NOT NULL,
                PRIMARY KEY (entity, position)
            );

            CREATE TABLE IF NOT EXISTS last_sync (
                entity_type TEXT PRIMARY KEY,
                synced_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS sync_logs (
                id TEXT PRIMARY KEY,
                started_at TEXT NOT NULL,
                finished_at TEXT,
                status TEXT NOT NULL DEFAULT 'running',
                triggered_by TEXT NOT NULL,
                products_synced INTEGER NOT NULL DEFAULT 0,
                orders_synced INTEGER NOT NULL DEFAULT 0,
                inventory_synced INTEGER NOT NULL DEFAULT 0,
                failed_fetches INTEGER NOT NULL DEFAULT 0,
                error_message TEXT,
                error_details TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_collections_record ON collections(entity, record_id);
            CREATE INDEX IF NOT EXISTS idx_sync_logs_started_at ON sync_logs(started_at DESC);
        """)
        await conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    # ===== Collections =====

    async def get_all(self, entity: EntityType, model: Type[ModelT]) -> List[ModelT]:
        """Read a whole collection in saved order."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT payload FROM collections WHERE entity = ? ORDER BY position",
            (entity.value,)
        )
        rows = await cursor.fetchall()
        return [model.model_validate_json(row["payload"]) for row in rows]

    async def save_all(self, entity: EntityType, records: Sequence[BaseModel]) -> None:
        """Replace a whole collection atomically."""
        conn = await self._get_connection()
        try:
            await conn.execute("DELETE FROM collections WHERE entity = ?", (entity.value,))
            await conn.executemany(
                "INSERT INTO collections (entity, position, record_id, payload) VALUES (?, ?, ?, ?)",
                [
                    (
                        entity.value,
                        position,
                        _record_id(record),
                        record.model_dump_json(),
                    )
                    for position, record in enumerate(records)
                ]
            )
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise

    async def get_products(self) -> List[Product]:
        return await self.get_all(EntityType.PRODUCTS, Product)

    async def save_products(self, products: Sequence[Product]) -> None:
        await self.save_all(EntityType.PRODUCTS, products)

    async def get_product_variations(self) -> List[ProductVariation]:
        return await self.get_all(EntityType.PRODUCT_VARIATIONS, ProductVariation)

    async def save_product_variations(self, variations: Sequence[ProductVariation]) -> None:
        await self.save_all(EntityType.PRODUCT_VARIATIONS, variations)

    async def get_orders(self) -> List[Order]:
        return await self.get_all(EntityType.ORDERS, Order)

    async def save_orders(self, orders: Sequence[Order]) -> None:
        await self.save_all(EntityType.ORDERS, orders)

    async def get_inventory(self) -> List[InventoryRecord]:
        return await self.get_all(EntityType.INVENTORY, InventoryRecord)

    async def save_inventory(self, inventory: Sequence[InventoryRecord]) -> None:
        await self.save_all(EntityType.INVENTORY, inventory)

    async def get_overhead_costs(self) -> List[OverheadCost]:
        return await self.get_all(EntityType.OVERHEAD_COSTS, OverheadCost)

    async def save_overhead_costs(self, costs: Sequence[OverheadCost]) -> None:
        await self.save_all(EntityType.OVERHEAD_COSTS, costs)

    async def get_expenses(self) -> List[Expense]:
        return await self.get_all(EntityType.EXPENSES, Expense)

    async def save_expenses(self, expenses: Sequence[Expense]) -> None:
        await self.save_all(EntityType.EXPENSES, expenses)

    async def get_additional_revenue(self) -> List[AdditionalRevenue]:
        return await self.get_all(EntityType.ADDITIONAL_REVENUE, AdditionalRevenue)

    async def save_additional_revenue(self, revenue: Sequence[AdditionalRevenue]) -> None:
        await self.save_all(EntityType.ADDITIONAL_REVENUE, revenue)

    # ===== Sync Markers =====

    async def get_last_sync(self, entity_type: SyncEntity) -> Optional[datetime]:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT synced_at FROM last_sync WHERE entity_type = ?", (entity_type.value,)
        )
        row = await cursor.fetchone()
        return ensure_utc(datetime.fromisoformat(row["synced_at"])) if row else None

    async def get_last_sync_times(self) -> Dict[str, Optional[datetime]]:
        return {
            entity.value: await self.get_last_sync(entity)
            for entity in (SyncEntity.PRODUCTS, SyncEntity.ORDERS, SyncEntity.INVENTORY)
        }

    async def update_last_sync(
        self,
        entity_type: SyncEntity,
        synced_at: Optional[datetime] = None
    ) -> None:
        conn = await self._get_connection()
        await conn.execute(
            """
            INSERT INTO last_sync (entity_type, synced_at) VALUES (?, ?)
            ON CONFLICT(entity_type) DO UPDATE SET synced_at = excluded.synced_at
            """,
            (entity_type.value, (synced_at or utcnow()).isoformat())
        )
        await conn.commit()

    # ===== Log Operations =====

    def _row_to_log(self, row: aiosqlite.Row) -> SyncLog:
        """Convert a database row to a SyncLog model."""
        return SyncLog(
            id=row["id"],
            started_at=datetime.fromisoformat(row["started_at"]),
            finished_at=datetime.fromisoformat(row["finished_at"]) if row["finished_at"] else None,
            status=LogStatus(row["status"]),
            triggered_by=TriggerType(row["triggered_by"]),
            products_synced=row["products_synced"],
            orders_synced=row["orders_synced"],
            inventory_synced=row["inventory_synced"],
            failed_fetches=row["failed_fetches"],
            error_message=row["error_message"],
            error_details=row["error_details"]
        )

    async def get_logs(
        self,
        status: Optional[LogStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[SyncLog]:
        conn = await self._get_connection()

        query = "SELECT * FROM sync_logs WHERE 1=1"
        params = []

        if status:
            query += " AND status = ?"
            params.append(status.value)

        query += " ORDER BY started_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [self._row_to_log(row) for row in rows]

    async def get_log(self, log_id: str) -> Optional[SyncLog]:
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM sync_logs WHERE id = ?", (log_id,))
        row = await cursor.fetchone()
        return self._row_to_log(row) if row else None

    async def create_log(self, triggered_by: TriggerType) -> SyncLog:
        log = SyncLog(triggered_by=triggered_by)

        conn = await self._get_connection()
        await conn.execute(
            """
            INSERT INTO sync_logs (id, started_at, status, triggered_by)
            VALUES (?, ?, ?, ?)
            """,
            (log.id, log.started_at.isoformat(), log.status.value, log.triggered_by.value)
        )
        await conn.commit()
        return log

    async def update_log(self, log_id: str, **kwargs) -> Optional[SyncLog]:
        if not kwargs:
            return await self.get_log(log_id)

        updates = []
        values = []

        for key, value in kwargs.items():
            updates.append(f"{key} = ?")
            if key == "finished_at" and isinstance(value, datetime):
                values.append(value.isoformat())
            elif key == "status" and isinstance(value, LogStatus):
                values.append(value.value)
            else:
                values.append(value)

        values.append(log_id)

        conn = await self._get_connection()
        await conn.execute(f"UPDATE sync_logs SET {', '.join(updates)} WHERE id = ?", values)
        await conn.commit()

        return await self.get_log(log_id)
