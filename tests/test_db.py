"""
Tests for the SQLite collection store.
"""

import pytest

from woo_pnl.db import EntityType, OverheadCost, OverheadType


async def stored_record_ids(db, entity: EntityType):
    conn = await db._get_connection()
    cursor = await conn.execute(
        "SELECT record_id FROM collections WHERE entity = ? ORDER BY position",
        (entity.value,)
    )
    return [row["record_id"] for row in await cursor.fetchall()]


class TestCollections:
    """Tests for whole-collection save and load."""

    @pytest.mark.asyncio
    async def test_records_without_id_store_null_record_id(self, db):
        await db.save_overhead_costs([
            OverheadCost(name="Packaging", type=OverheadType.PER_ORDER, value=1.5),
            OverheadCost(id=7, name="Fees", type=OverheadType.PERCENTAGE, value=2),
        ])

        assert await stored_record_ids(db, EntityType.OVERHEAD_COSTS) == [None, "7"]

    @pytest.mark.asyncio
    async def test_save_replaces_whole_collection(self, db):
        await db.save_overhead_costs([OverheadCost(name="Old", type=OverheadType.PER_ITEM, value=1)])
        await db.save_overhead_costs([OverheadCost(name="New", type=OverheadType.PER_ITEM, value=2)])

        costs = await db.get_overhead_costs()

        assert [c.name for c in costs] == ["New"]
