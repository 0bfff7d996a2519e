"""
Sync orchestration between WooCommerce and the local store.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

import httpx

from ..batching import ProgressCallback, ProgressReporter, run_batches
from ..config import Settings
from ..db import (
    DateRange, InventoryRecord, Order, Product, ProductVariation, SQLiteDatabase,
    StoreCredentials, SyncEntity, SyncState
)
from ..db.models import utcnow
from ..woocommerce import (
    CredentialsMissing, FetchFailure, FetchStrategy, RemoteOrderFetcher, StoreSession,
    open_session
)
from ..woocommerce.dates import get_timezone, month_range, months_in_range, recent_months

logger = logging.getLogger(__name__)

SessionFactory = Callable[..., StoreSession]


class SyncError(Exception):
    """Error during sync process."""
    pass


class SyncInProgress(SyncError):
    """A sync was requested while another one is running."""

    def __init__(self, message: str = "A sync is already in progress"):
        super().__init__(message)


@dataclass
class SyncReport:
    """What one orchestrated operation produced."""
    products: List[Product] = field(default_factory=list)
    orders: List[Order] = field(default_factory=list)
    inventory: List[InventoryRecord] = field(default_factory=list)
    orders_added: int = 0
    failures: List[FetchFailure] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failures)


# ===== Pure helpers =====

def merge_orders(stored: Sequence[Order], fetched: Sequence[Order]) -> Tuple[List[Order], int]:
    """
    Append fetched orders whose id is not stored yet.

    Stored orders are never replaced by a later fetch.

    Returns:
        (merged orders, number of orders appended)
    """
    known = {order.id for order in stored}
    merged = list(stored)
    for order in fetched:
        if order.id in known:
            continue
        known.add(order.id)
        merged.append(order)
    return merged, len(merged) - len(stored)


def preserve_local_fields(fetched, existing):
    """Keep locally maintained cost and supplier data of an already stored record."""
    if existing is None:
        return fetched
    return fetched.model_copy(update={
        "cost_price": existing.cost_price,
        "supplier_price": existing.supplier_price,
        "supplier_name": existing.supplier_name,
        "supplier_updated": existing.supplier_updated,
    })


def build_inventory(
    products: Sequence[Product],
    variations: Sequence[ProductVariation],
) -> List[InventoryRecord]:
    """One inventory record per product and per variation."""
    inventory = [
        InventoryRecord(
            product_id=p.id,
            sku=p.sku,
            cost_price=p.cost_price,
            supplier_price=p.supplier_price,
            supplier_name=p.supplier_name,
            supplier_updated=p.supplier_updated,
            stock_quantity=p.stock_quantity,
        )
        for p in products
    ]
    inventory.extend(
        InventoryRecord(
            product_id=v.parent_id,
            variation_id=v.id,
            sku=v.sku,
            cost_price=v.cost_price,
            supplier_price=v.supplier_price,
            supplier_name=v.supplier_name,
            supplier_updated=v.supplier_updated,
            stock_quantity=v.stock_quantity,
        )
        for v in variations
    )
    return inventory


class SyncOrchestrator:
    """
    Runs product, order and inventory syncs against one store.

    State goes IDLE -> FETCHING -> MERGING -> DONE, or FAILED on any error.
    Only one public operation runs at a time; a second caller gets
    SyncInProgress instead of waiting.
    """

    ORDERS_PER_ENRICH_BATCH = 50
    ENRICH_DELAY = 0.01
    MONTHS_PER_BATCH = 1
    MONTH_DELAY = 0.5

    def __init__(
        self,
        db: SQLiteDatabase,
        credentials: Optional[StoreCredentials],
        tz: Optional[ZoneInfo] = None,
        session_ttl: timedelta = timedelta(minutes=30),
        request_timeout: float = 30.0,
        staleness: timedelta = timedelta(hours=24),
        boundary_padding: timedelta = timedelta(minutes=60),
        sync_months: int = 3,
        chunk_days: int = 5,
        batch_delay: float = 0.3,
        month_delay: float = MONTH_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        session_factory: SessionFactory = open_session,
    ):
        self.db = db
        self.credentials = credentials
        self.tz = tz or get_timezone()
        self.session_ttl = session_ttl
        self.request_timeout = request_timeout
        self.staleness = staleness
        self.boundary_padding = boundary_padding
        self.sync_months = sync_months
        self.chunk_days = chunk_days
        self.batch_delay = batch_delay
        self.month_delay = month_delay
        self.transport = transport
        self.session_factory = session_factory

        self.state = SyncState.IDLE
        self.progress = 0
        self.last_error: Optional[str] = None
        self.failures: List[FetchFailure] = []

        self._lock = asyncio.Lock()
        self._session: Optional[StoreSession] = None

    @classmethod
    def from_settings(
        cls,
        db: SQLiteDatabase,
        settings: Settings,
        **kwargs,
    ) -> "SyncOrchestrator":
        return cls(
            db,
            settings.credentials(),
            tz=get_timezone(settings.reporting_timezone),
            session_ttl=timedelta(minutes=settings.session_ttl_minutes),
            request_timeout=settings.request_timeout_seconds,
            staleness=timedelta(hours=settings.staleness_hours),
            boundary_padding=timedelta(minutes=settings.boundary_padding_minutes),
            sync_months=settings.sync_months,
            chunk_days=settings.chunk_days,
            **kwargs,
        )

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    # ===== Session and guard =====

    async def _get_session(self) -> StoreSession:
        """Reuse the open session unless it expired or credentials changed."""
        if self._session is not None:
            if self._session.matches(self.credentials) and not self._session.is_expired():
                return self._session
            logger.info("Store session expired, opening a new one")
            await self._session.close()
            self._session = None

        self._session = self.session_factory(
            self.credentials,
            ttl=self.session_ttl,
            timeout=self.request_timeout,
            transport=self.transport,
        )
        return self._session

    async def _fetcher(self) -> RemoteOrderFetcher:
        session = await self._get_session()
        return RemoteOrderFetcher(
            session.client,
            self.tz,
            batch_delay=self.batch_delay,
            chunk_days=self.chunk_days,
        )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _track(self, progress: Optional[ProgressCallback]) -> ProgressReporter:
        """Root reporter that also mirrors values into self.progress."""
        def sink(value: int) -> None:
            self.progress = value
            if progress is not None:
                progress(value)
        return ProgressReporter(sink)

    @asynccontextmanager
    async def _operation(self, name: str):
        """
        Exclusive section for one public operation.

        Raises:
            SyncInProgress: If another operation holds the lock
            CredentialsMissing: If credentials are absent (state becomes FAILED)
        """
        if self._lock.locked():
            raise SyncInProgress()

        async with self._lock:
            self.failures = []
            self.progress = 0
            self.last_error = None

            if self.credentials is None or not self.credentials.is_complete:
                self.state = SyncState.FAILED
                self.last_error = "API credentials not set"
                logger.error(f"Cannot run {name}: API credentials not set")
                raise CredentialsMissing()

            self.state = SyncState.FETCHING
            logger.info(f"Starting {name}")
            try:
                yield
            except Exception as e:
                self.state = SyncState.FAILED
                self.last_error = str(e)
                logger.error(f"{name} failed: {e}")
                raise
            self.state = SyncState.DONE
            if self.failures:
                logger.warning(f"{name} finished with {len(self.failures)} failed fetches")
            else:
                logger.info(f"{name} finished")

    async def _is_fresh(self, entity: SyncEntity) -> bool:
        marker = await self.db.get_last_sync(entity)
        return marker is not None and utcnow() - marker < self.staleness

    # ===== Public operations =====

    async def sync_all(self, progress: Optional[ProgressCallback] = None) -> SyncReport:
        """
        Products (10-40%), the last `sync_months` months of orders (40-70%)
        and inventory (70-100%).
        """
        reporter = self._track(progress)
        report = SyncReport()

        async with self._operation("full sync"):
            reporter.report(5)
            report.products = await self._sync_products(reporter.scoped(10, 40))

            months = recent_months(self.sync_months, self.tz)
            logger.info(f"Syncing orders for {len(months)} months")
            before = len(await self.db.get_orders())
            report.orders = await self._sync_months(months, False, reporter.scoped(40, 70))
            report.orders_added = len(await self.db.get_orders()) - before

            report.inventory = await self._sync_inventory(reporter.scoped(70, 100))
            reporter.complete()
            report.failures = list(self.failures)

        return report

    async def sync_products(
        self,
        force: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> List[Product]:
        reporter = self._track(progress)
        async with self._operation("products sync"):
            products = await self._sync_products(reporter, force=force)
        return products

    async def sync_inventory(
        self,
        force: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> List[InventoryRecord]:
        reporter = self._track(progress)
        async with self._operation("inventory sync"):
            inventory = await self._sync_inventory(reporter, force=force)
        return inventory

    async def sync_orders(
        self,
        date_range: DateRange,
        strategy: FetchStrategy = FetchStrategy.REGULAR,
        progress: Optional[ProgressCallback] = None,
    ) -> List[Order]:
        """
        Fetch orders in a date range and merge them into the store.

        Returns:
            REGULAR: every stored order after the merge.
            DIRECT / CHUNKED: the orders fetched by this call.
        """
        reporter = self._track(progress)
        async with self._operation(f"{strategy.value} orders sync"):
            orders = await self._sync_orders(date_range, strategy, reporter)
        return orders

    async def sync_orders_by_month(
        self,
        year: int,
        month: int,
        force: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> List[Order]:
        """Sync one calendar month; skipped when it already has stored orders unless forced."""
        reporter = self._track(progress)
        async with self._operation(f"orders sync for {year}-{month:02d}"):
            orders = await self._sync_month(year, month, force, reporter)
        return orders

    async def sync_orders_by_year(
        self,
        start: date,
        end: date,
        force: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> List[Order]:
        """Sync every calendar month touching [start, end], one month per batch."""
        reporter = self._track(progress)
        months = months_in_range(start, end)
        async with self._operation(f"orders sync for {len(months)} months"):
            orders = await self._sync_months(months, force, reporter)
        return orders

    async def delete_order(self, order_id: int) -> bool:
        """Remove one stored order. Returns False if it was not stored."""
        if self._lock.locked():
            raise SyncInProgress()

        async with self._lock:
            orders = await self.db.get_orders()
            remaining = [o for o in orders if o.id != order_id]
            if len(remaining) == len(orders):
                return False

            await self.db.save_orders(remaining)
            logger.info(f"Deleted order {order_id}")
            return True

    async def test_connection(self) -> Dict:
        """Check that the configured credentials can read orders."""
        try:
            fetcher = await self._fetcher()
        except CredentialsMissing as e:
            return {"success": False, "message": str(e), "total_orders": None}
        return await fetcher.test_connection()

    # ===== Steps =====

    async def _sync_products(self, reporter: ProgressReporter, force: bool = False) -> List[Product]:
        if not force and await self._is_fresh(SyncEntity.PRODUCTS):
            logger.info("Products synced within the staleness window, using stored catalog")
            reporter.complete()
            return await self.db.get_products()

        self.state = SyncState.FETCHING
        fetcher = await self._fetcher()

        fetched = await fetcher.fetch_products(reporter.scoped(0, 60))
        self.failures.extend(fetched.failures)

        existing = {p.id: p for p in await self.db.get_products()}
        products = [preserve_local_fields(p, existing.get(p.id)) for p in fetched.items]
        new_count = sum(1 for p in products if p.id not in existing)

        variations_result = await fetcher.fetch_variations(products, reporter.scoped(60, 95))
        self.failures.extend(variations_result.failures)

        existing_variations = {v.id: v for v in await self.db.get_product_variations()}
        variations = [
            preserve_local_fields(v, existing_variations.get(v.id))
            for v in variations_result.items
        ]

        self.state = SyncState.MERGING
        await self.db.save_products(products)
        await self.db.save_product_variations(variations)
        await self.db.update_last_sync(SyncEntity.PRODUCTS)
        await self.db.update_last_sync(SyncEntity.PRODUCT_VARIATIONS)

        logger.info(
            f"Saved {len(products)} products ({new_count} new) and {len(variations)} variations"
        )
        reporter.complete()
        return products

    async def _sync_inventory(self, reporter: ProgressReporter, force: bool = False) -> List[InventoryRecord]:
        if not force and await self._is_fresh(SyncEntity.INVENTORY):
            logger.info("Inventory synced within the staleness window, using stored inventory")
            reporter.complete()
            return await self.db.get_inventory()

        self.state = SyncState.MERGING
        products = await self.db.get_products()
        variations = await self.db.get_product_variations()
        reporter.report(50)

        inventory = build_inventory(products, variations)
        await self.db.save_inventory(inventory)
        await self.db.update_last_sync(SyncEntity.INVENTORY)

        logger.info(f"Saved {len(inventory)} inventory records")
        reporter.complete()
        return inventory

    async def enrich_line_items(
        self,
        orders: Sequence[Order],
        progress: Optional[ProgressReporter] = None,
    ) -> List[Order]:
        """Fill line item SKU and embedded cost from the stored catalog."""
        products = {p.id: p for p in await self.db.get_products()}
        variations = {v.id: v for v in await self.db.get_product_variations()}

        def enrich(order: Order) -> Order:
            items = []
            for item in order.line_items:
                source = (
                    variations.get(item.variation_id) if item.variation_id
                    else products.get(item.product_id)
                )
                if source is None:
                    items.append(item)
                    continue
                items.append(item.model_copy(update={
                    "sku": item.sku or source.sku or None,
                    "cost_price": source.cost_price or source.supplier_price or 0.0,
                }))
            return order.model_copy(update={"line_items": items})

        async def enrich_batch(batch: List[Order]) -> List[Order]:
            return [enrich(order) for order in batch]

        return await run_batches(
            list(orders), self.ORDERS_PER_ENRICH_BATCH, self.ENRICH_DELAY, enrich_batch, progress
        )

    async def _sync_orders(
        self,
        date_range: DateRange,
        strategy: FetchStrategy,
        reporter: ProgressReporter,
        padding: Optional[timedelta] = None,
    ) -> List[Order]:
        self.state = SyncState.FETCHING
        fetcher = await self._fetcher()
        fetched = await fetcher.fetch_orders(
            date_range,
            strategy,
            padding=self.boundary_padding if padding is None else padding,
            progress=reporter.scoped(0, 80),
        )
        self.failures.extend(fetched.failures)

        # Padding widens the request only; stored orders stay inside the range
        in_range = [o for o in fetched.items if date_range.contains(o.date_created)]
        if len(in_range) < len(fetched.items):
            logger.debug(
                f"Dropped {len(fetched.items) - len(in_range)} orders outside "
                f"{date_range.start.isoformat()} - {date_range.end.isoformat()}"
            )

        self.state = SyncState.MERGING
        enriched = await self.enrich_line_items(in_range, reporter.scoped(80, 95))

        stored = await self.db.get_orders()
        merged, added = merge_orders(stored, enriched)
        if added:
            await self.db.save_orders(merged)
        await self.db.update_last_sync(SyncEntity.ORDERS)

        logger.info(f"Merged {added} new orders ({len(merged)} stored)")
        reporter.complete()

        if strategy == FetchStrategy.REGULAR:
            return merged
        return enriched

    async def _sync_month(
        self,
        year: int,
        month: int,
        force: bool,
        reporter: ProgressReporter,
    ) -> List[Order]:
        month_rng = month_range(year, month, self.tz)

        if not force:
            existing = [o for o in await self.db.get_orders() if month_rng.contains(o.date_created)]
            if existing:
                logger.info(f"Already have {len(existing)} orders for {year}-{month:02d}")
                reporter.complete()
                return existing

        logger.info(f"Syncing orders for {year}-{month:02d}")
        return await self._sync_orders(month_rng, FetchStrategy.DIRECT, reporter)

    async def _sync_months(
        self,
        months: Sequence[Tuple[int, int]],
        force: bool,
        reporter: ProgressReporter,
    ) -> List[Order]:
        async def sync_batch(batch: List[Tuple[int, int]]) -> List[Order]:
            orders: List[Order] = []
            for year, month in batch:
                orders.extend(await self._sync_month(year, month, force, ProgressReporter()))
            return orders

        return await run_batches(
            list(months), self.MONTHS_PER_BATCH, self.month_delay, sync_batch, reporter
        )
