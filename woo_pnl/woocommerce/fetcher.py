"""
Paginated retrieval of orders and products from WooCommerce.

Individual page and window failures are recorded on the result and the
remaining data is still returned.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from woo_pnl.db.models import DateRange, LineItem, Order, Product, ProductVariation
from woo_pnl.pnl.money import to_number, to_optional_number
from woo_pnl.batching import ProgressReporter, as_reporter, run_batches
from woo_pnl.woocommerce.client import Page, WooCommerceClient, WooCommerceError
from woo_pnl.woocommerce.dates import padded_bounds, parse_remote_timestamp, split_range, to_local

logger = logging.getLogger(__name__)

T = TypeVar("T")

COST_META_KEYS = ("_wc_cog_cost", "cost_price", "_cost_price")
COST_ATTRIBUTE_NAMES = ("cost", "cost price")


class FetchStrategy(str, Enum):
    """How an order date range is retrieved."""
    REGULAR = "regular"  # whole range, merged through the sync pipeline
    DIRECT = "direct"    # whole range, every page
    CHUNKED = "chunked"  # fixed-size day windows, one direct fetch each


@dataclass
class FetchFailure:
    """A page or date window that could not be fetched."""

    resource: str
    error: str
    page: Optional[int] = None
    window: Optional[DateRange] = None

    def describe(self) -> str:
        if self.window is not None:
            return (
                f"{self.resource} window {self.window.start.isoformat()} - "
                f"{self.window.end.isoformat()}: {self.error}"
            )
        return f"{self.resource} page {self.page}: {self.error}"


@dataclass
class FetchResult(Generic[T]):
    """Items that were fetched plus the pieces that were not."""

    items: List[T] = field(default_factory=list)
    failures: List[FetchFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


# ===== Payload parsing =====

def extract_cost_price(payload: Dict[str, Any]) -> float:
    """Cost price from product meta data or a cost attribute, else 0."""
    for meta in payload.get("meta_data") or []:
        if meta.get("key") in COST_META_KEYS and meta.get("value"):
            return to_number(meta["value"], "cost meta")

    for attr in payload.get("attributes") or []:
        name = str(attr.get("name", "")).lower()
        options = attr.get("options") or []
        if name in COST_ATTRIBUTE_NAMES and options:
            return to_number(options[0], "cost attribute")

    return 0.0


def format_variation_name(product_name: str, attributes: List[Dict[str, str]]) -> str:
    if not attributes:
        return product_name
    details = ", ".join(f"{a['name']}: {a['option']}" for a in attributes)
    return f"{product_name} - {details}"


def parse_order(payload: Dict[str, Any], tz: ZoneInfo) -> Optional[Order]:
    """Build an Order from an API payload; malformed orders are skipped."""
    created = parse_remote_timestamp(payload, "date_created", tz)
    if created is None:
        logger.warning(f"Skipping order {payload.get('id')!r} without a creation date")
        return None
    try:
        line_items = [
            LineItem(
                id=item.get("id"),
                product_id=item.get("product_id") or 0,
                variation_id=item.get("variation_id"),
                name=item.get("name") or "",
                sku=item.get("sku") or None,
                quantity=item.get("quantity", 0),
                total=item.get("total") or "0",
            )
            for item in payload.get("line_items") or []
        ]
        return Order(
            id=payload["id"],
            number=str(payload.get("number") or payload["id"]),
            status=payload.get("status") or "",
            date_created=created,
            date_created_local=to_local(created, tz),
            total=payload.get("total") or "0",
            shipping_total=payload.get("shipping_total") or "0",
            payment_method=payload.get("payment_method") or "",
            payment_method_title=payload.get("payment_method_title") or "",
            line_items=line_items,
        )
    except (KeyError, ValidationError) as e:
        logger.warning(f"Skipping malformed order {payload.get('id')!r}: {e}")
        return None


def parse_product(payload: Dict[str, Any]) -> Optional[Product]:
    try:
        return Product(
            id=payload["id"],
            name=payload.get("name") or "",
            sku=payload.get("sku") or "",
            type=payload.get("type") or "simple",
            price=to_number(payload.get("price"), "price"),
            regular_price=to_number(payload.get("regular_price") or payload.get("price"), "regular_price"),
            sale_price=to_optional_number(payload.get("sale_price"), "sale_price"),
            cost_price=extract_cost_price(payload),
            stock_quantity=int(to_number(payload.get("stock_quantity"), "stock_quantity")),
            variations=payload.get("variations") or [],
        )
    except (KeyError, ValidationError) as e:
        logger.warning(f"Skipping malformed product {payload.get('id')!r}: {e}")
        return None


def parse_variation(payload: Dict[str, Any], product: Product) -> Optional[ProductVariation]:
    attributes = [
        {"name": attr.get("name", ""), "option": attr.get("option", "")}
        for attr in payload.get("attributes") or []
    ]
    try:
        return ProductVariation(
            id=payload["id"],
            parent_id=product.id,
            name=format_variation_name(product.name, attributes),
            sku=payload.get("sku") or "",
            price=to_number(payload.get("price"), "price"),
            regular_price=to_number(payload.get("regular_price") or payload.get("price"), "regular_price"),
            sale_price=to_optional_number(payload.get("sale_price"), "sale_price"),
            cost_price=extract_cost_price(payload),
            stock_quantity=int(to_number(payload.get("stock_quantity"), "stock_quantity")),
            attributes=attributes,
        )
    except (KeyError, ValidationError) as e:
        logger.warning(f"Skipping malformed variation {payload.get('id')!r}: {e}")
        return None


class RemoteOrderFetcher:
    """
    Retrieves orders, products and variations page by page.
    """

    ORDERS_PATH = "/orders"
    PRODUCTS_PATH = "/products"

    # Pacing
    ORDER_PAGES_PER_BATCH = 3
    PRODUCT_PAGES_PER_BATCH = 5
    VARIABLE_PRODUCTS_PER_BATCH = 5
    DEFAULT_CHUNK_DAYS = 5

    def __init__(
        self,
        client: WooCommerceClient,
        tz: ZoneInfo,
        batch_delay: float = 0.3,
        chunk_days: int = DEFAULT_CHUNK_DAYS,
    ):
        """
        Initialize fetcher.

        Args:
            client: WooCommerce REST client
            tz: Reporting timezone used to tag order timestamps
            batch_delay: Pause between page batches in seconds
            chunk_days: Window size for the chunked strategy
        """
        self.client = client
        self.tz = tz
        self.batch_delay = batch_delay
        self.chunk_days = chunk_days

    async def fetch_orders(
        self,
        date_range: DateRange,
        strategy: FetchStrategy = FetchStrategy.DIRECT,
        padding: timedelta = timedelta(0),
        progress: Optional[ProgressReporter] = None,
    ) -> FetchResult[Order]:
        """
        Fetch all orders created inside a date range.

        REGULAR and DIRECT both fetch the whole range in one paginated
        listing; they differ only in how the sync pipeline merges and
        returns the result.

        Args:
            date_range: Range to fetch
            strategy: Fetch strategy
            padding: Extra time added to the range's upper bound
            progress: Progress reporter for this fetch

        Raises:
            WooCommerceError: If the first page of a direct fetch fails
        """
        logger.info(
            f"Fetching orders from {date_range.start.isoformat()} to "
            f"{date_range.end.isoformat()} using {strategy.value} strategy"
        )

        if strategy == FetchStrategy.CHUNKED:
            return await self._fetch_orders_chunked(date_range, padding, progress)
        return await self._fetch_orders_direct(date_range, padding, progress)

    async def _fetch_orders_direct(
        self,
        date_range: DateRange,
        padding: timedelta,
        progress: Optional[ProgressReporter],
    ) -> FetchResult[Order]:
        after, before = padded_bounds(date_range, padding)
        pages = await self._fetch_all_pages(
            self.ORDERS_PATH,
            {"after": after, "before": before, "dates_are_gmt": "true"},
            self.ORDER_PAGES_PER_BATCH,
            progress,
        )

        orders = [o for o in (parse_order(p, self.tz) for p in pages.items) if o is not None]
        logger.info(f"Fetched {len(orders)} orders ({len(pages.failures)} failed pages)")
        return FetchResult(items=orders, failures=pages.failures)

    async def _fetch_orders_chunked(
        self,
        date_range: DateRange,
        padding: timedelta,
        progress: Optional[ProgressReporter],
    ) -> FetchResult[Order]:
        windows = split_range(date_range, self.chunk_days)
        logger.info(f"Split date range into {len(windows)} windows of {self.chunk_days} days")

        result: FetchResult[Order] = FetchResult()
        seen: set = set()

        async def fetch_window(batch: List[DateRange]) -> List[Order]:
            window = batch[0]
            # Only the outer upper bound is padded; inner windows abut exactly
            pad = padding if window is windows[-1] else timedelta(0)
            try:
                part = await self._fetch_orders_direct(window, pad, None)
            except WooCommerceError as e:
                logger.error(
                    f"Error fetching window {window.start.isoformat()} - "
                    f"{window.end.isoformat()}: {e}. Continuing with next window"
                )
                result.failures.append(
                    FetchFailure(resource=self.ORDERS_PATH, error=str(e), window=window)
                )
                return []

            result.failures.extend(part.failures)
            fresh = [o for o in part.items if o.id not in seen]
            seen.update(o.id for o in fresh)
            return fresh

        result.items = await run_batches(windows, 1, self.batch_delay, fetch_window, progress)
        logger.info(
            f"Completed {len(windows)} windows, found {len(result.items)} orders total"
        )
        return result

    async def fetch_products(
        self,
        progress: Optional[ProgressReporter] = None,
    ) -> FetchResult[Product]:
        """Fetch the whole product catalog."""
        pages = await self._fetch_all_pages(
            self.PRODUCTS_PATH, {}, self.PRODUCT_PAGES_PER_BATCH, progress
        )
        products = [p for p in (parse_product(item) for item in pages.items) if p is not None]
        logger.info(f"Fetched {len(products)} products from API")
        return FetchResult(items=products, failures=pages.failures)

    async def fetch_variations(
        self,
        products: List[Product],
        progress: Optional[ProgressReporter] = None,
    ) -> FetchResult[ProductVariation]:
        """Fetch variations of every variable product in `products`."""
        variable = [p for p in products if p.is_variable and p.variations]
        failures: List[FetchFailure] = []

        async def fetch_batch(batch: List[Product]) -> List[ProductVariation]:
            variations: List[ProductVariation] = []
            for product in batch:
                path = f"{self.PRODUCTS_PATH}/{product.id}/variations"
                try:
                    pages = await self._fetch_all_pages(path, {}, self.PRODUCT_PAGES_PER_BATCH, None)
                except WooCommerceError as e:
                    logger.error(f"Error fetching variations for product {product.id}: {e}")
                    failures.append(FetchFailure(resource=path, error=str(e), page=1))
                    continue
                failures.extend(pages.failures)
                variations.extend(
                    v for v in (parse_variation(item, product) for item in pages.items)
                    if v is not None
                )
            return variations

        items = await run_batches(
            variable, self.VARIABLE_PRODUCTS_PER_BATCH, self.batch_delay, fetch_batch, progress
        )
        logger.info(f"Fetched {len(items)} variations for {len(variable)} variable products")
        return FetchResult(items=items, failures=failures)

    async def _fetch_all_pages(
        self,
        path: str,
        params: Dict[str, Any],
        pages_per_batch: int,
        progress: Optional[ProgressReporter],
    ) -> FetchResult[Dict[str, Any]]:
        """
        Fetch every page of a listing.

        The first page drives pagination through its total-pages header and
        its failure propagates. Later pages are fetched in batches; a failed
        page is logged, recorded and skipped.
        """
        reporter = as_reporter(progress)
        reporter.report(0)

        first: Page = await self.client.get_page(path, 1, **params)
        logger.info(f"Found {first.total} items across {first.total_pages} pages for {path}")

        first_share = 100 / first.total_pages
        reporter.report(first_share)

        failures: List[FetchFailure] = []

        async def fetch_batch(page_numbers: List[int]) -> List[Dict[str, Any]]:
            items: List[Dict[str, Any]] = []
            for page_number in page_numbers:
                try:
                    page = await self.client.get_page(path, page_number, **params)
                except WooCommerceError as e:
                    logger.error(f"Error fetching {path} page {page_number}: {e}")
                    failures.append(FetchFailure(resource=path, error=str(e), page=page_number))
                    continue
                items.extend(page.items)
            return items

        remaining = list(range(2, first.total_pages + 1))
        rest = await run_batches(
            remaining,
            pages_per_batch,
            self.batch_delay,
            fetch_batch,
            reporter.scoped(first_share, 100),
        )

        reporter.complete()
        return FetchResult(items=list(first.items) + rest, failures=failures)

    async def test_connection(self) -> Dict[str, Any]:
        """Issue a minimal orders request and report what came back."""
        try:
            page = await self.client.get_page(self.ORDERS_PATH, 1, per_page=1)
        except WooCommerceError as e:
            return {"success": False, "message": str(e), "total_orders": None}

        return {
            "success": True,
            "message": f"Successfully connected to API. Found {page.total} orders.",
            "total_orders": page.total,
        }
