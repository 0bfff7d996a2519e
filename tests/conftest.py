"""
Shared fixtures: a temporary store database and a fake WooCommerce API.
"""

import asyncio
import math
import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

import httpx
import pytest
import pytest_asyncio

from woo_pnl.db import SQLiteDatabase, StoreCredentials
from woo_pnl.woocommerce import WooCommerceClient

API_ROOT = "/wp-json/wc/v3"
WIRE_FORMAT = "%Y-%m-%dT%H:%M:%S"

CREDENTIALS = StoreCredentials(
    url="https://shop.example.com",
    consumer_key="ck_test",
    consumer_secret="cs_test",
)


def make_order(
    order_id: int,
    created: datetime,
    total: str = "100.00",
    line_items: Optional[List[dict]] = None,
) -> dict:
    """Order payload as the REST API returns it."""
    created = created.astimezone(timezone.utc)
    return {
        "id": order_id,
        "number": str(order_id),
        "status": "completed",
        "date_created": created.strftime(WIRE_FORMAT),
        "date_created_gmt": created.strftime(WIRE_FORMAT),
        "total": total,
        "shipping_total": "0.00",
        "payment_method": "stripe",
        "payment_method_title": "Credit card",
        "line_items": line_items if line_items is not None else [
            {"id": order_id * 10, "product_id": 1, "variation_id": 0, "name": "Widget",
             "sku": "W-1", "quantity": 1, "total": total},
        ],
    }


def make_product(product_id: int, sku: str = "", cost: Optional[str] = None, **extra) -> dict:
    payload = {
        "id": product_id,
        "name": f"Product {product_id}",
        "sku": sku,
        "type": "simple",
        "price": "25.00",
        "regular_price": "25.00",
        "sale_price": "",
        "stock_quantity": 4,
        "meta_data": [{"key": "_wc_cog_cost", "value": cost}] if cost else [],
        "attributes": [],
        "variations": [],
    }
    payload.update(extra)
    return payload


class FakeWooStore:
    """
    In-memory WooCommerce REST API served through httpx.MockTransport.

    Orders are filtered by exclusive `after`/`before` bounds on
    date_created_gmt and paginated with X-WP-Total / X-WP-TotalPages.
    """

    def __init__(self):
        self.orders: List[dict] = []
        self.products: List[dict] = []
        self.variations: Dict[int, List[dict]] = {}
        self.failing_pages: Set[Tuple[str, int]] = set()
        self.failing_paths: Set[str] = set()
        self.rate_limited_pages: Dict[Tuple[str, int], str] = {}
        self.fail_when: Optional[Callable[[httpx.Request], bool]] = None
        self.requests: List[httpx.Request] = []
        self.gate: Optional[asyncio.Event] = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> WooCommerceClient:
        return WooCommerceClient(CREDENTIALS, transport=self.transport())

    def paths_requested(self) -> List[str]:
        return [r.url.path[len(API_ROOT):] for r in self.requests]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()

        path = request.url.path[len(API_ROOT):]
        params = request.url.params
        page = int(params.get("page", 1))
        per_page = int(params.get("per_page", 10))

        if (
            path in self.failing_paths
            or (path, page) in self.failing_pages
            or (self.fail_when is not None and self.fail_when(request))
        ):
            return httpx.Response(500, json={"code": "error", "message": "Internal failure"})

        if (path, page) in self.rate_limited_pages:
            return httpx.Response(
                429,
                json={"code": "too_many_requests", "message": "Too many requests"},
                headers={"Retry-After": self.rate_limited_pages[(path, page)]},
            )

        if path == "/orders":
            items = self._filter_orders(params.get("after"), params.get("before"))
        elif path == "/products":
            items = self.products
        else:
            match = re.fullmatch(r"/products/(\d+)/variations", path)
            if not match:
                return httpx.Response(404, json={"code": "rest_no_route", "message": "No route"})
            items = self.variations.get(int(match.group(1)), [])

        total_pages = math.ceil(len(items) / per_page)
        start = (page - 1) * per_page
        return httpx.Response(
            200,
            json=items[start:start + per_page],
            headers={"X-WP-Total": str(len(items)), "X-WP-TotalPages": str(total_pages)},
        )

    def _filter_orders(self, after: Optional[str], before: Optional[str]) -> List[dict]:
        def created(order: dict) -> datetime:
            return datetime.strptime(order["date_created_gmt"], WIRE_FORMAT)

        items = self.orders
        if after:
            lower = datetime.strptime(after, WIRE_FORMAT)
            items = [o for o in items if created(o) > lower]
        if before:
            upper = datetime.strptime(before, WIRE_FORMAT)
            items = [o for o in items if created(o) < upper]
        return sorted(items, key=created)


@pytest.fixture
def store() -> FakeWooStore:
    return FakeWooStore()


@pytest_asyncio.fixture
async def db(tmp_path):
    database = SQLiteDatabase(str(tmp_path / "test.db"))
    await database.initialize()
    yield database
    await database.close()
