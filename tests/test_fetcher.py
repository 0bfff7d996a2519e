"""
Tests for paginated order and product retrieval.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from woo_pnl.woocommerce import FetchStrategy, RemoteAPIError, RemoteOrderFetcher
from woo_pnl.woocommerce import client as client_module
from woo_pnl.woocommerce.dates import local_day_range, padded_bounds, split_range
from woo_pnl.woocommerce.fetcher import extract_cost_price, parse_order

from conftest import make_order, make_product

AUCKLAND = ZoneInfo("Pacific/Auckland")
RANGE = local_day_range(date(2024, 3, 1), date(2024, 3, 20), AUCKLAND)


def seed_orders(store, count: int, start: datetime, step: timedelta):
    store.orders = [make_order(i + 1, start + step * i) for i in range(count)]


class TestParsing:
    """Tests for payload parsing helpers."""

    def test_cost_price_from_meta(self):
        assert extract_cost_price(make_product(1, cost="12.50")) == 12.5

    def test_cost_price_from_attribute(self):
        payload = make_product(1, attributes=[{"name": "Cost Price", "options": ["7"]}])

        assert extract_cost_price(payload) == 7.0

    def test_cost_price_defaults_to_zero(self):
        assert extract_cost_price(make_product(1)) == 0.0

    def test_order_carries_local_timestamp(self):
        created = datetime(2024, 3, 5, 0, 30, tzinfo=timezone.utc)

        order = parse_order(make_order(7, created), AUCKLAND)

        assert order.date_created == created
        assert order.date_created_local.utcoffset() == timedelta(hours=13)
        assert order.line_items[0].variation_id is None

    def test_malformed_order_is_skipped(self):
        payload = {"number": "no id", "date_created_gmt": "2024-03-05T00:30:00"}

        assert parse_order(payload, AUCKLAND) is None

    def test_order_without_usable_date_is_skipped(self):
        payload = make_order(8, datetime(2024, 3, 5, tzinfo=timezone.utc))
        payload["date_created"] = payload["date_created_gmt"] = "yesterday"

        assert parse_order(payload, AUCKLAND) is None


class TestFetchOrders:
    """Tests for RemoteOrderFetcher.fetch_orders."""

    @pytest.mark.asyncio
    async def test_direct_fetch_walks_all_pages(self, store):
        seed_orders(store, 250, RANGE.start + timedelta(minutes=1), timedelta(hours=1))
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0)

        result = await fetcher.fetch_orders(RANGE, FetchStrategy.DIRECT)

        assert len(result.items) == 250
        assert result.complete
        assert [r.url.params["page"] for r in store.requests] == ["1", "2", "3"]
        assert store.requests[0].url.params["dates_are_gmt"] == "true"

    @pytest.mark.asyncio
    async def test_failed_page_is_dropped_and_recorded(self, store):
        """A failing page degrades the result instead of aborting it."""
        seed_orders(store, 250, RANGE.start + timedelta(minutes=1), timedelta(hours=1))
        store.failing_pages.add(("/orders", 2))
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0)

        result = await fetcher.fetch_orders(RANGE, FetchStrategy.DIRECT)

        assert len(result.items) == 150
        assert [o.id for o in result.items[:100]] == list(range(1, 101))
        assert len(result.failures) == 1
        assert result.failures[0].page == 2
        assert "API Error (500)" in result.failures[0].error

    @pytest.mark.asyncio
    async def test_failed_first_page_raises(self, store):
        store.failing_pages.add(("/orders", 1))
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0)

        with pytest.raises(RemoteAPIError):
            await fetcher.fetch_orders(RANGE, FetchStrategy.DIRECT)

    @pytest.mark.asyncio
    async def test_orders_outside_range_are_not_requested(self, store):
        store.orders = [
            make_order(1, RANGE.start - timedelta(seconds=1)),
            make_order(2, RANGE.start),
            make_order(3, RANGE.end.replace(microsecond=0)),
            make_order(4, RANGE.end + timedelta(seconds=1)),
        ]
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0)

        result = await fetcher.fetch_orders(RANGE, FetchStrategy.DIRECT)

        assert sorted(o.id for o in result.items) == [2, 3]

    @pytest.mark.asyncio
    async def test_chunked_and_direct_return_same_ids(self, store):
        """Orders on window boundaries are fetched exactly once."""
        seed_orders(store, 160, RANGE.start, timedelta(hours=3))
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0, chunk_days=5)

        direct = await fetcher.fetch_orders(RANGE, FetchStrategy.DIRECT)
        chunked = await fetcher.fetch_orders(RANGE, FetchStrategy.CHUNKED)

        direct_ids = [o.id for o in direct.items]
        chunked_ids = [o.id for o in chunked.items]
        assert len(chunked_ids) == len(set(chunked_ids))
        assert set(chunked_ids) == set(direct_ids)
        assert chunked.complete

    @pytest.mark.asyncio
    async def test_chunked_continues_after_failed_window(self, store):
        seed_orders(store, 160, RANGE.start, timedelta(hours=3))
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0, chunk_days=5)
        direct = await fetcher.fetch_orders(RANGE, FetchStrategy.DIRECT)

        first_window = split_range(RANGE, 5)[0]
        first_after, _ = padded_bounds(first_window)
        store.fail_when = lambda request: request.url.params.get("after") == first_after

        chunked = await fetcher.fetch_orders(RANGE, FetchStrategy.CHUNKED)

        assert len(chunked.failures) == 1
        assert chunked.failures[0].window == first_window
        assert set(o.id for o in chunked.items) < set(o.id for o in direct.items)
        assert min(o.date_created for o in chunked.items) >= first_window.end

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_ends_at_100(self, store):
        seed_orders(store, 250, RANGE.start + timedelta(minutes=1), timedelta(hours=1))
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0)
        values = []

        await fetcher.fetch_orders(RANGE, FetchStrategy.DIRECT, progress=values.append)

        assert values == sorted(values)
        assert values[-1] == 100


class TestFetchCatalog:
    """Tests for product and variation retrieval."""

    @pytest.mark.asyncio
    async def test_variations_fetched_for_variable_products(self, store):
        store.products = [
            make_product(1, sku="S-1", cost="4"),
            make_product(2, type="variable", variations=[21, 22]),
        ]
        store.variations[2] = [
            {"id": 21, "sku": "V-21", "price": "10", "regular_price": "10",
             "attributes": [{"name": "Size", "option": "S"}],
             "meta_data": [{"key": "cost_price", "value": "3"}]},
            {"id": 22, "sku": "V-22", "price": "12", "regular_price": "12",
             "attributes": [{"name": "Size", "option": "L"}], "meta_data": []},
        ]
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0)

        products = await fetcher.fetch_products()
        variations = await fetcher.fetch_variations(products.items)

        assert [p.cost_price for p in products.items] == [4.0, 0.0]
        assert [v.name for v in variations.items] == ["Product 2 - Size: S", "Product 2 - Size: L"]
        assert variations.items[0].parent_id == 2
        assert variations.items[0].cost_price == 3.0
        assert "/products/1/variations" not in store.paths_requested()

    @pytest.mark.asyncio
    async def test_variation_failure_is_isolated_per_product(self, store):
        store.products = [
            make_product(2, type="variable", variations=[21]),
            make_product(3, type="variable", variations=[31]),
        ]
        store.variations[3] = [{"id": 31, "sku": "V-31", "price": "5", "attributes": []}]
        store.failing_paths.add("/products/2/variations")
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0)

        products = await fetcher.fetch_products()
        variations = await fetcher.fetch_variations(products.items)

        assert [v.id for v in variations.items] == [31]
        assert variations.failures[0].resource == "/products/2/variations"

    @pytest.mark.asyncio
    async def test_rate_limited_page_with_date_header_is_dropped(self, store, monkeypatch):
        """A later page that stays rate limited is recorded, not fatal."""
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr(client_module.asyncio, "sleep", fake_sleep)
        store.products = [make_product(i) for i in range(1, 251)]
        store.rate_limited_pages[("/products", 2)] = "Wed, 21 Oct 2099 07:28:00 GMT"
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0)

        products = await fetcher.fetch_products()

        ids = [p.id for p in products.items]
        assert ids == list(range(1, 101)) + list(range(201, 251))
        assert len(products.failures) == 1
        assert products.failures[0].page == 2
        assert sleeps and all(s == client_module.WooCommerceClient.MAX_RETRY_DELAY for s in sleeps)

    @pytest.mark.asyncio
    async def test_connection_check_reports_total(self, store):
        seed_orders(store, 3, RANGE.start, timedelta(hours=1))
        fetcher = RemoteOrderFetcher(store.client(), AUCKLAND, batch_delay=0)

        result = await fetcher.test_connection()

        assert result["success"] is True
        assert result["total_orders"] == 3
