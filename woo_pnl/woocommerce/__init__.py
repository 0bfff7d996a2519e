"""
WooCommerce API module.
"""

from woo_pnl.woocommerce.client import (
    WooCommerceClient,
    WooCommerceError,
    CredentialsMissing,
    NetworkUnreachable,
    RemoteAPIError,
    RateLimited,
    Page,
)
from woo_pnl.woocommerce.fetcher import (
    RemoteOrderFetcher,
    FetchFailure,
    FetchResult,
    FetchStrategy,
)
from woo_pnl.woocommerce.session import StoreSession, open_session

__all__ = [
    "WooCommerceClient",
    "WooCommerceError",
    "CredentialsMissing",
    "NetworkUnreachable",
    "RemoteAPIError",
    "RateLimited",
    "Page",
    "RemoteOrderFetcher",
    "FetchFailure",
    "FetchResult",
    "FetchStrategy",
    "StoreSession",
    "open_session",
]
