"""
Per-credential store session.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import httpx

from woo_pnl.db.models import StoreCredentials, utcnow
from woo_pnl.woocommerce.client import CredentialsMissing, WooCommerceClient

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=30)


@dataclass
class StoreSession:
    """
    A WooCommerce client bound to one credential set.

    Sessions are created explicitly and passed to whoever fetches. Expiry is
    a plain field: the holder checks is_expired() and opens a new session
    when needed.
    """

    credentials: StoreCredentials
    client: WooCommerceClient
    created_at: datetime = field(default_factory=utcnow)
    ttl: timedelta = DEFAULT_TTL

    @property
    def expires_at(self) -> datetime:
        return self.created_at + self.ttl

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def matches(self, credentials: Optional[StoreCredentials]) -> bool:
        return credentials is not None and credentials == self.credentials

    async def close(self) -> None:
        await self.client.close()


def open_session(
    credentials: Optional[StoreCredentials],
    ttl: timedelta = DEFAULT_TTL,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> StoreSession:
    """
    Open a session for a credential set.

    Raises:
        CredentialsMissing: If credentials are absent or incomplete
    """
    if credentials is None or not credentials.is_complete:
        raise CredentialsMissing()

    logger.info(f"Opening WooCommerce session for {credentials.url}")
    client = WooCommerceClient(credentials, timeout=timeout, transport=transport)
    return StoreSession(credentials=credentials, client=client, ttl=ttl)
