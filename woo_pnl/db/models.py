"""
Pydantic models for mirrored store entities and local configuration.
Monetary fields coming from WooCommerce are kept as numeric strings and
only converted when profit figures are computed.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import logging
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


class EntityType(str, Enum):
    """Collections kept in the local store."""
    PRODUCTS = "products"
    PRODUCT_VARIATIONS = "productVariations"
    ORDERS = "orders"
    INVENTORY = "inventory"
    OVERHEAD_COSTS = "overheadCosts"
    EXPENSES = "expenses"
    ADDITIONAL_REVENUE = "additionalRevenue"


class SyncEntity(str, Enum):
    """Entity types that carry a staleness marker."""
    PRODUCTS = "products"
    PRODUCT_VARIATIONS = "product_variations"
    ORDERS = "orders"
    INVENTORY = "inventory"


class SyncState(str, Enum):
    """Lifecycle of one orchestrated sync."""
    IDLE = "idle"
    FETCHING = "fetching"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


class LogStatus(str, Enum):
    """Status of a sync log entry."""
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class TriggerType(str, Enum):
    """What triggered the sync."""
    SCHEDULER = "scheduler"
    MANUAL = "manual"


class OverheadType(str, Enum):
    FIXED = "fixed"
    PER_ORDER = "per_order"
    PER_ITEM = "per_item"
    PERCENTAGE = "percentage"


class Period(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class StoreCredentials(BaseModel):
    """WooCommerce REST API credentials."""
    url: str
    consumer_key: str
    consumer_secret: str

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @property
    def is_complete(self) -> bool:
        return bool(self.url and self.consumer_key and self.consumer_secret)


class DateRange(BaseModel):
    """Reporting window; both ends are aware datetimes."""
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _ordered(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError("date range end is before its start")
        return self

    def contains(self, moment: datetime) -> bool:
        """Inclusive on both ends."""
        moment = ensure_utc(moment)
        return self.start <= moment <= self.end


# ===== Catalog =====

class ProductVariation(BaseModel):
    """A sellable variation of a variable product."""
    id: int
    parent_id: int
    name: str = ""
    sku: str = ""
    price: float = 0.0
    regular_price: float = 0.0
    sale_price: Optional[float] = None
    cost_price: float = 0.0
    supplier_price: Optional[float] = None
    supplier_name: Optional[str] = None
    supplier_updated: Optional[datetime] = None
    stock_quantity: int = 0
    attributes: List[dict] = Field(default_factory=list)


class Product(BaseModel):
    """A catalog product (simple or variable)."""
    id: int
    name: str = ""
    sku: str = ""
    type: str = "simple"
    price: float = 0.0
    regular_price: float = 0.0
    sale_price: Optional[float] = None
    cost_price: float = 0.0
    supplier_price: Optional[float] = None
    supplier_name: Optional[str] = None
    supplier_updated: Optional[datetime] = None
    stock_quantity: int = 0
    variations: List[int] = Field(default_factory=list)

    @property
    def is_variable(self) -> bool:
        return self.type == "variable"


class InventoryRecord(BaseModel):
    """One sellable unit: a simple product or a single variation."""
    product_id: int
    variation_id: Optional[int] = None
    sku: str = ""
    cost_price: float = 0.0
    supplier_price: Optional[float] = None
    supplier_name: Optional[str] = None
    supplier_updated: Optional[datetime] = None
    stock_quantity: int = 0


# ===== Orders =====

class LineItem(BaseModel):
    """A product/variation entry inside an order."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[int] = None
    product_id: int = 0
    variation_id: Optional[int] = None
    name: str = ""
    sku: Optional[str] = None
    quantity: int = 0
    total: str = "0"  # line revenue, numeric string
    cost_price: Optional[float] = None
    profit: Optional[float] = None
    margin: Optional[float] = None

    @field_validator("variation_id", mode="before")
    @classmethod
    def zero_is_no_variation(cls, value):
        # WooCommerce reports variation_id=0 for simple products
        return value or None

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, value):
        try:
            quantity = int(float(value))
        except (TypeError, ValueError):
            logger.warning(f"Invalid line item quantity {value!r}, using 0")
            return 0
        return max(quantity, 0)


class Order(BaseModel):
    """A mirrored store order. Profit fields are only set on derived copies."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: int
    number: str = ""
    status: str = ""
    date_created: datetime  # UTC
    date_created_local: Optional[datetime] = None  # reporting timezone
    total: str = "0"
    shipping_total: str = "0"
    payment_method: str = ""
    payment_method_title: str = ""
    line_items: List[LineItem] = Field(default_factory=list)
    cost_total: Optional[float] = None
    profit: Optional[float] = None
    margin: Optional[float] = None

    @field_validator("date_created")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


# ===== Costs and revenue =====

class OverheadCost(BaseModel):
    """A configured overhead rule."""
    id: Optional[int] = None
    name: str = ""
    type: OverheadType
    value: float = 0.0


class Expense(BaseModel):
    """A business expense; recurring when period is set."""
    id: Optional[int] = None
    date: datetime
    category: str
    amount: float = 0.0
    description: str = ""
    period: Optional[Period] = None

    @field_validator("date")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class AdditionalRevenue(BaseModel):
    """Revenue earned outside the store (e.g. wholesale, services)."""
    id: Optional[int] = None
    date: datetime
    category: str
    amount: float = 0.0
    description: str = ""
    period: Optional[Period] = None


# ===== Sync bookkeeping =====

class SyncMarker(BaseModel):
    """When an entity type was last synchronized successfully."""
    entity_type: SyncEntity
    synced_at: datetime


class SyncLog(BaseModel):
    """A log entry for a sync execution."""
    id: str = Field(default_factory=generate_uuid)
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    status: LogStatus = LogStatus.RUNNING
    triggered_by: TriggerType = TriggerType.MANUAL

    # Statistics
    products_synced: int = 0
    orders_synced: int = 0
    inventory_synced: int = 0
    failed_fetches: int = 0

    # Error information
    error_message: Optional[str] = None
    error_details: Optional[str] = None
