"""
Records persisted in the blob store and the values derived from them.

Field aliases are the JSON names used by the stored documents (``imageUri``,
``customerName``...), so data written by earlier versions of the app loads
unchanged. Python code uses the snake_case attribute names.
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_serializer,
    field_validator,
)

from .parsing import parse_decimal


def _to_decimal(value: Any) -> Any:
    parsed = parse_decimal(value)
    return value if parsed is None else parsed


# Stored as a JSON number, handled as Decimal in memory
Money = Annotated[
    Decimal,
    BeforeValidator(_to_decimal),
    PlainSerializer(float, return_type=float, when_used="json"),
]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class PaymentMethod(str, Enum):
    CASH = "Cash"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    UPI = "UPI"

    @classmethod
    def parse(cls, value: "str | PaymentMethod") -> "PaymentMethod":
        """Accept "Credit Card", "credit-card", "CreditCard" and the like."""
        if isinstance(value, cls):
            return value
        wanted = "".join(c for c in str(value).lower() if c.isalnum())
        for method in cls:
            if "".join(c for c in method.value.lower() if c.isalnum()) == wanted:
                return method
        raise ValueError(f"Unknown payment method: {value}")


class ReportPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class InventoryItem(BaseModel):
    """A stocked product, keyed by barcode."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    barcode: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    quantity: int = Field(0, ge=0)
    price: Money = Field(..., gt=0)
    category: Optional[str] = None
    image_ref: Optional[str] = Field(None, alias="imageUri")

    @field_validator("category", "image_ref", mode="before")
    @classmethod
    def _optional_text(cls, v: Any) -> Any:
        # The app stores "" for "no category"
        return _blank_to_none(v)


class BillLineItem(BaseModel):
    """
    One line of a bill: a snapshot of the product at the time of sale.

    ``id`` is the barcode. ``unit_price`` and ``line_total`` are stored as
    ``price`` and ``total``.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    quantity: int = Field(..., ge=1)
    unit_price: Money = Field(..., alias="price", ge=0)
    line_total: Money = Field(..., alias="total")
    image_ref: Optional[str] = Field(None, alias="image")

    @classmethod
    def for_item(cls, item: InventoryItem, quantity: int = 1) -> "BillLineItem":
        return cls(
            id=item.barcode,
            name=item.name,
            quantity=quantity,
            unit_price=item.price,
            line_total=item.price * quantity,
            image_ref=item.image_ref,
        )

    @property
    def barcode(self) -> str:
        return self.id

    def with_quantity(self, quantity: int) -> "BillLineItem":
        """Copy of this line with a new quantity and recomputed total."""
        return BillLineItem(
            id=self.id,
            name=self.name,
            quantity=quantity,
            unit_price=self.unit_price,
            line_total=self.unit_price * quantity,
            image_ref=self.image_ref,
        )


class Bill(BaseModel):
    """A completed sale. Created once at checkout and never changed."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    items: tuple[BillLineItem, ...]
    total: Money
    customer_name: str = Field("", alias="customerName")
    payment_method: PaymentMethod = Field(PaymentMethod.CASH, alias="paymentMethod")
    # Epoch milliseconds in storage, local naive datetime in memory
    timestamp: datetime

    @field_validator("customer_name", mode="before")
    @classmethod
    def _customer_name(cls, v: Any) -> Any:
        return "" if v is None else str(v).strip()

    @field_validator("payment_method", mode="before")
    @classmethod
    def _payment_method(cls, v: Any) -> Any:
        return PaymentMethod.parse(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().isdigit():
            v = int(v)
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return datetime.fromtimestamp(v / 1000)
        return v

    @field_serializer("timestamp", when_used="json")
    def _serialize_timestamp(self, v: datetime) -> int:
        return round(v.timestamp() * 1000)

    @property
    def local_date(self) -> date:
        """Calendar date of the sale on the local calendar."""
        ts = self.timestamp
        if ts.tzinfo is not None:
            ts = ts.astimezone()
        return ts.date()

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)


class ReportItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    quantity: int = 0
    total_sales: Money = Field(Decimal("0"), alias="totalSales")


class SalesReport(BaseModel):
    """Aggregated sales for one period bucket."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    period: ReportPeriod
    period_label: str = Field(..., alias="periodLabel")
    reference_date: date = Field(..., alias="referenceDate")
    total_sales: Money = Field(Decimal("0"), alias="totalSales")
    total_items: int = Field(0, alias="totalItems")
    bill_count: int = Field(0, alias="billCount")
    items: tuple[ReportItem, ...] = ()


class ScanResult(BaseModel):
    """A successful decode from a barcode source. ``data`` is the barcode."""
    model_config = ConfigDict(frozen=True)

    data: str = Field(..., min_length=1)
    symbology: str = "unknown"
