"""
Record types for QuoteFlow.

All structured data uses dataclasses for type hints, __eq__, and __repr__.
Records are plain values: persistence lives in src.core.db, state changes in
src.core.workflow. `from_dict` keeps product attribute values exactly as given
(no coercion), so a stored number stays a number.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from dateutil.parser import isoparse


class ProductSeries(str, Enum):
    WIG = "Wig"
    HAIR_EXTENSION = "Hair Extension"
    TOPPER = "Topper"
    TOUPEE = "Toupee"
    SYNTHETIC = "Synthetic Product"


class QuoteStatus(str, Enum):
    PENDING = "Pending Acceptance"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    WITHDRAWN = "Withdrawn"


class RFQStatus(str, Enum):
    WAITING = "Waiting for Quote"
    IN_PROGRESS = "Quotation in Progress"
    COMPLETED = "Quotation Completed"
    ARCHIVED = "Archived"


class UserRole(str, Enum):
    ADMIN = "Admin"
    SALES = "Sales"
    PURCHASING = "Purchasing"


class UserStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


LANGUAGES = ("en", "de", "zh")
PRODUCT_SERIES = tuple(s.value for s in ProductSeries)
DEFAULT_AVATAR = "https://placehold.co/100x100"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    """ISO string or datetime → timezone-aware datetime (naive values are UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        # epoch milliseconds, as browsers send them
        dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        dt = isoparse(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


@dataclass
class Product:
    """One line item of an RFQ, or a partially filled query from the RFQ form."""
    id: str = ""
    wlid: str = ""
    product_series: Optional[str] = None
    sku: Optional[str] = None
    hair_fiber: Optional[str] = None
    cap: Optional[str] = None
    cap_size: Optional[str] = None
    length: Optional[str] = None
    density: Optional[str] = None
    color: Optional[str] = None
    curl_style: Optional[str] = None
    images: list = field(default_factory=list)

    # camelCase keys are what the browser form posts
    _ALIASES = {
        "productSeries": "product_series",
        "hairFiber": "hair_fiber",
        "capSize": "cap_size",
        "curlStyle": "curl_style",
    }

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        values = {}
        for key, val in (data or {}).items():
            name = cls._ALIASES.get(key, key)
            if name in cls.__dataclass_fields__:
                values[name] = val
        values["id"] = values.get("id") or ""
        values["wlid"] = values.get("wlid") or ""
        values["images"] = list(values.get("images") or [])
        return cls(**values)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "wlid": self.wlid,
            "product_series": self.product_series,
            "sku": self.sku,
            "hair_fiber": self.hair_fiber,
            "cap": self.cap,
            "cap_size": self.cap_size,
            "length": self.length,
            "density": self.density,
            "color": self.color,
            "curl_style": self.curl_style,
            "images": list(self.images),
        }


@dataclass
class Quote:
    """A purchaser's price and delivery date for one product of one RFQ."""
    rfq_id: str
    product_id: str
    purchaser_id: str
    price: float
    quote_time: datetime
    delivery_date: Optional[datetime] = None
    status: str = QuoteStatus.PENDING.value
    id: str = ""
    notes: str = ""
    withdraw_reason: Optional[str] = None

    @property
    def key(self) -> tuple:
        """Composite identity: one quote per (rfq, product, purchaser)."""
        return (self.rfq_id, self.product_id, self.purchaser_id)

    @classmethod
    def from_dict(cls, data: dict) -> "Quote":
        return cls(
            id=data.get("id") or "",
            rfq_id=data.get("rfq_id") or data.get("rfqId") or "",
            product_id=data.get("product_id") or data.get("productId") or "",
            purchaser_id=data.get("purchaser_id") or data.get("purchaserId") or "",
            price=float(data.get("price") or 0),
            quote_time=parse_timestamp(data.get("quote_time") or data.get("quoteTime")) or utcnow(),
            delivery_date=parse_timestamp(data.get("delivery_date") or data.get("deliveryDate")),
            status=data.get("status") or QuoteStatus.PENDING.value,
            notes=data.get("notes") or "",
            withdraw_reason=data.get("withdraw_reason"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rfq_id": self.rfq_id,
            "product_id": self.product_id,
            "purchaser_id": self.purchaser_id,
            "price": self.price,
            "delivery_date": format_timestamp(self.delivery_date),
            "quote_time": format_timestamp(self.quote_time),
            "status": self.status,
            "notes": self.notes,
            "withdraw_reason": self.withdraw_reason,
        }


@dataclass
class Withdrawal:
    """A purchaser abandoning one product of an RFQ. Carries no price."""
    product_id: str
    purchaser_id: str
    reason: str
    withdrawn_at: datetime

    @classmethod
    def from_dict(cls, data: dict) -> "Withdrawal":
        return cls(
            product_id=data.get("product_id") or data.get("productId") or "",
            purchaser_id=data.get("purchaser_id") or data.get("purchaserId") or "",
            reason=data.get("reason") or "",
            withdrawn_at=parse_timestamp(data.get("withdrawn_at") or data.get("withdrawnAt")) or utcnow(),
        )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "purchaser_id": self.purchaser_id,
            "reason": self.reason,
            "withdrawn_at": format_timestamp(self.withdrawn_at),
        }


@dataclass
class RFQ:
    """A sales request for quotation: products to price and the quotes received."""
    id: str
    code: str
    creator_id: str
    inquiry_time: datetime
    status: str = RFQStatus.WAITING.value
    assigned_purchaser_ids: list = field(default_factory=list)
    customer_type: str = "New"
    customer_email: str = ""
    products: list = field(default_factory=list)
    quotes: list = field(default_factory=list)
    archive_reason: Optional[str] = None
    withdrawals: list = field(default_factory=list)

    def product(self, product_id: str) -> Optional[Product]:
        for p in self.products:
            if p.id == product_id:
                return p
        return None

    def quotes_for(self, product_id: str) -> list:
        return [q for q in self.quotes if q.product_id == product_id]

    def withdrawals_for(self, product_id: str) -> list:
        return [w for w in self.withdrawals if w.product_id == product_id]

    @classmethod
    def from_dict(cls, data: dict) -> "RFQ":
        return cls(
            id=data.get("id") or "",
            code=data.get("code") or "",
            creator_id=data.get("creator_id") or data.get("creatorId") or "",
            inquiry_time=parse_timestamp(data.get("inquiry_time") or data.get("inquiryTime")) or utcnow(),
            status=data.get("status") or RFQStatus.WAITING.value,
            assigned_purchaser_ids=list(data.get("assigned_purchaser_ids")
                                        or data.get("assignedPurchaserIds") or []),
            customer_type=data.get("customer_type") or data.get("customerType") or "New",
            customer_email=data.get("customer_email") or data.get("customerEmail") or "",
            products=[Product.from_dict(p) for p in data.get("products") or []],
            quotes=[Quote.from_dict(q) for q in data.get("quotes") or []],
            archive_reason=data.get("archive_reason") or data.get("archiveReason"),
            withdrawals=[Withdrawal.from_dict(w) for w in data.get("withdrawals") or []],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "creator_id": self.creator_id,
            "inquiry_time": format_timestamp(self.inquiry_time),
            "status": self.status,
            "assigned_purchaser_ids": list(self.assigned_purchaser_ids),
            "customer_type": self.customer_type,
            "customer_email": self.customer_email,
            "products": [p.to_dict() for p in self.products],
            "quotes": [q.to_dict() for q in self.quotes],
            "archive_reason": self.archive_reason,
            "withdrawals": [w.to_dict() for w in self.withdrawals],
        }


@dataclass
class User:
    id: str
    email: str
    name: str
    role: str
    status: str = UserStatus.ACTIVE.value
    language: str = "en"
    avatar: str = DEFAULT_AVATAR
    registration_date: Optional[datetime] = None
    last_login_time: Optional[datetime] = None
    must_change_password: bool = False
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "status": self.status,
            "language": self.language,
            "avatar": self.avatar,
            "registration_date": format_timestamp(self.registration_date),
            "last_login_time": format_timestamp(self.last_login_time),
            "must_change_password": self.must_change_password,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "updated_at": format_timestamp(self.updated_at),
        }


@dataclass
class Notification:
    id: str
    recipient_id: str
    title_key: str
    body_key: str
    created_at: datetime
    body_params: dict = field(default_factory=dict)
    href: Optional[str] = None
    read: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "title_key": self.title_key,
            "body_key": self.body_key,
            "body_params": dict(self.body_params),
            "href": self.href,
            "created_at": format_timestamp(self.created_at),
            "read": self.read,
        }


def as_jsonable(value: Any) -> Any:
    """Recursively turn records into JSON-friendly dicts."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [as_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: as_jsonable(v) for k, v in value.items()}
    return value
