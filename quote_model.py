from __future__ import annotations

import random
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple

from pricing_engine import line_total


class QuoteError(ValueError):
    pass


class QuoteFieldError(QuoteError):
    pass


class BillingCycle(str, Enum):
    FIXED = "fixed"
    HOURLY = "hourly"
    MONTHLY = "monthly"

    @property
    def suffix(self) -> str:
        return {BillingCycle.HOURLY: " / hour", BillingCycle.MONTHLY: " / month"}.get(self, "")


class ContactMode(str, Enum):
    EMAIL = "Email"
    PHONE = "Phone"
    WHATSAPP = "WhatsApp"
    VIDEO_CALL = "Video Call"


class Currency(str, Enum):
    USD = "$"
    EUR = "€"
    GBP = "£"
    INR = "₹"
    JPY = "¥"

    @property
    def label(self) -> str:
        return f"{self.name} ({self.value})"


DEFAULT_SENDER_NAME = "Taskio"
DEFAULT_SENDER_ADDRESS = "India, Hyderabad,\nHitech City"
DEFAULT_SENDER_EMAIL = "hello@taskio.com"
DEFAULT_SENDER_PHONE = "+91 98765 43210"
DEFAULT_NOTES = "* This quote is valid for 14 days. Terms and conditions apply."

_IDENTITY_FIELDS = frozenset({"quote_number", "date"})


@dataclass(frozen=True)
class LineItem:
    """
    One priced unit of work within a draft.

    `total` is never passed in: it is derived from quantity and unit price on construction.
    Use `with_quantity()` / `with_unit_price()` to change either, which rebuilds the item with
    a fresh total so no reader can observe a stale one.
    """

    id: str
    description: str
    quantity: int
    unit_price: float
    service_description: str = ""
    includes: Tuple[str, ...] = ()
    excludes: Tuple[str, ...] = ()
    billing_cycle: BillingCycle = BillingCycle.FIXED
    # Catalog provenance; None for AI-authored custom items.
    catalog_id: Optional[str] = None
    total: float = field(init=False)

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise QuoteFieldError(f"quantity must be int (got {type(self.quantity).__name__})")
        if self.quantity < 1:
            raise QuoteFieldError(f"quantity must be >= 1 (got {self.quantity})")
        if self.unit_price < 0:
            raise QuoteFieldError(f"unit_price must be >= 0 (got {self.unit_price})")
        object.__setattr__(self, "includes", tuple(self.includes))
        object.__setattr__(self, "excludes", tuple(self.excludes))
        object.__setattr__(self, "billing_cycle", BillingCycle(self.billing_cycle))
        object.__setattr__(self, "total", line_total(self))

    @property
    def is_custom(self) -> bool:
        return self.catalog_id is None

    def with_quantity(self, quantity: int) -> "LineItem":
        # Clamp rather than reject: the +/- controls can never take an item below one unit.
        return replace(self, quantity=max(1, int(quantity)))

    def with_unit_price(self, unit_price: float) -> "LineItem":
        return replace(self, unit_price=float(unit_price))


@dataclass
class QuotationDraft:
    quote_number: str
    date: str
    sender_name: str = DEFAULT_SENDER_NAME
    sender_address: str = DEFAULT_SENDER_ADDRESS
    sender_email: str = DEFAULT_SENDER_EMAIL
    sender_phone: str = DEFAULT_SENDER_PHONE
    client_name: str = ""
    client_address: str = ""
    client_email: str = ""
    client_phone: str = ""
    client_whatsapp: str = ""
    client_website: str = ""
    expiry_date: str = ""
    preferred_contact_mode: ContactMode = ContactMode.EMAIL
    currency: Currency = Currency.USD
    notes: str = DEFAULT_NOTES
    client_budget: float = 0.0
    # Carried for the document model only; totals ignore both.
    tax_rate: float = 0.0
    discount: float = 0.0
    items: List[LineItem] = field(default_factory=list)
    logo_png_bytes: Optional[bytes] = None

    def __setattr__(self, name: str, value: object) -> None:
        if name in _IDENTITY_FIELDS and name in self.__dict__:
            raise AttributeError(f"{name} is fixed once the draft is created")
        super().__setattr__(name, value)

    def find_item(self, item_id: str) -> Optional[LineItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def find_catalog_item(self, catalog_id: str) -> Optional[LineItem]:
        return next((item for item in self.items if item.catalog_id == catalog_id), None)

    def replace_item(self, updated: LineItem) -> None:
        self.items = [updated if item.id == updated.id else item for item in self.items]


def new_item_id() -> str:
    return uuid.uuid4().hex[:9]


def format_quote_date(d: date) -> str:
    # "Oct 19, 2026" without platform-specific strftime flags.
    return f"{d:%b} {d.day}, {d.year}"


def new_quote_number(d: date, *, rng: Optional[random.Random] = None) -> str:
    r = rng or random
    return f"QTN-{d.year}-{r.randint(1000, 9999)}"


def new_draft(*, today: Optional[date] = None, rng: Optional[random.Random] = None) -> QuotationDraft:
    """
    Create a fresh draft with a new identity (reference number + creation date) and default sender/terms.
    """
    d = today or date.today()
    return QuotationDraft(quote_number=new_quote_number(d, rng=rng), date=format_quote_date(d))
