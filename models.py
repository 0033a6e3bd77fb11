# models.py
from __future__ import annotations

import enum
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Optional

logger = logging.getLogger(__name__)


# -----------------------------
# Numeric helpers
# -----------------------------
def to_float(value, default: float = 0.0) -> float:
    """
    Coerce form input to float. Blank, missing, non-numeric, NaN and inf
    all become `default`; nothing here ever raises.
    """
    if value is None:
        return float(default)
    try:
        if isinstance(value, str):
            value = value.strip().replace(",", "")
            if not value:
                return float(default)
        out = float(value)
    except (TypeError, ValueError):
        return float(default)
    if not math.isfinite(out):
        return float(default)
    return out


def _opt_float(value) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return to_float(value)


def round2(value) -> float:
    """Round half away from zero at the second decimal (12.345 -> 12.35)."""
    x = to_float(value)
    with localcontext() as ctx:
        # enough digits for any finite float (max ~1.8e308) plus two decimals
        ctx.prec = 400
        q = Decimal(repr(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    # -0.0 -> 0.0
    return float(q) or 0.0


# -----------------------------
# State sales tax
# -----------------------------
STATE_TAX_RATES = {
    "NY": 0.08875,
    "NJ": 0.06625,
    "CT": 0.0635,
    "PA": 0.06,
    "FL": 0.06,
    "CA": 0.0725,
}
DEFAULT_TAX_STATE = "NY"


def extract_state(bill_to: str | None) -> str | None:
    """Last two-letter token wins: "12 Main St / Brooklyn, NY 11234" -> "NY"."""
    if not bill_to:
        return None
    for part in reversed(re.split(r"[ ,\r\n]+", bill_to)):
        if re.fullmatch(r"[A-Za-z]{2}", part):
            return part.upper()
    return None


def tax_rate_for_state(state: str | None) -> float:
    if not state:
        return STATE_TAX_RATES[DEFAULT_TAX_STATE]
    return STATE_TAX_RATES.get(state.strip().upper(), STATE_TAX_RATES[DEFAULT_TAX_STATE])


def tax_label(state: str | None) -> str:
    if not state:
        return f"Tax {DEFAULT_TAX_STATE} ({STATE_TAX_RATES[DEFAULT_TAX_STATE] * 100:.3f}%)"
    return f"Tax {state} ({tax_rate_for_state(state) * 100:.3f}%)"


# -----------------------------
# Document model
# -----------------------------
class DocumentKind(str, enum.Enum):
    ESTIMATE = "estimate"
    BILL = "bill"
    INVOICE = "invoice"

    @classmethod
    def parse(cls, raw) -> "DocumentKind":
        if isinstance(raw, cls):
            return raw
        key = (str(raw or "")).strip().lower()
        if key == "billing":
            key = "bill"
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown document kind: {raw!r}") from None


# Used when the caller did not supply a document number
NUMBER_PLACEHOLDERS = {
    DocumentKind.BILL: "1",
    DocumentKind.ESTIMATE: "EST-DRAFT",
    DocumentKind.INVOICE: "DRAFT",
}


@dataclass(frozen=True)
class CompanyInfo:
    name: str = ""
    address1: str = ""
    address2: str = ""
    phone: str = ""
    fax: str = ""
    email: str = ""
    website: str = ""

    def address_line(self) -> str:
        return ", ".join(p for p in [self.address1.strip(), self.address2.strip()] if p)


@dataclass(frozen=True)
class LineItem:
    label: str = ""
    quantity: float = 0.0
    description: str = ""
    rate: float = 0.0

    @property
    def amount(self) -> float:
        return self.quantity * self.rate

    @property
    def is_blank(self) -> bool:
        # Empty placeholder row from the form: kept in the payload, never drawn
        return not self.label.strip() and self.quantity == 0 and self.rate == 0


@dataclass(frozen=True)
class DocumentPayload:
    kind: DocumentKind
    company: CompanyInfo = field(default_factory=CompanyInfo)
    document_number: str = ""
    date: str = ""
    bill_to: str = ""
    ship_to: str = ""
    items: tuple[LineItem, ...] = ()
    discount_percent: float = 0.0
    discount_amount: float = 0.0
    tax_amount: Optional[float] = None
    apply_state_tax: bool = False
    # Advisory only; compute_totals() is authoritative
    subtotal: Optional[float] = None
    total: Optional[float] = None
    salesman: str = ""
    time: str = ""

    def resolved_number(self) -> str:
        return self.document_number.strip() or NUMBER_PLACEHOLDERS[self.kind]

    def resolved_date(self) -> str:
        return self.date.strip() or date.today().isoformat()

    def resolved_ship_to(self) -> str:
        return self.ship_to if self.ship_to.strip() else self.bill_to

    def visible_items(self) -> list[LineItem]:
        return [it for it in self.items if not it.is_blank]


@dataclass(frozen=True)
class Totals:
    subtotal: float
    discount: float
    tax: float
    total: float
    tax_state: Optional[str] = None
    tax_rate: float = 0.0

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
            "taxState": self.tax_state,
            "taxRate": self.tax_rate,
        }


# -----------------------------
# Totals
# -----------------------------
def compute_totals(payload: DocumentPayload) -> Totals:
    """
    Recompute subtotal/discount/tax/total from the line items.
    Caller-supplied subtotal/total are ignored (only logged if they disagree).
    No clamping: an empty document with a discount has a negative total.
    """
    subtotal = round2(sum(it.amount for it in payload.items))

    if payload.discount_percent > 0:
        discount = round2(subtotal * payload.discount_percent / 100.0)
    else:
        discount = round2(payload.discount_amount or 0.0)

    state = extract_state(payload.bill_to)
    rate = tax_rate_for_state(state)
    if payload.tax_amount is not None:
        tax = round2(payload.tax_amount)
    elif payload.apply_state_tax:
        tax = round2((subtotal - discount) * rate)
    else:
        tax = 0.0

    total = round2(subtotal - discount + tax)

    if payload.subtotal is not None and round2(payload.subtotal) != subtotal:
        logger.debug("Ignoring caller subtotal %s (recomputed %s)", payload.subtotal, subtotal)
    if payload.total is not None and round2(payload.total) != total:
        logger.debug("Ignoring caller total %s (recomputed %s)", payload.total, total)

    return Totals(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        total=total,
        tax_state=state,
        tax_rate=rate,
    )


# -----------------------------
# Parsing from front-end JSON
# -----------------------------
def _text(value) -> str:
    if value is None:
        return ""
    return str(value)


def _first(data: dict, *keys):
    for k in keys:
        v = data.get(k)
        if v is not None and v != "":
            return v
    return None


_NUMBER_KEYS = {
    DocumentKind.ESTIMATE: ("estimateNo",),
    DocumentKind.BILL: ("billNo", "invoiceNo"),
    DocumentKind.INVOICE: ("invoiceNo",),
}


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def line_item_from_dict(row: dict) -> LineItem:
    return LineItem(
        label=_text(_first(row, "item", "sku", "label")).strip(),
        quantity=to_float(row.get("qty", row.get("quantity"))),
        description=_text(row.get("description")),
        rate=to_float(row.get("rate", row.get("unitRate"))),
    )


def payload_from_dict(data: dict, kind=None) -> DocumentPayload:
    """
    Build a DocumentPayload from the camelCase JSON the forms post.
    `kind` overrides data["type"]. Only an unknown kind raises.
    """
    doc_kind = DocumentKind.parse(kind if kind is not None else data.get("type"))

    raw_items = data.get("items")
    if not isinstance(raw_items, list):
        raw_items = []
    items = tuple(line_item_from_dict(r) for r in raw_items if isinstance(r, dict))

    company = CompanyInfo(
        name=_text(data.get("companyName")),
        address1=_text(data.get("companyAddr1")),
        address2=_text(data.get("companyAddr2")),
        phone=_text(data.get("phone")),
        fax=_text(data.get("fax")),
        email=_text(data.get("email")),
        website=_text(data.get("website")),
    )

    number = _first(data, "documentNumber", *_NUMBER_KEYS[doc_kind])

    return DocumentPayload(
        kind=doc_kind,
        company=company,
        document_number=_text(number).strip(),
        date=_text(data.get("date")).strip(),
        bill_to=_text(_first(data, "billTo", "supplierAddress")),
        ship_to=_text(data.get("shipTo")),
        items=items,
        discount_percent=to_float(data.get("discountPercent")),
        discount_amount=to_float(_first(data, "discountAmount", "discount")),
        tax_amount=_opt_float(_first(data, "taxAmount", "tax")),
        apply_state_tax=_flag(data.get("applyStateTax")),
        subtotal=_opt_float(data.get("subtotal")),
        total=_opt_float(data.get("total")),
        salesman=_text(data.get("salesman")),
        time=_text(data.get("time")),
    )
