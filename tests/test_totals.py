"""Tests for totals recomputation, state tax and payload parsing."""

from datetime import date

import pytest

from models import (
    DocumentKind,
    DocumentPayload,
    LineItem,
    compute_totals,
    extract_state,
    payload_from_dict,
    tax_label,
    tax_rate_for_state,
)


def _payload(items=(), **kw):
    return DocumentPayload(kind=kw.pop("kind", DocumentKind.ESTIMATE), items=tuple(items), **kw)


# ---------------------------------------------------------------------------
# compute_totals
# ---------------------------------------------------------------------------

def test_subtotal_is_sum_of_line_amounts():
    items = [
        LineItem("A", 2, "", 1.25),
        LineItem("B", 3, "", 4.10),
        LineItem("C", 0, "", 99.0),
    ]
    totals = compute_totals(_payload(items))
    assert totals.subtotal == pytest.approx(2 * 1.25 + 3 * 4.10)
    assert totals.total == totals.subtotal


def test_widget_scenario(widget_payload):
    totals = compute_totals(widget_payload)
    assert totals.subtotal == 30.00
    assert totals.discount == 0.0
    assert totals.tax == 0.0
    assert totals.total == 30.00


def test_discount_percent_applies_to_subtotal():
    totals = compute_totals(_payload([LineItem("A", 1, "", 100.0)], discount_percent=10))
    assert totals.discount == 10.00
    assert totals.total == 90.00


def test_discount_percent_wins_over_discount_amount():
    totals = compute_totals(_payload([LineItem("A", 1, "", 100.0)], discount_percent=5, discount_amount=40))
    assert totals.discount == 5.00


def test_discount_amount_used_without_percent():
    totals = compute_totals(_payload([LineItem("A", 1, "", 100.0)], discount_amount=12.5))
    assert totals.total == 87.50


def test_total_formula_with_tax():
    totals = compute_totals(_payload([LineItem("A", 2, "", 50.0)], discount_amount=10, tax_amount=7.2))
    assert totals.total == pytest.approx(100 - 10 + 7.2)


def test_caller_totals_are_overridden():
    payload = _payload([LineItem("A", 1, "", 20.0)], subtotal=999.0, total=1.0)
    totals = compute_totals(payload)
    assert totals.subtotal == 20.0
    assert totals.total == 20.0


def test_empty_items_total_is_not_clamped():
    totals = compute_totals(_payload([], discount_amount=5, tax_amount=1))
    assert totals.subtotal == 0.0
    assert totals.total == -4.0


def test_blank_row_does_not_affect_subtotal():
    items = [LineItem("X", 1, "", 3.0), LineItem("", 0, "", 0)]
    assert compute_totals(_payload(items)).subtotal == 3.0


def test_state_tax_is_opt_in():
    items = [LineItem("A", 1, "", 100.0)]
    bill_to = "Jane\nTrenton, NJ 08601"
    assert compute_totals(_payload(items, bill_to=bill_to)).tax == 0.0

    totals = compute_totals(_payload(items, bill_to=bill_to, apply_state_tax=True))
    assert totals.tax_state == "NJ"
    assert totals.tax == 6.63
    assert totals.total == 106.63


def test_explicit_tax_beats_state_tax():
    items = [LineItem("A", 1, "", 100.0)]
    totals = compute_totals(_payload(items, bill_to="Albany, NY", tax_amount=2, apply_state_tax=True))
    assert totals.tax == 2.0


# ---------------------------------------------------------------------------
# state tax helpers
# ---------------------------------------------------------------------------

def test_extract_state_prefers_last_token():
    assert extract_state("Jane Doe\n12 Main St\nBrooklyn, NY 11234") == "NY"


def test_extract_state_none():
    assert extract_state("") is None
    assert extract_state("12345") is None


def test_tax_rate_defaults_to_ny():
    assert tax_rate_for_state(None) == 0.08875
    assert tax_rate_for_state("TX") == 0.08875
    assert tax_rate_for_state("ca") == 0.0725


def test_tax_label():
    assert tax_label(None) == "Tax NY (8.875%)"
    assert tax_label("CT") == "Tax CT (6.350%)"


# ---------------------------------------------------------------------------
# payload_from_dict
# ---------------------------------------------------------------------------

def test_payload_from_dict_coerces_items():
    payload = payload_from_dict({
        "type": "BILL",
        "invoiceNo": "B-7",
        "supplierAddress": "Acme Supply\nNewark, NJ",
        "items": [
            {"item": "SKU1", "qty": "2", "description": "Chair", "rate": "15.5"},
            {"item": "", "qty": "", "description": "", "rate": ""},
            {"sku": "SKU2", "qty": "lots", "rate": None},
            "not a row",
        ],
        "subtotal": "100",
    })
    assert payload.kind is DocumentKind.BILL
    assert payload.document_number == "B-7"
    assert payload.bill_to.startswith("Acme Supply")
    assert len(payload.items) == 3
    assert payload.items[0].quantity == 2.0
    assert payload.items[0].rate == 15.5
    assert payload.items[1].is_blank
    assert payload.items[2].label == "SKU2"
    assert payload.items[2].quantity == 0.0
    assert payload.subtotal == 100.0


def test_payload_from_dict_estimate_ignores_invoice_number():
    payload = payload_from_dict({"estimateNo": "", "invoiceNo": "INV-123456"}, kind="estimate")
    assert payload.document_number == ""
    assert payload.resolved_number() == "EST-DRAFT"


def test_payload_from_dict_items_not_a_list():
    payload = payload_from_dict({"items": "oops"}, kind="invoice")
    assert payload.items == ()


def test_payload_from_dict_unknown_kind():
    with pytest.raises(ValueError):
        payload_from_dict({"type": "receipt"})


def test_payload_from_dict_string_flags():
    payload = payload_from_dict({"applyStateTax": "false"}, kind="invoice")
    assert payload.apply_state_tax is False
    payload = payload_from_dict({"applyStateTax": "true", "tax": ""}, kind="invoice")
    assert payload.apply_state_tax is True
    assert payload.tax_amount is None


def test_kind_aliases():
    assert DocumentKind.parse("Billing") is DocumentKind.BILL
    assert DocumentKind.parse(" INVOICE ") is DocumentKind.INVOICE


# ---------------------------------------------------------------------------
# fallbacks
# ---------------------------------------------------------------------------

def test_ship_to_falls_back_to_bill_to():
    payload = _payload(bill_to="Jane", ship_to="  \n ")
    assert payload.resolved_ship_to() == "Jane"


def test_date_defaults_to_today():
    assert _payload().resolved_date() == date.today().isoformat()


def test_number_placeholders():
    assert _payload(kind=DocumentKind.BILL).resolved_number() == "1"
    assert _payload(kind=DocumentKind.INVOICE).resolved_number() == "DRAFT"
