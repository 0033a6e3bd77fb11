# api_client.py
from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Optional

import requests

from config import Config
from errors import ApiError, DeliveryError
from models import DocumentKind, DocumentPayload, Totals, compute_totals
from pdf_service import split_address_lines

logger = logging.getLogger(__name__)

SAVE_ENDPOINTS = {
    DocumentKind.ESTIMATE: "/estimates/save",
    DocumentKind.BILL: "/billing/save",
    DocumentKind.INVOICE: "/invoices/save",
}

# The backend keys the document number differently per collection
_NUMBER_FIELD = {
    DocumentKind.ESTIMATE: "estimateNo",
    DocumentKind.BILL: "invoiceNo",
    DocumentKind.INVOICE: "invoiceNo",
}


@dataclass(frozen=True)
class ApiSession:
    """Connection details for one caller. Passed explicitly to every call."""
    base_url: str
    token: Optional[str] = None
    timeout: float = 15.0

    @classmethod
    def from_config(cls, config=Config, token: Optional[str] = None) -> "ApiSession":
        return cls(
            base_url=config.API_BASE_URL,
            token=token or (config.API_TOKEN or None),
            timeout=config.API_TIMEOUT,
        )

    def with_token(self, token: Optional[str]) -> "ApiSession":
        return replace(self, token=token or None)

    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


def api(session: ApiSession, path: str, method: str = "GET", json: Any = None) -> Any:
    """
    JSON request against the backend. Non-2xx -> ApiError with the response
    text; transport problems -> DeliveryError.
    """
    try:
        resp = requests.request(
            method,
            session.url(path),
            json=json,
            headers=session.headers(),
            timeout=session.timeout,
        )
    except requests.RequestException as exc:
        raise DeliveryError(f"{method} {path} failed: {exc}") from exc

    if not resp.ok:
        raise ApiError(resp.text, status_code=resp.status_code)

    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def build_save_body(payload: DocumentPayload, pdf_bytes: bytes, totals: Totals | None = None) -> dict:
    totals = totals or compute_totals(payload)

    number = payload.document_number.strip()
    if not number and payload.kind is DocumentKind.ESTIMATE:
        number = f"EST-{int(time.time() * 1000)}"
    number = number or payload.resolved_number()

    bill_to_lines = split_address_lines(payload.bill_to)

    return {
        "type": payload.kind.value.upper(),
        "documentNo": number,
        _NUMBER_FIELD[payload.kind]: number,
        "date": payload.resolved_date(),
        "billTo": payload.bill_to,
        "shipTo": payload.resolved_ship_to(),
        "customer": bill_to_lines[0] if bill_to_lines else "Customer",
        "items": [
            {
                "item": it.label,
                "qty": it.quantity,
                "description": it.description,
                "rate": it.rate,
                "amount": it.amount,
            }
            for it in payload.items
        ],
        "discountPercent": payload.discount_percent,
        "subtotal": totals.subtotal,
        "discount": totals.discount,
        "tax": totals.tax,
        "total": totals.total,
        "pdfData": base64.b64encode(pdf_bytes).decode("ascii"),
    }


def save_document(
    session: ApiSession,
    payload: DocumentPayload,
    pdf_bytes: bytes,
    totals: Totals | None = None,
) -> Any:
    """
    Upload an already-rendered PDF. Failure raises DeliveryError/ApiError;
    the bytes are untouched so the caller may retry.
    """
    body = build_save_body(payload, pdf_bytes, totals)
    path = SAVE_ENDPOINTS[payload.kind]
    try:
        result = api(session, path, method="POST", json=body)
    except DeliveryError as exc:
        logger.warning("Saving %s %s failed: %s", payload.kind.value, body["documentNo"], exc)
        raise
    logger.info("Saved %s %s", payload.kind.value, body["documentNo"])
    return result
