# pdf_service.py
import io
import logging
import os
import re
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import LETTER
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from config import Config
from errors import DeliveryError, RenderError
from models import DocumentKind, DocumentPayload, Totals, compute_totals, round2, tax_label, to_float

logger = logging.getLogger(__name__)

PAGE_W, PAGE_H = LETTER  # 612 x 792
M = 50
TABLE_W = PAGE_W - 2 * M

BLACK = (0, 0, 0)
LINK_BLUE = (0, 0.3, 0.8)
ACCENT_RED = (0.8, 0, 0)
HEADER_GRAY = (0.9, 0.9, 0.9)


# -----------------------------
# Formatting
# -----------------------------
def format_currency(n) -> str:
    """Dollar sign plus two decimals, half away from zero. None/NaN/garbage give $0.00."""
    return f"${round2(n):.2f}"


def format_quantity(q) -> str:
    x = to_float(q)
    if x == 0:
        return ""
    if x.is_integer():
        return str(int(x))
    # shortest exact digits, never scientific notation (1e-07 -> "0.0000001")
    return format(Decimal(repr(x)).normalize(), "f")


def split_address_lines(text: str | None) -> list[str]:
    return [ln.strip() for ln in re.split(r"[\r\n]+", text or "") if ln.strip()]


def _safe_filename(name: str, fallback: str = "draft") -> str:
    # strip characters not allowed on Windows/mac paths
    return re.sub(r'[\\/*?:"<>|]', "", (name or "")).strip() or fallback


def document_filename(payload: DocumentPayload) -> str:
    return f"{payload.kind.value}-{_safe_filename(payload.document_number)}.pdf"


# -----------------------------
# Per-kind templates
# -----------------------------
# Column widths always add up to TABLE_W.
TEMPLATE_CFG = {
    DocumentKind.BILL: {
        "title": "Billing",
        "number_label": "Billing #",
        "bill_to_title": "Name / Address",
        "ship_to_title": "Ship To",
        "columns": [
            ("label", "Item", 80),
            ("quantity", "Qty", 50),
            ("description", "Description", 212),
            ("rate", "Rate", 80),
            ("amount", "Total", 90),
        ],
        "blank_zero_money": True,
        "show_tax": False,
        "totals_anchor": "bottom",
        "totals_size": 12,
        "total_label": "Total",
        "total_label_size": 14,
        "total_value_size": 14,
        "total_color": BLACK,
        "show_footer": False,
    },
    DocumentKind.ESTIMATE: {
        "title": "Estimate",
        "number_label": "Estimate #",
        "bill_to_title": "Name / Address",
        "ship_to_title": "Ship To",
        "columns": [
            ("label", "Item", 80),
            ("quantity", "Qty", 50),
            ("description", "Description", 212),
            ("rate", "Rate", 80),
            ("amount", "Amount", 90),
        ],
        "blank_zero_money": True,
        "show_tax": False,
        "totals_anchor": "table",
        "totals_size": 11,
        "total_label": "Total",
        "total_label_size": 13,
        "total_value_size": 13,
        "total_color": BLACK,
        "show_footer": False,
    },
    DocumentKind.INVOICE: {
        "title": "Invoice",
        "number_label": "Invoice #",
        "bill_to_title": "Bill To:",
        "ship_to_title": "Ship To:",
        "columns": [
            ("label", "Item", 80),
            ("description", "Description", 200),
            ("quantity", "Qty", 52),
            ("rate", "Price", 80),
            ("amount", "Amount", 100),
        ],
        "blank_zero_money": False,
        "show_tax": True,
        "totals_anchor": "bottom",
        "totals_size": 13,
        "total_label": "TOTAL",
        "total_label_size": 18,
        "total_value_size": 20,
        "total_color": ACCENT_RED,
        "show_footer": True,
    },
}

ADDRESS_BOX_H = 90
NUMBER_BOX_W, NUMBER_BOX_H = 160, 50
TOTALS_BOX_W = 200
LINE_PITCH = 18
ROW_PITCH = 20
TOTALS_PITCH = 20


def totals_lines(payload: DocumentPayload, totals: Totals) -> list[tuple[str, str]]:
    """Label/value rows drawn above the final total line."""
    cfg = TEMPLATE_CFG[payload.kind]
    lines = [("Subtotal", format_currency(totals.subtotal))]
    if totals.discount > 0:
        lines.append(("Discount", f"-{format_currency(totals.discount)}"))
    elif totals.discount < 0:
        # negative discount prints as a surcharge
        lines.append(("Discount", f"+{format_currency(-totals.discount)}"))
    if cfg["show_tax"]:
        lines.append((tax_label(totals.tax_state), format_currency(totals.tax)))
    return lines


def totals_box_height(n_lines: int) -> int:
    # one extra optional line (e.g. discount) grows the box by TOTALS_PITCH
    return 60 + TOTALS_PITCH * n_lines


def cell_text(item, key: str, blank_zero_money: bool) -> str:
    if key == "label":
        return item.label
    if key == "description":
        return item.description
    if key == "quantity":
        return format_quantity(item.quantity)
    value = item.rate if key == "rate" else item.amount
    if blank_zero_money and value == 0:
        return ""
    return format_currency(value)


# -----------------------------
# Fonts
# -----------------------------
def _register_ttf(name: str, path: str) -> str:
    if name not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont(name, path))
    return name


def resolve_fonts(config=Config) -> tuple[str, str]:
    """
    Returns (regular, bold) font names. Custom TTFs are embedded when
    configured; any failure there is fatal to the render.
    """
    regular_path = (getattr(config, "PDF_FONT_PATH", "") or "").strip()
    bold_path = (getattr(config, "PDF_BOLD_FONT_PATH", "") or "").strip()
    if not regular_path and not bold_path:
        return "Helvetica", "Helvetica-Bold"

    try:
        regular = _register_ttf("DocSans", regular_path) if regular_path else "Helvetica"
        bold = _register_ttf("DocSans-Bold", bold_path) if bold_path else regular
    except Exception as exc:
        raise RenderError(f"Could not load PDF font: {exc}") from exc
    return regular, bold


# -----------------------------
# Layout
# -----------------------------
def draw_document(pdf, payload: DocumentPayload, totals: Totals, fonts=("Helvetica", "Helvetica-Bold")) -> None:
    """
    Paint one page onto a reportlab-compatible canvas. Positions are absolute
    (origin bottom-left); text is never wrapped or clipped.
    """
    cfg = TEMPLATE_CFG[payload.kind]
    regular, bold = fonts
    company = payload.company

    def text(x, y, value, font=regular, size=11, color=None):
        pdf.setFont(font, size)
        if color is not None:
            pdf.setFillColorRGB(*color)
        pdf.drawString(x, y, value)
        if color is not None:
            pdf.setFillColorRGB(*BLACK)

    def box(x, y, w, h, line_width=1):
        pdf.setLineWidth(line_width)
        pdf.rect(x, y, w, h, stroke=1, fill=0)

    # COMPANY HEADER
    y = PAGE_H - M
    text(M, y, company.name, bold, 16)
    y -= 20
    text(M, y, company.address_line())
    y -= LINE_PITCH
    phone_line = f"Phone #: {company.phone}"
    if company.fax.strip():
        phone_line += f"   Fax: {company.fax}"
    text(M, y, phone_line)

    # EMAIL & WEBSITE (center)
    center_x = PAGE_W / 2 - 40
    cy = PAGE_H - M - 5
    text(center_x - 80, cy, "E-mail")
    text(center_x - 30, cy, company.email, color=LINK_BLUE)
    text(center_x - 80, cy - 20, "Web Site")
    text(center_x - 30, cy - 20, company.website, color=LINK_BLUE)

    # TITLE + NUMBER BOX
    text(PAGE_W - M - 120, PAGE_H - M, cfg["title"], bold, 20)
    bx = PAGE_W - M - 180
    by = PAGE_H - M - 70
    box(bx, by, NUMBER_BOX_W, NUMBER_BOX_H)
    text(bx + 10, by + 30, "Date")
    text(bx + 90, by + 30, payload.resolved_date())
    text(bx + 10, by + 8, cfg["number_label"])
    text(bx + 90, by + 8, payload.resolved_number())

    # BILL TO & SHIP TO
    top = PAGE_H - M - 120
    box_w = (PAGE_W - 3 * M) / 2
    for x, title, body in (
        (M, cfg["bill_to_title"], payload.bill_to),
        (M + box_w + M, cfg["ship_to_title"], payload.resolved_ship_to()),
    ):
        box(x, top - ADDRESS_BOX_H, box_w, ADDRESS_BOX_H)
        text(x + 10, top - 18, title, bold, 11)
        ly = top - 38
        for line in split_address_lines(body):
            text(x + 10, ly, line)
            ly -= LINE_PITCH

    # ITEM TABLE
    table_top = top - ADDRESS_BOX_H - 30
    pdf.setFillColorRGB(*HEADER_GRAY)
    pdf.rect(M, table_top - 25, TABLE_W, 25, stroke=0, fill=1)
    pdf.setFillColorRGB(*BLACK)

    x = M
    for _, header, width in cfg["columns"]:
        text(x + 8, table_top - 15, header, bold, 11)
        x += width
    pdf.setLineWidth(1)
    pdf.line(M, table_top - 25, PAGE_W - M, table_top - 25)

    y = table_top - 50
    for item in payload.visible_items():
        x = M
        for key, _, width in cfg["columns"]:
            text(x + 5, y, cell_text(item, key, cfg["blank_zero_money"]), regular, 10)
            x += width
        y -= ROW_PITCH

    # TOTALS
    lines = totals_lines(payload, totals)
    sum_h = totals_box_height(len(lines))
    sum_x = PAGE_W - M - TOTALS_BOX_W
    if cfg["totals_anchor"] == "table":
        sum_y = (y + ROW_PITCH - 10) - sum_h
    else:
        sum_y = M
    box(sum_x, sum_y, TOTALS_BOX_W, sum_h, line_width=1.5)

    size = cfg["totals_size"]
    ty = sum_y + sum_h - 30
    for label, value in lines:
        text(sum_x + 15, ty, label, regular, size)
        text(sum_x + TOTALS_BOX_W - 100, ty, value, regular, size)
        ty -= TOTALS_PITCH
    ty -= 8
    text(sum_x + 15, ty, cfg["total_label"], bold, cfg["total_label_size"])
    text(
        sum_x + TOTALS_BOX_W - 110,
        ty,
        format_currency(totals.total),
        bold,
        cfg["total_value_size"],
        color=cfg["total_color"],
    )

    # FOOTER (invoice)
    if cfg["show_footer"]:
        fy = M + 70
        text(M, fy, f"DATE: {payload.resolved_date()}", bold, 12)
        fy -= 20
        text(M, fy, f"SALESMAN: {payload.salesman.strip() or 'LIVIA'}", regular, 12)
        fy -= 20
        text(M, fy, f"TIME: {payload.time}", regular, 12)
        text(M, M, "THANK YOU FOR SHOPPING", bold, 18, color=ACCENT_RED)


# -----------------------------
# Render / deliver
# -----------------------------
@dataclass(frozen=True)
class RenderedDocument:
    pdf_bytes: bytes
    totals: Totals
    filename: str


def render_document(payload: DocumentPayload, config=Config) -> RenderedDocument:
    """
    One render pass. Either the full PDF comes back or RenderError is raised;
    there is never partial output.
    """
    fonts = resolve_fonts(config)

    buf = io.BytesIO()
    try:
        totals = compute_totals(payload)
        # invariant=1: no timestamps/random IDs, so same payload -> same bytes
        pdf = canvas.Canvas(buf, pagesize=(PAGE_W, PAGE_H), invariant=1)
        pdf.setTitle(f"{TEMPLATE_CFG[payload.kind]['title']} {payload.resolved_number()}")
        draw_document(pdf, payload, totals, fonts)
        pdf.showPage()
        pdf.save()
    except Exception as exc:
        logger.exception("PDF render failed for %s %s", payload.kind.value, payload.resolved_number())
        raise RenderError(f"Failed to generate {payload.kind.value} PDF: {exc}") from exc

    data = buf.getvalue()
    logger.debug("Rendered %s %s (%d bytes)", payload.kind.value, payload.resolved_number(), len(data))
    return RenderedDocument(pdf_bytes=data, totals=totals, filename=document_filename(payload))


def render(payload: DocumentPayload, config=Config) -> bytes:
    return render_document(payload, config).pdf_bytes


def write_pdf(doc: RenderedDocument, kind: DocumentKind, exports_dir: str | None = None, config=Config) -> str:
    """
    Writes an already-rendered PDF under EXPORTS_DIR/<kind>/.
    Returns: absolute pdf path on disk.
    """
    out_dir = Path(exports_dir or config.EXPORTS_DIR) / kind.value
    pdf_path = (out_dir / doc.filename).resolve()
    try:
        os.makedirs(out_dir, exist_ok=True)
        pdf_path.write_bytes(doc.pdf_bytes)
    except OSError as exc:
        raise DeliveryError(f"Could not write {pdf_path}: {exc}") from exc

    logger.info("Stored %s", pdf_path)
    return str(pdf_path)


def generate_and_store_pdf(payload: DocumentPayload, exports_dir: str | None = None, config=Config) -> str:
    return write_pdf(render_document(payload, config), payload.kind, exports_dir, config)
