"""
Quote document renderer.

Generates the client-facing PDF for a quote and stores it under
settings.ARTIFACT_DIR. Uses fpdf2 (pure Python, no system dependencies).

Sections, always present:
1. Header (company + quote code + total)
2. Client
3. Products
4. Totals (subtotal, fees, discount, total)
5. Quote information (payment, dates)
6. Notes

The stored location is content-addressed: the same quote fields and company
profile always produce the same {uri, file_name}.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

from fpdf import FPDF

from .config import settings
from .errors import RenderingError

logger = logging.getLogger(__name__)

COMPANY_FIELDS = ("name", "document", "address", "phone", "email", "website")


@dataclass(frozen=True)
class RenderedDocument:
    uri: str
    file_name: str


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() if isinstance(value, datetime) else str(value)


def quote_document_data(quote) -> dict:
    """Every Quote field that ends up printed, and nothing else."""
    return {
        "code": quote.code,
        "client_name": quote.client_name,
        "created_at": _iso(quote.created_at),
        "planned_start": _iso(quote.planned_start),
        "planned_delivery": _iso(quote.planned_delivery),
        "payment_terms": quote.payment_terms,
        "delivery_address": quote.delivery_address,
        "project_summary": quote.project_summary,
        "notes": quote.notes,
        "items": [
            {
                "name": item.name,
                "quantity": item.quantity,
                "unit_value": item.unit_value,
                "total_value": item.total_value,
            }
            for item in quote.items
        ],
        "project_type": quote.project_type,
        "project_fee": quote.project_fee,
        "fees": [{"name": fee.name, "amount": fee.amount} for fee in quote.selected_fees],
        "discount": quote.discount,
        "subtotal": quote.subtotal,
        "total": quote.total,
    }


def company_document_data(company) -> dict:
    if company is None:
        return {"name": settings.COMPANY_NAME}
    if isinstance(company, dict):
        return {k: company.get(k) for k in COMPANY_FIELDS}
    return {k: getattr(company, k, None) for k in COMPANY_FIELDS}


def render_fingerprint(quote_data: dict, company_data: dict) -> str:
    payload = json.dumps({"quote": quote_data, "company": company_data}, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _fmt(amount) -> str:
    """Format a number as R$ 1.234,56"""
    try:
        text = f"{float(amount):,.2f}"
    except (ValueError, TypeError):
        text = "0.00"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


def _fmt_date(value: Optional[str]) -> str:
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%d/%m/%Y")
    except ValueError:
        return value


def _safe(text) -> str:
    """Replace Unicode chars that can't be rendered by built-in PDF fonts (latin-1)."""
    if not text:
        return ""
    return (
        str(text)
        .replace("•", "-")
        .replace("—", " - ")
        .replace("–", "-")
        .replace("“", '"')
        .replace("”", '"')
        .replace("‘", "'")
        .replace("’", "'")
        .encode("latin-1", errors="replace")
        .decode("latin-1")
    )


class QuotePDF(FPDF):
    """A4 quote document with section bars and simple tables."""

    def __init__(self):
        super().__init__(format="A4")
        self.set_auto_page_break(auto=True, margin=20)

    def header(self):
        pass  # drawn once on the first page by generate_quote_pdf

    def footer(self):
        self.set_y(-15)
        self.set_font("Helvetica", "I", 8)
        self.set_text_color(150, 150, 150)
        self.cell(0, 10, f"Page {self.page_no()}/{{nb}}", align="C")

    def section_header(self, title):
        self.set_font("Helvetica", "B", 11)
        self.set_fill_color(45, 55, 72)
        self.set_text_color(255, 255, 255)
        self.cell(0, 8, f"  {title}", fill=True, new_x="LMARGIN", new_y="NEXT")
        self.set_text_color(0, 0, 0)
        self.ln(2)

    def info_grid(self, entries):
        """Two-column label/value grid. entries: [(label, value), ...]"""
        col = (self.w - self.l_margin - self.r_margin) / 2
        for i in range(0, len(entries), 2):
            for label, value in entries[i:i + 2]:
                self.set_font("Helvetica", "B", 8)
                self.set_text_color(100, 100, 100)
                self.cell(col, 4, _safe(label))
            self.ln()
            for label, value in entries[i:i + 2]:
                self.set_font("Helvetica", "", 9)
                self.set_text_color(0, 0, 0)
                self.cell(col, 5, _safe(value or "-")[:60])
            self.ln(7)

    def table_header(self, cols):
        self.set_font("Helvetica", "B", 8)
        self.set_fill_color(240, 240, 240)
        for label, width in cols:
            align = "R" if label in ("Qty", "Unit", "Total") else "L"
            self.cell(width, 6, label, border="B", fill=True, align=align)
        self.ln()

    def table_row(self, values, widths):
        self.set_font("Helvetica", "", 8)
        for i, (val, width) in enumerate(zip(values, widths)):
            self.cell(width, 5.5, str(val), align="L" if i == 0 else "R")
        self.ln()

    def total_row(self, label, amount, bold=False):
        self.set_font("Helvetica", "B" if bold else "", 10)
        self.cell(130, 6, label)
        self.cell(60, 6, amount, align="R")
        self.ln()


def generate_quote_pdf(quote_data: dict, company_data: dict) -> bytes:
    """
    Generate the PDF for one quote.

    Args:
        quote_data: quote_document_data(quote)
        company_data: company_document_data(profile)

    Returns:
        PDF bytes
    """
    company_name = company_data.get("name") or settings.COMPANY_NAME
    company_lines = [
        company_data.get(k) for k in ("document", "address", "phone", "email", "website")
        if company_data.get(k)
    ]

    pdf = QuotePDF()
    pdf.alias_nb_pages()
    pdf.add_page()
    pw = pdf.w - pdf.l_margin - pdf.r_margin

    # ── 1. Header ──
    pdf.set_font("Helvetica", "B", 20)
    pdf.cell(pw - 60, 10, _safe(company_name))
    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(60, 10, _fmt(quote_data.get("total", 0)), align="R", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 9)
    pdf.set_text_color(100, 100, 100)
    for line in company_lines:
        pdf.cell(0, 4.5, _safe(line), new_x="LMARGIN", new_y="NEXT")
    pdf.set_text_color(0, 0, 0)
    pdf.ln(3)
    pdf.set_font("Helvetica", "B", 13)
    pdf.cell(0, 7, _safe(f"QUOTE {quote_data.get('code', '')}"), new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(0, 5, f"Issued: {_fmt_date(quote_data.get('created_at'))}", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)

    # ── 2. Client ──
    pdf.section_header("CLIENT")
    client_info = [("Client", quote_data.get("client_name"))]
    if quote_data.get("delivery_address"):
        client_info.append(("Delivery address", quote_data["delivery_address"]))
    pdf.info_grid(client_info)

    # ── 3. Products ──
    pdf.section_header("PRODUCTS")
    cols = [("Product", 100), ("Qty", 20), ("Unit", 35), ("Total", 35)]
    widths = [c[1] for c in cols]
    pdf.table_header(cols)
    for item in quote_data.get("items", []):
        qty = item.get("quantity") or 0
        pdf.table_row(
            [
                _safe(item.get("name", ""))[:55],
                f"{qty:g}",
                _fmt(item.get("unit_value", 0)),
                _fmt(item.get("total_value", 0)),
            ],
            widths,
        )
    pdf.ln(4)

    # ── 4. Totals ──
    pdf.section_header("TOTALS")
    product_subtotal = sum(item.get("total_value") or 0 for item in quote_data.get("items", []))
    pdf.total_row("Products", _fmt(product_subtotal))
    if quote_data.get("project_fee"):
        label = f"Project ({quote_data.get('project_type')})"
        pdf.total_row(_safe(label), _fmt(quote_data["project_fee"]))
    for fee in quote_data.get("fees", []):
        pdf.total_row(_safe(fee.get("name", "")), _fmt(fee.get("amount", 0)))
    pdf.total_row("Subtotal", _fmt(quote_data.get("subtotal", 0)), bold=True)
    discount = quote_data.get("discount") or 0
    if discount > 0:
        pdf.total_row("Discount", "- " + _fmt(discount))
    pdf.ln(1)
    pdf.set_fill_color(45, 55, 72)
    pdf.set_text_color(255, 255, 255)
    pdf.set_font("Helvetica", "B", 13)
    pdf.cell(130, 10, "  TOTAL", fill=True)
    pdf.cell(60, 10, f"{_fmt(quote_data.get('total', 0))}  ", fill=True, align="R")
    pdf.set_text_color(0, 0, 0)
    pdf.ln(14)

    # ── 5. Quote information ──
    pdf.section_header("QUOTE INFORMATION")
    pdf.info_grid([
        ("Payment terms", quote_data.get("payment_terms")),
        ("Estimated delivery", _fmt_date(quote_data.get("planned_delivery"))),
        ("Planned start", _fmt_date(quote_data.get("planned_start"))),
        ("Generated", _fmt_date(quote_data.get("created_at"))),
    ])

    # ── 6. Notes ──
    pdf.section_header("NOTES")
    pdf.set_font("Helvetica", "", 9)
    notes = quote_data.get("notes") or quote_data.get("project_summary") or "No additional notes."
    pdf.multi_cell(pw, 4.5, _safe(notes))

    return bytes(pdf.output())


class PdfRenderer:
    """
    Renders a quote to <output_dir>/<fingerprint>/quote-<code>.pdf.
    Always renders and rewrites the file; callers decide whether to persist.
    """

    def __init__(self, output_dir: Optional[str] = None):
        self.output_dir = Path(output_dir or settings.ARTIFACT_DIR)

    def render(self, quote, company) -> RenderedDocument:
        quote_data = quote_document_data(quote)
        company_data = company_document_data(company)
        fingerprint = render_fingerprint(quote_data, company_data)
        file_name = f"quote-{quote_data['code']}.pdf"
        try:
            pdf_bytes = generate_quote_pdf(quote_data, company_data)
            target_dir = self.output_dir / fingerprint[:16]
            target_dir.mkdir(parents=True, exist_ok=True)
            target = target_dir / file_name
            target.write_bytes(pdf_bytes)
        except Exception as e:
            raise RenderingError(f"Failed to render quote {quote_data['code']}: {e}") from e
        return RenderedDocument(uri=target.resolve().as_uri(), file_name=file_name)

    def discard(self, uri: Optional[str]) -> bool:
        """
        Delete a document this renderer stored, and its fingerprint directory
        once empty. URIs outside output_dir are left alone. Returns True when
        a file was removed.
        """
        if not uri:
            return False
        path = uri_to_path(uri)
        root = self.output_dir.resolve()
        if root not in path.parents:
            logger.warning("Not discarding %s: outside %s", uri, root)
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        if path.parent != root and not any(path.parent.iterdir()):
            path.parent.rmdir()
        return True


def uri_to_path(uri: str) -> Path:
    return Path(url2pathname(urlparse(uri).path)).resolve()
