"""Quote PDF assembly.

Draws a single quote top to bottom: header graphic, title and metadata,
one table per non-empty category, totals, notes, terms, footer graphic.
All colours, wording and the tax rate come from the ``Branding`` passed in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from fpdf import FPDF
from fpdf.fonts import FontFace
from opentelemetry import trace
from PIL import Image

from quote_service.calculator import compute_totals, format_quantity, line_total
from quote_service.config import Branding
from quote_service.models import CATEGORY_ORDER, Category, LineItem, QuoteDocument, QuoteTotals

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("quote-service")

ImageSource = Union[str, Path, Image.Image, None]

MARGIN = 15.0
TOP = 10.0
ROW = 5.0

_CORE_FONT_SUBSTITUTES = str.maketrans(
    {
        "\u2014": "-",
        "\u2013": "-",
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\u2022": "-",
        "\u2026": "...",
    }
)


@dataclass
class AssembledQuote:
    """A rendered quote plus a record of what went into it."""

    pdf: FPDF
    document: QuoteDocument
    totals: QuoteTotals
    sections: list[str] = field(default_factory=list)
    tables: dict[Category, list[LineItem]] = field(default_factory=dict)
    header_drawn: bool = False
    footer_drawn: bool = False

    @property
    def page_count(self) -> int:
        return self.pdf.pages_count


def pdf_text(value: object) -> str:
    """Coerce text to what the built-in Helvetica font can encode."""
    text = str(value).translate(_CORE_FONT_SUBSTITUTES)
    return text.encode("latin-1", "replace").decode("latin-1")


def load_brand_image(source: ImageSource, role: str) -> Image.Image | None:
    """Open a brand graphic, or return None (and log) if it cannot be read."""
    if source is None:
        return None
    if isinstance(source, Image.Image):
        return source
    try:
        with Image.open(source) as img:
            img.load()
            return img.copy()
    except OSError as exc:
        logger.warning("Could not load %s image %s: %s", role, source, exc)
        return None


def _scaled_height(img: Image.Image, width: float) -> float:
    return width * img.height / img.width


def _ensure_space(pdf: FPDF, y: float, needed: float) -> float:
    if y + needed > pdf.h - pdf.b_margin:
        pdf.add_page()
        return TOP + ROW
    return y


def _label_rows(pdf: FPDF, rows: list[tuple[str, str]], x: float, value_offset: float, y: float) -> float:
    for label, value in rows:
        pdf.set_font("Helvetica", "B", 9)
        pdf.text(x, y, pdf_text(label))
        pdf.set_font("Helvetica", "", 9)
        pdf.text(x + value_offset, y, pdf_text(value))
        y += ROW
    return y


def _right_aligned_pair(pdf: FPDF, label: str, value: str, label_x: float, right: float, y: float) -> None:
    pdf.text(label_x, y, pdf_text(label))
    value = pdf_text(value)
    pdf.text(right - pdf.get_string_width(value), y, value)


def _item_table(pdf: FPDF, items: list[LineItem], branding: Branding) -> None:
    width = pdf.epw
    pdf.set_font("Helvetica", "", 8)
    pdf.set_text_color(*branding.dark)
    pdf.set_draw_color(*branding.border_gray)
    pdf.set_line_width(0.2)
    headings = FontFace(emphasis="BOLD", color=branding.white, fill_color=branding.accent)
    with pdf.table(
        width=width,
        col_widths=(width - 76, 20, 28, 28),
        text_align=("LEFT", "CENTER", "RIGHT", "RIGHT"),
        headings_style=headings,
        cell_fill_color=branding.light_gray,
        cell_fill_mode="ROWS",
        line_height=ROW,
    ) as table:
        table.row(["Description", "Qty", "Unit Price", "Total"])
        for item in items:
            table.row(
                [
                    pdf_text(item.description),
                    format_quantity(item.quantity),
                    pdf_text(branding.money(item.sell_price)),
                    pdf_text(branding.money(float(line_total(item)))),
                ]
            )


def assemble_quote(
    document: QuoteDocument,
    branding: Branding | None = None,
    header_image: ImageSource = None,
    footer_image: ImageSource = None,
) -> AssembledQuote:
    """Lay out *document* as an A4 PDF and return it with its totals."""
    branding = branding or Branding()
    with tracer.start_as_current_span(
        "quote.assemble",
        attributes={"quote.number": document.quote_number, "quote.line_items": len(document.line_items)},
    ) as span:
        totals = compute_totals(document.line_items, branding.tax_rate)
        header = load_brand_image(header_image, "header")
        footer = load_brand_image(footer_image, "footer")

        pdf = FPDF(orientation="P", unit="mm", format="A4")
        pdf.set_title(pdf_text(document.quote_name or f"Quote {document.quote_number}"))
        pdf.set_creator(pdf_text(branding.company_name))
        pdf.set_margins(MARGIN, TOP, MARGIN)
        footer_height = _scaled_height(footer, pdf.w) if footer is not None else 0.0
        pdf.set_auto_page_break(auto=True, margin=footer_height + 10)
        pdf.add_page()

        result = AssembledQuote(pdf=pdf, document=document, totals=totals)
        page_w = pdf.w
        right = page_w - MARGIN
        y = TOP

        # ---- Header graphic ----
        if header is not None:
            header_height = _scaled_height(header, page_w)
            pdf.image(header, x=0, y=0, w=page_w, h=header_height)
            y = header_height + 5
            result.header_drawn = True
            result.sections.append("header")

        # ---- Title ----
        pdf.set_font("Helvetica", "B", 18)
        pdf.set_text_color(*branding.dark)
        pdf.text(MARGIN, y, pdf_text(branding.title))
        y += 8
        result.sections.append("title")

        # ---- Metadata block ----
        left = [
            ("Quote Number:", document.quote_number),
            ("Date:", document.date),
            ("Valid For:", f"{document.validity_days} days"),
            ("Prepared By:", document.technician_name),
        ]
        right_col = [
            ("Client:", document.client_name),
            ("Address:", document.client_address or "-"),
            ("Contact:", document.contact_name or "-"),
            ("Email:", document.contact_email or "-"),
            ("Phone:", document.contact_phone or "-"),
        ]
        pdf.set_text_color(*branding.muted)
        y = max(
            _label_rows(pdf, left, MARGIN, 30, y),
            _label_rows(pdf, right_col, page_w / 2 + 5, 22, y),
        ) + 5
        result.sections.append("metadata")

        # ---- Divider ----
        pdf.set_draw_color(*branding.border_gray)
        pdf.set_line_width(0.5)
        pdf.line(MARGIN, y, right, y)
        y += 5

        # ---- Line items by category ----
        for category in CATEGORY_ORDER:
            items = [item for item in document.line_items if item.category == category]
            if not items:
                continue
            y = _ensure_space(pdf, y, 20)
            pdf.set_font("Helvetica", "B", 10)
            pdf.set_text_color(*branding.dark)
            pdf.text(MARGIN, y, category.value.upper())
            pdf.set_y(y + 2)
            _item_table(pdf, items, branding)
            y = pdf.get_y() + 5
            result.tables[category] = items
            result.sections.append(f"table:{category.value}")

        # ---- Totals ----
        y = _ensure_space(pdf, y + 3, 22)
        totals_x = right - 60
        tax = branding.tax_label
        pdf.set_font("Helvetica", "", 10)
        pdf.set_text_color(*branding.dark)
        _right_aligned_pair(pdf, f"Subtotal (ex {tax}):", branding.money(totals.subtotal), totals_x, right, y)
        y += 6
        _right_aligned_pair(
            pdf, f"{tax} ({branding.tax_rate * 100:.0f}%):", branding.money(totals.gst), totals_x, right, y
        )
        y += 6
        pdf.set_draw_color(*branding.border_gray)
        pdf.line(totals_x, y - 2, right, y - 2)
        pdf.set_font("Helvetica", "B", 12)
        pdf.set_text_color(*branding.accent)
        _right_aligned_pair(pdf, f"TOTAL (inc {tax}):", branding.money(totals.total), totals_x, right, y + 3)
        y += 12
        result.sections.append("totals")

        # ---- Notes ----
        if document.notes.strip():
            y = _ensure_space(pdf, y, 15)
            pdf.set_font("Helvetica", "B", 9)
            pdf.set_text_color(*branding.dark)
            pdf.text(MARGIN, y, "ADDITIONAL NOTES")
            pdf.set_font("Helvetica", "", 8)
            pdf.set_xy(MARGIN, y + 2)
            pdf.multi_cell(pdf.epw, 4, pdf_text(document.notes.strip()), new_x="LMARGIN", new_y="NEXT")
            y = pdf.get_y() + 5
            result.sections.append("notes")

        # ---- Terms & conditions ----
        terms = [t.format(validity_days=document.validity_days) for t in branding.terms]
        y = _ensure_space(pdf, y, 5 + 4 * len(terms))
        pdf.set_font("Helvetica", "B", 9)
        pdf.set_text_color(*branding.dark)
        pdf.text(MARGIN, y, "TERMS & CONDITIONS")
        y += 5
        pdf.set_font("Helvetica", "", 7)
        pdf.set_text_color(*branding.muted)
        for number, term in enumerate(terms, 1):
            pdf.text(MARGIN, y, pdf_text(f"{number}. {term}"))
            y += 4
        result.sections.append("terms")

        # ---- Footer graphic (last page) ----
        if footer is not None:
            pdf.image(footer, x=0, y=pdf.h - footer_height, w=page_w, h=footer_height)
            result.footer_drawn = True
            result.sections.append("footer")

        span.set_attribute("quote.pages", pdf.pages_count)
        span.set_attribute("quote.total", totals.total)
        return result
