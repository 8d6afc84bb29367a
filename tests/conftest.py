from __future__ import annotations

import pytest
from PIL import Image

from quote_service.models import Category, LineItem, QuoteDocument


@pytest.fixture
def anyio_backend():
    # asyncio only, no trio
    return "asyncio"


@pytest.fixture
def sample_items():
    return [
        LineItem(description="Replace hoist brake pads", category=Category.LABOUR, quantity=2, sell_price=100),
        LineItem(description="Brake pad kit", category=Category.MATERIALS, quantity=1, sell_price=50),
    ]


@pytest.fixture
def sample_document(sample_items):
    return QuoteDocument(
        quote_number="Q-1001",
        quote_name="Bay 3 Gantry - Repair Quote",
        date="19/10/2026",
        client_name="Northgate Logistics",
        client_address="14 Dockside Drive, Port Melbourne VIC 3207",
        contact_name="Priya Natarajan",
        contact_email="priya@northgate.example",
        contact_phone="0412 555 019",
        technician_name="Sam Whitfield",
        validity_days=30,
        line_items=sample_items,
        notes="",
    )


@pytest.fixture
def header_png(tmp_path):
    path = tmp_path / "header.png"
    Image.new("RGB", (2100, 360), (96, 179, 76)).save(path)
    return path


@pytest.fixture
def footer_png(tmp_path):
    path = tmp_path / "footer.png"
    Image.new("RGB", (2100, 120), (40, 32, 39)).save(path)
    return path


def _extract_text(pdf_bytes: bytes) -> str:
    import pypdfium2 as pdfium

    pdf = pdfium.PdfDocument(pdf_bytes)
    try:
        return "\n".join(pdf[i].get_textpage().get_text_range() for i in range(len(pdf)))
    finally:
        pdf.close()


@pytest.fixture
def extract_text():
    """Plain text of every page, for asserting on rendered PDFs."""
    return _extract_text
