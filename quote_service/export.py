"""Preview and export of an assembled quote.

The same PDF bytes back every output: an on-screen preview, a saved
download, and a base64 email attachment.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import re
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from pathlib import Path

from quote_service.models import EmailAttachment
from quote_service.renderer import AssembledQuote

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"


def quote_filename(client_name: str, day: date | None = None, draft: bool = False) -> str:
    """``Acme_Pty_Ltd_Quote_20261019.pdf`` style name for a client quote."""
    safe = re.sub(r"[^a-zA-Z0-9]", "_", client_name or "Client")
    if draft:
        return f"{safe}_Quote_DRAFT.pdf"
    return f"{safe}_Quote_{(day or date.today()).strftime('%Y%m%d')}.pdf"


class PreviewHandle:
    """A temporary on-disk copy of the PDF for transient display."""

    def __init__(self, content: bytes, suffix: str = ".pdf"):
        fd, name = tempfile.mkstemp(prefix="quote-preview-", suffix=suffix)
        with os.fdopen(fd, "wb") as fh:
            fh.write(content)
        self.path = Path(name)
        self.content = content
        self.released = False

    @property
    def uri(self) -> str:
        return self.path.as_uri()

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        logger.debug("Released preview %s", self.path)


class QuoteExport:
    def __init__(self, assembled: AssembledQuote):
        self.assembled = assembled
        self._content = bytes(assembled.pdf.output())

    def to_bytes(self) -> bytes:
        return self._content

    @contextmanager
    def to_preview(self) -> Iterator[PreviewHandle]:
        """Yield a preview reference that is released however the block exits."""
        handle = PreviewHandle(self._content)
        try:
            yield handle
        finally:
            handle.release()

    def render_page_png(self, page: int = 0, dpi: int = 110) -> bytes:
        """Render one page to PNG for a thumbnail preview."""
        import pypdfium2 as pdfium

        pdf = pdfium.PdfDocument(self._content)
        try:
            bitmap = pdf[page].render(scale=dpi / 72)
            buf = io.BytesIO()
            bitmap.to_pil().save(buf, format="PNG")
            return buf.getvalue()
        finally:
            pdf.close()

    def to_download(self, filename: str, directory: str | Path = ".") -> Path:
        target = Path(directory) / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self._content)
        logger.info("Saved quote PDF: %s (%d bytes)", target, len(self._content))
        return target

    def to_email_attachment(self, filename: str) -> EmailAttachment:
        return EmailAttachment(
            filename=filename,
            content=base64.b64encode(self._content).decode("ascii"),
            type=PDF_MIME,
        )
