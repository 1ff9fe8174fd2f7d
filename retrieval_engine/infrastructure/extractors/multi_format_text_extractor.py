"""Multi-format text extractor — text from PDF, DOCX and plain-text blobs."""

import io
import logging

from retrieval_engine.application.interfaces.text_extractor import TextExtractor
from retrieval_engine.domain.exceptions import NoExtractableTextError

logger = logging.getLogger(__name__)

# ── Scanned-PDF detection thresholds ─────────────────────────────────
_PDF_MIN_CHARS = 50
_PDF_MIN_NON_WHITESPACE = 20


class MultiFormatTextExtractor(TextExtractor):
    """Infrastructure adapter that extracts text from raw document bytes.

    - PDF: PyMuPDF (fitz)
    - DOCX: python-docx
    - TXT/CSV/MD/HTML/JSON: decoded as UTF-8, latin-1 as a fallback
    """

    _HANDLERS: dict[str, str] = {
        "application/pdf": "_extract_pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "_extract_docx",
        "text/plain": "_extract_text",
        "text/csv": "_extract_text",
        "text/markdown": "_extract_text",
        "text/html": "_extract_text",
        "application/json": "_extract_text",
    }

    def can_extract(self, mime_type: str) -> bool:
        return _base_type(mime_type) in self._HANDLERS

    async def extract(self, content: bytes, mime_type: str) -> str:
        """Extract text from a blob.

        Raises:
            ValueError: the MIME type is not supported.
            NoExtractableTextError: the blob holds no usable text.
        """
        base_type = _base_type(mime_type)
        handler_name = self._HANDLERS.get(base_type)
        if handler_name is None:
            raise ValueError(f"Unsupported file type: {mime_type}")

        handler = getattr(self, handler_name)
        text = await handler(content)

        if not text.strip():
            raise NoExtractableTextError()

        logger.info("Extracted %d characters (%s, %d bytes)", len(text), base_type, len(content))
        return text

    # ── Format-specific handlers ─────────────────────────────────────

    async def _extract_pdf(self, content: bytes) -> str:
        """Extract text from PDF using PyMuPDF; near-empty output means a scan."""
        import fitz  # PyMuPDF

        pages: list[str] = []
        with fitz.open(stream=content, filetype="pdf") as doc:
            for page_num, page in enumerate(doc):
                text = page.get_text("text")
                if text.strip():
                    pages.append(text)
                else:
                    logger.debug("Page %d has no text layer", page_num + 1)

        text = "\n\n".join(pages).strip()
        non_whitespace = sum(1 for ch in text if not ch.isspace())
        if len(text) < _PDF_MIN_CHARS or non_whitespace < _PDF_MIN_NON_WHITESPACE:
            logger.warning(
                "PDF has insufficient text (%d chars, %d non-whitespace), likely scanned",
                len(text), non_whitespace,
            )
            raise NoExtractableTextError()
        return text

    async def _extract_docx(self, content: bytes) -> str:
        """Extract paragraphs and table rows using python-docx."""
        from docx import Document

        doc = Document(io.BytesIO(content))
        parts: list[str] = []

        for para in doc.paragraphs:
            if para.text.strip():
                parts.append(para.text)

        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))

        return "\n\n".join(parts)

    async def _extract_text(self, content: bytes) -> str:
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError:
            return content.decode("latin-1")


def _base_type(mime_type: str) -> str:
    return (mime_type or "").split(";")[0].strip().lower()
