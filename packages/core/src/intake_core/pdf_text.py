"""
Text-layer extraction for uploaded PDFs.

PyPDF2 reads each page's text layer; when that yields fewer than
``min_text_chars`` characters, pdfplumber gets a second pass. Scanned PDFs
without a text layer raise ExtractionError, and the processor falls back
to classifying on the filename.
"""

import mimetypes
import re
from pathlib import Path
from typing import Optional, Union

import pdfplumber
import structlog
from PyPDF2 import PdfReader

from intake_core.exceptions import ExtractionError
from intake_core.models.intake import OcrResult, SourceDocument

logger = structlog.get_logger()

PDF_MIME = "application/pdf"
DEFAULT_MIN_TEXT_CHARS = 100

# Corrupted-font glyph references pdfplumber emits, e.g. "(cid:12)"
CID_GLYPH = re.compile(r"\(cid:\d+\)")


def infer_mime_type(filename: str, mime_type: Optional[str] = None) -> Optional[str]:
    """Return ``mime_type`` if given, else guess it from the filename."""
    if mime_type:
        return mime_type
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed


class PdfTextOcr:
    """OCR provider for PDFs that already carry a text layer.

    Attributes:
        min_text_chars: Below this many characters PyPDF2's output is
            considered empty and pdfplumber is tried.
        base_dir: Directory that relative storage paths resolve against.
    """

    name = "pdf_text"

    def __init__(
        self,
        min_text_chars: int = DEFAULT_MIN_TEXT_CHARS,
        base_dir: Optional[Union[str, Path]] = None,
    ):
        self.min_text_chars = min_text_chars
        self.base_dir = Path(base_dir) if base_dir else None

    def run(self, document: SourceDocument) -> OcrResult:
        """Extract the text of a stored document.

        Raises:
            ExtractionError: If the document is not a PDF, has no storage
                path, cannot be read, or yields no text.
        """
        mime = infer_mime_type(document.original_filename, document.mime_type)
        if mime != PDF_MIME:
            raise ExtractionError(
                f"Unsupported mime type for text extraction: {mime}",
                source=document.original_filename,
            )
        if not document.storage_path:
            raise ExtractionError("Document has no storage path", source=document.original_filename)

        path = Path(document.storage_path)
        if self.base_dir and not path.is_absolute():
            path = self.base_dir / path

        text, page_count = self.extract_text(path)
        return OcrResult(
            document_id=document.id,
            deal_id=document.deal_id,
            extracted_text=text,
            provider=self.name,
            page_count=page_count,
        )

    def extract_text(self, file_path: Union[str, Path]) -> tuple[str, int]:
        """Read a PDF's text layer.

        Returns:
            (text, page_count)

        Raises:
            ExtractionError: If the file is missing, unreadable or textless.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise ExtractionError(f"PDF file not found: {file_path}", source=str(file_path))

        logger.info("parsing_pdf", file_path=str(file_path))

        try:
            reader = PdfReader(file_path)
        except Exception as e:
            raise ExtractionError(f"Failed to read PDF: {e}", source=str(file_path)) from e

        pages = []
        for page_num, page in enumerate(reader.pages, start=1):
            try:
                pages.append(page.extract_text() or "")
            except Exception as e:
                logger.warning("page_extraction_failed", page=page_num, error=str(e))
                pages.append("")
        page_count = len(reader.pages)
        text = "\n".join(pages)

        if len(text.strip()) < self.min_text_chars:
            logger.info("pypdf2_fallback_pdfplumber", file_path=str(file_path), pypdf2_chars=len(text.strip()))
            plumber_text = self._extract_with_pdfplumber(file_path)
            if len(plumber_text.strip()) > len(text.strip()):
                text = plumber_text

        if not text.strip():
            raise ExtractionError("PDF has no text layer", source=str(file_path))

        logger.info("pdf_text_extracted", file_path=str(file_path), pages=page_count, chars=len(text))
        return text, page_count

    def _extract_with_pdfplumber(self, file_path: Path) -> str:
        pages = []
        try:
            with pdfplumber.open(file_path) as pdf:
                for page_num, page in enumerate(pdf.pages, start=1):
                    try:
                        pages.append(CID_GLYPH.sub("", page.extract_text() or ""))
                    except Exception as e:
                        logger.warning("pdfplumber_page_failed", page=page_num, error=str(e))
        except Exception as e:
            logger.warning("pdfplumber_fallback_failed", error=str(e))
            return ""
        text = "\n".join(pages)
        logger.info("pdfplumber_extraction_success", chars_extracted=len(text.strip()))
        return text


__all__ = ["PDF_MIME", "PdfTextOcr", "infer_mime_type"]
