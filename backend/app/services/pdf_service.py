"""
PDF text extraction.
"""
import io

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from app.utils.logger import get_logger
from app.utils.errors import ProcessingError

logger = get_logger(__name__)


def extract_pdf_text(data: bytes) -> str:
    """
    Extract the text of every page, joined by newlines.

    Raises:
        ProcessingError: If the PDF cannot be decoded
    """
    try:
        reader = PdfReader(io.BytesIO(bytes(data)))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError, KeyError, TypeError) as e:
        logger.error(f"PDF decode failed: {e}")
        raise ProcessingError(f"Could not read PDF: {e}")

    text = "\n".join(pages).strip()

    logger.info(f"Extracted {len(text)} characters from {len(pages)} page(s)")
    return text
