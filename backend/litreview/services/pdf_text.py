"""Extract plain text from an uploaded PDF."""
import io
import logging
from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)


def extract_text_from_pdf(file_bytes: bytes, max_pages: int | None = None) -> str:
    try:
        reader = PdfReader(io.BytesIO(file_bytes))
        pages = reader.pages if max_pages is None else reader.pages[:max_pages]
        texts = [page.extract_text() or "" for page in pages]
    except (PdfReadError, ValueError) as e:
        logger.warning("PDF text extraction failed: %s", e)
        return ""
    return "\n\n".join(t.strip() for t in texts if t.strip())
