from __future__ import annotations

from pdf2image import convert_from_bytes, pdfinfo_from_bytes
from PIL import Image

from exam_import.utils.logging_config import get_logger

logger = get_logger(__name__)

BASE_DPI = 72


def scale_to_dpi(scale: float) -> int:
    """PDF user space is 72 units per inch, so a render scale maps directly onto dpi."""
    return max(BASE_DPI, int(round(BASE_DPI * float(scale))))


class PdfIngestion:
    """Page counting and single-page rasterization for in-memory PDFs via poppler."""

    @staticmethod
    def count_pages(data: bytes) -> int:
        """Return total number of pages for a PDF without rendering them."""
        info = pdfinfo_from_bytes(data, userpw=None, poppler_path=None)
        try:
            return int(info.get("Pages", 0) or 0)
        except (TypeError, ValueError):
            return 0

    @staticmethod
    def render_page(data: bytes, page: int, scale: float = 2.0) -> Image.Image:
        """Render one 1-based page; only that page is rasterized."""
        dpi = scale_to_dpi(scale)
        images = convert_from_bytes(data, dpi=dpi, first_page=page, last_page=page)
        if not images:
            raise ValueError(f"poppler returned no image for page {page}")
        logger.debug("Rendered page %s at %s dpi", page, dpi)
        return images[0]
