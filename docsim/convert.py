"""
Turn uploaded files into plain text for comparison.

Plain-text files are decoded directly. Everything else (PDF, DOCX, HTML,
PPTX, ...) goes through markitdown, which yields Markdown text.

Dependencies: markitdown
"""

import io
import logging
import os

from markitdown import MarkItDown

logger = logging.getLogger(__name__)


# Extensions decoded as UTF-8 without conversion.
PLAIN_TEXT_EXTENSIONS = (".txt", ".md", ".markdown")

# Extensions offered by the upload widget.
UPLOAD_EXTENSIONS = ("txt", "md", "markdown", "pdf", "docx", "pptx", "xlsx", "html", "htm")


class ConversionError(Exception):
    """Raised when an uploaded file cannot be turned into text."""
    pass


def file_to_text(filename: str, data: bytes) -> str:
    """
    Convert an uploaded file to text.

    Args:
        filename: Original file name; its extension selects the converter
        data: Raw file bytes

    Returns:
        Decoded or converted text, never empty

    Raises:
        ConversionError: If conversion fails or yields no text
    """
    ext = os.path.splitext(filename)[1].lower()

    if ext in PLAIN_TEXT_EXTENSIONS:
        text = data.decode("utf-8", errors="replace")
    else:
        try:
            result = MarkItDown().convert_stream(io.BytesIO(data), file_extension=ext)
        except Exception as e:
            raise ConversionError(f"Could not convert {filename}: {e}") from e
        text = result.text_content or ""

    if not text.strip():
        raise ConversionError(f"{filename} contains no text")

    logger.info(f"Converted {filename} ({len(data):,} bytes) to {len(text):,} characters")
    return text
