"""HTML preview of Word templates."""

from __future__ import annotations

import io
import logging

import mammoth

from .docx_fill import TemplateError

logger = logging.getLogger(__name__)


def docx_to_html(binary: bytes) -> str:
    """Convert a .docx template to HTML for previewing.

    The HTML is only used for on-screen preview and HTML print jobs; the
    Word output is always regenerated from the original template bytes.
    """
    if not binary:
        raise TemplateError("No template loaded")
    try:
        result = mammoth.convert_to_html(io.BytesIO(binary))
    except Exception as e:
        raise TemplateError("Error reading DOCX file. Please check the template.") from e
    for message in result.messages:
        logger.debug("mammoth: %s", message)
    return result.value
