"""File selection: size and media-type checks before any network interaction."""

import logging
import mimetypes
import os
from typing import Optional

from app.errors import InputRejected
from app.models.media import InlineMedia

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(100 * 1024 * 1024)))
INLINE_MAX_BYTES = int(os.getenv("INLINE_MAX_BYTES", str(20 * 1024 * 1024)))

_ALLOWED_PREFIXES = ("video/", "image/")
_GENERIC_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


def resolve_mime_type(filename: Optional[str], content_type: Optional[str]) -> str:
    """Return the declared type, or guess it from the extension when the declaration is generic."""
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared not in _GENERIC_TYPES:
        return declared
    guessed, _ = mimetypes.guess_type(filename or "")
    return (guessed or "application/octet-stream").lower()


def check_media_file(
    filename: Optional[str],
    content_type: Optional[str],
    size: Optional[int],
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> str:
    """Validate a selected file and return its mime type.

    Raises:
        InputRejected: empty, oversize, or not a video/image.
    """
    mime_type = resolve_mime_type(filename, content_type)
    if not mime_type.startswith(_ALLOWED_PREFIXES):
        raise InputRejected(
            f"Unsupported file type '{mime_type}'. Please choose a video or photo.",
            reason="wrong_type",
        )
    if size is not None and size > max_bytes:
        raise InputRejected(
            f"File too large. Please upload a file smaller than {max_bytes // (1024 * 1024)}MB.",
            reason="too_large",
        )
    if size is not None and size <= 0:
        raise InputRejected("The selected file is empty.", reason="empty")
    logger.debug("Accepted %s (%s, %s bytes)", filename, mime_type, size)
    return mime_type


def encode_inline(data: bytes, mime_type: str, max_bytes: int = INLINE_MAX_BYTES) -> InlineMedia:
    """Wrap media bytes as an inline reference."""
    if not data:
        raise InputRejected("The selected file is empty.", reason="empty")
    if len(data) > max_bytes:
        raise InputRejected(
            f"File too large to send inline. Please upload a file smaller than {max_bytes // (1024 * 1024)}MB.",
            reason="too_large",
        )
    return InlineMedia(mime_type=mime_type, data=data)
