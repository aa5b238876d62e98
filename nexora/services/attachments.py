"""
Transaction Attachments

A receipt or invoice travels with its transaction as a self-describing
data URL (`data:<mime>;base64,<payload>`), stored inline on the record.

This service handles:
1. Building the data URL from file content
2. Decoding it back and checking the size limit
3. Confirming that image attachments really are images (PIL)
"""

import base64
import binascii
import re
from io import BytesIO
from typing import Optional

from PIL import Image

from nexora.models.finance import AttachmentInfo

DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^;,]*)*?);base64,(?P<payload>.*)$",
    re.DOTALL,
)

DEFAULT_MIME_TYPE = "application/octet-stream"


class AttachmentError(Exception):
    """Base exception for attachment errors."""
    pass


class MalformedAttachmentError(AttachmentError):
    """Not a base64 data URL, or the payload doesn't decode."""
    pass


class AttachmentTooLargeError(AttachmentError):
    """Decoded attachment exceeds the configured size limit."""

    def __init__(self, size_bytes: int, max_bytes: int):
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        super().__init__(
            f"Attachment is {size_bytes / (1024 * 1024):.1f} MB, "
            f"limit is {max_bytes / (1024 * 1024):.0f} MB"
        )


class UnreadableImageError(AttachmentError):
    """Declared as an image but PIL can't open it."""
    pass


def encode_attachment(content: bytes, mime_type: Optional[str] = None) -> str:
    """Build a data URL from raw file content."""
    mime_type = mime_type or DEFAULT_MIME_TYPE
    payload = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def decode_data_url(data_url: str) -> tuple[str, bytes]:
    """
    Split a data URL into (mime_type, content).

    Raises:
        MalformedAttachmentError: If it isn't a base64 data URL
    """
    match = DATA_URL_PATTERN.match(data_url.strip())
    if not match:
        raise MalformedAttachmentError("Attachment is not a base64 data URL")

    try:
        content = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedAttachmentError(f"Attachment payload is not valid base64: {e}")

    return match.group("mime") or DEFAULT_MIME_TYPE, content


def inspect_attachment(data_url: str, max_bytes: int) -> AttachmentInfo:
    """
    Decode an attachment and check it against the size limit.

    Image attachments are opened with PIL to confirm they decode and to
    report their pixel dimensions.

    Raises:
        MalformedAttachmentError: Not a decodable data URL
        AttachmentTooLargeError: Decoded size over max_bytes
        UnreadableImageError: image/* content PIL can't read
    """
    mime_type, content = decode_data_url(data_url)

    if len(content) > max_bytes:
        raise AttachmentTooLargeError(len(content), max_bytes)

    info = AttachmentInfo(mime_type=mime_type, size_bytes=len(content))
    if not info.is_image:
        return info

    try:
        with Image.open(BytesIO(content)) as img:
            width, height = img.size
            img.verify()
    except (OSError, SyntaxError, ValueError) as e:
        raise UnreadableImageError(f"Attachment is not a readable image: {e}")

    return info.model_copy(update={"width": width, "height": height})
