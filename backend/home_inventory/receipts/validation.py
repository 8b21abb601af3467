from typing import Optional

from home_inventory.config import settings
from home_inventory.receipts.exceptions import FileValidationError

# Magic bytes of supported image formats
ALLOWED_MAGIC_BYTES = {
    b'\xff\xd8\xff': 'image/jpeg',
    b'\x89\x50\x4e\x47': 'image/png',
}
RIFF_MAGIC = b'RIFF'
WEBP_MARKER = b'WEBP'

# Clients send a few non-canonical names for the same formats
MIME_ALIASES = {
    'image/jpg': 'image/jpeg',
    'image/pjpeg': 'image/jpeg',
    'image/x-png': 'image/png',
}


def detect_image_type(content: bytes) -> Optional[str]:
    for magic, mime in ALLOWED_MAGIC_BYTES.items():
        if content.startswith(magic):
            return mime
    # WEBP is a RIFF container: "RIFF" <size> "WEBP"
    if content.startswith(RIFF_MAGIC) and content[8:12] == WEBP_MARKER:
        return 'image/webp'
    return None


def validate_upload(content: bytes, declared_mime: Optional[str] = None, max_size: int = settings.MAX_UPLOAD_SIZE) -> str:
    """
    Validates an uploaded receipt photo: size, magic bytes, declared MIME type.

    Returns:
        Detected MIME type

    Raises:
        FileValidationError: If validation fails
    """
    if len(content) < 12:
        raise FileValidationError("File is empty or corrupted")

    if len(content) > max_size:
        raise FileValidationError(f"File too large. Max size: {max_size / (1024 * 1024):.0f}MB")

    mime_type = detect_image_type(content)
    if not mime_type:
        raise FileValidationError("Invalid file format. Allowed: JPEG, PNG, WEBP")

    if declared_mime and declared_mime != 'application/octet-stream':
        declared = MIME_ALIASES.get(declared_mime.lower(), declared_mime.lower())
        if declared != mime_type:
            raise FileValidationError(f"File content ({mime_type}) does not match declared type ({declared_mime})")

    return mime_type
