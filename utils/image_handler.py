"""
Image Validation Module

Decodes base64 image data URLs submitted by the admin forms and validates
them through PIL before they are handed to blob storage.
"""

import base64
import binascii
import re
from io import BytesIO

from PIL import Image

from constants import IMAGE_MIME_EXTENSIONS, IMAGE_MIME_FORMATS, MAX_IMAGE_BYTES


class ImageValidationError(Exception):
    """Raised when an image fails validation."""
    pass


DATA_URL_PATTERN = re.compile(r'^data:(image/[a-zA-Z0-9.+-]+);base64,([a-zA-Z0-9+/=\s]+)$')

# Maximum image dimensions (prevent decompression bombs)
MAX_WIDTH = 8192
MAX_HEIGHT = 8192


def parse_image_data_url(data_url, field_name='image', max_bytes=MAX_IMAGE_BYTES):
    """
    Decode and validate a base64 image data URL.

    Args:
        data_url: String of the form data:image/<type>;base64,<payload>
        field_name: Human-readable field name used in error messages
        max_bytes: Maximum decoded size in bytes

    Returns:
        tuple: (image_bytes, content_type, extension)

    Raises:
        ImageValidationError: If the data URL is malformed, of an unsupported
            type, empty, too large, or not actually an image of that type
    """
    match = DATA_URL_PATTERN.match(str(data_url or '').strip())
    if not match:
        raise ImageValidationError(f'{field_name} must be a valid base64 image.')

    content_type = match.group(1).lower()
    extension = IMAGE_MIME_EXTENSIONS.get(content_type)
    if not extension:
        raise ImageValidationError(f'{field_name} has unsupported image type: {content_type}.')

    try:
        data = base64.b64decode(match.group(2), validate=False)
    except (binascii.Error, ValueError):
        raise ImageValidationError(f'{field_name} must be a valid base64 image.')

    if not data:
        raise ImageValidationError(f'{field_name} is empty.')

    if len(data) > max_bytes:
        raise ImageValidationError(f'{field_name} is too large. Max {max_bytes // (1024 * 1024)}MB.')

    verify_image_bytes(data, IMAGE_MIME_FORMATS[content_type], field_name)
    return data, content_type, extension


def verify_image_bytes(data, expected_format, field_name='image'):
    """
    Check that bytes decode as an image of the expected PIL format.

    Raises:
        ImageValidationError: If the bytes are corrupted, of another format,
            or have dimensions beyond MAX_WIDTH x MAX_HEIGHT
    """
    try:
        # Open image with PIL (validates format)
        img = Image.open(BytesIO(data))

        # Verify it's actually an image (detects corrupted/fake files)
        img.verify()

        if img.format != expected_format:
            raise ImageValidationError(
                f'{field_name} content does not match its declared type '
                f'(got {img.format or "unknown"}, expected {expected_format}).'
            )

        # Check dimensions (prevent decompression bombs)
        width, height = img.size
        if width > MAX_WIDTH or height > MAX_HEIGHT:
            raise ImageValidationError(
                f'{field_name} dimensions too large: {width}x{height}. '
                f'Maximum: {MAX_WIDTH}x{MAX_HEIGHT}'
            )

    except ImageValidationError:
        raise
    except Image.DecompressionBombError:
        raise ImageValidationError(f'{field_name} appears to be a decompression bomb (too large when decoded)')
    except Exception as e:
        raise ImageValidationError(f'{field_name} is invalid or corrupted: {str(e)}')
