"""
Image Service

Uploads admin-submitted images to blob storage and resolves stored
image references to display URLs.
"""

import logging
import time
import uuid

from flask import current_app

from utils.image_handler import parse_image_data_url, ImageValidationError
from utils.storage import StorageError, parse_image_reference, normalize_image_path
from .errors import ServiceUnavailableError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)


def get_storage():
    """Configured storage backend, or None when it is not configured."""
    return current_app.extensions.get('recipe_storage')


def require_storage():
    storage = get_storage()
    if storage is None:
        raise ServiceUnavailableError('Image storage is not configured.')
    return storage


def upload_image(bucket, folder, data_url, field_name):
    """
    Validate a data URL image and store it.

    Returns:
        str: bucket-relative object path "<folder>/<epoch-ms>-<uuid>.<ext>"

    Raises:
        ValidationError: the image is invalid (400)
        UpstreamError: the storage call failed (400)
        ServiceUnavailableError: no storage backend configured (503)
    """
    try:
        data, content_type, extension = parse_image_data_url(data_url, field_name)
    except ImageValidationError as e:
        raise ValidationError(str(e))

    storage = require_storage()
    object_path = f'{folder}/{int(time.time() * 1000)}-{uuid.uuid4()}.{extension}'
    try:
        storage.upload(bucket, object_path, data, content_type)
    except StorageError as e:
        logger.error('Upload failed for %s (%s/%s): %s', field_name, bucket, object_path, e)
        raise UpstreamError(f'Upload failed for {field_name}: {e}')
    return object_path


def to_display_url(value, default_bucket=None):
    """Expand a stored reference to a URL usable in <img src>."""
    ref = parse_image_reference(value, default_bucket)
    if ref is None:
        return ''
    if ref.kind != 'storage':
        return ref.path
    storage = get_storage()
    if not ref.bucket or storage is None:
        return ref.path
    return storage.public_url(ref.bucket, ref.path)


def delete_image(value, default_bucket=None):
    """
    Best-effort removal of a stored image.

    Only storage references are removed; local paths and external URLs are
    left alone. Failures are logged, never raised.
    """
    storage = get_storage()
    ref = parse_image_reference(value, default_bucket)
    if storage is None or ref is None or ref.kind != 'storage' or not ref.bucket:
        return False

    object_path = normalize_image_path(ref.path, ref.bucket) or ref.path
    try:
        storage.remove(ref.bucket, [object_path])
    except StorageError as e:
        logger.warning('Storage cleanup skipped for %s: %s', value, e)
        return False
    return True


def delete_images(references):
    """Best-effort removal of several (reference, default_bucket) pairs."""
    for value, bucket in references:
        delete_image(value, bucket)
