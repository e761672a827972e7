"""
Blob Storage Module

Storage backends for recipe and ingredient images, plus helpers for the
image references stored in the database.

Stored references are normally bucket-relative object paths
("apple-pie/1700000000000-<uuid>.jpg"). Older rows may hold a full public
storage URL, an absolute external URL, or a site-local path ("/img/x.jpg");
parse_image_reference() tells them apart.
"""

import os
import re
from collections import namedtuple
from urllib.parse import quote, urlparse

import requests


class StorageError(Exception):
    """Raised when a storage backend call fails."""
    pass


ImageReference = namedtuple('ImageReference', ['kind', 'bucket', 'path'])

LOCAL_URL_PREFIX = '/static/uploads'

PUBLIC_OBJECT_PATTERN = re.compile(r'/storage/v1/object/public/([^/]+)/(.+)$', re.IGNORECASE)
LOCAL_OBJECT_PATTERN = re.compile(r'^' + re.escape(LOCAL_URL_PREFIX) + r'/([^/]+)/(.+)$')


def parse_image_reference(value, default_bucket=None):
    """
    Classify a stored image reference.

    Returns:
        ImageReference with kind 'local' (site path), 'url' (external URL)
        or 'storage' (bucket + object path), or None for empty input
    """
    text = str(value or '').strip()
    if not text:
        return None

    if text.startswith('/'):
        matched = LOCAL_OBJECT_PATTERN.match(text)
        if matched:
            return ImageReference('storage', matched.group(1), matched.group(2))
        return ImageReference('local', None, text)

    if re.match(r'^https?://', text, re.IGNORECASE):
        matched = PUBLIC_OBJECT_PATTERN.search(urlparse(text).path)
        if matched:
            return ImageReference('storage', matched.group(1), matched.group(2))
        return ImageReference('url', None, text)

    return ImageReference('storage', default_bucket, text)


def normalize_image_path(value, default_bucket=None):
    """
    Reduce a reference to the form stored in the database.

    Storage references become bucket-relative object paths; a leading
    "<default_bucket>/" is stripped. Local paths and external URLs are kept.
    """
    ref = parse_image_reference(value, default_bucket)
    if ref is None:
        return None
    if ref.kind != 'storage':
        return ref.path
    path = ref.path
    if default_bucket and path.startswith(f'{default_bucket}/'):
        path = path[len(default_bucket) + 1:]
    return path or None


class LocalStorage:
    """Stores objects as files under <root>/<bucket>/<path>."""

    def __init__(self, root, url_prefix=LOCAL_URL_PREFIX):
        self.root = os.path.abspath(root)
        self.url_prefix = url_prefix.rstrip('/')

    def _file_path(self, bucket, path):
        full = os.path.abspath(os.path.join(self.root, bucket, path))
        if not full.startswith(self.root + os.sep):
            raise StorageError(f'Invalid object path: {bucket}/{path}')
        return full

    def upload(self, bucket, path, data, content_type):
        full = self._file_path(bucket, path)
        if os.path.exists(full):
            raise StorageError(f'Object already exists: {bucket}/{path}')
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, 'wb') as f:
            f.write(data)
        return path

    def remove(self, bucket, paths):
        for path in paths:
            full = self._file_path(bucket, path)
            try:
                os.remove(full)
            except FileNotFoundError:
                continue
            except OSError as e:
                raise StorageError(f'Could not remove {bucket}/{path}: {e}')

    def exists(self, bucket, path):
        return os.path.exists(self._file_path(bucket, path))

    def public_url(self, bucket, path):
        return f'{self.url_prefix}/{bucket}/{path}'


class SupabaseStorage:
    """Stores objects through the hosted storage REST API."""

    def __init__(self, base_url, service_key, timeout=10, session=None):
        parsed = urlparse(base_url)
        self.origin = f'{parsed.scheme}://{parsed.netloc}'
        self.service_key = service_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, extra=None):
        headers = {
            'Authorization': f'Bearer {self.service_key}',
            'apikey': self.service_key,
        }
        if extra:
            headers.update(extra)
        return headers

    def _object_url(self, bucket, path=''):
        url = f'{self.origin}/storage/v1/object/{quote(bucket)}'
        if path:
            url += '/' + quote(path)
        return url

    def upload(self, bucket, path, data, content_type):
        try:
            response = self.session.post(
                self._object_url(bucket, path),
                data=data,
                headers=self._headers({'Content-Type': content_type, 'x-upsert': 'false'}),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(str(e))
        if response.status_code >= 400:
            raise StorageError(_error_message(response))
        return path

    def remove(self, bucket, paths):
        if not paths:
            return
        try:
            response = self.session.delete(
                self._object_url(bucket),
                json={'prefixes': list(paths)},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(str(e))
        if response.status_code >= 400:
            raise StorageError(_error_message(response))

    def public_url(self, bucket, path):
        return f'{self.origin}/storage/v1/object/public/{bucket}/{path}'


def _error_message(response):
    try:
        payload = response.json()
    except ValueError:
        return f'HTTP {response.status_code}'
    return payload.get('message') or payload.get('error') or f'HTTP {response.status_code}'


def create_storage(config):
    """
    Build the storage backend selected by STORAGE_BACKEND.

    Returns None when the hosted backend is selected but not configured;
    callers surface that as a 503.
    """
    backend = (config.get('STORAGE_BACKEND') or 'local').lower()
    if backend == 'supabase':
        if not config.get('SUPABASE_URL') or not config.get('SUPABASE_SERVICE_ROLE_KEY'):
            return None
        return SupabaseStorage(
            config['SUPABASE_URL'],
            config['SUPABASE_SERVICE_ROLE_KEY'],
            timeout=config.get('REQUEST_TIMEOUT', 10),
        )
    return LocalStorage(config['UPLOAD_FOLDER'])
