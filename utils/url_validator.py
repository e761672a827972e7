"""
URL Validation Module

Same-origin checks for state-changing admin requests and open-redirect
protection for the post-login redirect target.
"""

from urllib.parse import urlparse


def url_host(url):
    """Return the lowercased host[:port] of an absolute URL, or None."""
    if not url:
        return None

    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        return None

    return parsed.netloc.lower()


def check_same_origin(host, origin=None, referer=None):
    """
    Validate that a request was issued by a page served from `host`.

    The Origin header wins when present; otherwise the Referer is used.

    Returns (is_same_origin, error_message) tuple.
    """
    host = (host or '').lower()

    if origin:
        if url_host(origin) != host:
            return False, 'Origin mismatch.'
        return True, None

    if referer:
        if url_host(referer) != host:
            return False, 'Origin mismatch.'
        return True, None

    return False, 'Origin check required.'


def safe_admin_redirect(next_path, default='/admin'):
    """
    Restrict a post-login redirect to paths inside the admin area.

    Anything that is not a plain "/admin..." path (absolute URLs,
    protocol-relative "//host" URLs, other site paths) falls back to default.
    """
    if not isinstance(next_path, str):
        return default

    next_path = next_path.strip()
    if not next_path.startswith('/admin'):
        return default

    # Reject "/admin" look-alikes such as "/administrator-evil" or "/admin\\..."
    rest = next_path[len('/admin'):]
    if rest and rest[0] not in '/?#':
        return default
    if '\\' in next_path:
        return default

    return next_path
