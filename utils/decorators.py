"""
Route Guard Decorators

Access checks for the admin pages and the admin JSON API. Failures are
raised as service HttpErrors so each blueprint renders them its own way
(JSON for the API, the error page otherwise).
"""

import functools
from urllib.parse import quote

from flask import g, redirect, render_template, request

from services.auth import has_valid_csrf_token
from services.errors import AuthError, ForbiddenError
from .url_validator import check_same_origin

NOT_ADMIN_MESSAGE = 'This account is not authorized for admin access.'


def _auth():
    return g.get('auth') or {}


def _requested_path():
    query = request.query_string.decode('utf-8', 'replace')
    return f'{request.path}?{query}' if query else request.path


def admin_page_required(view):
    """Anonymous visitors go to the login page; non-admins get a 403 login page."""
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        auth = _auth()
        if not auth.get('is_authenticated'):
            return redirect(f'/login?next={quote(_requested_path(), safe="")}')
        if not auth.get('is_admin'):
            return render_template('auth/login.html', error=NOT_ADMIN_MESSAGE, next_path='/admin'), 403
        return view(*args, **kwargs)
    return wrapper


def admin_api_required(view):
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        auth = _auth()
        if not auth.get('is_authenticated'):
            raise AuthError('Authentication required.')
        if not auth.get('is_admin'):
            raise ForbiddenError('Admin access required.')
        return view(*args, **kwargs)
    return wrapper


def csrf_required(view):
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        if not has_valid_csrf_token():
            raise ForbiddenError('Invalid CSRF token.')
        return view(*args, **kwargs)
    return wrapper


def same_origin_required(view):
    """Origin (or Referer) must name this host."""
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        ok, message = check_same_origin(
            request.host, request.headers.get('Origin'), request.headers.get('Referer')
        )
        if not ok:
            raise ForbiddenError(message)
        return view(*args, **kwargs)
    return wrapper
