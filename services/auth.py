"""
Auth Service

Session, CSRF and login rate limiting for the admin area.

The session cookie holds the auth provider's access token. It is
validated against the provider on every request, and the admin flag is
looked up in admin_users each time (nothing is cached across requests).
"""

import hmac
import logging
import math
import threading
import time
import uuid
from collections import namedtuple
from urllib.parse import urlparse

import requests
from flask import current_app, g, request
from sqlalchemy.exc import SQLAlchemyError

from models import db, AdminUser

logger = logging.getLogger(__name__)

CSRF_HEADER = 'X-CSRF-Token'
CSRF_FORM_FIELD = '_csrf'


class AuthProviderError(Exception):
    """Raised when the auth provider cannot be reached."""
    pass


# =============================================================================
# Auth provider client
# =============================================================================

class SupabaseAuthProvider:
    """Password sign-in and token validation against the hosted auth API."""

    def __init__(self, base_url, anon_key, timeout=10, session=None):
        parsed = urlparse(base_url)
        self.origin = f'{parsed.scheme}://{parsed.netloc}'
        self.anon_key = anon_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, token=None):
        return {
            'apikey': self.anon_key,
            'Authorization': f'Bearer {token or self.anon_key}',
        }

    def sign_in_with_password(self, email, password):
        """
        Exchange credentials for a session.

        Returns:
            tuple: (user dict, access token), or None for bad credentials
        """
        try:
            response = self.session.post(
                f'{self.origin}/auth/v1/token',
                params={'grant_type': 'password'},
                json={'email': email, 'password': password},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthProviderError(str(e))

        if response.status_code >= 500:
            raise AuthProviderError(f'HTTP {response.status_code}')
        if response.status_code != 200:
            return None

        payload = response.json()
        user = payload.get('user')
        token = payload.get('access_token')
        if not user or not token:
            return None
        return user, token

    def get_user(self, token):
        """Return the user owning an access token, or None if it is invalid."""
        try:
            response = self.session.get(
                f'{self.origin}/auth/v1/user',
                headers=self._headers(token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthProviderError(str(e))

        if response.status_code >= 500:
            raise AuthProviderError(f'HTTP {response.status_code}')
        if response.status_code != 200:
            return None
        user = response.json()
        return user if user.get('id') else None


def create_auth_provider(config):
    """Auth provider client, or None when it is not configured."""
    if not config.get('SUPABASE_URL') or not config.get('SUPABASE_ANON_KEY'):
        return None
    return SupabaseAuthProvider(
        config['SUPABASE_URL'],
        config['SUPABASE_ANON_KEY'],
        timeout=config.get('REQUEST_TIMEOUT', 10),
    )


def get_auth_provider():
    return current_app.extensions.get('auth_provider')


# =============================================================================
# Login rate limiting
# =============================================================================

RateLimitEntry = namedtuple('RateLimitEntry', ['count', 'reset_at'])


class RateLimitStore:
    """Storage for per-client failed login counters."""

    def get(self, key):
        raise NotImplementedError

    def set(self, key, entry):
        raise NotImplementedError

    def delete(self, key):
        raise NotImplementedError

    def evict_expired(self, now):
        """Drop every entry whose window has ended."""
        raise NotImplementedError


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store; counters reset when the process restarts."""

    def __init__(self):
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            return self._entries.get(key)

    def set(self, key, entry):
        with self._lock:
            self._entries[key] = entry

    def delete(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def evict_expired(self, now):
        with self._lock:
            expired = [k for k, entry in self._entries.items() if entry.reset_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self):
        return len(self._entries)


class LoginRateLimiter:
    """
    Fixed-window counter of failed logins per client key.

    Args:
        store: RateLimitStore
        window_seconds: window length, starting at the first failure
        max_attempts: failures allowed inside one window
        clock: returns the current time in seconds
    """

    def __init__(self, store, window_seconds, max_attempts, clock=time.time):
        self.store = store
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts
        self.clock = clock

    def _current(self, key):
        self.store.evict_expired(self.clock())
        return self.store.get(key)

    def check(self, key):
        """Return an error message when the key is locked out, else None."""
        entry = self._current(key)
        if entry is None or entry.count < self.max_attempts:
            return None
        wait_seconds = max(1, math.ceil(entry.reset_at - self.clock()))
        return f'Too many login attempts. Try again in {wait_seconds} seconds.'

    def register_failure(self, key):
        entry = self._current(key)
        if entry is None:
            entry = RateLimitEntry(0, self.clock() + self.window_seconds)
        self.store.set(key, entry._replace(count=entry.count + 1))

    def clear(self, key):
        self.store.delete(key)


def create_rate_limiter(config, store=None):
    return LoginRateLimiter(
        store or InMemoryRateLimitStore(),
        window_seconds=config.get('LOGIN_RATE_LIMIT_WINDOW_SECONDS', 900),
        max_attempts=config.get('LOGIN_RATE_LIMIT_MAX_ATTEMPTS', 5),
    )


def get_rate_limiter():
    return current_app.extensions['login_rate_limiter']


def client_ip():
    """First X-Forwarded-For hop, else the socket peer address."""
    forwarded = request.headers.get('X-Forwarded-For', '').split(',')[0].strip()
    return forwarded or request.remote_addr or 'unknown'


# =============================================================================
# Cookies
# =============================================================================

def _set_cookie(response, name, value, max_age):
    response.set_cookie(
        name, value,
        max_age=max_age,
        path='/',
        httponly=True,
        samesite='Lax',
        secure=current_app.config.get('COOKIE_SECURE', False),
    )


def set_auth_cookie(response, token):
    _set_cookie(response, current_app.config['AUTH_COOKIE_NAME'], token,
                current_app.config['AUTH_COOKIE_MAX_AGE'])


def clear_auth_cookie(response):
    _set_cookie(response, current_app.config['AUTH_COOKIE_NAME'], '', 0)


# =============================================================================
# CSRF
# =============================================================================

def csrf_token():
    return g.get('csrf_token')


def has_valid_csrf_token():
    """The CSRF cookie must be echoed in the header or the _csrf field."""
    cookie_token = request.cookies.get(current_app.config['CSRF_COOKIE_NAME'])
    if not cookie_token:
        return False

    provided = request.headers.get(CSRF_HEADER, '').strip()
    if not provided:
        provided = (request.form.get(CSRF_FORM_FIELD) or '').strip()
    if not provided and request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict) and isinstance(body.get(CSRF_FORM_FIELD), str):
            provided = body[CSRF_FORM_FIELD].strip()

    return bool(provided) and hmac.compare_digest(provided, cookie_token)


# =============================================================================
# Request context
# =============================================================================

def anonymous_context():
    return {'is_authenticated': False, 'is_admin': False, 'email': None, 'user': None}


def is_admin_user(user_id):
    if not user_id:
        return False
    try:
        return db.session.get(AdminUser, str(user_id)) is not None
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Admin lookup failed: %s', e)
        return False


def current_actor():
    """Acting user for audit entries."""
    user = g.auth.get('user') or {}
    return {'id': user.get('id'), 'email': user.get('email')}


def load_request_context():
    """before_request: attach CSRF token and auth context to g."""
    token = request.cookies.get(current_app.config['CSRF_COOKIE_NAME'])
    g.csrf_cookie_missing = not token
    g.csrf_token = token or str(uuid.uuid4())

    g.auth = anonymous_context()
    g.clear_auth_cookie = False
    if request.endpoint == 'static':
        return

    access_token = request.cookies.get(current_app.config['AUTH_COOKIE_NAME'])
    if not access_token:
        return

    provider = get_auth_provider()
    user = None
    if provider is not None:
        try:
            user = provider.get_user(access_token)
        except AuthProviderError as e:
            logger.warning('Auth provider unavailable: %s', e)
    if not user:
        g.clear_auth_cookie = True
        return

    g.auth = {
        'is_authenticated': True,
        'is_admin': is_admin_user(user.get('id')),
        'email': user.get('email'),
        'user': user,
    }


def persist_request_cookies(response):
    """after_request: issue a missing CSRF cookie, drop invalid sessions."""
    if g.get('csrf_cookie_missing'):
        _set_cookie(response, current_app.config['CSRF_COOKIE_NAME'], g.csrf_token,
                    current_app.config['CSRF_COOKIE_MAX_AGE'])
    if g.get('clear_auth_cookie'):
        clear_auth_cookie(response)
    return response


def init_auth(app, auth_provider=None, rate_limit_store=None):
    """Register auth collaborators and request hooks on the app."""
    app.extensions['auth_provider'] = auth_provider or create_auth_provider(app.config)
    app.extensions['login_rate_limiter'] = create_rate_limiter(app.config, rate_limit_store)

    app.before_request(load_request_context)
    app.after_request(persist_request_cookies)

    @app.context_processor
    def inject_auth():
        return {'auth': g.get('auth') or anonymous_context(), 'csrf_token': csrf_token()}
