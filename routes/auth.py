"""
Auth Routes

Admin login and logout. Login attempts are checked in this order:
rate limit, CSRF token, provider configuration, required fields,
credentials, admin membership.
"""

import logging

from flask import Blueprint, current_app, g, redirect, render_template, request

from services.auth import (
    AuthProviderError, clear_auth_cookie, client_ip, get_auth_provider,
    get_rate_limiter, has_valid_csrf_token, is_admin_user, set_auth_cookie,
)
from utils.decorators import NOT_ADMIN_MESSAGE, csrf_required
from utils.url_validator import safe_admin_redirect

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def _login_page(error, status, next_path):
    return render_template('auth/login.html', error=error, next_path=next_path), status


@auth_bp.route('/login', methods=['GET'])
def login():
    if g.auth.get('is_admin'):
        return redirect('/admin')
    return render_template('auth/login.html', error=None,
                           next_path=safe_admin_redirect(request.args.get('next')))


@auth_bp.route('/login', methods=['POST'])
def login_submit():
    email = (request.form.get('email') or '').strip().lower()
    password = request.form.get('password') or ''
    next_path = safe_admin_redirect(request.form.get('next'))

    limiter = get_rate_limiter()
    client = client_ip()

    rate_limit_error = limiter.check(client)
    if rate_limit_error:
        return _login_page(rate_limit_error, 429, next_path)

    if not has_valid_csrf_token():
        limiter.register_failure(client)
        return _login_page('Invalid session token. Refresh the page and try again.', 403, next_path)

    provider = get_auth_provider()
    if provider is None:
        return _login_page('Auth is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.', 503, next_path)

    if not email or not password:
        limiter.register_failure(client)
        return _login_page('Email and password are required.', 400, next_path)

    try:
        result = provider.sign_in_with_password(email, password)
    except AuthProviderError as e:
        logger.error('Sign-in failed: %s', e)
        return _login_page('Auth provider is unavailable. Try again later.', 503, next_path)

    if result is None:
        limiter.register_failure(client)
        return _login_page('Invalid email or password.', 401, next_path)

    user, access_token = result
    if not is_admin_user(user.get('id')):
        limiter.register_failure(client)
        return _login_page(NOT_ADMIN_MESSAGE, 403, next_path)

    limiter.clear(client)
    current_app.logger.info('Admin login: %s', user.get('email') or email)
    response = redirect(next_path)
    g.clear_auth_cookie = False
    set_auth_cookie(response, access_token)
    return response


@auth_bp.route('/logout', methods=['POST'])
@csrf_required
def logout():
    response = redirect('/login')
    clear_auth_cookie(response)
    return response
