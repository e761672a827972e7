"""
Application Configuration

Centralizes all Flask and application configuration settings.
"""

import os

# Base directory of the application
BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    """Base configuration class."""

    # Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-only-change-in-production')

    # SQLAlchemy settings
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///kitchen.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Images travel as base64 data URLs inside JSON bodies (15MB each, decoded)
    MAX_CONTENT_LENGTH = 64 * 1024 * 1024

    # Hosted backend (auth + storage)
    SUPABASE_URL = os.environ.get('SUPABASE_URL', '')
    SUPABASE_ANON_KEY = os.environ.get('SUPABASE_ANON_KEY', '')
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get('SUPABASE_SERVICE_ROLE_KEY', '')
    REQUEST_TIMEOUT = _env_int('REQUEST_TIMEOUT', 10)

    # Blob storage: 'local' writes under UPLOAD_FOLDER, 'supabase' uses the storage API
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'local')
    UPLOAD_FOLDER = os.path.join(BASE_DIR, 'static', 'uploads')

    # Cookies
    AUTH_COOKIE_NAME = 'ndk_admin_token'
    AUTH_COOKIE_MAX_AGE = _env_int('AUTH_COOKIE_MAX_AGE', 60 * 60 * 8)
    CSRF_COOKIE_NAME = 'ndk_csrf_token'
    CSRF_COOKIE_MAX_AGE = _env_int('CSRF_COOKIE_MAX_AGE', 60 * 60 * 8)
    COOKIE_SECURE = False

    # Login rate limiting (per client IP, fixed window)
    LOGIN_RATE_LIMIT_WINDOW_SECONDS = _env_int('LOGIN_RATE_LIMIT_WINDOW_SECONDS', 15 * 60)
    LOGIN_RATE_LIMIT_MAX_ATTEMPTS = _env_int('LOGIN_RATE_LIMIT_MAX_ATTEMPTS', 5)

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    COOKIE_SECURE = True
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'supabase')


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    STORAGE_BACKEND = 'local'
    SUPABASE_URL = ''
    SUPABASE_ANON_KEY = ''
    SUPABASE_SERVICE_ROLE_KEY = ''
    LOGIN_RATE_LIMIT_WINDOW_SECONDS = 60
    LOGIN_RATE_LIMIT_MAX_ATTEMPTS = 3
    LOG_LEVEL = 'WARNING'


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config(env=None):
    """Get configuration based on environment."""
    if env is None:
        env = os.environ.get('FLASK_ENV', 'development')
    return config.get(env, config['default'])
