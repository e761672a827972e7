"""
WSGI entry point.

Point the WSGI server (gunicorn, PythonAnywhere, ...) at `wsgi:application`.
"""

import os

from app import create_app

application = create_app(os.environ.get('FLASK_ENV', 'production'))
