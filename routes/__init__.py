"""
Routes Package

Blueprints for the public site, login/logout, the admin pages and the
admin JSON API.
"""

from .public import public_bp
from .auth import auth_bp
from .admin_pages import admin_pages_bp
from .admin_api import admin_api_bp


def register_blueprints(app):
    app.register_blueprint(public_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_pages_bp)
    app.register_blueprint(admin_api_bp)
