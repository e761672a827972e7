"""
Application Factory

Builds the Flask app: configuration, logging, database, storage, auth
hooks, blueprints, error pages and CLI commands.
"""

import logging
import os
import sqlite3

import click
from flask import Flask, jsonify, render_template, request
from flask_migrate import Migrate
from sqlalchemy import event
from sqlalchemy.engine import Engine
from werkzeug.exceptions import HTTPException

from config import get_config
from constants import DEFAULT_CATEGORIES
from models import db, AdminUser, Category
from routes import register_blueprints
from services.auth import init_auth
from services.errors import HttpError
from services.search import DatabaseFuzzySearch
from utils.storage import create_storage

migrate = Migrate()


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


@event.listens_for(Engine, 'connect')
def set_sqlite_pragma(dbapi_connection, connection_record):
    # Enable SQLite foreign key enforcement
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()
        # Built-in lower() folds ASCII only; unique title/name indexes use it
        dbapi_connection.create_function('lower', 1, _unicode_lower, deterministic=True)


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(format='%(asctime)s %(levelname)s [%(name)s] %(message)s')
    logging.getLogger().setLevel(level)
    app.logger.setLevel(level)


def _wants_json():
    return request.path.startswith('/api/')


def register_error_handlers(app):
    @app.errorhandler(HttpError)
    def handle_http_error(error):
        if error.status >= 500:
            app.logger.error('%s %s failed: %s', request.method, request.path, error.message)
        if _wants_json():
            return jsonify({'error': error.message}), error.status
        return render_template('error.html', status=error.status, message=error.message), error.status

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        if _wants_json():
            return jsonify({'error': error.description}), error.code
        return render_template('error.html', status=error.code, message=error.description), error.code


def seed_categories():
    """Insert missing default categories. Returns the number added."""
    existing = {c.slug for c in Category.query.all()}
    added = 0
    for position, (slug, title) in enumerate(DEFAULT_CATEGORIES):
        if slug not in existing:
            db.session.add(Category(slug=slug, title=title, position=position))
            added += 1
    db.session.commit()
    return added


def register_commands(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables and seed the default categories."""
        db.create_all()
        added = seed_categories()
        click.echo(f'Database initialized ({added} categories added).')

    @app.cli.command('seed-categories')
    def seed_categories_command():
        """Insert any missing default categories."""
        added = seed_categories()
        click.echo(f'{added} categories added.')

    @app.cli.command('grant-admin')
    @click.argument('user_id')
    def grant_admin_command(user_id):
        """Give an auth-provider user id admin access."""
        if db.session.get(AdminUser, user_id) is not None:
            click.echo(f'{user_id} is already an admin.')
            return
        db.session.add(AdminUser(user_id=user_id))
        db.session.commit()
        click.echo(f'{user_id} granted admin access.')


def create_app(env=None, test_config=None):
    """
    Create the Flask application.

    Args:
        env: 'development', 'production' or 'testing' (default: FLASK_ENV)
        test_config: optional dict of config overrides
    """
    app = Flask(__name__)
    app.config.from_object(get_config(env))
    if test_config:
        app.config.update(test_config)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    if app.config.get('STORAGE_BACKEND', 'local') == 'local':
        os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
    app.extensions['recipe_storage'] = create_storage(app.config)
    if app.extensions['recipe_storage'] is None:
        app.logger.warning('Image storage is not configured; image uploads are disabled.')
    app.extensions['fuzzy_search'] = DatabaseFuzzySearch()

    init_auth(app)
    if app.extensions['auth_provider'] is None:
        app.logger.warning('Auth provider is not configured; admin login is disabled.')

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)
    return app


if __name__ == '__main__':
    application = create_app()
    with application.app_context():
        db.create_all()
        seed_categories()
    # host='0.0.0.0' allows access from other devices on the network
    application.run(debug=True, host='0.0.0.0', port=5000, use_reloader=False)
