"""
Shared fixtures: an app on in-memory SQLite with local image storage
under tmp_path and a fake auth provider.
"""

import base64
from io import BytesIO

import pytest
from PIL import Image

from app import create_app, seed_categories
from models import db, AdminUser
from services.auth import AuthProviderError
from utils.storage import LocalStorage

CSRF_TOKEN = 'test-csrf-token'
ADMIN_TOKEN = 'admin-token'
USER_TOKEN = 'user-token'

ADMIN_USER = {'id': 'admin-1', 'email': 'admin@example.com'}
OTHER_USER = {'id': 'user-2', 'email': 'cook@example.com'}

API_HEADERS = {'X-CSRF-Token': CSRF_TOKEN, 'Origin': 'http://localhost'}


class FakeAuthProvider:
    """Stands in for the hosted auth API."""

    def __init__(self):
        self.users = {ADMIN_TOKEN: ADMIN_USER, USER_TOKEN: OTHER_USER}
        self.passwords = {
            ('admin@example.com', 'secret'): ADMIN_TOKEN,
            ('cook@example.com', 'secret'): USER_TOKEN,
        }
        self.unavailable = False
        self.sign_in_calls = 0

    def get_user(self, token):
        if self.unavailable:
            raise AuthProviderError('connection refused')
        return self.users.get(token)

    def sign_in_with_password(self, email, password):
        self.sign_in_calls += 1
        if self.unavailable:
            raise AuthProviderError('connection refused')
        token = self.passwords.get((email, password))
        if token is None:
            return None
        return self.users[token], token


class RecordingStorage(LocalStorage):
    """Local storage that remembers every upload and removal."""

    def __init__(self, root):
        super().__init__(root)
        self.uploads = []
        self.removals = []

    def upload(self, bucket, path, data, content_type):
        self.uploads.append((bucket, path))
        return super().upload(bucket, path, data, content_type)

    def remove(self, bucket, paths):
        self.removals.append((bucket, list(paths)))
        return super().remove(bucket, paths)


def make_data_url(color='red', fmt='PNG', mime='image/png', size=(4, 4)):
    buffer = BytesIO()
    Image.new('RGB', size, color).save(buffer, format=fmt)
    return f'data:{mime};base64,' + base64.b64encode(buffer.getvalue()).decode('ascii')


@pytest.fixture
def png_data_url():
    return make_data_url()


@pytest.fixture
def app(tmp_path):
    upload_folder = tmp_path / 'uploads'
    app = create_app('testing', {'UPLOAD_FOLDER': str(upload_folder)})
    app.extensions['auth_provider'] = FakeAuthProvider()
    app.extensions['recipe_storage'] = RecordingStorage(str(upload_folder))

    with app.app_context():
        db.create_all()
        seed_categories()
        db.session.add(AdminUser(user_id=ADMIN_USER['id']))
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_provider(app):
    return app.extensions['auth_provider']


@pytest.fixture
def storage(app):
    return app.extensions['recipe_storage']


@pytest.fixture
def admin_client(app):
    client = app.test_client()
    client.set_cookie(app.config['AUTH_COOKIE_NAME'], ADMIN_TOKEN)
    client.set_cookie(app.config['CSRF_COOKIE_NAME'], CSRF_TOKEN)
    return client


@pytest.fixture
def user_client(app):
    """Signed in, but not on the admin allow-list."""
    client = app.test_client()
    client.set_cookie(app.config['AUTH_COOKIE_NAME'], USER_TOKEN)
    client.set_cookie(app.config['CSRF_COOKIE_NAME'], CSRF_TOKEN)
    return client


@pytest.fixture
def recipe_body(png_data_url):
    """Factory for a valid recipe create/update body."""
    def build(**overrides):
        body = {
            'category': 'dinner',
            'title': 'Garlic Noodles',
            'subtitle': 'Weeknight favourite',
            'description': 'Buttery noodles with plenty of garlic.',
            'recipe_image_base64': png_data_url,
            'prep_minutes': 10,
            'cook_minutes': 15,
            'serves': 2,
            'is_published': False,
            'ingredients': [
                {'name': 'Garlic', 'amount_value': 6, 'amount_unit': 'cloves',
                 'image_base64': png_data_url},
                {'name': 'Noodles', 'amount_value': 200, 'amount_unit': 'g',
                 'image_base64': png_data_url},
            ],
            'steps': [
                {'title': 'Boil', 'body': 'Cook the noodles.'},
                {'body': 'Fry the garlic in butter and toss.'},
            ],
            'tips': [{'tip': 'Use fresh garlic.'}],
        }
        body.update(overrides)
        return body
    return build
