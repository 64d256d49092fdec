"""
Shared fixtures: the Flask app wired to an in-memory fake of the backend.
"""
import time

import jwt
import pytest

from app import app as flask_app
from exceptions import ApiError
from extensions import api

TOKEN_SECRET = 'test-token-secret'

ADMIN = {
    'user_id': 1, 'username': 'admin', 'email': 'admin@skynest.lk',
    'full_name': 'System Admin', 'role': 'Admin', 'branch': None,
}
RECEPTIONIST = {
    'user_id': 2, 'username': 'frontdesk', 'email': 'desk@skynest.lk',
    'full_name': 'Nimali Perera', 'role': 'Receptionist',
    'branch': {'branch_id': 3, 'branch_name': 'SkyNest Kandy'},
}
GUEST = {
    'user_id': 5, 'username': 'kasun', 'email': 'kasun@example.com',
    'full_name': 'Kasun Silva', 'role': 'Guest', 'guest_id': 42,
}


def make_token(user, expires_in=3600):
    payload = {'user_id': user['user_id'], 'role': user['role'], 'exp': int(time.time()) + expires_in}
    return jwt.encode(payload, TOKEN_SECRET, algorithm='HS256')


class FakeResponse:
    """Stands in for ``requests.Response`` below the API client"""

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError('no json')
        return self._body


class FakeBackend:
    """Canned responses keyed by (METHOD, path); every call is recorded"""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def on(self, method, path, data=None, message=None, error=None):
        if error is not None:
            self.routes[(method, path)] = error
        else:
            body = {'success': True, 'data': data}
            if message:
                body['message'] = message
            self.routes[(method, path)] = body
        return self

    def fail(self, method, path, message='Request failed', status_code=400):
        return self.on(method, path, error=ApiError(message, status_code, {'message': message}))

    def request(self, method, path, params=None, json=None, error_message=None):
        self.calls.append({'method': method, 'path': path, 'params': params, 'json': json})
        response = self.routes.get((method, path))
        if isinstance(response, Exception):
            raise response
        if response is None:
            return {'success': True, 'data': None}
        return response

    def called(self, method, path):
        return [c for c in self.calls if c['method'] == method and c['path'] == path]


@pytest.fixture
def app():
    flask_app.config.update(
        TESTING=True,
        SECRET_KEY='test-session-secret',
        JWT_SECRET_KEY=None,
        SKYNEST_API_URL='http://backend.test/api',
    )
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def backend(monkeypatch):
    fake = FakeBackend()
    monkeypatch.setattr(api, 'request', fake.request)
    return fake


@pytest.fixture
def login(client):
    def _login(user, token=None):
        with client.session_transaction() as sess:
            sess['token'] = token or make_token(user)
            sess['user'] = dict(user)
            sess['_user_id'] = str(user['user_id'])
            sess['_fresh'] = True
        return client
    return _login


def flashes(client):
    with client.session_transaction() as sess:
        return [message for _, message in sess.get('_flashes', [])]
