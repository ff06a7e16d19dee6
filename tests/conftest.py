import pytest
from flask import g

from config import TestConfig
from business_portal import create_app, db
from business_portal.services.users import create_user

PASSWORD = 'secret123'


@pytest.fixture()
def app(tmp_path):
    class Config(TestConfig):
        UPLOAD_DIR = str(tmp_path / 'uploads')
        LOGIN_MAX_ATTEMPTS = 3

    app = create_app(Config)

    # The app context pushed below is reused by every test request, so drop
    # Flask-Login's per-request user cache after each one (as a fresh g would).
    @app.teardown_request
    def _reset_login_cache(exc):
        g.pop('_login_user', None)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    counter = {'n': 0}

    def factory(role='USER', name=None, pin=None, department='Produksi'):
        counter['n'] += 1
        n = counter['n']
        return create_user(name or f'User {n}', f'user{n}@portal.co.id', f'user{n}', PASSWORD,
                           department=department, role=role, pin=pin)
    return factory


@pytest.fixture()
def admin(make_user):
    return make_user(role='ADMIN', name='Admin')


@pytest.fixture()
def employee(make_user):
    return make_user(role='USER', name='Budi')


def login(client, user, password=PASSWORD):
    return client.post('/auth/login', data={'identifier': user.username, 'password': password})


@pytest.fixture()
def admin_client(client, admin):
    assert login(client, admin).status_code == 200
    return client


@pytest.fixture()
def employee_client(app, employee):
    client = app.test_client()
    assert login(client, employee).status_code == 200
    return client
