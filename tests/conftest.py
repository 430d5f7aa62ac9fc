"""
Pytest configuration and fixtures for testing the TaskLoop API.
"""

import os
import sys
from datetime import datetime, timedelta

import pytest
from faker import Faker

# Add the parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from taskloop import create_app, db
from taskloop.models import User
from taskloop.services import storage

fake = Faker()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    os.environ['FLASK_ENV'] = 'testing'

    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for each test function."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before the test and roll back leftovers after."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        yield db.session
        db.session.rollback()


@pytest.fixture(autouse=True)
def reset_storage_client():
    """Never leak a fake Supabase client between tests."""
    storage._supabase_client = None
    yield
    storage._supabase_client = None


def random_username():
    return 'user_' + fake.unique.pystr(min_chars=6, max_chars=10)


def _create_user(password='testpassword123', **overrides):
    """Helper to create a user with sensible defaults."""
    data = {
        'username': random_username(),
        'email': fake.unique.email(),
        'full_name': fake.name(),
    }
    data.update(overrides)
    user = User(**data)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'password': password,
    }


def _get_token(client, email, password):
    """Login and return JWT token."""
    resp = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
    })
    data = resp.get_json()
    if not data or 'token' not in data:
        raise RuntimeError(f"Login failed: status={resp.status_code}, body={data}")
    return data['token']


def headers_for(client, user):
    token = _get_token(client, user['email'], user['password'])
    return {'Authorization': f'Bearer {token}'}


def future_iso(hours=24):
    return (datetime.utcnow() + timedelta(hours=hours)).isoformat()


def task_payload(**overrides):
    data = {
        'title': fake.sentence(nb_words=4),
        'description': fake.paragraph(),
        'location': fake.city(),
        'reward': 50,
        'deadline': future_iso(),
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_user(app, db_session):
    """Factory fixture: ``make_user(**overrides)`` returns a user dict."""
    def factory(**overrides):
        return _create_user(**overrides)
    return factory


@pytest.fixture
def test_user(make_user):
    """The task creator in most tests."""
    return make_user()


@pytest.fixture
def second_user(make_user):
    """Another user who applies to tasks."""
    return make_user(password='testpassword456')


@pytest.fixture
def auth_headers(client, test_user):
    """Get authentication headers for test user."""
    return headers_for(client, test_user)


@pytest.fixture
def second_auth_headers(client, second_user):
    """Get authentication headers for second user."""
    return headers_for(client, second_user)


@pytest.fixture
def test_task(client, auth_headers):
    """An active task created by ``test_user`` through the API."""
    resp = client.post('/api/tasks', json=task_payload(), headers=auth_headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()['task']


@pytest.fixture
def assigned_task(client, test_task, auth_headers, second_auth_headers):
    """``test_task`` with ``second_user`` approved as doer.

    Returns the task id plus both verification codes, each read by its owner.
    """
    resp = client.post(f"/api/tasks/{test_task['id']}/apply",
                       json={'message': 'I can do it'}, headers=second_auth_headers)
    assert resp.status_code == 201, resp.get_json()
    application_id = resp.get_json()['application']['id']

    resp = client.post(f'/api/tasks/applications/{application_id}/approve', headers=auth_headers)
    assert resp.status_code == 200, resp.get_json()

    as_creator = client.get(f"/api/tasks/{test_task['id']}", headers=auth_headers).get_json()['task']
    as_doer = client.get(f"/api/tasks/{test_task['id']}", headers=second_auth_headers).get_json()['task']

    return {
        'id': test_task['id'],
        'application_id': application_id,
        'reward': test_task['reward'],
        'requestor_code': as_creator['requestor_verification_code'],
        'doer_code': as_doer['doer_verification_code'],
    }


@pytest.fixture
def verified_task(client, assigned_task, auth_headers, second_auth_headers):
    """``assigned_task`` after both sides entered the right codes."""
    task_id = assigned_task['id']
    resp = client.post(f'/api/tasks/{task_id}/verify',
                       json={'code': assigned_task['requestor_code']}, headers=second_auth_headers)
    assert resp.get_json()['verified'] is True
    resp = client.post(f'/api/tasks/{task_id}/verify',
                       json={'code': assigned_task['doer_code']}, headers=auth_headers)
    assert resp.get_json()['verified'] is True
    return assigned_task
