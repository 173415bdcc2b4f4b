"""
Pytest configuration and fixtures.
Ensures tests use an isolated test database, not the production database.
"""

import os
import pytest
import tempfile

# Set test database path BEFORE importing app
# This ensures all tests use an isolated database
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f'resourcebook_test_{os.getpid()}.db')
os.environ['DATABASE_PATH'] = TEST_DB_PATH


@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Set up test environment before any tests run."""
    # Ensure test database path is set
    os.environ['DATABASE_PATH'] = TEST_DB_PATH
    os.environ['FLASK_ENV'] = 'test'

    yield

    # Cleanup: remove test database (and WAL files) after all tests
    for path in (TEST_DB_PATH, TEST_DB_PATH + '-wal', TEST_DB_PATH + '-shm'):
        if os.path.exists(path):
            try:
                os.remove(path)
            except PermissionError:
                pass  # Windows may have file locked


@pytest.fixture
def app():
    """Create test application with a freshly seeded database."""
    from app import create_app
    from database import init_db

    # Ensure test database path
    os.environ['DATABASE_PATH'] = TEST_DB_PATH

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    app.config['DATABASE_PATH'] = TEST_DB_PATH

    with app.app_context():
        init_db()

    yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def _login(client, username, password):
    response = client.post('/login', json={
        'username': username,
        'password': password
    })
    assert response.status_code == 200, response.get_json()
    return client


@pytest.fixture
def authenticated_client(app, client):
    """Create authenticated test client (admin)."""
    return _login(client, 'admin', 'admin123')


@pytest.fixture
def staff_client(app):
    """Second client logged in as the seeded staff user."""
    return _login(app.test_client(), 'staff', 'staff123')


@pytest.fixture
def seeded_ids(app):
    """IDs of seeded users and resources, looked up by name."""
    from database import get_db

    with app.app_context():
        db = get_db()

        def lookup(query, value):
            return db.execute(query, (value,)).fetchone()['id']

        return {
            'admin': lookup('SELECT id FROM users WHERE username = ?', 'admin'),
            'staff': lookup('SELECT id FROM users WHERE username = ?', 'staff'),
            'main_room': lookup('SELECT id FROM meeting_rooms WHERE name = ?', 'Main Meeting Room'),
            'small_room': lookup('SELECT id FROM meeting_rooms WHERE name = ?', 'Small Meeting Room'),
            'van': lookup('SELECT id FROM vehicles WHERE name = ?', 'Company Van'),
            'camera': lookup('SELECT id FROM equipment WHERE name = ?', 'Camera A'),
            'microphone': lookup('SELECT id FROM equipment WHERE name = ?', 'Wireless Microphone'),
            'light': lookup('SELECT id FROM equipment WHERE name = ?', 'LED Light Panel'),
            'drone': lookup('SELECT id FROM equipment WHERE name = ?', 'Drone'),
        }
