"""
Pytest fixtures for pharmacy POS backend tests.

Provides the application, a clean database per test, record stores and a test client.
"""

import pytest
from pharmpos import create_app
from pharmpos.extensions import db
from pharmpos.services.storage_service import MemoryRecordStore, SqlRecordStore


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def sql_store(db_session):
    """Record store backed by the test database."""
    return SqlRecordStore(db_session)


@pytest.fixture(scope='function')
def memory_store():
    """Empty in-memory record store."""
    return MemoryRecordStore()
