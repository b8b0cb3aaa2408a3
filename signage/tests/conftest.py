"""
Pytest configuration and fixtures for signage tests.

This module provides shared fixtures for testing:
- Flask application with test configuration
- In-memory SQLite database
- Test client
- Owner and outsider accounts with bearer sessions
- Sample screens
"""

import os
import sys

import pytest

# Add project root to path for signage package imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from signage.app import create_app
from signage.models import db, User, UserSession, Screen
from signage.services import ActivationCodeIssuer, DeviceCredentialStore, PendingBindingService


@pytest.fixture(scope='function')
def app():
    """
    Create a Flask application configured for testing.

    This fixture provides an isolated Flask app with:
    - In-memory SQLite database
    - Testing mode enabled
    - A fresh in-memory activation rate limiter

    Yields:
        Flask application instance
    """
    application = create_app(config_name='testing')
    application.config['TESTING'] = True

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """
    Create a test client for the Flask application.

    Args:
        app: Flask application fixture

    Returns:
        Flask test client
    """
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """
    Provide a database session for testing.

    Requests made through the test client run in their own app context, so
    tests call expire_all() before reading rows a request has changed.

    Yields:
        SQLAlchemy session
    """
    with app.app_context():
        yield db.session


@pytest.fixture(scope='function')
def sample_owner(db_session):
    """
    Create the dashboard user that owns the sample screens.

    Returns:
        User instance (password 'TestPassword123!')
    """
    user = User(
        email='owner@test.com',
        name='Test Owner',
    )
    user.set_password('TestPassword123!')
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def sample_outsider(db_session):
    """
    Create a second user who owns nothing the tests touch.

    Returns:
        User instance
    """
    user = User(
        email='outsider@test.com',
        name='Test Outsider',
    )
    user.set_password('TestPassword123!')
    db_session.add(user)
    db_session.commit()
    return user


def _bearer_headers(db_session, user):
    session = UserSession.open_for(user.id)
    db_session.add(session)
    db_session.commit()
    return {'Authorization': f'Bearer {session.token}'}


@pytest.fixture(scope='function')
def auth_headers(db_session, sample_owner):
    """Authorization headers carrying a bearer session for sample_owner."""
    return _bearer_headers(db_session, sample_owner)


@pytest.fixture(scope='function')
def outsider_headers(db_session, sample_outsider):
    """Authorization headers carrying a bearer session for sample_outsider."""
    return _bearer_headers(db_session, sample_outsider)


@pytest.fixture(scope='function')
def sample_screen(db_session, sample_owner):
    """
    Create screen 42 owned by sample_owner.

    Returns:
        Screen instance
    """
    screen = Screen(
        id=42,
        user_id=sample_owner.id,
        name='Lobby',
        location='Ground floor',
    )
    db_session.add(screen)
    db_session.commit()
    return screen


@pytest.fixture(scope='function')
def second_screen(db_session, sample_owner):
    """
    Create another screen owned by sample_owner.

    Returns:
        Screen instance
    """
    screen = Screen(
        id=43,
        user_id=sample_owner.id,
        name='Cafeteria',
    )
    db_session.add(screen)
    db_session.commit()
    return screen


@pytest.fixture(scope='function')
def issuer(app):
    """Activation code issuer with the default policy (6 characters, 1 hour)."""
    return ActivationCodeIssuer()


@pytest.fixture(scope='function')
def credential_store(app):
    """Device credential store."""
    return DeviceCredentialStore()


@pytest.fixture(scope='function')
def pending_service(app):
    """Pending device binding service."""
    return PendingBindingService()
