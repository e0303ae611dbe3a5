"""Pytest configuration and fixtures for the TSSR workflow tests."""
import pytest
import secrets
import tempfile
import os
import uuid
from werkzeug.security import generate_password_hash
from backend.app import create_app
from backend.models import db, AppConfig, Project, Survey, User, now
from backend.services import role_service, user_project_service, user_role_service
from shared.enums import SurveyStatus


@pytest.fixture
def app(tmp_path, monkeypatch):
    """Create and configure a test app instance with the default roles seeded."""
    monkeypatch.setenv('LOG_DIR', str(tmp_path / 'logs'))
    db_fd, db_path = tempfile.mkstemp()

    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    }

    app = create_app(test_config)

    with app.app_context():
        db.create_all()
        role_service.seed_default_roles()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def ctx(app):
    """Run the test body inside an application context."""
    with app.app_context():
        yield app


@pytest.fixture
def make_user(app):
    """Create a user holding the given role names; returns the user id."""
    def _make_user(username=None, roles=(), password='secret123'):
        username = username or f'user_{uuid.uuid4().hex[:8]}'
        user = User(
            username=username,
            email=f'{username}@example.com',
            password_hash=generate_password_hash(password),
        )
        db.session.add(user)
        db.session.commit()
        for name in roles:
            user_role_service.assign_role_to_user(user.id, role_service.get_role_by_name(name).id)
        return user.id
    return _make_user


@pytest.fixture
def make_project(app):
    def _make_project(name='Project Alpha', **kwargs):
        project = Project(name=name, **kwargs)
        db.session.add(project)
        db.session.commit()
        return project.id
    return _make_project


@pytest.fixture
def add_member(app):
    def _add_member(user_id, project_id, permissions=None):
        return user_project_service.assign_user_to_project(user_id, project_id, permissions=permissions)
    return _add_member


@pytest.fixture
def make_survey(app):
    """Insert a survey row directly in a given status; returns its session id."""
    def _make_survey(assignee_id, creator_id=None, project='Project Alpha',
                     status=SurveyStatus.CREATED, site_id=None):
        survey = Survey(
            site_id=site_id or f'SITE-{uuid.uuid4().hex[:6]}',
            session_id=uuid.uuid4().hex,
            user_id=assignee_id,
            creator_id=creator_id or assignee_id,
            project=project,
            status=status,
            created_at=now(),
        )
        db.session.add(survey)
        db.session.commit()
        return survey.session_id
    return _make_survey


@pytest.fixture
def auth_headers(app):
    """Issue a bearer token for a user id and return request headers."""
    def _auth_headers(user_id):
        token = secrets.token_urlsafe(32)
        db.session.add(AppConfig(key=f'token_{token}', value=str(user_id), category='user_token'))
        db.session.commit()
        return {'Authorization': f'Bearer {token}'}
    return _auth_headers
