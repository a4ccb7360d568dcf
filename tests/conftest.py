"""Shared fixtures: an in-memory SQLite app, a recording mailer and users."""
import pytest
from fastapi.testclient import TestClient

from tasknestle import auth, crud, security
from tasknestle.api.main import create_app
from tasknestle.config import Settings
from tasknestle.models import Base, UserRole
from tasknestle.notifications import DeliveryResult, Mailer

PASSWORD = "Passw0rd"


class RecordingMailer(Mailer):
    """Mailer that keeps messages in memory instead of talking to SMTP."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.sent = []

    def send(self, to_email, subject, body, html=None):
        self.sent.append({"to": to_email, "subject": subject, "body": body, "html": html})
        return DeliveryResult(delivered=True)

    def sent_to(self, email):
        return [m for m in self.sent if m["to"] == email]


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Keep PBKDF2 cheap in tests."""
    monkeypatch.setattr(security, "PBKDF2_ITERATIONS", 1000)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        secret_key="test-secret",
        smtp_host=None,
        frontend_url="http://app.test",
    )


@pytest.fixture
def mailer(settings):
    return RecordingMailer(settings)


@pytest.fixture
def app(settings, mailer):
    app = create_app(settings, mailer=mailer)
    Base.metadata.create_all(bind=app.state.session_factory.kw["bind"])
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make_user(name, email, role=UserRole.MEMBER, password=PASSWORD):
        return crud.create_user(db, name, email, password, role=role, email_verified=True)
    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("Ada Admin", "admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def owner(make_user):
    return make_user("Olive Owner", "owner@example.com")


@pytest.fixture
def member(make_user):
    return make_user("Max Member", "member@example.com")


@pytest.fixture
def outsider(make_user):
    return make_user("Oscar Outsider", "outsider@example.com")


@pytest.fixture
def headers(settings):
    """Build an Authorization header for a user."""
    def _headers(user):
        return {"Authorization": f"Bearer {auth.issue_session_token(settings, user)}"}
    return _headers


@pytest.fixture
def project(db, owner, member):
    """Active project created by ``owner`` with ``member`` on board."""
    return crud.create_project(db, owner, "Website Relaunch", "New marketing site", [member.id])
