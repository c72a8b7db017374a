"""
Shared pytest fixtures for the ClientForge test suite.

Provides:
    - app: Flask application (session-scoped, object storage in a tmp dir)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user: factory → (User, auth headers)
    - user / auth_headers: the agency owner used by most tests
    - admin_user / admin_headers: a platform admin
    - client_record: a Client owned by ``user``
    - project: a Project for ``client_record`` (briefing status)
    - briefed_project: ``project`` with every required briefing field filled
    - planned_project: ``briefed_project`` after briefing completion
"""

import os

from cryptography.fernet import Fernet

# The vault reads ENCRYPTION_KEY per call; set it before the app is built.
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())

import pytest  # noqa: E402

from app import create_app  # noqa: E402
from app.models import db as _db  # noqa: E402


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    application.config["OBJECT_STORAGE_ROOT"] = str(tmp_path_factory.mktemp("storage"))
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users ────────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: create a user and return (user, Authorization headers)."""
    from app.services.jwt_service import generate_access_token
    from app.services.user_service import create_user

    def _make(email, password="Secret123!", role="user", **kwargs):
        u = create_user(email, password, role=role, **kwargs)
        headers = {"Authorization": f"Bearer {generate_access_token(u.id, u.role)}"}
        return u, headers

    return _make


@pytest.fixture()
def _owner(make_user):
    return make_user("agency@example.com", first_name="Ana", last_name="Lima")


@pytest.fixture()
def user(_owner):
    return _owner[0]


@pytest.fixture()
def auth_headers(_owner):
    return _owner[1]


@pytest.fixture()
def _admin(make_user):
    return make_user("root@example.com", role="platform_admin")


@pytest.fixture()
def admin_user(_admin):
    return _admin[0]


@pytest.fixture()
def admin_headers(_admin):
    return _admin[1]


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def client_record(user):
    from app.services.client_service import create_client
    return create_client(user.id, {"name": "Acme Ltda", "email": "contact@acme.example.com", "company": "Acme"})


@pytest.fixture()
def project(user, client_record):
    from app.services.project_service import create_project
    return create_project(user.id, {"name": "Acme Storefront", "client_id": client_record.id})


BRIEFING_ANSWERS = {
    "project_type": "E-commerce web app",
    "business_objective": "Sell handmade goods online",
    "target_audience": "Adults 25-45 who buy gifts",
    "market_niche": "Artisan crafts",
    "desired_scope": "Catalog, cart, checkout, admin panel",
    "success_criteria": "100 orders in the first month",
    "stack": "React + Flask",
    "deadline_text": "3 months",
    "budget": "R$ 40.000",
    "visual_identity": {"colors": ["#DE3403"], "style": "warm"},
}


@pytest.fixture()
def briefed_project(project):
    from app.services.briefing_service import update_briefing
    update_briefing(project, dict(BRIEFING_ANSWERS))
    return project


@pytest.fixture()
def planned_project(briefed_project, user):
    from app.services.briefing_service import complete_briefing
    complete_briefing(briefed_project, user.id)
    return briefed_project
