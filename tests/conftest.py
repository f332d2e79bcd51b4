"""
Shared pytest fixtures for the CoParentHQ test suite.

All tests run against an in-memory SQLite database (TestingConfig).
A single app context is pushed for the whole session so that SQLAlchemy
objects remain attached throughout.  After each test, clean_db wipes all
rows so tests are fully independent.

The identity-provider and notification collaborators are replaced on
``app.extensions`` with recording fakes for every test.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from flask import g

from app import create_app
from extensions import db as _db
from services.identity_provider import RoleSync, RoleSyncError


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------

class FakeRoleSync(RoleSync):
    """Records role changes; ``fail_on`` holds (action, subject, role) triples that raise."""

    def __init__(self):
        self.calls = []
        self.fail_on = set()
        self.fail_all = False

    def _apply(self, action, subject_id, role):
        if self.fail_all or (action, subject_id, role) in self.fail_on:
            raise RoleSyncError(f'{action} {role} for {subject_id} failed')
        self.calls.append((action, subject_id, role))

    def add_role(self, subject_id, role):
        self._apply('add', subject_id, role)

    def remove_role(self, subject_id, role):
        self._apply('remove', subject_id, role)


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_invitation(self, email, family_name, inviter_name, invitation_url, expires_at,
                        children=(), message=None):
        if self.fail:
            raise ConnectionError('SMTP relay unreachable')
        self.sent.append({
            'email': email,
            'family_name': family_name,
            'inviter_name': inviter_name,
            'invitation_url': invitation_url,
            'expires_at': expires_at,
            'children': list(children),
            'message': message,
        })
        return True


# ---------------------------------------------------------------------------
# Application / database lifecycle
# ---------------------------------------------------------------------------

@pytest.fixture(scope='session')
def app():
    """Create a test Flask application with an in-memory SQLite database."""
    application = create_app('testing')
    ctx = application.app_context()
    ctx.push()
    _db.create_all()
    yield application
    _db.session.remove()
    _db.drop_all()
    ctx.pop()


@pytest.fixture(autouse=True)
def clean_db(app):
    """Wipe every table after each test so tests never share state."""
    yield
    _db.session.rollback()
    for table in reversed(_db.metadata.sorted_tables):
        _db.session.execute(table.delete())
    _db.session.commit()
    _db.session.expunge_all()


@pytest.fixture(autouse=True)
def role_sync(app):
    original = app.extensions['role_sync']
    fake = FakeRoleSync()
    app.extensions['role_sync'] = fake
    yield fake
    app.extensions['role_sync'] = original


@pytest.fixture(autouse=True)
def notifier(app):
    original = app.extensions['notifier']
    fake = FakeNotifier()
    app.extensions['notifier'] = fake
    yield fake
    app.extensions['notifier'] = original


@pytest.fixture
def config_override(app):
    """Temporarily change app.config values: ``config_override(KEY=value)``."""
    saved = {}

    def _set(**values):
        for key, value in values.items():
            saved.setdefault(key, app.config.get(key))
            app.config[key] = value

    yield _set
    app.config.update(saved)


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(app):
    from services.identity_service import IdentityService

    def _make(name='Alice', email=None, subject=None):
        email = email or f'{name.lower()}@example.com'
        subject = subject or f'auth0|{name.lower()}'
        return IdentityService.resolve(subject, email, name)
    return _make


@pytest.fixture
def make_family(app):
    from services.membership_service import MembershipService

    def _make(founder, name='Smith Family', children=({'name': 'Sam'}, {'name': 'Ella'})):
        family, _children, _parent = MembershipService.create_family(founder, name, list(children))
        return family
    return _make


@pytest.fixture
def ctx_for(app):
    from services.membership_service import MembershipService

    def _ctx(user):
        return MembershipService.get_membership_context(user)
    return _ctx


@pytest.fixture
def alice(make_user):
    return make_user('Alice')


@pytest.fixture
def bob(make_user):
    return make_user('Bob')


@pytest.fixture
def carol(make_user):
    return make_user('Carol')


@pytest.fixture
def family(alice, make_family):
    """Alice's family, Alice as admin, two children."""
    return make_family(alice)


@pytest.fixture
def full_family(family, alice, bob, ctx_for):
    """Alice (admin) and Bob (co-parent)."""
    from services.invitation_service import InvitationService
    invitation = InvitationService.issue(ctx_for(alice), bob.email)
    InvitationService.accept(invitation.token, bob)
    return family


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

def make_token(user=None, subject=None, email=None, name=None, expires_in=300,
               secret='testing-identity-secret-0123456789abcdef'):
    claims = {
        'sub': subject or user.subject_id,
        'email': email or user.email,
        'exp': datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    if name or user is not None:
        claims['name'] = name or user.name
    return jwt.encode(claims, secret, algorithm='HS256')


class ApiClient:
    """Test client that authenticates with a bearer token per call."""

    def __init__(self, client):
        self.client = client

    def request(self, method, path, user=None, token=None, **kwargs):
        # Flask-Login caches the user on g, which outlives a request while the
        # session-wide app context is pushed
        g.pop('_login_user', None)
        headers = kwargs.pop('headers', {})
        if token is None and user is not None:
            token = make_token(user)
        if token is not None:
            headers['Authorization'] = f'Bearer {token}'
        return self.client.open(path, method=method, headers=headers, **kwargs)

    def get(self, path, **kwargs):
        return self.request('GET', path, **kwargs)

    def post(self, path, **kwargs):
        return self.request('POST', path, **kwargs)

    def put(self, path, **kwargs):
        return self.request('PUT', path, **kwargs)

    def patch(self, path, **kwargs):
        return self.request('PATCH', path, **kwargs)

    def delete(self, path, **kwargs):
        return self.request('DELETE', path, **kwargs)


@pytest.fixture
def api(app):
    return ApiClient(app.test_client())


@pytest.fixture
def token_for():
    return make_token
