"""
Racing transitions against one family.

These run on their own app bound to a file-backed SQLite database so that
each thread gets a real connection; ``lock_family`` must serialise them.
"""
import threading

import pytest

import config as config_module
from app import create_app
from extensions import db
from models.family import Invitation, InvitationStatus, Parent, ParentRole
from models.users import User
from services.admin_transfer_service import AdminTransferService
from services.errors import AdminRequired, DomainError, DuplicatePending, InvalidState
from services.identity_service import IdentityService
from services.invitation_service import InvitationService
from services.membership_service import MembershipService, count_admins, count_parents


@pytest.fixture
def concurrent_app(tmp_path, monkeypatch):
    class ConcurrencyConfig(config_module.TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'race.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'timeout': 30}}

    monkeypatch.setitem(config_module.config, 'concurrency', ConcurrencyConfig)
    application = create_app('concurrency')
    yield application
    with application.app_context():
        db.session.remove()
        db.engine.dispose()


def _race(app, workers):
    """Run each ``worker(user_id)`` in its own thread and app context at the same moment."""
    barrier = threading.Barrier(len(workers))
    results = [None] * len(workers)

    def run(index, worker, user_id):
        with app.app_context():
            barrier.wait()
            try:
                worker(db.session.get(User, user_id))
                results[index] = 'ok'
            except DomainError as e:
                results[index] = e
            finally:
                db.session.remove()

    threads = [threading.Thread(target=run, args=(i, w, uid)) for i, (w, uid) in enumerate(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def _setup_family(app, with_co_parent=False):
    with app.app_context():
        alice = IdentityService.resolve('auth0|alice', 'alice@example.com', 'Alice')
        bob = IdentityService.resolve('auth0|bob', 'bob@example.com', 'Bob')
        carol = IdentityService.resolve('auth0|carol', 'carol@example.com', 'Carol')
        family, _, _ = MembershipService.create_family(alice, 'Smith Family', [{'name': 'Sam'}])
        ids = {'alice': alice.id, 'bob': bob.id, 'carol': carol.id, 'family': family.id}
        if with_co_parent:
            ctx = MembershipService.get_membership_context(alice)
            invitation = InvitationService.issue(ctx, bob.email)
            InvitationService.accept(invitation.token, bob)
        return ids


class TestRaces:
    def test_concurrent_accepts_admit_exactly_one(self, concurrent_app):
        ids = _setup_family(concurrent_app)
        with concurrent_app.app_context():
            alice = db.session.get(User, ids['alice'])
            token = InvitationService.issue(MembershipService.get_membership_context(alice),
                                            'bob@example.com').token

        results = _race(concurrent_app, [
            (lambda user: InvitationService.accept(token, user), ids['bob']),
            (lambda user: InvitationService.accept(token, user), ids['carol']),
        ])

        assert results.count('ok') == 1
        loser = next(r for r in results if r != 'ok')
        assert isinstance(loser, InvalidState)
        with concurrent_app.app_context():
            assert count_parents(ids['family']) == 2
            assert count_admins(ids['family']) == 1
            assert Invitation.query.filter_by(status=InvitationStatus.ACCEPTED).count() == 1

    def test_concurrent_issues_leave_one_pending(self, concurrent_app):
        ids = _setup_family(concurrent_app)

        def issue_to(email):
            def worker(user):
                InvitationService.issue(MembershipService.get_membership_context(user), email)
            return worker

        results = _race(concurrent_app, [
            (issue_to('bob@example.com'), ids['alice']),
            (issue_to('carol@example.com'), ids['alice']),
        ])

        assert results.count('ok') == 1
        assert isinstance(next(r for r in results if r != 'ok'), DuplicatePending)
        with concurrent_app.app_context():
            assert Invitation.query.filter_by(status=InvitationStatus.PENDING).count() == 1

    def test_concurrent_transfers_keep_one_admin(self, concurrent_app):
        ids = _setup_family(concurrent_app, with_co_parent=True)

        def transfer(user):
            AdminTransferService.transfer(MembershipService.get_membership_context(user), ids['bob'])

        results = _race(concurrent_app, [(transfer, ids['alice']), (transfer, ids['alice'])])

        assert results.count('ok') == 1
        assert isinstance(next(r for r in results if r != 'ok'), AdminRequired)
        with concurrent_app.app_context():
            assert count_admins(ids['family']) == 1
            admin = Parent.query.filter_by(family_id=ids['family'], role=ParentRole.ADMIN_PARENT).one()
            assert admin.user_id == ids['bob']
