"""Tests for AdminTransferService: the role swap, its refusals and provider sync."""
import pytest

from extensions import db
from models.audit import AuditEvent
from models.family import Parent, ParentRole
from services.admin_transfer_service import AdminTransferService
from services.errors import AdminRequired, FamilyFull, NotCoParent, RoleSyncFailed, SelfTransfer
from services.invitation_service import InvitationService
from services.membership_service import count_admins, count_parents


def _role(user):
    db.session.expire_all()
    return Parent.query.filter_by(user_id=user.id).one().role


class TestTransfer:
    def test_swaps_roles(self, app, alice, bob, full_family, ctx_for):
        family, previous, new, timestamp = AdminTransferService.transfer(ctx_for(alice), bob.id)

        assert family.id == full_family.id
        assert previous.user_id == alice.id
        assert new.user_id == bob.id
        assert timestamp is not None
        assert _role(alice) == ParentRole.CO_PARENT
        assert _role(bob) == ParentRole.ADMIN_PARENT
        assert count_admins(full_family.id) == 1
        assert count_parents(full_family.id) == 2

    def test_syncs_roles_at_identity_provider(self, app, alice, bob, full_family, ctx_for, role_sync):
        role_sync.calls.clear()
        AdminTransferService.transfer(ctx_for(alice), bob.id)

        assert role_sync.calls == [
            ('remove', 'auth0|alice', 'ADMIN_PARENT'),
            ('add', 'auth0|alice', 'CO_PARENT'),
            ('remove', 'auth0|bob', 'CO_PARENT'),
            ('add', 'auth0|bob', 'ADMIN_PARENT'),
        ]

    def test_records_audit_event(self, app, alice, bob, full_family, ctx_for):
        AdminTransferService.transfer(ctx_for(alice), bob.id)
        event = AuditEvent.query.filter_by(action='admin.transferred').one()
        assert event.actor_user_id == alice.id

    def test_transfer_back(self, app, alice, bob, full_family, ctx_for):
        AdminTransferService.transfer(ctx_for(alice), bob.id)
        AdminTransferService.transfer(ctx_for(bob), alice.id)
        assert _role(alice) == ParentRole.ADMIN_PARENT
        assert _role(bob) == ParentRole.CO_PARENT


class TestTransferRefusals:
    def test_self_transfer(self, app, alice, full_family, ctx_for):
        with pytest.raises(SelfTransfer):
            AdminTransferService.transfer(ctx_for(alice), alice.id)
        assert _role(alice) == ParentRole.ADMIN_PARENT

    def test_target_without_family(self, app, alice, carol, family, ctx_for):
        with pytest.raises(NotCoParent):
            AdminTransferService.transfer(ctx_for(alice), carol.id)

    def test_target_in_another_family(self, app, alice, carol, full_family, ctx_for, make_family):
        make_family(carol, name='Carol Family')
        with pytest.raises(NotCoParent):
            AdminTransferService.transfer(ctx_for(alice), carol.id)
        assert _role(alice) == ParentRole.ADMIN_PARENT

    def test_unknown_target(self, app, alice, full_family, ctx_for):
        with pytest.raises(NotCoParent):
            AdminTransferService.transfer(ctx_for(alice), 999999)

    def test_co_parent_cannot_transfer(self, app, alice, bob, full_family, ctx_for):
        with pytest.raises(AdminRequired):
            AdminTransferService.transfer(ctx_for(bob), alice.id)
        assert _role(alice) == ParentRole.ADMIN_PARENT

    def test_stale_context_after_transfer(self, app, alice, bob, full_family, ctx_for):
        stale = ctx_for(alice)
        AdminTransferService.transfer(ctx_for(alice), bob.id)
        with pytest.raises(AdminRequired):
            AdminTransferService.transfer(stale, bob.id)


class TestRoleSyncFailure:
    def test_failure_rolls_back_local_swap(self, app, alice, bob, full_family, ctx_for, role_sync):
        role_sync.fail_on.add(('add', 'auth0|bob', 'ADMIN_PARENT'))

        with pytest.raises(RoleSyncFailed):
            AdminTransferService.transfer(ctx_for(alice), bob.id)

        assert _role(alice) == ParentRole.ADMIN_PARENT
        assert _role(bob) == ParentRole.CO_PARENT
        assert AuditEvent.query.filter_by(action='admin.transferred').count() == 0

    def test_failure_undoes_applied_provider_steps(self, app, alice, bob, full_family, ctx_for, role_sync):
        role_sync.calls.clear()
        role_sync.fail_on.add(('remove', 'auth0|bob', 'CO_PARENT'))

        with pytest.raises(RoleSyncFailed):
            AdminTransferService.transfer(ctx_for(alice), bob.id)

        assert role_sync.calls == [
            ('remove', 'auth0|alice', 'ADMIN_PARENT'),
            ('add', 'auth0|alice', 'CO_PARENT'),
            ('remove', 'auth0|alice', 'CO_PARENT'),
            ('add', 'auth0|alice', 'ADMIN_PARENT'),
        ]


class TestAfterTransfer:
    def test_new_admin_can_issue_old_admin_cannot(self, app, alice, bob, carol, full_family, ctx_for):
        AdminTransferService.transfer(ctx_for(alice), bob.id)

        with pytest.raises(AdminRequired):
            InvitationService.issue(ctx_for(alice), carol.email)
        # Still full, so the new admin is refused for capacity, not authority
        with pytest.raises(FamilyFull):
            InvitationService.issue(ctx_for(bob), carol.email)
