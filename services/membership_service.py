"""
Family membership: the tenant boundary.

``get_membership_context`` is the only place a user's family and role are
derived.  It always reads the ``parents`` table; nothing supplied by a client
is consulted.
"""
import logging

from sqlalchemy.exc import IntegrityError

from extensions import db
from models.children import Child
from models.family import (
    Family, Invitation, InvitationSlotState, InvitationStatus, MAX_PARENTS_PER_FAMILY,
    Parent, ParentRole,
)
from services.audit_service import AuditService
from services.errors import AlreadyMember, InvariantViolation, ValidationFailed
from services.identity_provider import ADMIN_ROLE, RoleSyncError, get_role_sync

logger = logging.getLogger(__name__)


class MembershipContext:
    """A user's family and role at the moment it was read."""

    def __init__(self, user, parent=None):
        self.user = user
        self.parent = parent

    @property
    def family(self):
        return self.parent.family if self.parent else None

    @property
    def family_id(self):
        return self.parent.family_id if self.parent else None

    @property
    def role(self):
        return self.parent.role if self.parent else None

    @property
    def is_member(self):
        return self.parent is not None

    @property
    def is_admin(self):
        return self.parent is not None and self.parent.role == ParentRole.ADMIN_PARENT

    def __repr__(self):
        return f'<MembershipContext user={self.user.id} family={self.family_id} role={self.role}>'


def count_admins(family_id):
    return Parent.query.filter_by(family_id=family_id, role=ParentRole.ADMIN_PARENT).count()


def count_parents(family_id):
    return Parent.query.filter_by(family_id=family_id).count()


def assert_family_invariants(family_id):
    """Raise ``InvariantViolation`` unless the family has 1-2 parents and exactly one admin.

    Call after flushing a write and before committing it.
    """
    parents = count_parents(family_id)
    admins = count_admins(family_id)
    if not 1 <= parents <= MAX_PARENTS_PER_FAMILY or admins != 1:
        logger.error('Family %s invariant violated: %s parents, %s admins', family_id, parents, admins)
        raise InvariantViolation(family_id=family_id, parents=parents, admins=admins)


class MembershipService:

    @staticmethod
    def get_membership_context(user):
        parent = Parent.query.filter_by(user_id=user.id).first()
        return MembershipContext(user, parent)

    @staticmethod
    def create_family(founder, name, children=()):
        """Create a family with ``founder`` as its admin parent, plus its children.

        ``children`` is an iterable of dicts with ``name`` and optional
        ``date_of_birth`` / ``year_group``.  All rows are committed together.
        """
        name = (name or '').strip()
        if not name:
            raise ValidationFailed('Family name is required')

        if Parent.query.filter_by(user_id=founder.id).first() is not None:
            raise AlreadyMember()

        family = Family(name=name, created_by_user_id=founder.id)
        db.session.add(family)
        db.session.flush()

        parent = Parent(user_id=founder.id, family_id=family.id, role=ParentRole.ADMIN_PARENT)
        db.session.add(parent)

        created_children = []
        for index, data in enumerate(children):
            child = Child(
                family_id=family.id,
                name=data['name'].strip(),
                date_of_birth=data.get('date_of_birth'),
                year_group=data.get('year_group'),
                sort_order=index,
            )
            db.session.add(child)
            created_children.append(child)

        try:
            db.session.flush()
            assert_family_invariants(family.id)
            AuditService.record(family.id, 'family.created', 'family', family.id, actor=founder,
                                details={'name': name, 'children': len(created_children)})
            db.session.commit()
        except IntegrityError:
            # Unique parents.user_id: a concurrent request made this user a member first
            db.session.rollback()
            raise AlreadyMember()
        except InvariantViolation:
            db.session.rollback()
            raise

        logger.info('Family %s created by user %s', family.id, founder.id)

        try:
            get_role_sync().add_role(founder.subject_id, ADMIN_ROLE)
        except RoleSyncError:
            logger.exception('Could not grant %s to user %s', ADMIN_ROLE, founder.id)

        return family, created_children, parent

    @staticmethod
    def update_family(ctx, name):
        name = (name or '').strip()
        if not name:
            raise ValidationFailed('Family name is required')
        family = ctx.family
        old_name = family.name
        family.name = name
        AuditService.record(family.id, 'family.updated', 'family', family.id, actor=ctx.user,
                            details={'name': {'from': old_name, 'to': name}})
        db.session.commit()
        return family

    @staticmethod
    def list_parents(family_id):
        return Parent.query.filter_by(family_id=family_id).order_by(Parent.id).all()

    @staticmethod
    def invitation_slot_state(family_id, now=None):
        """Explicit state of the family's second-parent slot."""
        if count_parents(family_id) >= MAX_PARENTS_PER_FAMILY:
            return InvitationSlotState.ACCEPTED
        latest = Invitation.query.filter_by(family_id=family_id).order_by(
            Invitation.created_at.desc(), Invitation.id.desc()
        ).first()
        if latest is None:
            return InvitationSlotState.NONE
        status = latest.effective_status(now)
        if status == InvitationStatus.ACCEPTED:
            # Accepted, but that parent is no longer here
            return InvitationSlotState.NONE
        return InvitationSlotState(status.value)

    @staticmethod
    def current_context(user, now=None):
        """Payload for ``GET /api/me``."""
        ctx = MembershipService.get_membership_context(user)
        data = {
            'user': user.to_dict(),
            'family': None,
            'role': None,
            'joined_at': None,
            'needs_family_setup': not ctx.is_member,
            'invitation_state': InvitationSlotState.NONE.value,
        }
        if ctx.is_member:
            data['family'] = ctx.family.to_dict()
            data['role'] = ctx.role.value
            data['joined_at'] = ctx.parent.to_dict()['joined_at']
            data['invitation_state'] = MembershipService.invitation_slot_state(ctx.family_id, now).value
        return data
