"""
Invitation state machine.

    PENDING ──accept──▶ ACCEPTED
       │ ├──revoke──▶ REVOKED
       │ └──(now > expires_at)──▶ EXPIRED

All three targets are terminal.  Expiry is a timestamp comparison evaluated
on every read and transition; the stored EXPIRED status is housekeeping,
written lazily when a transition discovers a lapsed invitation and by
``expire_stale``.

Every transition takes the family's write lock first (``lock_family``) so two
concurrent accepts or issues on one family are serialised.
"""
import logging
import re
from datetime import timedelta

from email_validator import EmailNotValidError, validate_email
from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from models.children import Child
from models.family import (
    Invitation, InvitationStatus, MAX_PARENTS_PER_FAMILY, Parent, ParentRole,
)
from services.audit_service import AuditService
from services.errors import (
    AdminRequired, AlreadyMember, DuplicatePending, EmailMismatch, Expired, FamilyFull, InvalidState,
    InvariantViolation, NotFound, SelfInvitation, ValidationFailed,
)
from services.identity_provider import CO_PARENT_ROLE, RoleSyncError, get_role_sync
from services.identity_service import normalize_email
from services.membership_service import assert_family_invariants, count_parents
from services.notification_service import get_notifier
from utils.dates import utcnow
from utils.db_helpers import lock_family

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r'^[A-Za-z0-9_-]{43}$')


def is_well_formed_token(token):
    return isinstance(token, str) and TOKEN_PATTERN.match(token) is not None


def invitation_url(token):
    return f"{current_app.config['FRONTEND_URL']}/invite/{token}"


class InvitationService:

    # ---------------------------------------------------------------------
    # Lookup
    # ---------------------------------------------------------------------

    @staticmethod
    def get_by_token(token):
        """Unknown and structurally malformed tokens are both ``NotFound``."""
        if not is_well_formed_token(token):
            raise NotFound('Invitation not found')
        invitation = Invitation.query.filter_by(token=token).first()
        if invitation is None:
            raise NotFound('Invitation not found')
        return invitation

    @staticmethod
    def list_for_family(family_id):
        return Invitation.query.filter_by(family_id=family_id).order_by(
            Invitation.created_at.desc(), Invitation.id.desc()
        ).all()

    @staticmethod
    def _lock_as_admin(ctx):
        """Take the family lock, then confirm the caller is still its admin."""
        family = lock_family(ctx.family_id)
        admin = Parent.query.filter_by(family_id=family.id, role=ParentRole.ADMIN_PARENT).first()
        if admin is None or admin.user_id != ctx.user.id:
            # Lost the admin role to a concurrent transfer
            db.session.rollback()
            raise AdminRequired()
        return family, admin

    @staticmethod
    def _mark_expired(invitation, actor=None):
        invitation.status = InvitationStatus.EXPIRED
        AuditService.record(invitation.family_id, 'invitation.expired', 'invitation', invitation.id,
                            actor=actor, details={'email': invitation.email})

    @staticmethod
    def _expire_and_raise(invitation, actor=None):
        """Persist the lazily discovered EXPIRED status, then fail."""
        InvitationService._mark_expired(invitation, actor)
        db.session.commit()
        raise Expired(expires_at=invitation.to_dict()['expires_at'])

    # ---------------------------------------------------------------------
    # Issue
    # ---------------------------------------------------------------------

    @staticmethod
    def issue(ctx, email, message=None, now=None):
        """Create the family's single PENDING invitation.

        ``ctx`` is the admin's authorized membership context.
        """
        now = now or utcnow()
        email = normalize_email(email)
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationFailed('A valid email address is required', field='email')
        if email == normalize_email(ctx.user.email):
            raise SelfInvitation()

        family, admin = InvitationService._lock_as_admin(ctx)

        if count_parents(family.id) >= MAX_PARENTS_PER_FAMILY:
            db.session.rollback()
            raise FamilyFull()

        pending = Invitation.query.filter_by(family_id=family.id, status=InvitationStatus.PENDING).first()
        if pending is not None:
            if not pending.is_expired(now):
                db.session.rollback()
                raise DuplicatePending(invitation_id=pending.id)
            InvitationService._mark_expired(pending, ctx.user)
            db.session.flush()

        invitation = InvitationService._create(family, admin, email, message, now)
        AuditService.record(family.id, 'invitation.issued', 'invitation', invitation.id,
                            actor=ctx.user, details={'email': email})
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicatePending()

        logger.info('Invitation %s issued for family %s', invitation.id, family.id)
        InvitationService._notify(invitation, family, admin)
        return invitation

    @staticmethod
    def _create(family, inviting_parent, email, message, now):
        ttl = timedelta(days=current_app.config.get('INVITATION_TTL_DAYS', 7))
        invitation = Invitation(
            family_id=family.id,
            inviting_parent_id=inviting_parent.id,
            email=email,
            message=(message or '').strip() or None,
            status=InvitationStatus.PENDING,
            created_at=now,
            expires_at=now + ttl,
        )
        db.session.add(invitation)
        db.session.flush()
        return invitation

    @staticmethod
    def _notify(invitation, family, inviting_parent):
        """Best effort: a delivery failure is logged and never fails the caller."""
        children = [c.name for c in Child.query.filter_by(family_id=family.id, is_active=True)
                    .order_by(Child.sort_order, Child.id)]
        try:
            get_notifier().send_invitation(
                invitation.email,
                family.name,
                inviting_parent.user.name,
                invitation_url(invitation.token),
                invitation.expires_at,
                children=children,
                message=invitation.message,
            )
        except Exception:
            logger.exception('Invitation %s notification failed', invitation.id)

    # ---------------------------------------------------------------------
    # Preview (public)
    # ---------------------------------------------------------------------

    @staticmethod
    def preview(token, now=None):
        """Public summary of an invitation. Never writes."""
        invitation = InvitationService.get_by_token(token)
        status = invitation.effective_status(now)

        # Used-up and withdrawn links look the same to the public
        if status in (InvitationStatus.REVOKED, InvitationStatus.ACCEPTED):
            raise NotFound('Invitation not found')
        if status == InvitationStatus.EXPIRED:
            raise Expired(expires_at=invitation.to_dict(now)['expires_at'])

        family = invitation.family
        children = Child.query.filter_by(family_id=family.id, is_active=True).order_by(
            Child.sort_order, Child.id
        ).all()
        inviter = invitation.inviting_parent.user
        return {
            'invitation': {
                'id': invitation.id,
                'email': invitation.email,
                'status': status.value,
                'message': invitation.message,
                'expires_at': invitation.to_dict(now)['expires_at'],
            },
            'family': {'id': family.id, 'name': family.name},
            'children': [{'id': c.id, 'name': c.name} for c in children],
            'inviting_parent': {'id': invitation.inviting_parent_id, **inviter.public_profile()},
        }

    # ---------------------------------------------------------------------
    # Accept
    # ---------------------------------------------------------------------

    @staticmethod
    def accept(token, user, now=None):
        """Join the invitation's family as CO_PARENT. Exactly-once per token."""
        now = now or utcnow()
        invitation = InvitationService.get_by_token(token)

        family = lock_family(invitation.family_id)
        invitation = db.session.get(Invitation, invitation.id)

        status = invitation.effective_status(now)
        if status == InvitationStatus.EXPIRED:
            if invitation.status == InvitationStatus.PENDING:
                InvitationService._expire_and_raise(invitation, user)
            db.session.rollback()
            raise Expired(expires_at=invitation.to_dict(now)['expires_at'])
        if status != InvitationStatus.PENDING:
            db.session.rollback()
            raise InvalidState(status=status.value)

        if current_app.config.get('INVITATION_REQUIRE_EMAIL_MATCH') and \
                normalize_email(user.email) != invitation.email:
            db.session.rollback()
            raise EmailMismatch()

        if Parent.query.filter_by(user_id=user.id).first() is not None:
            db.session.rollback()
            raise AlreadyMember()

        if count_parents(family.id) >= MAX_PARENTS_PER_FAMILY:
            # A pending invitation in a full family cannot happen
            db.session.rollback()
            raise InvariantViolation('Family already has two parents', family_id=family.id)

        parent = Parent(
            user_id=user.id,
            family_id=family.id,
            role=ParentRole.CO_PARENT,
            invited_by_parent_id=invitation.inviting_parent_id,
            joined_at=now,
        )
        db.session.add(parent)
        invitation.status = InvitationStatus.ACCEPTED
        invitation.accepted_at = now
        invitation.accepted_by_user_id = user.id

        try:
            db.session.flush()
            if parent.family_id != invitation.family_id:
                raise InvariantViolation('Parent family does not match invitation family')
            assert_family_invariants(family.id)
            AuditService.record(family.id, 'invitation.accepted', 'invitation', invitation.id,
                                actor=user, details={'parent_id': parent.id})
            db.session.commit()
        except IntegrityError:
            # Unique parents.user_id: joined another family concurrently
            db.session.rollback()
            raise AlreadyMember()
        except InvariantViolation:
            db.session.rollback()
            raise

        logger.info('User %s joined family %s as co-parent', user.id, family.id)

        try:
            get_role_sync().add_role(user.subject_id, CO_PARENT_ROLE)
        except RoleSyncError:
            logger.exception('Could not grant %s to user %s', CO_PARENT_ROLE, user.id)

        return invitation, family, parent

    # ---------------------------------------------------------------------
    # Revoke / resend
    # ---------------------------------------------------------------------

    @staticmethod
    def _get_for_family(family_id, invitation_id):
        invitation = Invitation.query.filter_by(id=invitation_id, family_id=family_id).first()
        if invitation is None:
            raise NotFound('Invitation not found')
        return invitation

    @staticmethod
    def revoke(ctx, invitation_id, now=None):
        now = now or utcnow()
        InvitationService._lock_as_admin(ctx)
        invitation = InvitationService._get_for_family(ctx.family_id, invitation_id)

        if invitation.status != InvitationStatus.PENDING:
            db.session.rollback()
            raise InvalidState(status=invitation.status.value)
        if invitation.is_expired(now):
            InvitationService._mark_expired(invitation, ctx.user)
            db.session.commit()
            raise InvalidState(status=InvitationStatus.EXPIRED.value)

        invitation.status = InvitationStatus.REVOKED
        invitation.revoked_at = now
        AuditService.record(ctx.family_id, 'invitation.revoked', 'invitation', invitation.id,
                            actor=ctx.user, details={'email': invitation.email})
        db.session.commit()
        logger.info('Invitation %s revoked', invitation.id)
        return invitation

    @staticmethod
    def resend(ctx, invitation_id, now=None):
        """Replace a PENDING or EXPIRED invitation with a fresh one to the same address."""
        now = now or utcnow()
        family, admin = InvitationService._lock_as_admin(ctx)
        old = InvitationService._get_for_family(family.id, invitation_id)

        if old.status not in (InvitationStatus.PENDING, InvitationStatus.EXPIRED):
            db.session.rollback()
            raise InvalidState(status=old.status.value)
        if count_parents(family.id) >= MAX_PARENTS_PER_FAMILY:
            db.session.rollback()
            raise FamilyFull()

        other_pending = Invitation.query.filter(
            Invitation.family_id == family.id,
            Invitation.status == InvitationStatus.PENDING,
            Invitation.id != old.id,
        ).first()
        if other_pending is not None:
            if not other_pending.is_expired(now):
                db.session.rollback()
                raise DuplicatePending(invitation_id=other_pending.id)
            InvitationService._mark_expired(other_pending, ctx.user)

        if old.status == InvitationStatus.PENDING:
            if old.is_expired(now):
                InvitationService._mark_expired(old, ctx.user)
            else:
                old.status = InvitationStatus.REVOKED
                old.revoked_at = now
        db.session.flush()

        invitation = InvitationService._create(family, admin, old.email, old.message, now)
        AuditService.record(family.id, 'invitation.resent', 'invitation', invitation.id,
                            actor=ctx.user, details={'email': old.email, 'replaces': old.id})
        db.session.commit()

        logger.info('Invitation %s resent as %s', old.id, invitation.id)
        InvitationService._notify(invitation, family, admin)
        return invitation

    # ---------------------------------------------------------------------
    # Housekeeping
    # ---------------------------------------------------------------------

    @staticmethod
    def expire_stale(now=None):
        """Flip lapsed PENDING invitations to EXPIRED. Returns the number flipped.

        Works one family at a time under that family's write lock, re-reading
        the lapsed rows once the lock is held so an accept that committed in
        between is never overwritten.
        """
        now = now or utcnow()
        family_ids = [row[0] for row in db.session.query(Invitation.family_id).filter(
            Invitation.status == InvitationStatus.PENDING,
            Invitation.expires_at < now,
        ).distinct().all()]
        db.session.rollback()

        flipped = 0
        for family_id in family_ids:
            lock_family(family_id)
            stale = Invitation.query.filter(
                Invitation.family_id == family_id,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at < now,
            ).all()
            for invitation in stale:
                InvitationService._mark_expired(invitation)
            db.session.commit()
            flipped += len(stale)

        if flipped:
            logger.info('Expired %d stale invitation(s)', flipped)
        return flipped
