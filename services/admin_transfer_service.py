"""
Admin transfer: swap ADMIN_PARENT and CO_PARENT within one family.

The swap runs inside the family lock as one transaction:

    1. demote the caller, flush      (family briefly has no admin, uncommitted)
    2. promote the target, flush     (partial unique index rejects two admins)
    3. check invariants
    4. move the role claim at the identity provider
    5. commit

Readers never see steps 1-4 because nothing is committed until the identity
provider has confirmed.  If step 4 fails or times out the database work is
rolled back; if the commit itself fails the provider change is reversed.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.family import Parent, ParentRole
from services.audit_service import AuditService
from services.errors import AdminRequired, InvariantViolation, NotCoParent, RoleSyncFailed, SelfTransfer
from services.identity_provider import RoleSyncError, get_role_sync
from services.membership_service import assert_family_invariants
from utils.dates import utcnow
from utils.db_helpers import lock_family

logger = logging.getLogger(__name__)


class AdminTransferService:

    @staticmethod
    def transfer(ctx, target_user_id, now=None):
        """Make ``target_user_id`` the admin and the caller the co-parent.

        Returns ``(family, previous_admin, new_admin, timestamp)``.
        """
        now = now or utcnow()
        family = lock_family(ctx.family_id)

        caller = Parent.query.filter_by(user_id=ctx.user.id).first()
        if caller is None or caller.family_id != family.id or caller.role != ParentRole.ADMIN_PARENT:
            db.session.rollback()
            raise AdminRequired()

        if target_user_id == caller.user_id:
            db.session.rollback()
            raise SelfTransfer()

        target = Parent.query.filter_by(user_id=target_user_id).first()
        if target is None or target.family_id != family.id or target.role != ParentRole.CO_PARENT:
            db.session.rollback()
            logger.warning('Admin transfer in family %s to non co-parent user %s refused',
                           family.id, target_user_id)
            raise NotCoParent()

        caller.role = ParentRole.CO_PARENT
        db.session.flush()
        target.role = ParentRole.ADMIN_PARENT
        try:
            db.session.flush()
            assert_family_invariants(family.id)
        except (SQLAlchemyError, InvariantViolation):
            db.session.rollback()
            logger.exception('Admin swap in family %s failed locally', family.id)
            raise InvariantViolation('Admin swap would break the one-admin rule', family_id=family.id)

        AuditService.record(family.id, 'admin.transferred', 'parent', target.id, actor=ctx.user,
                            details={'previous_admin_parent_id': caller.id,
                                     'new_admin_parent_id': target.id})

        previous_subject = caller.user.subject_id
        new_subject = target.user.subject_id
        role_sync = get_role_sync()
        try:
            role_sync.swap_admin(previous_subject, new_subject)
        except RoleSyncError:
            db.session.rollback()
            logger.exception('Role sync failed for admin transfer in family %s; rolled back', family.id)
            raise RoleSyncFailed()

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Commit failed after role sync in family %s; reversing provider change',
                             family.id)
            try:
                role_sync.swap_admin(new_subject, previous_subject)
            except RoleSyncError:
                logger.critical('Identity provider left with %s as admin of family %s; manual fix needed',
                                new_subject, family.id)
            raise

        logger.info('Admin of family %s transferred from user %s to user %s',
                    family.id, caller.user_id, target.user_id)
        return family, caller, target, now
