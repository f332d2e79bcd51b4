"""
Authorization guard for family-scoped actions.

Every route that touches a family's data names an *action* and the family id
from its URL.  The guard re-derives the caller's membership from the
``parents`` table and allows the action only when:

    1. the caller is a parent of that family, and
    2. the action is not admin-only, or the caller is the admin parent.

    action               admin only
    ───────────────────  ──────────
    view_family
    view_children
    list_invitations
    create_expense
    view_expenses
    edit_expense         (creator check in the expense service)
    update_family        yes
    edit_children        yes
    issue_invitation     yes
    revoke_invitation    yes
    resend_invitation    yes
    transfer_admin       yes
    view_audit_log       yes
"""
import enum
import logging
from functools import wraps

from flask_login import current_user

from services.errors import AdminRequired, NotAuthenticated, NotFamilyMember
from services.membership_service import MembershipService

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    VIEW_FAMILY = 'view_family'
    VIEW_CHILDREN = 'view_children'
    LIST_INVITATIONS = 'list_invitations'
    CREATE_EXPENSE = 'create_expense'
    VIEW_EXPENSES = 'view_expenses'
    EDIT_EXPENSE = 'edit_expense'
    UPDATE_FAMILY = 'update_family'
    EDIT_CHILDREN = 'edit_children'
    ISSUE_INVITATION = 'issue_invitation'
    REVOKE_INVITATION = 'revoke_invitation'
    RESEND_INVITATION = 'resend_invitation'
    TRANSFER_ADMIN = 'transfer_admin'
    VIEW_AUDIT_LOG = 'view_audit_log'


# Actions only the admin parent may perform
ADMIN_ONLY_ACTIONS = frozenset({
    Action.UPDATE_FAMILY,
    Action.EDIT_CHILDREN,
    Action.ISSUE_INVITATION,
    Action.REVOKE_INVITATION,
    Action.RESEND_INVITATION,
    Action.TRANSFER_ADMIN,
    Action.VIEW_AUDIT_LOG,
})


def authorize(user, action, resource_family_id):
    """Return the caller's ``MembershipContext`` or raise.

    Raises ``NotFamilyMember`` when the user is not a parent of
    *resource_family_id* and ``AdminRequired`` for admin-only actions
    attempted by the co-parent.
    """
    action = Action(action)
    ctx = MembershipService.get_membership_context(user)

    if not ctx.is_member or ctx.family_id != resource_family_id:
        logger.warning('Cross-family access denied: user=%s family=%s attempted=%s action=%s',
                       user.id, ctx.family_id, resource_family_id, action.value)
        raise NotFamilyMember()

    if action in ADMIN_ONLY_ACTIONS and not ctx.is_admin:
        logger.warning('Admin action denied: user=%s family=%s action=%s',
                       user.id, resource_family_id, action.value)
        raise AdminRequired()

    return ctx


def can_perform(user, action, resource_family_id):
    """Boolean form of ``authorize``."""
    try:
        authorize(user, action, resource_family_id)
    except (NotFamilyMember, AdminRequired):
        return False
    return True


def family_action(action):
    """Route decorator: authorize ``action`` on the ``family_id`` URL argument.

    The view receives the caller's membership context as ``ctx``::

        @bp.route('/<int:family_id>/invitations', methods=['POST'])
        @family_action(Action.ISSUE_INVITATION)
        def issue(family_id, ctx):
            ...
    """
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                raise NotAuthenticated()
            kwargs['ctx'] = authorize(current_user, action, kwargs['family_id'])
            return view(*args, **kwargs)
        return wrapper
    return decorator
