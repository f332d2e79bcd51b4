"""
Domain error taxonomy.

Every rule violation in the services is raised as a ``DomainError`` subclass.
The ``code`` is the stable, machine-readable identifier returned to clients;
``status`` is the HTTP status the app's error handler maps it to.
"""


class DomainError(Exception):
    code = 'domain_error'
    status = 400
    message = 'Request could not be completed'

    def __init__(self, message=None, **details):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        payload = {'error': self.code, 'message': self.message}
        payload.update(self.details)
        return payload


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------

class AlreadyMember(DomainError):
    code = 'already_member'
    status = 409
    message = 'User already belongs to a family'


class FamilyFull(DomainError):
    code = 'family_full'
    status = 409
    message = 'Family already has two parents'


class InvariantViolation(DomainError):
    """Internal consistency check failed. Reaching this is a bug."""
    code = 'invariant_violation'
    status = 500
    message = 'Family membership invariant violated'


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

class DuplicatePending(DomainError):
    code = 'duplicate_pending'
    status = 409
    message = 'A pending invitation already exists for this family'


class SelfInvitation(DomainError):
    code = 'self_invitation'
    status = 409
    message = 'You cannot invite yourself'


class EmailMismatch(DomainError):
    code = 'email_mismatch'
    status = 409
    message = 'This invitation was sent to a different email address'


class NotFound(DomainError):
    code = 'not_found'
    status = 404
    message = 'Not found'


class Expired(DomainError):
    code = 'expired'
    status = 410
    message = 'Invitation has expired'


class InvalidState(DomainError):
    code = 'invalid_state'
    status = 400
    message = 'Invitation is no longer pending'


# ---------------------------------------------------------------------------
# Admin transfer
# ---------------------------------------------------------------------------

class SelfTransfer(DomainError):
    code = 'self_transfer'
    status = 409
    message = 'Cannot transfer admin role to yourself'


class NotCoParent(DomainError):
    code = 'not_co_parent'
    status = 409
    message = 'Target is not a co-parent of this family'


class RoleSyncFailed(DomainError):
    code = 'role_sync_failed'
    status = 502
    message = 'Identity provider role update failed; no changes were made'


# ---------------------------------------------------------------------------
# Identity and authorization
# ---------------------------------------------------------------------------

class IdentityConflict(DomainError):
    code = 'identity_conflict'
    status = 409
    message = 'This identity belongs to a deactivated account'


class NotAuthenticated(DomainError):
    code = 'not_authenticated'
    status = 401
    message = 'Authentication required'


class NotFamilyMember(DomainError):
    code = 'not_family_member'
    status = 403
    message = 'You are not a member of this family'


class AdminRequired(DomainError):
    code = 'admin_required'
    status = 403
    message = 'Only the admin parent can perform this action'


class NotExpenseCreator(DomainError):
    code = 'not_expense_creator'
    status = 403
    message = 'Only the parent who recorded this expense can change it'


class ValidationFailed(DomainError):
    code = 'validation_failed'
    status = 400
    message = 'Invalid request data'
