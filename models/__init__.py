# Models package - Import all models for Flask-SQLAlchemy

from models.audit import AuditEvent
from models.children import Child
from models.expenses import Expense, PrivacyMode
from models.family import (
    Family,
    Invitation,
    InvitationSlotState,
    InvitationStatus,
    Parent,
    ParentRole,
)
from models.users import User

__all__ = [
    'AuditEvent',
    'Child',
    'Expense',
    'Family',
    'Invitation',
    'InvitationSlotState',
    'InvitationStatus',
    'Parent',
    'ParentRole',
    'PrivacyMode',
    'User',
]
