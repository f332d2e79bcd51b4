"""
Family, Parent and Invitation models.

A Family is the tenant boundary: every other record carries its id.
A Parent links one User to one Family with a role; a user holds at most one
Parent row system-wide.  Invitations are token-based offers that grow a
family from one parent to two.
"""
import enum
import secrets
from datetime import timedelta

from extensions import db
from utils.dates import utcnow, isoformat


class ParentRole(str, enum.Enum):
    ADMIN_PARENT = 'ADMIN_PARENT'
    CO_PARENT = 'CO_PARENT'


class InvitationStatus(str, enum.Enum):
    PENDING = 'PENDING'
    ACCEPTED = 'ACCEPTED'
    EXPIRED = 'EXPIRED'
    REVOKED = 'REVOKED'


class InvitationSlotState(str, enum.Enum):
    """State of a family's second-parent slot, as reported to clients."""
    NONE = 'NONE'
    PENDING = 'PENDING'
    ACCEPTED = 'ACCEPTED'
    EXPIRED = 'EXPIRED'
    REVOKED = 'REVOKED'


MAX_PARENTS_PER_FAMILY = 2


def generate_invitation_token():
    """32 random bytes, base64url without padding (43 characters)."""
    return secrets.token_urlsafe(32)


class Family(db.Model):
    """A shared-custody household: one admin parent, at most one co-parent."""
    __tablename__ = 'families'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    # Bumped by every state transition; the bump is the per-family write lock
    lock_version = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    parents = db.relationship('Parent', back_populates='family', lazy='dynamic',
                              order_by='Parent.id')
    children = db.relationship('Child', back_populates='family', lazy='dynamic',
                               order_by='Child.id')
    invitations = db.relationship('Invitation', back_populates='family', lazy='dynamic',
                                  cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'created_by_user_id': self.created_by_user_id,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Family {self.name}>'


class Parent(db.Model):
    """Membership of one user in one family."""
    __tablename__ = 'parents'
    __table_args__ = (
        # Exactly one admin per family is enforced in services; this is the backstop
        db.Index('uq_parents_one_admin_per_family', 'family_id', unique=True,
                 sqlite_where=db.text("role = 'ADMIN_PARENT'"),
                 postgresql_where=db.text("role = 'ADMIN_PARENT'")),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True, index=True)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False, index=True)
    role = db.Column(db.Enum(ParentRole, name='parent_role', native_enum=False, length=20),
                     nullable=False)
    invited_by_parent_id = db.Column(db.Integer, db.ForeignKey('parents.id'), nullable=True)
    joined_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user = db.relationship('User', back_populates='parent', foreign_keys=[user_id])
    family = db.relationship('Family', back_populates='parents')
    invited_by = db.relationship('Parent', remote_side=[id])

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'family_id': self.family_id,
            'role': self.role.value,
            'name': self.user.name if self.user else None,
            'email': self.user.email if self.user else None,
            'invited_by_parent_id': self.invited_by_parent_id,
            'joined_at': isoformat(self.joined_at),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Parent user={self.user_id} family={self.family_id} {self.role.value}>'


class Invitation(db.Model):
    """One-time offer for a second parent to join a family."""
    __tablename__ = 'invitations'
    __table_args__ = (
        # At most one open slot per family
        db.Index('uq_invitations_one_pending_per_family', 'family_id', unique=True,
                 sqlite_where=db.text("status = 'PENDING'"),
                 postgresql_where=db.text("status = 'PENDING'")),
    )

    id = db.Column(db.Integer, primary_key=True)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False, index=True)
    inviting_parent_id = db.Column(db.Integer, db.ForeignKey('parents.id'), nullable=False)

    email = db.Column(db.String(255), nullable=False, index=True)
    message = db.Column(db.Text, nullable=True)

    # The token sent in the invite link
    token = db.Column(db.String(64), unique=True, nullable=False, index=True,
                      default=generate_invitation_token)

    status = db.Column(db.Enum(InvitationStatus, name='invitation_status', native_enum=False, length=20),
                       nullable=False, default=InvitationStatus.PENDING)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False,
                           default=lambda: utcnow() + timedelta(days=7))
    accepted_at = db.Column(db.DateTime, nullable=True)
    accepted_by_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    revoked_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    family = db.relationship('Family', back_populates='invitations')
    inviting_parent = db.relationship('Parent', foreign_keys=[inviting_parent_id])
    accepted_by = db.relationship('User', foreign_keys=[accepted_by_user_id])

    def is_expired(self, now=None):
        """Expiry is a timestamp comparison, independent of the stored status."""
        return (now or utcnow()) > self.expires_at

    def effective_status(self, now=None):
        """Stored status, except a lapsed PENDING invitation reads as EXPIRED."""
        if self.status == InvitationStatus.PENDING and self.is_expired(now):
            return InvitationStatus.EXPIRED
        return self.status

    def to_dict(self, now=None, include_token=False):
        data = {
            'id': self.id,
            'family_id': self.family_id,
            'inviting_parent_id': self.inviting_parent_id,
            'email': self.email,
            'status': self.effective_status(now).value,
            'expires_at': isoformat(self.expires_at),
            'accepted_at': isoformat(self.accepted_at),
            'accepted_by_user_id': self.accepted_by_user_id,
            'revoked_at': isoformat(self.revoked_at),
            'created_at': isoformat(self.created_at),
        }
        if include_token:
            data['token'] = self.token
        return data

    def __repr__(self):
        return f'<Invitation {self.token[:8]}... {self.status.value}>'
