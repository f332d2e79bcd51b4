"""
User model.

A User is an identity-provider subject known to this system.  Users are
created the first time a verified identity reaches the API and are never
hard-deleted: ``deleted_at`` marks a soft delete so audit rows keep a valid
actor reference.
"""
from flask_login import UserMixin

from extensions import db
from utils.dates import utcnow, isoformat


class User(UserMixin, db.Model):
    """An authenticated person, keyed by the identity provider's subject id."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    subject_id = db.Column(db.String(255), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    avatar_url = db.Column(db.String(512), nullable=True)
    deleted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # At most one membership system-wide (unique parents.user_id)
    parent = db.relationship('Parent', back_populates='user', uselist=False,
                             foreign_keys='Parent.user_id')

    @property
    def is_active(self):
        """Flask-Login: soft-deleted users cannot authenticate."""
        return self.deleted_at is None

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def public_profile(self):
        """The subset shown to people outside the family (invitation preview)."""
        return {
            'name': self.name,
            'avatar_url': self.avatar_url,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'subject_id': self.subject_id,
            'email': self.email,
            'name': self.name,
            'avatar_url': self.avatar_url,
            'is_active': self.is_active,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<User {self.email}>'
