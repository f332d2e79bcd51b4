import enum

from extensions import db
from utils.dates import utcnow, isoformat


class PrivacyMode(str, enum.Enum):
    PRIVATE = 'PRIVATE'
    AMOUNT_ONLY = 'AMOUNT_ONLY'
    FULL_SHARED = 'FULL_SHARED'


class Expense(db.Model):
    """A child-related cost recorded by one parent of the family."""
    __tablename__ = 'expenses'

    id = db.Column(db.Integer, primary_key=True)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False, index=True)
    created_by_parent_id = db.Column(db.Integer, db.ForeignKey('parents.id'), nullable=False, index=True)
    child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=True)

    date = db.Column(db.Date, nullable=False)
    category = db.Column(db.String(50), nullable=False)  # School, Clothing, Medical
    description = db.Column(db.String(255), nullable=True)

    # Cost
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default='GBP')

    privacy_mode = db.Column(db.Enum(PrivacyMode, name='privacy_mode', native_enum=False, length=20),
                             nullable=False, default=PrivacyMode.FULL_SHARED)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    created_by = db.relationship('Parent', foreign_keys=[created_by_parent_id])
    child = db.relationship('Child', foreign_keys=[child_id])

    def to_dict(self):
        """The unfiltered record. Use ``services.expense_visibility.project`` for viewers."""
        return {
            'id': self.id,
            'family_id': self.family_id,
            'created_by_parent_id': self.created_by_parent_id,
            'child_id': self.child_id,
            'amount': str(self.amount),
            'currency': self.currency,
            'category': self.category,
            'description': self.description,
            'date': isoformat(self.date),
            'privacy_mode': self.privacy_mode.value,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Expense {self.date}: {self.category} - {self.amount} {self.currency}>'
