from extensions import db
from utils.dates import utcnow, isoformat


class Child(db.Model):
    """A child of the family. Deactivated rather than deleted so expenses keep their link."""
    __tablename__ = 'children'

    id = db.Column(db.Integer, primary_key=True)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    year_group = db.Column(db.String(50))  # Year 4, Nursery, etc.
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    sort_order = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    family = db.relationship('Family', back_populates='children')

    def to_dict(self):
        return {
            'id': self.id,
            'family_id': self.family_id,
            'name': self.name,
            'date_of_birth': isoformat(self.date_of_birth),
            'year_group': self.year_group,
            'is_active': self.is_active,
            'sort_order': self.sort_order,
        }

    def __repr__(self):
        return f'<Child {self.name}>'
