from extensions import db
from utils.dates import utcnow, isoformat


class AuditEvent(db.Model):
    """Append-only record of a state transition within a family."""
    __tablename__ = 'audit_events'

    id = db.Column(db.Integer, primary_key=True)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False, index=True)
    actor_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    entity_type = db.Column(db.String(50), nullable=False)  # family, child, invitation, parent, expense
    entity_id = db.Column(db.Integer, nullable=True)
    action = db.Column(db.String(50), nullable=False, index=True)  # invitation.accepted
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'family_id': self.family_id,
            'actor_user_id': self.actor_user_id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'action': self.action,
            'details': self.details or {},
            'created_at': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<AuditEvent {self.action} family={self.family_id}>'
