from extensions import db
from models.audit import AuditEvent


class AuditService:

    @staticmethod
    def record(family_id, action, entity_type, entity_id=None, actor=None, details=None):
        """Add an audit event to the current session; committed with the caller's change."""
        event = AuditEvent(
            family_id=family_id,
            actor_user_id=actor.id if actor is not None else None,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            details=details or {},
        )
        db.session.add(event)
        return event

    @staticmethod
    def list_for_family(family_id, limit=100, offset=0):
        return AuditEvent.query.filter_by(family_id=family_id).order_by(
            AuditEvent.created_at.desc(), AuditEvent.id.desc()
        ).offset(offset).limit(limit).all()
