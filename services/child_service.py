from extensions import db
from models.children import Child
from services.audit_service import AuditService
from services.errors import ValidationFailed
from utils.db_helpers import family_get_or_404, family_query


class ChildService:

    @staticmethod
    def list_children(family_id, include_inactive=False):
        query = family_query(Child, family_id)
        if not include_inactive:
            query = query.filter_by(is_active=True)
        return query.order_by(Child.sort_order, Child.name).all()

    @staticmethod
    def add_child(ctx, name, date_of_birth=None, year_group=None):
        """Add a child to the roster"""
        name = (name or '').strip()
        if not name:
            raise ValidationFailed('Child name is required', field='name')
        sort_order = family_query(Child, ctx.family_id).count()
        child = Child(
            family_id=ctx.family_id,
            name=name,
            date_of_birth=date_of_birth,
            year_group=year_group,
            sort_order=sort_order,
        )
        db.session.add(child)
        db.session.flush()
        AuditService.record(ctx.family_id, 'child.created', 'child', child.id, actor=ctx.user,
                            details={'name': name})
        db.session.commit()
        return child

    @staticmethod
    def update_child(ctx, child_id, **changes):
        child = family_get_or_404(Child, child_id, ctx.family_id)
        if 'name' in changes:
            name = (changes['name'] or '').strip()
            if not name:
                raise ValidationFailed('Child name is required', field='name')
            child.name = name
        for field in ('date_of_birth', 'year_group', 'sort_order'):
            if field in changes:
                setattr(child, field, changes[field])
        AuditService.record(ctx.family_id, 'child.updated', 'child', child.id, actor=ctx.user,
                            details={'fields': sorted(changes)})
        db.session.commit()
        return child

    @staticmethod
    def deactivate_child(ctx, child_id):
        """Remove a child from the roster; expenses keep pointing at it."""
        child = family_get_or_404(Child, child_id, ctx.family_id)
        if child.is_active:
            child.is_active = False
            AuditService.record(ctx.family_id, 'child.deactivated', 'child', child.id, actor=ctx.user)
            db.session.commit()
        return child
