import logging
from decimal import Decimal, InvalidOperation

from flask import current_app

from extensions import db
from models.children import Child
from models.expenses import Expense, PrivacyMode
from services.audit_service import AuditService
from services.errors import NotExpenseCreator, NotFound, ValidationFailed
from services.expense_visibility import project, project_all
from utils.db_helpers import family_query

logger = logging.getLogger(__name__)

# Fields the creator may change with ``update``
EDITABLE_FIELDS = ('amount', 'currency', 'category', 'description', 'date', 'privacy_mode', 'child_id')
NULLABLE_FIELDS = ('description', 'child_id')

CENT = Decimal('0.01')


def to_amount(value):
    """Parse a positive money amount, rounded to cents."""
    try:
        amount = Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, ValueError):
        raise ValidationFailed('Amount must be a number', field='amount')
    if amount <= 0:
        raise ValidationFailed('Amount must be greater than zero', field='amount')
    return amount


class ExpenseService:

    @staticmethod
    def _visible_query(ctx):
        """Expenses of the caller's family, minus other parents' PRIVATE rows."""
        return family_query(Expense, ctx.family_id).filter(
            db.or_(
                Expense.created_by_parent_id == ctx.parent.id,
                Expense.privacy_mode != PrivacyMode.PRIVATE,
            )
        )

    @staticmethod
    def _check_child(ctx, child_id):
        if child_id is None:
            return None
        child = family_query(Child, ctx.family_id).filter_by(id=child_id, is_active=True).first()
        if child is None:
            raise ValidationFailed('Child not found in this family', field='child_id')
        return child

    @staticmethod
    def create(ctx, amount, category, date, description=None, currency=None,
               privacy_mode=PrivacyMode.FULL_SHARED, child_id=None):
        amount = to_amount(amount)
        ExpenseService._check_child(ctx, child_id)

        expense = Expense(
            family_id=ctx.family_id,
            created_by_parent_id=ctx.parent.id,
            child_id=child_id,
            amount=amount,
            currency=(currency or current_app.config['DEFAULT_CURRENCY']).upper(),
            category=category.strip(),
            description=(description or '').strip() or None,
            date=date,
            privacy_mode=PrivacyMode(privacy_mode or PrivacyMode.FULL_SHARED),
        )
        db.session.add(expense)
        db.session.flush()
        AuditService.record(ctx.family_id, 'expense.created', 'expense', expense.id, actor=ctx.user,
                            details={'privacy_mode': expense.privacy_mode.value})
        db.session.commit()
        logger.info('Expense %s created in family %s', expense.id, ctx.family_id)
        return expense

    @staticmethod
    def list_for_viewer(ctx, limit=None, offset=0, child_id=None, category=None):
        """Viewer-projected listing, newest date first."""
        limit = limit or current_app.config.get('EXPENSE_PAGE_SIZE', 100)
        query = ExpenseService._visible_query(ctx)
        if child_id is not None:
            query = query.filter(Expense.child_id == child_id)
        if category:
            query = query.filter(Expense.category == category)
        expenses = query.order_by(Expense.date.desc(), Expense.id.desc()).offset(offset).limit(limit).all()
        return project_all(expenses, ctx.parent)

    @staticmethod
    def get_for_viewer(ctx, expense_id):
        expense = family_query(Expense, ctx.family_id).filter_by(id=expense_id).first()
        projected = project(expense, ctx.parent) if expense is not None else None
        if projected is None:
            raise NotFound('Expense not found')
        return projected

    @staticmethod
    def _get_own(ctx, expense_id):
        expense = family_query(Expense, ctx.family_id).filter_by(id=expense_id).first()
        if expense is None:
            raise NotFound('Expense not found')
        if expense.created_by_parent_id != ctx.parent.id:
            if expense.privacy_mode == PrivacyMode.PRIVATE:
                # Not even its existence is visible
                raise NotFound('Expense not found')
            raise NotExpenseCreator()
        return expense

    @staticmethod
    def update(ctx, expense_id, **changes):
        expense = ExpenseService._get_own(ctx, expense_id)

        # Validate everything before touching the row
        values = {}
        for field in EDITABLE_FIELDS:
            if field not in changes:
                continue
            value = changes[field]
            if value is None and field not in NULLABLE_FIELDS:
                raise ValidationFailed(f'{field} cannot be empty', field=field)
            if field == 'amount':
                value = to_amount(value)
            elif field == 'privacy_mode':
                value = PrivacyMode(value)
            elif field == 'currency':
                value = value.upper()
            elif field == 'category':
                value = value.strip()
            elif field == 'child_id':
                ExpenseService._check_child(ctx, value)
            elif field == 'description':
                value = (value or '').strip() or None
            values[field] = value

        changed = []
        for field, value in values.items():
            if getattr(expense, field) != value:
                changed.append(field)
                setattr(expense, field, value)

        if changed:
            AuditService.record(ctx.family_id, 'expense.updated', 'expense', expense.id,
                                actor=ctx.user, details={'changed': changed})
        db.session.commit()
        return expense

    @staticmethod
    def delete(ctx, expense_id):
        expense = ExpenseService._get_own(ctx, expense_id)
        AuditService.record(ctx.family_id, 'expense.deleted', 'expense', expense.id, actor=ctx.user,
                            details={'amount': str(expense.amount), 'category': expense.category})
        db.session.delete(expense)
        db.session.commit()
        logger.info('Expense %s deleted from family %s', expense_id, ctx.family_id)
