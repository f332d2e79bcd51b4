"""
Database query helpers for family-scoped multi-tenancy.

All data in this application is scoped to a Family.  Every query against
a family-owned model should go through these helpers so that one family can
never see another family's records.

The family id always comes from the caller's authorized membership context
(``ctx.family_id``); it is never taken from request data.

Usage
-----
In any blueprint route or service function::

    from utils.db_helpers import family_query, family_get_or_404

    children = family_query(Child, ctx.family_id).order_by(Child.sort_order).all()
    expense = family_get_or_404(Expense, expense_id, ctx.family_id)

State transitions take the per-family write lock first::

    family = lock_family(family_id)
"""

from extensions import db
from models.family import Family
from services.errors import NotFound


# ---------------------------------------------------------------------------
# Core helpers
# ---------------------------------------------------------------------------

def family_query(model, family_id):
    """Return a SQLAlchemy query pre-filtered to one family.

    Examples::

        family_query(Child, fid).filter_by(is_active=True).all()
        family_query(Expense, fid).count()
    """
    # Guard: if the model has no family_id column, raise early with a clear message
    if not hasattr(model, 'family_id'):
        raise AttributeError(
            f"family_query() called on {model.__name__} but it has no family_id column."
        )
    if family_id is None:
        # Return a query that always yields zero rows rather than leaking data
        return model.query.filter(model.id == -1)
    return model.query.filter_by(family_id=family_id)


def family_get(model, record_id, family_id):
    """Fetch a single record by *record_id*, scoped to one family.

    Returns ``None`` if the record does not exist or belongs to another family.
    """
    if family_id is None:
        return None
    return model.query.filter_by(id=record_id, family_id=family_id).first()


def family_get_or_404(model, record_id, family_id):
    """Like ``family_get`` but raises ``NotFound`` if nothing is found."""
    record = family_get(model, record_id, family_id)
    if record is None:
        raise NotFound(f'{model.__name__} not found')
    return record


# ---------------------------------------------------------------------------
# Per-family write lock
# ---------------------------------------------------------------------------

def lock_family(family_id):
    """Serialise writers on one family for the rest of the transaction.

    Bumping ``lock_version`` takes the row lock (PostgreSQL) or the database
    write lock (SQLite), so a second writer blocks here until the first
    commits or rolls back.  Everything loaded from the session is expired so
    reads after the lock see committed state.
    """
    result = db.session.execute(
        db.update(Family)
        .where(Family.id == family_id)
        .values(lock_version=Family.lock_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound('Family not found')
    db.session.expire_all()
    return db.session.get(Family, family_id)
