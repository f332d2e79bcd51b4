"""
Per-viewer projection of expense records.

``project`` decides, for one expense and one viewing parent, what the viewer
receives:

    viewer is creator        full record, whatever the privacy mode
    PRIVATE                  nothing (``None``; the row is left out)
    AMOUNT_ONLY              id, amount, currency, date, category
    FULL_SHARED              full record

It is applied to each expense on its own; a listing can mix all three.
"""
from models.expenses import PrivacyMode

AMOUNT_ONLY_FIELDS = ('id', 'amount', 'currency', 'date', 'category')


def project(expense, viewer):
    """Return the dict ``viewer`` may see for ``expense``, or ``None``."""
    record = expense.to_dict()
    if viewer is not None and viewer.id == expense.created_by_parent_id:
        return record
    if expense.privacy_mode == PrivacyMode.PRIVATE:
        return None
    if expense.privacy_mode == PrivacyMode.AMOUNT_ONLY:
        return {field: record[field] for field in AMOUNT_ONLY_FIELDS}
    return record


def project_all(expenses, viewer):
    """Project every expense, dropping the ones the viewer may not see."""
    projected = (project(expense, viewer) for expense in expenses)
    return [item for item in projected if item is not None]
