"""Tests for ExpenseService: creation, viewer listings and creator-only edits."""
from datetime import date
from decimal import Decimal

import pytest

from extensions import db
from models.audit import AuditEvent
from models.children import Child
from models.expenses import Expense, PrivacyMode
from services.errors import NotExpenseCreator, NotFound, ValidationFailed
from services.expense_service import ExpenseService, to_amount


@pytest.fixture
def add_expense(ctx_for):
    def _add(user, mode=PrivacyMode.FULL_SHARED, amount='25.00', category='School',
             day=date(2026, 2, 1), **kwargs):
        return ExpenseService.create(ctx_for(user), amount, category, day, privacy_mode=mode, **kwargs)
    return _add


class TestToAmount:
    @pytest.mark.parametrize('raw, expected', [
        ('10', Decimal('10.00')),
        (19.99, Decimal('19.99')),
        ('0.015', Decimal('0.02')),
    ])
    def test_parses_and_rounds(self, raw, expected):
        assert to_amount(raw) == expected

    @pytest.mark.parametrize('raw', ['abc', '0', '-5', 0])
    def test_rejects_invalid_or_non_positive(self, raw):
        with pytest.raises(ValidationFailed):
            to_amount(raw)


class TestCreate:
    def test_creates_with_defaults(self, app, alice, family, add_expense, ctx_for):
        expense = add_expense(alice, description='  Uniform  ')

        assert expense.family_id == family.id
        assert expense.created_by_parent_id == ctx_for(alice).parent.id
        assert expense.currency == 'GBP'
        assert expense.description == 'Uniform'
        assert expense.privacy_mode == PrivacyMode.FULL_SHARED
        assert AuditEvent.query.filter_by(action='expense.created').count() == 1

    def test_links_child_of_same_family(self, app, alice, family, add_expense):
        child = Child.query.filter_by(family_id=family.id, name='Sam').one()
        expense = add_expense(alice, child_id=child.id)
        assert expense.child_id == child.id

    def test_rejects_child_of_other_family(self, app, alice, bob, family, make_family, add_expense):
        other = make_family(bob, name='Bob Family', children=({'name': 'Zoe'},))
        zoe = Child.query.filter_by(family_id=other.id).one()
        with pytest.raises(ValidationFailed):
            add_expense(alice, child_id=zoe.id)


class TestViewerListing:
    def test_other_parent_never_sees_private(self, app, alice, bob, full_family, add_expense, ctx_for):
        add_expense(alice, PrivacyMode.PRIVATE, day=date(2026, 2, 1))
        shared = add_expense(alice, PrivacyMode.AMOUNT_ONLY, day=date(2026, 2, 2))
        full = add_expense(alice, PrivacyMode.FULL_SHARED, day=date(2026, 2, 3))

        listing = ExpenseService.list_for_viewer(ctx_for(bob))

        assert [e['id'] for e in listing] == [full.id, shared.id]
        assert 'description' in listing[0]
        assert set(listing[1]) == {'id', 'amount', 'currency', 'date', 'category'}

    def test_creator_sees_own_private(self, app, alice, full_family, add_expense, ctx_for):
        private = add_expense(alice, PrivacyMode.PRIVATE)
        listing = ExpenseService.list_for_viewer(ctx_for(alice))
        assert [e['id'] for e in listing] == [private.id]

    def test_limit_applies_after_private_filtering(self, app, alice, bob, full_family, add_expense, ctx_for):
        for day in range(1, 4):
            add_expense(alice, PrivacyMode.PRIVATE, day=date(2026, 1, day))
        visible = add_expense(alice, PrivacyMode.FULL_SHARED, day=date(2025, 12, 1))

        listing = ExpenseService.list_for_viewer(ctx_for(bob), limit=1)
        assert [e['id'] for e in listing] == [visible.id]

    def test_filters_by_category(self, app, alice, full_family, add_expense, ctx_for):
        add_expense(alice, category='School')
        medical = add_expense(alice, category='Medical')
        listing = ExpenseService.list_for_viewer(ctx_for(alice), category='Medical')
        assert [e['id'] for e in listing] == [medical.id]

    def test_get_private_of_other_is_not_found(self, app, alice, bob, full_family, add_expense, ctx_for):
        private = add_expense(alice, PrivacyMode.PRIVATE)
        with pytest.raises(NotFound):
            ExpenseService.get_for_viewer(ctx_for(bob), private.id)


class TestCreatorOnlyEdits:
    def test_creator_can_update(self, app, alice, full_family, add_expense, ctx_for):
        expense = add_expense(alice)
        ExpenseService.update(ctx_for(alice), expense.id, amount='30', privacy_mode='PRIVATE')

        assert expense.amount == Decimal('30.00')
        assert expense.privacy_mode == PrivacyMode.PRIVATE
        event = AuditEvent.query.filter_by(action='expense.updated').one()
        assert sorted(event.details['changed']) == ['amount', 'privacy_mode']

    def test_invalid_update_changes_nothing(self, app, alice, full_family, add_expense, ctx_for):
        expense = add_expense(alice)
        with pytest.raises(ValidationFailed):
            ExpenseService.update(ctx_for(alice), expense.id, category='Trips', amount='-1')
        assert expense.category == 'School'

    def test_other_parent_cannot_update_shared(self, app, alice, bob, full_family, add_expense, ctx_for):
        expense = add_expense(alice)
        with pytest.raises(NotExpenseCreator):
            ExpenseService.update(ctx_for(bob), expense.id, amount='1')

    def test_other_parent_cannot_see_private_to_update(self, app, alice, bob, full_family, add_expense,
                                                       ctx_for):
        expense = add_expense(alice, PrivacyMode.PRIVATE)
        with pytest.raises(NotFound):
            ExpenseService.update(ctx_for(bob), expense.id, amount='1')

    def test_admin_cannot_delete_co_parents_expense(self, app, alice, bob, full_family, add_expense,
                                                    ctx_for):
        expense = add_expense(bob)
        with pytest.raises(NotExpenseCreator):
            ExpenseService.delete(ctx_for(alice), expense.id)

    def test_creator_can_delete(self, app, alice, full_family, add_expense, ctx_for):
        expense = add_expense(alice)
        expense_id = expense.id
        ExpenseService.delete(ctx_for(alice), expense_id)
        assert db.session.get(Expense, expense_id) is None
