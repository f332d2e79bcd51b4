"""
Expense routes. Every item returned is projected for the viewing parent, so
item shape varies with privacy mode and creator.
"""
from flask import jsonify, request

from blueprints.expenses import expenses_bp
from blueprints.expenses.forms import ExpenseForm
from services.expense_service import ExpenseService
from utils.forms import parse_json
from utils.permissions import Action, family_action


@expenses_bp.route('', methods=['GET'])
@family_action(Action.VIEW_EXPENSES)
def list_expenses(family_id, ctx):
    limit = request.args.get('limit', type=int)
    offset = request.args.get('offset', 0, type=int)
    child_id = request.args.get('child_id', type=int)
    category = request.args.get('category') or None

    if limit is not None:
        limit = min(max(limit, 1), 500)
    expenses = ExpenseService.list_for_viewer(
        ctx, limit=limit, offset=max(offset, 0), child_id=child_id, category=category
    )
    return jsonify({'expenses': expenses})


@expenses_bp.route('', methods=['POST'])
@family_action(Action.CREATE_EXPENSE)
def create_expense(family_id, ctx):
    data = parse_json(ExpenseForm)
    expense = ExpenseService.create(
        ctx,
        amount=data['amount'],
        category=data['category'],
        date=data['date'],
        description=data['description'],
        currency=data['currency'],
        privacy_mode=data['privacy_mode'],
        child_id=data['child_id'],
    )
    return jsonify({'expense': expense.to_dict()}), 201


@expenses_bp.route('/<int:expense_id>', methods=['GET'])
@family_action(Action.VIEW_EXPENSES)
def get_expense(family_id, expense_id, ctx):
    return jsonify({'expense': ExpenseService.get_for_viewer(ctx, expense_id)})


@expenses_bp.route('/<int:expense_id>', methods=['PATCH'])
@family_action(Action.EDIT_EXPENSE)
def update_expense(family_id, expense_id, ctx):
    changes = parse_json(ExpenseForm, partial=True)
    expense = ExpenseService.update(ctx, expense_id, **changes)
    return jsonify({'expense': expense.to_dict()})


@expenses_bp.route('/<int:expense_id>', methods=['DELETE'])
@family_action(Action.EDIT_EXPENSE)
def delete_expense(family_id, expense_id, ctx):
    ExpenseService.delete(ctx, expense_id)
    return '', 204
