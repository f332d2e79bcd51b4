"""
Family blueprint routes.

Any authenticated user:
  POST   /api/families                                – found a family (caller becomes admin)

Any parent of the family:
  GET    /api/families/<id>                           – family, parents, active children
  GET    /api/families/<id>/parents                   – parents
  GET    /api/families/<id>/children                  – active children

Admin parent only:
  PATCH  /api/families/<id>                           – rename
  POST   /api/families/<id>/children                  – add a child
  PATCH  /api/families/<id>/children/<child_id>       – edit a child
  DELETE /api/families/<id>/children/<child_id>       – deactivate a child
  PUT    /api/families/<id>/transfer-admin            – hand the admin role to the co-parent
  GET    /api/families/<id>/audit                     – audit trail
"""
from flask import jsonify, request
from flask_login import current_user, login_required

from blueprints.family import family_bp
from blueprints.family.forms import ChildForm, FamilyForm, TransferAdminForm
from extensions import limiter
from services.admin_transfer_service import AdminTransferService
from services.audit_service import AuditService
from services.child_service import ChildService
from services.errors import ValidationFailed
from services.membership_service import MembershipService
from utils.dates import isoformat
from utils.forms import json_body, parse_json
from utils.permissions import Action, family_action


def _children_payload(body):
    items = body.get('children') or []
    if not isinstance(items, list):
        raise ValidationFailed(errors={'children': ['Must be a list']})
    children = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationFailed(errors={f'children[{index}]': ['Must be an object']})
        item = dict(item)
        if 'dateOfBirth' in item and 'date_of_birth' not in item:
            item['date_of_birth'] = item.pop('dateOfBirth')
        try:
            children.append(parse_json(ChildForm, item))
        except ValidationFailed as e:
            raise ValidationFailed(errors={f'children[{index}]': e.details.get('errors')})
    return children


# ── Family ────────────────────────────────────────────────────────────────────

@family_bp.route('', methods=['POST'])
@login_required
@limiter.limit('10 per hour')
def create_family():
    body = json_body()
    data = parse_json(FamilyForm, body)
    children = _children_payload(body)

    family, created_children, parent = MembershipService.create_family(
        current_user, data['name'], children
    )
    return jsonify({
        'family': family.to_dict(),
        'children': [c.to_dict() for c in created_children],
        'parent': parent.to_dict(),
    }), 201


@family_bp.route('/<int:family_id>', methods=['GET'])
@login_required
@family_action(Action.VIEW_FAMILY)
def get_family(family_id, ctx):
    family = ctx.family
    return jsonify({
        'family': family.to_dict(),
        'parents': [p.to_dict() for p in MembershipService.list_parents(family_id)],
        'children': [c.to_dict() for c in ChildService.list_children(family_id)],
        'role': ctx.role.value,
    })


@family_bp.route('/<int:family_id>', methods=['PATCH'])
@login_required
@family_action(Action.UPDATE_FAMILY)
def update_family(family_id, ctx):
    data = parse_json(FamilyForm)
    family = MembershipService.update_family(ctx, data['name'])
    return jsonify({'family': family.to_dict()})


@family_bp.route('/<int:family_id>/parents', methods=['GET'])
@login_required
@family_action(Action.VIEW_FAMILY)
def list_parents(family_id, ctx):
    return jsonify({'parents': [p.to_dict() for p in MembershipService.list_parents(family_id)]})


# ── Children ──────────────────────────────────────────────────────────────────

@family_bp.route('/<int:family_id>/children', methods=['GET'])
@login_required
@family_action(Action.VIEW_CHILDREN)
def list_children(family_id, ctx):
    include_inactive = request.args.get('include_inactive', '').lower() in ('1', 'true', 'yes')
    children = ChildService.list_children(family_id, include_inactive=include_inactive)
    return jsonify({'children': [c.to_dict() for c in children]})


@family_bp.route('/<int:family_id>/children', methods=['POST'])
@login_required
@family_action(Action.EDIT_CHILDREN)
def add_child(family_id, ctx):
    data = parse_json(ChildForm)
    child = ChildService.add_child(ctx, data['name'], date_of_birth=data['date_of_birth'],
                                   year_group=data['year_group'])
    return jsonify({'child': child.to_dict()}), 201


@family_bp.route('/<int:family_id>/children/<int:child_id>', methods=['PATCH'])
@login_required
@family_action(Action.EDIT_CHILDREN)
def update_child(family_id, child_id, ctx):
    changes = parse_json(ChildForm, partial=True)
    child = ChildService.update_child(ctx, child_id, **changes)
    return jsonify({'child': child.to_dict()})


@family_bp.route('/<int:family_id>/children/<int:child_id>', methods=['DELETE'])
@login_required
@family_action(Action.EDIT_CHILDREN)
def deactivate_child(family_id, child_id, ctx):
    child = ChildService.deactivate_child(ctx, child_id)
    return jsonify({'child': child.to_dict()})


# ── Admin transfer ────────────────────────────────────────────────────────────

@family_bp.route('/<int:family_id>/transfer-admin', methods=['PUT'])
@login_required
@limiter.limit('5 per day')
@family_action(Action.TRANSFER_ADMIN)
def transfer_admin(family_id, ctx):
    body = dict(json_body())
    if 'targetUserId' in body and 'target_user_id' not in body:
        body['target_user_id'] = body.pop('targetUserId')
    data = parse_json(TransferAdminForm, body)
    family, previous_admin, new_admin, timestamp = AdminTransferService.transfer(
        ctx, data['target_user_id']
    )
    return jsonify({
        'family': family.to_dict(),
        'previous_admin': previous_admin.to_dict(),
        'new_admin': new_admin.to_dict(),
        'timestamp': isoformat(timestamp),
    })


# ── Audit ─────────────────────────────────────────────────────────────────────

@family_bp.route('/<int:family_id>/audit', methods=['GET'])
@login_required
@family_action(Action.VIEW_AUDIT_LOG)
def audit_log(family_id, ctx):
    limit = request.args.get('limit', 100, type=int)
    offset = request.args.get('offset', 0, type=int)
    events = AuditService.list_for_family(family_id, limit=min(max(limit, 1), 500), offset=max(offset, 0))
    return jsonify({'events': [e.to_dict() for e in events]})
