"""
Account routes for the authenticated user.

  GET   /api/me   – user, family, role and the state of the second-parent slot
  PATCH /api/me   – edit name, email or avatar
"""
from flask import jsonify
from flask_login import current_user

from blueprints.account import account_bp
from blueprints.account.forms import ProfileForm
from services.identity_service import IdentityService
from services.membership_service import MembershipService
from utils.forms import parse_json


@account_bp.route('', methods=['GET'])
def current_context():
    return jsonify(MembershipService.current_context(current_user))


@account_bp.route('', methods=['PATCH'])
def update_profile():
    changes = parse_json(ProfileForm, partial=True)
    IdentityService.update_profile(current_user, **changes)
    return jsonify(MembershipService.current_context(current_user))
