from flask import Blueprint
from flask_login import login_required

account_bp = Blueprint('account', __name__, url_prefix='/api/me')

# Require authentication for all routes in this blueprint
@account_bp.before_request
@login_required
def require_login():
    pass

from . import routes
