"""Invitations blueprint – issue, list, revoke, resend, preview and accept."""
from flask import Blueprint

invitations_bp = Blueprint('invitations', __name__, url_prefix='/api')

# Note: no blueprint-wide login_required because the preview route is public.

from . import routes  # noqa: E402,F401
