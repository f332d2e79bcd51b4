"""Family blueprint – family record, parents, child roster and admin transfer."""
from flask import Blueprint

family_bp = Blueprint('family', __name__, url_prefix='/api/families')

# Every route needs a bearer token; membership and role are checked per route
# by ``family_action`` because the family id comes from the URL.

from . import routes  # noqa: E402,F401
