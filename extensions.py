"""
Flask extension singletons.

Created here without an app and bound inside ``create_app`` so that models,
services and blueprints can import them without circular imports.
"""
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager, current_user
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy


def rate_limit_key():
    """Key rate limits by the authenticated user, falling back to the client address."""
    if current_user and current_user.is_authenticated:
        return f'user:{current_user.get_id()}'
    return get_remote_address()


db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
limiter = Limiter(key_func=rate_limit_key)
