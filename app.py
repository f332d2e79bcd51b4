import os
import logging
import click
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from config import config
from extensions import db, migrate, login_manager, limiter


def configure_logging(app):
    """Configure application logging"""
    if not app.debug and not app.testing:
        # Create logs directory if it doesn't exist
        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = RotatingFileHandler(
            'logs/coparenthq.log',
            maxBytes=10240000,  # 10MB
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s: %(message)s '
            '[in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        # Service modules log through logging.getLogger(__name__)
        logging.getLogger().addHandler(file_handler)
        logging.getLogger().setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('CoParentHQ startup')
    else:
        # Development logging to console
        app.logger.setLevel(logging.DEBUG)
        app.logger.info('CoParentHQ startup (DEBUG mode)')


def create_app(config_name=None):
    """Application factory pattern"""

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)
    app.json.sort_keys = False
    os.makedirs(app.instance_path, exist_ok=True)

    # Configure logging
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # Collaborators (tests replace these in app.extensions)
    from services.identity_provider import init_role_sync
    from services.notification_service import init_notifier
    init_role_sync(app)
    init_notifier(app)

    # Add security headers
    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses"""
        headers = app.config.get('SECURITY_HEADERS', {})
        for header, value in headers.items():
            response.headers[header] = value
        return response

    # Bearer-token authentication only; no session cookie
    login_manager.session_protection = None
    import utils.auth  # noqa: F401  registers the request loader

    # Import models to ensure they're registered with SQLAlchemy
    with app.app_context():
        import models  # noqa: F401

    # Register blueprints
    from blueprints.account import account_bp
    from blueprints.family import family_bp
    from blueprints.invitations import invitations_bp
    from blueprints.expenses import expenses_bp

    app.register_blueprint(account_bp)
    app.register_blueprint(family_bp)
    app.register_blueprint(invitations_bp)
    app.register_blueprint(expenses_bp)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_commands(app)

    return app


def register_error_handlers(app):
    """Register global error handlers. Every error is a JSON envelope."""
    from services.errors import DomainError

    @app.errorhandler(DomainError)
    def domain_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(HTTPException)
    def http_error(error):
        code = (error.name or 'error').lower().replace(' ', '_')
        if error.code == 429:
            code = 'rate_limited'
        return jsonify({'error': code, 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        db.session.rollback()
        app.logger.exception(f'Internal Server Error: {error}')
        return jsonify({'error': 'internal_server_error',
                        'message': 'An unexpected error occurred'}), 500


def register_commands(app):
    """Register Flask CLI commands."""

    @app.cli.group()
    def users():
        """Manage user accounts."""
        pass

    @users.command('list')
    @click.option('--deleted', is_flag=True, help='Only show deactivated users.')
    def list_users(deleted):
        """List users."""
        from models.users import User
        query = User.query
        if deleted:
            query = query.filter(User.deleted_at.isnot(None))
        accounts = query.order_by(User.id).all()
        if not accounts:
            click.echo('No users found.')
            return
        click.echo(f'{"ID":<5} {"Name":<25} {"Email":<40} {"Active":<8}')
        click.echo('-' * 80)
        for u in accounts:
            click.echo(f'{u.id:<5} {u.name:<25} {u.email:<40} {str(u.is_active):<8}')

    @users.command('deactivate')
    @click.argument('email')
    def deactivate_user(email):
        """Soft-delete the user with EMAIL."""
        from services.identity_service import IdentityService
        user = IdentityService.find_by_email(email)
        if not user:
            click.echo(f'ERROR: No user found with email "{email}"', err=True)
            return
        if user.is_deleted:
            click.echo(f'"{user.name}" ({email}) is already deactivated.')
            return
        IdentityService.soft_delete(user)
        click.echo(f'SUCCESS: "{user.name}" ({email}) deactivated.')

    @users.command('reactivate')
    @click.argument('email')
    def reactivate_user(email):
        """Reactivate the soft-deleted user with EMAIL."""
        from services.identity_service import IdentityService
        user = IdentityService.find_by_email(email)
        if not user:
            click.echo(f'ERROR: No user found with email "{email}"', err=True)
            return
        if not user.is_deleted:
            click.echo(f'"{user.name}" ({email}) is already active.')
            return
        IdentityService.reactivate(user)
        click.echo(f'SUCCESS: "{user.name}" ({email}) reactivated.')

    @app.cli.group()
    def invitations():
        """Invitation housekeeping."""
        pass

    @invitations.command('sweep')
    def sweep_invitations():
        """Mark lapsed pending invitations as EXPIRED."""
        from services.invitation_service import InvitationService
        count = InvitationService.expire_stale()
        click.echo(f'Expired {count} invitation(s).')


if __name__ == '__main__':
    app = create_app()
    # SECURITY: Only bind to localhost in development
    # Never use 0.0.0.0 with debug mode - it exposes the debugger to the network
    app.run(host='127.0.0.1', port=5000, debug=True)
