import os
from datetime import timedelta


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration"""

    # Secret key (also the development fallback for identity-token verification)
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(os.path.abspath(os.path.dirname(__file__)), 'instance', 'coparenthq.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False  # Set to True for SQL query logging during development
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    # Inbound identity (bearer JWT issued by the identity provider)
    IDENTITY_TOKEN_SECRET = os.environ.get('IDENTITY_TOKEN_SECRET') or SECRET_KEY
    IDENTITY_TOKEN_ALGORITHMS = [
        a.strip() for a in (os.environ.get('IDENTITY_TOKEN_ALGORITHMS') or 'HS256').split(',') if a.strip()
    ]
    IDENTITY_TOKEN_AUDIENCE = os.environ.get('IDENTITY_TOKEN_AUDIENCE')
    IDENTITY_TOKEN_ISSUER = os.environ.get('IDENTITY_TOKEN_ISSUER')
    IDENTITY_TOKEN_LEEWAY = timedelta(seconds=30)
    # Asymmetric tokens: verify against the provider's published key set (set IDENTITY_TOKEN_ALGORITHMS=RS256)
    IDENTITY_JWKS_URL = os.environ.get('IDENTITY_JWKS_URL')
    IDENTITY_JWKS_CACHE_SECONDS = int(os.environ.get('IDENTITY_JWKS_CACHE_SECONDS', 300))

    # A subject bound to a soft-deleted user is a conflict unless this is on
    IDENTITY_REACTIVATE_DELETED_USERS = _env_flag('IDENTITY_REACTIVATE_DELETED_USERS')

    # Identity-provider management API (role claims). Unset domain = log-only sync.
    IDP_MANAGEMENT_DOMAIN = os.environ.get('IDP_MANAGEMENT_DOMAIN')
    IDP_CLIENT_ID = os.environ.get('IDP_CLIENT_ID')
    IDP_CLIENT_SECRET = os.environ.get('IDP_CLIENT_SECRET')
    IDP_TIMEOUT_SECONDS = float(os.environ.get('IDP_TIMEOUT_SECONDS') or 5)

    # Invitations
    FRONTEND_URL = (os.environ.get('FRONTEND_URL') or 'http://localhost:5173').rstrip('/')
    INVITATION_TTL_DAYS = int(os.environ.get('INVITATION_TTL_DAYS') or 7)
    INVITATION_REQUIRE_EMAIL_MATCH = _env_flag('INVITATION_REQUIRE_EMAIL_MATCH')

    # Invitation e-mail (SMTP). Missing credentials = log and skip delivery.
    SMTP_HOST = os.environ.get('SMTP_HOST') or 'localhost'
    SMTP_PORT = int(os.environ.get('SMTP_PORT') or 587)
    SMTP_USERNAME = os.environ.get('SMTP_USERNAME')
    SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD')
    SMTP_USE_TLS = _env_flag('SMTP_USE_TLS', True)
    SMTP_TIMEOUT_SECONDS = float(os.environ.get('SMTP_TIMEOUT_SECONDS') or 10)
    MAIL_FROM_ADDRESS = os.environ.get('MAIL_FROM_ADDRESS') or 'noreply@coparenthq.app'
    MAIL_FROM_NAME = os.environ.get('MAIL_FROM_NAME') or 'CoParentHQ'

    # Expenses
    DEFAULT_CURRENCY = os.environ.get('DEFAULT_CURRENCY') or 'GBP'
    EXPENSE_PAGE_SIZE = 100

    # Rate Limiting
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or 'memory://'
    RATELIMIT_STRATEGY = 'fixed-window'
    RATELIMIT_HEADERS_ENABLED = True

    # Security Headers
    SECURITY_HEADERS = {
        'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Cache-Control': 'no-store',
    }

    @classmethod
    def init_app(cls, app):
        pass


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = False  # Set to True only when debugging SQL queries


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

    # MUST set these environment variables in production
    SECRET_KEY = os.environ.get('SECRET_KEY')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or os.environ.get('SQLALCHEMY_DATABASE_URI')
    IDENTITY_TOKEN_SECRET = os.environ.get('IDENTITY_TOKEN_SECRET')

    PREFERRED_URL_SCHEME = 'https'

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

        if not app.config.get('SECRET_KEY'):
            raise ValueError("SECRET_KEY environment variable must be set in production!")

        if not (app.config.get('IDENTITY_TOKEN_SECRET') or app.config.get('IDENTITY_JWKS_URL')):
            raise ValueError("IDENTITY_TOKEN_SECRET or IDENTITY_JWKS_URL must be set in production!")

        if not app.config.get('IDP_MANAGEMENT_DOMAIN'):
            # Admin transfer would change roles locally without telling the identity provider
            raise ValueError("IDP_MANAGEMENT_DOMAIN environment variable must be set in production!")

        # Warn if using SQLite in production
        if 'sqlite' in (app.config.get('SQLALCHEMY_DATABASE_URI') or ''):
            import warnings
            warnings.warn("Using SQLite in production is not recommended. Use PostgreSQL.")


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    IDENTITY_TOKEN_SECRET = 'testing-identity-secret-0123456789abcdef'
    IDENTITY_TOKEN_ALGORITHMS = ['HS256']
    IDENTITY_TOKEN_AUDIENCE = None
    IDENTITY_TOKEN_ISSUER = None
    IDENTITY_JWKS_URL = None
    IDP_MANAGEMENT_DOMAIN = None
    INVITATION_REQUIRE_EMAIL_MATCH = False
    IDENTITY_REACTIVATE_DELETED_USERS = False
    SMTP_USERNAME = None
    SMTP_PASSWORD = None
    FRONTEND_URL = 'https://app.example.test'
    RATELIMIT_ENABLED = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
