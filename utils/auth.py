"""
Bearer-token authentication.

Tokens are issued by the external identity provider; this module only
verifies them (PyJWT) and hands the verified ``sub``/``email`` to the
identity resolver.  No server-side session is created.
"""
import logging

import jwt
from flask import current_app, request

from extensions import login_manager
from services.errors import NotAuthenticated
from services.identity_service import IdentityService

logger = logging.getLogger(__name__)


def jwks_client():
    """The app's key-set client, built on first use and reused so keys stay cached."""
    url = current_app.config['IDENTITY_JWKS_URL']
    client = current_app.extensions.get('jwks_client')
    if client is None:
        client = jwt.PyJWKClient(url, lifespan=current_app.config.get('IDENTITY_JWKS_CACHE_SECONDS', 300),
                                 timeout=5)
        current_app.extensions['jwks_client'] = client
    return client


def _verification_key(token):
    if current_app.config.get('IDENTITY_JWKS_URL'):
        return jwks_client().get_signing_key_from_jwt(token).key
    return current_app.config['IDENTITY_TOKEN_SECRET']


def decode_identity_token(token):
    """Verify signature, expiry and (when configured) audience and issuer.

    With ``IDENTITY_JWKS_URL`` set the key is picked from the provider's key
    set by the token's ``kid``; otherwise the shared secret is used.
    """
    cfg = current_app.config
    return jwt.decode(
        token,
        _verification_key(token),
        algorithms=cfg['IDENTITY_TOKEN_ALGORITHMS'],
        audience=cfg.get('IDENTITY_TOKEN_AUDIENCE'),
        issuer=cfg.get('IDENTITY_TOKEN_ISSUER'),
        leeway=cfg.get('IDENTITY_TOKEN_LEEWAY', 0),
        options={'require': ['sub', 'exp']},
    )


def bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


@login_manager.request_loader
def load_user_from_request(req):
    token = bearer_token()
    if token is None:
        return None

    try:
        claims = decode_identity_token(token)
    except jwt.PyJWTError as e:
        logger.info('Rejected bearer token: %s', e)
        return None

    email = claims.get('email')
    if not email:
        logger.info('Rejected bearer token for %s: no email claim', claims.get('sub'))
        return None

    return IdentityService.resolve(claims['sub'], email, claims.get('name'))


@login_manager.unauthorized_handler
def unauthorized():
    raise NotAuthenticated()
