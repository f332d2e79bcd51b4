"""
Role-claim synchronisation with the identity provider.

The provider's management API (Auth0-compatible: client-credentials token,
``/api/v2/roles`` and ``/api/v2/users/<id>/roles``) holds a copy of each
user's family role so that issued tokens carry it.  Two implementations share
one interface:

``IdentityProviderClient``
    Talks HTTP via ``requests`` with a bounded timeout on every call.

``LoggingRoleSync``
    Used when no management domain is configured (development and tests).
    Records nothing remotely, only logs.

Both raise ``RoleSyncError`` for any failure so callers can treat timeouts
and HTTP errors identically.
"""
import logging
import time

import requests

logger = logging.getLogger(__name__)

ADMIN_ROLE = 'ADMIN_PARENT'
CO_PARENT_ROLE = 'CO_PARENT'


class RoleSyncError(Exception):
    """The identity provider did not confirm a role change."""


class RoleSync:
    """Interface shared by the role-sync implementations."""

    def add_role(self, subject_id, role):
        raise NotImplementedError

    def remove_role(self, subject_id, role):
        raise NotImplementedError

    def swap_admin(self, previous_admin_subject, new_admin_subject):
        """Move the admin claim from one subject to another.

        Either every step is confirmed or the steps already applied are
        undone before ``RoleSyncError`` propagates.
        """
        steps = [
            (self.remove_role, self.add_role, previous_admin_subject, ADMIN_ROLE),
            (self.add_role, self.remove_role, previous_admin_subject, CO_PARENT_ROLE),
            (self.remove_role, self.add_role, new_admin_subject, CO_PARENT_ROLE),
            (self.add_role, self.remove_role, new_admin_subject, ADMIN_ROLE),
        ]
        applied = []
        for do, undo, subject, role in steps:
            try:
                do(subject, role)
            except RoleSyncError:
                self._undo(applied)
                raise
            applied.append((undo, subject, role))

    def _undo(self, applied):
        for undo, subject, role in reversed(applied):
            try:
                undo(subject, role)
            except RoleSyncError:
                logger.exception('Failed to undo role change %s for %s', role, subject)


class LoggingRoleSync(RoleSync):
    """Role sync used when the identity provider is not configured."""

    def add_role(self, subject_id, role):
        logger.info('Role sync disabled: would add %s to %s', role, subject_id)

    def remove_role(self, subject_id, role):
        logger.info('Role sync disabled: would remove %s from %s', role, subject_id)


class IdentityProviderClient(RoleSync):
    """Management API client for the identity provider."""

    def __init__(self, domain, client_id, client_secret, timeout=5, session=None):
        self.domain = domain
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token = None
        self._token_expiry = 0.0
        self._role_ids = {}

    @property
    def base_url(self):
        return f'https://{self.domain}/api/v2'

    def _access_token(self):
        """Client-credentials token, cached until shortly before it expires."""
        if self._token and self._token_expiry > time.time():
            return self._token

        try:
            resp = self.session.post(
                f'https://{self.domain}/oauth/token',
                json={
                    'client_id': self.client_id,
                    'client_secret': self.client_secret,
                    'audience': f'{self.base_url}/',
                    'grant_type': 'client_credentials',
                },
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise RoleSyncError(f'Could not obtain management token: {e}') from e

        self._token = data['access_token']
        # Refresh a minute early
        self._token_expiry = time.time() + int(data.get('expires_in', 0)) - 60
        return self._token

    def _request(self, method, path, **kwargs):
        headers = {'Authorization': f'Bearer {self._access_token()}'}
        try:
            resp = self.session.request(method, f'{self.base_url}{path}', headers=headers,
                                        timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RoleSyncError(f'{method} {path} failed: {e}') from e
        return resp

    def role_id(self, role):
        if role not in self._role_ids:
            resp = self._request('GET', '/roles', params={'name_filter': role})
            matches = [r for r in resp.json() if r.get('name') == role]
            if not matches:
                raise RoleSyncError(f'Role {role} is not defined at the identity provider')
            self._role_ids[role] = matches[0]['id']
        return self._role_ids[role]

    def add_role(self, subject_id, role):
        self._request('POST', f'/users/{subject_id}/roles', json={'roles': [self.role_id(role)]})
        logger.info('Added role %s to %s', role, subject_id)

    def remove_role(self, subject_id, role):
        self._request('DELETE', f'/users/{subject_id}/roles', json={'roles': [self.role_id(role)]})
        logger.info('Removed role %s from %s', role, subject_id)


def init_role_sync(app):
    """Install the role-sync collaborator on ``app.extensions['role_sync']``."""
    if app.config.get('IDP_MANAGEMENT_DOMAIN'):
        client = IdentityProviderClient(
            app.config['IDP_MANAGEMENT_DOMAIN'],
            app.config.get('IDP_CLIENT_ID'),
            app.config.get('IDP_CLIENT_SECRET'),
            timeout=app.config.get('IDP_TIMEOUT_SECONDS', 5),
        )
    else:
        client = LoggingRoleSync()
    app.extensions['role_sync'] = client
    return client


def get_role_sync():
    from flask import current_app
    return current_app.extensions['role_sync']
