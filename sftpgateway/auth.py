"""Authenticators: turn a username and a secret into an Identity."""

import logging
import secrets

import bcrypt
import sqlalchemy as sql
from sqlalchemy.exc import SQLAlchemyError

from sftpgateway.adapters.database import UserModel
from sftpgateway.adapters.webapi import LOGIN_ENDPOINT, WebAPIClient
from sftpgateway.exceptions import AuthenticationError, SFTPException
from sftpgateway.models import Identity

logger = logging.getLogger(__name__)


class SFTPAbstractAuthenticator:
    """Abstract authenticator class. Subclass it and override authenticate."""

    def authenticate(self, username, secret):
        """Return an Identity or raise AuthenticationError."""
        raise AuthenticationError('no authentication backend configured')


class DatabaseAuthenticator(SFTPAbstractAuthenticator):
    """Check bcrypt password hashes kept in the users table.

    Inactive users cannot log in. The credential is a random token
    minted for the session.
    """

    def __init__(self, engine):
        self.engine = engine
        self.table = UserModel.__table__

    def authenticate(self, username, secret):
        query = (
            sql.select(self.table.c.username, self.table.c.password_hash)
            .where(self.table.c.username == username)
            .where(self.table.c.is_active.is_(True))
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).first()
        except SQLAlchemyError as e:
            logger.error("Database query error while authenticating %s: %s",
                         username, e)
            raise AuthenticationError('database query error')

        if row is None:
            raise AuthenticationError('user not found')

        try:
            valid = bcrypt.checkpw(
                secret.encode('utf-8'), row.password_hash.encode('utf-8'))
        except ValueError:
            logger.error("Malformed password hash for user %s", username)
            valid = False
        if not valid:
            raise AuthenticationError('invalid password')

        return Identity(row.username, secrets.token_urlsafe(32))


class WebAPIAuthenticator(SFTPAbstractAuthenticator):
    """Log in against the remote API.

    The password doubles as the API key of the later storage calls,
    so it becomes the session credential.
    """

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_url(cls, base_url, timeout=10):
        return cls(WebAPIClient(base_url, timeout=timeout))

    def authenticate(self, username, secret):
        logger.info("Authenticating user %s against web API", username)
        try:
            response = self.client.request(
                'POST', LOGIN_ENDPOINT,
                json={'username': username, 'password': secret}
            )
            answer = response.json()
        except SFTPException as e:
            raise AuthenticationError('authentication failed: %s' % e.msg)
        except ValueError:
            raise AuthenticationError('authentication failed: invalid answer')

        if not isinstance(answer, dict):
            raise AuthenticationError('authentication failed: invalid answer')
        if not answer.get('success'):
            raise AuthenticationError(
                'authentication failed: %s' % answer.get('message', ''))

        logger.info("Authentication successful for user: %s (ID: %s)",
                    username, answer.get('user_id'))
        return Identity(username, secret)
