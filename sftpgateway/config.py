"""Gateway configuration, read from the environment and an optional .env file."""

import os

from dotenv import load_dotenv

from sftpgateway.exceptions import ConfigError
from sftpgateway.policy import UPLOAD_SIZE_LIMIT

AUTH_BACKENDS = ('webapi', 'database')
PRICELIST_BACKENDS = ('webapi', 's3')
INCOMING_BACKENDS = ('webapi', 'database')

_TRUE = ('1', 'true', 'yes', 'on')


def _flag(value):
    return str(value).strip().lower() in _TRUE


def _number(environ, name, default):
    value = environ.get(name)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError('%s must be an integer, got %r' % (name, value))


class GatewayConfig:
    """Everything the gateway needs to start.

    Build it with from_env(); command line flags are applied on top by
    the caller, then validate() checks the result.
    """

    def __init__(self, **kwargs):
        self.host = kwargs.get('host', '0.0.0.0')
        self.port = kwargs.get('port', 2222)
        self.host_key_path = kwargs.get('host_key_path', './host_key')
        self.auth_backend = kwargs.get('auth_backend', 'webapi')
        self.pricelist_backend = kwargs.get('pricelist_backend', 'webapi')
        self.incoming_backend = kwargs.get('incoming_backend', 'webapi')
        self.api_url = kwargs.get('api_url')
        self.database_url = kwargs.get('database_url')
        self.s3_bucket = kwargs.get('s3_bucket')
        self.aws_region = kwargs.get('aws_region')
        self.aws_endpoint_url = kwargs.get('aws_endpoint_url')
        self.aws_access_key_id = kwargs.get('aws_access_key_id')
        self.aws_secret_access_key = kwargs.get('aws_secret_access_key')
        self.backend_timeout = kwargs.get('backend_timeout', 30)
        self.auth_timeout = kwargs.get('auth_timeout', 10)
        self.max_upload_size = kwargs.get('max_upload_size', UPLOAD_SIZE_LIMIT)
        self.mock_fallback = kwargs.get('mock_fallback', False)
        self.logfile = kwargs.get('logfile')
        self.log_level = kwargs.get('log_level', 'INFO')

    @classmethod
    def from_env(cls, environ=None, env_file=None):
        """Read the configuration from environ (os.environ by default).

        A .env file is loaded first when reading os.environ; variables
        already set in the environment win over it.
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ

        return cls(
            host=environ.get('SFTP_HOST', '0.0.0.0'),
            port=_number(environ, 'SFTP_PORT', 2222),
            host_key_path=environ.get('SFTP_HOST_KEY_PATH', './host_key'),
            auth_backend=environ.get('SFTP_AUTH_BACKEND', 'webapi'),
            pricelist_backend=environ.get('SFTP_PRICELIST_BACKEND', 'webapi'),
            incoming_backend=environ.get('SFTP_INCOMING_BACKEND', 'webapi'),
            api_url=environ.get('API_URL') or None,
            database_url=environ.get('DATABASE_URL') or None,
            s3_bucket=environ.get('S3_BUCKET') or None,
            aws_region=environ.get('AWS_REGION') or None,
            aws_endpoint_url=environ.get('AWS_ENDPOINT_URL') or None,
            aws_access_key_id=environ.get('AWS_ACCESS_KEY_ID') or None,
            aws_secret_access_key=environ.get('AWS_SECRET_ACCESS_KEY') or None,
            backend_timeout=_number(environ, 'SFTP_BACKEND_TIMEOUT', 30),
            auth_timeout=_number(environ, 'SFTP_AUTH_TIMEOUT', 10),
            max_upload_size=_number(environ, 'SFTP_MAX_UPLOAD_SIZE',
                                    UPLOAD_SIZE_LIMIT),
            mock_fallback=_flag(environ.get('SFTP_MOCK_FALLBACK', 'false')),
            logfile=environ.get('SFTP_LOGFILE') or None,
            log_level=environ.get('SFTP_LOG_LEVEL', 'INFO'),
        )

    @property
    def pricelist_writable(self):
        """Only mutable object storage accepts writes to the pricelist."""
        return self.pricelist_backend == 's3'

    def validate(self):
        choices = (
            ('SFTP_AUTH_BACKEND', self.auth_backend, AUTH_BACKENDS),
            ('SFTP_PRICELIST_BACKEND', self.pricelist_backend,
             PRICELIST_BACKENDS),
            ('SFTP_INCOMING_BACKEND', self.incoming_backend,
             INCOMING_BACKENDS),
        )
        for name, value, allowed in choices:
            if value not in allowed:
                raise ConfigError('%s must be one of %s, got %r'
                                  % (name, ', '.join(allowed), value))

        backends = (self.auth_backend, self.pricelist_backend,
                    self.incoming_backend)
        if 'webapi' in backends and not self.api_url:
            raise ConfigError('API_URL is required')
        if 'database' in backends and not self.database_url:
            raise ConfigError('DATABASE_URL is required')
        if self.pricelist_backend == 's3' and not self.s3_bucket:
            raise ConfigError('S3_BUCKET is required')
        if not 0 < self.port < 65536:
            raise ConfigError('SFTP_PORT out of range: %d' % self.port)
        if self.max_upload_size <= 0:
            raise ConfigError('SFTP_MAX_UPLOAD_SIZE must be positive')
        return self
