"""Wire a GatewayConfig into authenticators and storage adapters.

Backends are built once and shared by every session: one requests
session, one SQLAlchemy engine and one boto3 client.
"""

import logging

from sftpgateway.adapters.database import (DatabaseIncomingStorage,
                                           create_engine)
from sftpgateway.adapters.fallback import (FallbackIncomingStorage,
                                           FallbackPricelistStorage)
from sftpgateway.adapters.s3 import S3PricelistStorage
from sftpgateway.adapters.webapi import (WebAPIClient, WebAPIIncomingStorage,
                                         WebAPIPricelistStorage)
from sftpgateway.auth import DatabaseAuthenticator, WebAPIAuthenticator
from sftpgateway.policy import DirectoryPolicy

logger = logging.getLogger(__name__)


class Backends:
    """Lazily created backend connections for one configuration."""

    def __init__(self, config):
        self.config = config
        self._api_client = None
        self._auth_client = None
        self._engine = None

    @property
    def api_client(self):
        if self._api_client is None:
            self._api_client = WebAPIClient(
                self.config.api_url, timeout=self.config.backend_timeout)
        return self._api_client

    @property
    def auth_client(self):
        if self._auth_client is None:
            self._auth_client = WebAPIClient(
                self.config.api_url, timeout=self.config.auth_timeout)
        return self._auth_client

    @property
    def engine(self):
        if self._engine is None:
            self._engine = create_engine(
                self.config.database_url, timeout=self.config.backend_timeout)
        return self._engine

    def build_authenticator(self):
        if self.config.auth_backend == 'database':
            logger.info("Using database authentication")
            return DatabaseAuthenticator(self.engine)
        logger.info("Using web API authentication at %s", self.config.api_url)
        return WebAPIAuthenticator(self.auth_client)

    def build_pricelist_storage(self):
        config = self.config
        if config.pricelist_backend == 's3':
            client_kwargs = {}
            for name in ('aws_access_key_id', 'aws_secret_access_key'):
                if getattr(config, name):
                    client_kwargs[name] = getattr(config, name)
            if config.aws_region:
                client_kwargs['region_name'] = config.aws_region
            if config.aws_endpoint_url:
                client_kwargs['endpoint_url'] = config.aws_endpoint_url
            logger.info("Serving pricelist from S3 bucket %s",
                        config.s3_bucket)
            storage = S3PricelistStorage(
                config.s3_bucket, timeout=config.backend_timeout,
                **client_kwargs)
        else:
            logger.info("Serving pricelist from web API")
            storage = WebAPIPricelistStorage(self.api_client)

        if config.mock_fallback:
            logger.warning("Mock data fallback enabled for the pricelist")
            storage = FallbackPricelistStorage(storage)
        return storage

    def build_incoming_storage(self):
        if self.config.incoming_backend == 'database':
            logger.info("Storing incoming files in the database")
            storage = DatabaseIncomingStorage(self.engine)
        else:
            logger.info("Forwarding incoming files to the web API")
            storage = WebAPIIncomingStorage(self.api_client)

        if self.config.mock_fallback:
            logger.warning("Mock order fallback enabled for incoming files")
            storage = FallbackIncomingStorage(storage)
        return storage

    def storage_options(self):
        """Keyword arguments for every session filesystem."""
        return {'upload_limit': self.config.max_upload_size}

    def build_policy(self):
        return DirectoryPolicy(pricelist_writable=self.config.pricelist_writable)
