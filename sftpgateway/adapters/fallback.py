"""Opt-in degradation: substitute mock data when a backend fails.

These wrappers are only installed when the configuration asks for them.
Every substitution is logged as a warning, since the client receives
fabricated data instead of an error.
"""

import logging
import time

from sftpgateway.adapters.base import IncomingStorage, PricelistStorage
from sftpgateway.exceptions import SFTPBackendUnavailable
from sftpgateway.models import file_entry
from sftpgateway.policy import PRICELIST_DIR, PRICELIST_FILENAME

logger = logging.getLogger(__name__)

PRICELIST_PATH = PRICELIST_DIR + '/' + PRICELIST_FILENAME
MOCK_PRICELIST_SIZE = 2 * 1024 * 1024


def mock_pricelist_data():
    return (
        "PK\n"
        "This is a mock pricelist file for testing SFTP service.\n"
        "\n"
        "Product List:\n"
        "1. Product A - 10.99 EUR\n"
        "2. Product B - 25.50 EUR\n"
        "3. Product C - 45.00 EUR\n"
        "\n"
        "Updated: %s\n" % time.strftime('%Y-%m-%d %H:%M:%S')
    ).encode()


class FallbackPricelistStorage(PricelistStorage):
    """Wrap a pricelist storage, answering reads with mock data on failure.

    Writes are never faked: upload and mkdir failures propagate.
    """

    def __init__(self, storage):
        self.storage = storage

    def download(self, identity, path):
        try:
            return self.storage.download(identity, path)
        except SFTPBackendUnavailable as e:
            logger.warning("Pricelist download failed (%s), "
                           "returning mock data to user %s",
                           e.msg, identity.username)
            return mock_pricelist_data()

    def upload(self, identity, path, content):
        return self.storage.upload(identity, path, content)

    def list(self, identity, path):
        try:
            return self.storage.list(identity, path)
        except SFTPBackendUnavailable as e:
            logger.warning("Pricelist listing failed (%s), "
                           "returning mock listing to user %s",
                           e.msg, identity.username)
            if path != PRICELIST_DIR:
                return []
            return [file_entry(PRICELIST_FILENAME, MOCK_PRICELIST_SIZE)]

    def exists(self, identity, path):
        try:
            return self.storage.exists(identity, path)
        except SFTPBackendUnavailable as e:
            logger.warning("Pricelist existence check failed (%s), "
                           "assuming mock data", e.msg)
            return path in (PRICELIST_DIR, PRICELIST_PATH)

    def metadata(self, identity, path):
        try:
            return self.storage.metadata(identity, path)
        except SFTPBackendUnavailable as e:
            if path != PRICELIST_PATH:
                raise
            logger.warning("Pricelist metadata lookup failed (%s), "
                           "returning mock metadata to user %s",
                           e.msg, identity.username)
            return file_entry(PRICELIST_FILENAME, MOCK_PRICELIST_SIZE)

    def mkdir(self, identity, path):
        return self.storage.mkdir(identity, path)


class FallbackIncomingStorage(IncomingStorage):
    """Wrap an incoming storage, accepting uploads the backend refused.

    A refused upload is only logged; its content is lost.
    """

    def __init__(self, storage):
        self.storage = storage

    def store(self, identity, filename, content):
        try:
            return self.storage.store(identity, filename, content)
        except SFTPBackendUnavailable as e:
            logger.warning("Storing %s for user %s failed (%s), "
                           "processing as mock order: %d bytes, preview %r",
                           filename, identity.username, e.msg,
                           len(content), content[:100])

    def list(self, identity):
        try:
            return self.storage.list(identity)
        except SFTPBackendUnavailable as e:
            logger.warning("Listing incoming files failed (%s), "
                           "returning an empty listing", e.msg)
            return []
