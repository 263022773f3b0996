"""Remote HTTP API adapters.

Every call carries the session credential in the X-ApiKey header.
A transport failure or a non-2xx answer fails the operation.
"""

import email.utils
import logging
import time

import requests

from sftpgateway.adapters.base import IncomingStorage, PricelistStorage
from sftpgateway.exceptions import SFTPBackendUnavailable, SFTPNotFound
from sftpgateway.models import Entry, directory_entry
from sftpgateway.policy import PRICELIST_DIR, PRICELIST_FILENAME

logger = logging.getLogger(__name__)

USER_AGENT = 'SFTP-Gateway/1.0'

PRICELIST_PATH = PRICELIST_DIR + '/' + PRICELIST_FILENAME
PRICELIST_ENDPOINT = '/api/futur/pricelist'
ORDER_ENDPOINT = '/api/futur/order'
LOGIN_ENDPOINT = '/api/futur/login'


class WebAPIClient:
    """Thin requests wrapper shared by the API adapters of every session."""

    def __init__(self, base_url, timeout=30, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def request(self, method, endpoint, identity=None, **kwargs):
        url = self.base_url + endpoint
        headers = {'User-Agent': USER_AGENT}
        if identity is not None:
            headers['X-ApiKey'] = identity.credential

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise SFTPBackendUnavailable('HTTP request failed: %s' % e)

        if response.status_code == 404:
            raise SFTPNotFound('not found: %s' % url)
        if not 200 <= response.status_code < 300:
            raise SFTPBackendUnavailable(
                'API request failed: HTTP %d - %s'
                % (response.status_code, response.text)
            )
        return response


def _last_modified(response):
    header = response.headers.get('Last-Modified')
    if header:
        try:
            return int(email.utils.parsedate_to_datetime(header).timestamp())
        except (TypeError, ValueError):
            logger.debug("Unparsable Last-Modified header: %s", header)
    return int(time.time())


class WebAPIPricelistStorage(PricelistStorage):
    """Read-only pricelist served by the remote API."""

    def __init__(self, client):
        self.client = client

    def download(self, identity, path):
        if path != PRICELIST_PATH:
            raise SFTPNotFound(
                'only %s is available' % PRICELIST_FILENAME)

        logger.info("Downloading pricelist for user %s from web API",
                    identity.username)
        response = self.client.request('GET', PRICELIST_ENDPOINT, identity)
        logger.info("Successfully downloaded pricelist: %d bytes",
                    len(response.content))
        return response.content

    def list(self, identity, path):
        if path != PRICELIST_DIR:
            return []
        return [self.metadata(identity, PRICELIST_PATH)]

    def exists(self, identity, path):
        if path == PRICELIST_DIR:
            return True
        if path != PRICELIST_PATH:
            return False
        try:
            self.metadata(identity, path)
        except SFTPNotFound:
            return False
        return True

    def metadata(self, identity, path):
        if path == PRICELIST_DIR:
            return directory_entry(PRICELIST_DIR.lstrip('/'))
        if path != PRICELIST_PATH:
            raise SFTPNotFound('file not found: %s' % path)

        response = self.client.request('HEAD', PRICELIST_ENDPOINT, identity)
        size = int(response.headers.get('Content-Length', 0))
        return Entry(PRICELIST_FILENAME, size, _last_modified(response), False)


class WebAPIIncomingStorage(IncomingStorage):
    """Forward every incoming upload to the order API as it arrives.

    Nothing is retained, so the directory always lists empty.
    """

    def __init__(self, client):
        self.client = client

    def store(self, identity, filename, content):
        order = {
            'username': identity.username,
            'filename': filename,
            'content': content.decode('utf-8', errors='replace'),
            'timestamp': time.strftime('%Y%m%d_%H%M%S'),
            'file_size': len(content),
        }

        logger.info("Sending order to API (user: %s, file: %s)",
                    identity.username, filename)
        response = self.client.request(
            'POST', ORDER_ENDPOINT, identity, json=order)
        logger.info("Order successfully sent to API: %s", response.text)

    def list(self, identity):
        return []
