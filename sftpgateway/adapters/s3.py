"""Object storage adapter for the pricelist directory."""

import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from sftpgateway.adapters.base import PricelistStorage
from sftpgateway.exceptions import SFTPBackendUnavailable, SFTPNotFound
from sftpgateway.models import Entry, directory_entry
from sftpgateway.policy import PRICELIST_DIR, PRICELIST_FILENAME

logger = logging.getLogger(__name__)

PRICELIST_PATH = PRICELIST_DIR + '/' + PRICELIST_FILENAME

_NOT_FOUND_CODES = ('404', 'NoSuchKey', 'NotFound')


def _is_not_found(error):
    return error.response.get('Error', {}).get('Code') in _NOT_FOUND_CODES


class S3PricelistStorage(PricelistStorage):
    """Pricelist directory kept in an S3 bucket under one prefix per user.

    Whatever else the bucket holds, readers only ever see the pricelist
    file: list, exists, metadata and download all filter to that name.
    Uploads and directory markers are written as requested, so an upload
    reads back only when it targets the pricelist name itself; any other
    /Hinnat/<name> is stored in the bucket but never served.
    """

    def __init__(self, bucket, client=None, timeout=30, **client_kwargs):
        self.bucket = bucket
        if client is None:
            client = boto3.client(
                's3',
                config=Config(connect_timeout=timeout, read_timeout=timeout),
                **client_kwargs
            )
        self.client = client

    @staticmethod
    def key(identity, path):
        """Map a virtual path to the object key of identity."""
        return identity.username + '/' + path.lstrip('/')

    def _head(self, identity, path):
        key = self.key(identity, path)
        try:
            return self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise SFTPNotFound('file not found: %s' % path)
            raise SFTPBackendUnavailable(
                'failed to check file existence %s: %s' % (key, e))
        except BotoCoreError as e:
            raise SFTPBackendUnavailable(
                'failed to check file existence %s: %s' % (key, e))

    @staticmethod
    def _pricelist_entry(head):
        return Entry(
            PRICELIST_FILENAME,
            head['ContentLength'],
            int(head['LastModified'].timestamp()),
            False
        )

    def download(self, identity, path):
        if path != PRICELIST_PATH:
            raise SFTPNotFound('file not found: %s' % path)

        key = self.key(identity, path)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            data = response['Body'].read()
        except ClientError as e:
            if _is_not_found(e):
                raise SFTPNotFound('file not found: %s' % path)
            raise SFTPBackendUnavailable(
                'failed to download file %s: %s' % (key, e))
        except BotoCoreError as e:
            raise SFTPBackendUnavailable(
                'failed to download file %s: %s' % (key, e))

        logger.info("Downloaded %s for user %s (%d bytes)",
                    path, identity.username, len(data))
        return data

    def upload(self, identity, path, content):
        key = self.key(identity, path)
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=content)
        except (ClientError, BotoCoreError) as e:
            raise SFTPBackendUnavailable(
                'failed to upload file %s: %s' % (key, e))
        logger.info("Uploaded %s for user %s (%d bytes)",
                    path, identity.username, len(content))

    def list(self, identity, path):
        if path != PRICELIST_DIR:
            return []
        try:
            head = self._head(identity, PRICELIST_PATH)
        except SFTPNotFound:
            return []
        return [self._pricelist_entry(head)]

    def exists(self, identity, path):
        if path == PRICELIST_DIR:
            return True
        if path != PRICELIST_PATH:
            return False
        try:
            self._head(identity, path)
        except SFTPNotFound:
            return False
        return True

    def metadata(self, identity, path):
        if path == PRICELIST_DIR:
            return directory_entry(PRICELIST_DIR.lstrip('/'))
        if path != PRICELIST_PATH:
            raise SFTPNotFound('file not found: %s' % path)
        return self._pricelist_entry(self._head(identity, path))

    def mkdir(self, identity, path):
        key = self.key(identity, path).rstrip('/') + '/'
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=b'')
        except (ClientError, BotoCoreError) as e:
            raise SFTPBackendUnavailable(
                'failed to create directory %s: %s' % (key, e))
        logger.info("Created directory marker: %s", key)
