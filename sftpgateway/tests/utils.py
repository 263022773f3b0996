"""Various utils."""

import struct
import random

from sftpgateway.adapters.base import IncomingStorage, PricelistStorage
from sftpgateway.exceptions import (AuthenticationError,
                                    SFTPBackendUnavailable, SFTPNotFound)
from sftpgateway.models import Entry, Identity, directory_entry, file_entry
from sftpgateway.policy import PRICELIST_DIR, PRICELIST_FILENAME

PRICELIST_PATH = PRICELIST_DIR + '/' + PRICELIST_FILENAME
PRICELIST_DATA = b'PK\x03\x04' + b'pricelist' * 100

USER = Identity('test', 'secret-token')


def sftpstring(s):
    return struct.pack('>I', len(s)) + s


def sftpint(n):
    return struct.pack('>I', n)


def sftpint64(n):
    return struct.pack('>Q', n)


def sftpcmd(cmd, *args):
    msg = struct.pack('>BI', cmd, random.randrange(1, 0xffffffff))
    for arg in args:
        msg += arg
    return sftpint(len(msg)) + msg


def get_sftphandle(blob):
    slen, = struct.unpack('>I', blob[9:13])
    return blob[13:13 + slen]


def get_sftpint(blob):
    value, = struct.unpack('>I', blob[5:9])
    return int(value)


def get_sftpstatus(blob):
    value, = struct.unpack('>I', blob[9:13])
    return int(value)


def get_sftpname(blob):
    namelen, = struct.unpack('>I', blob[13:17])
    return blob[17:17 + namelen]


def get_sftpstat(blob):
    attrs = dict()
    attrs['size'], attrs['uid'], \
        attrs['gid'], attrs['perm'], \
        attrs['atime'], attrs['mtime'] \
        = struct.unpack('>QIIIII', blob[13:])
    return attrs


def get_sftpdata(blob):
    dlen, = struct.unpack('>I', blob[9:13])
    return blob[13:13 + dlen]


class MemoryPricelistStorage(PricelistStorage):
    """Pricelist storage backed by a dict; records every call."""

    def __init__(self, files=None, fail=False):
        self.files = {PRICELIST_PATH: PRICELIST_DATA} if files is None else files
        self.fail = fail
        self.calls = []
        self.directories = []

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail:
            raise SFTPBackendUnavailable('backend down')

    def download(self, identity, path):
        self._call('download', identity, path)
        if path not in self.files:
            raise SFTPNotFound('file not found: %s' % path)
        return self.files[path]

    def upload(self, identity, path, content):
        self._call('upload', identity, path, content)
        self.files[path] = content

    def list(self, identity, path):
        self._call('list', identity, path)
        if path != PRICELIST_DIR:
            return []
        return [
            file_entry(name.rsplit('/', 1)[1], len(data), 1500000000)
            for name, data in sorted(self.files.items())
        ]

    def exists(self, identity, path):
        self._call('exists', identity, path)
        return path == PRICELIST_DIR or path in self.files

    def metadata(self, identity, path):
        self._call('metadata', identity, path)
        if path == PRICELIST_DIR:
            return directory_entry('Hinnat')
        if path not in self.files:
            raise SFTPNotFound('file not found: %s' % path)
        return Entry(path.rsplit('/', 1)[1], len(self.files[path]),
                     1500000000, False)

    def mkdir(self, identity, path):
        self._call('mkdir', identity, path)
        self.directories.append(path)


class MemoryIncomingStorage(IncomingStorage):
    """Incoming storage keeping uploads per user; records every call."""

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []
        self.files = {}

    def store(self, identity, filename, content):
        self.calls.append(('store', identity, filename, content))
        if self.fail:
            raise SFTPBackendUnavailable('backend down')
        self.files[(identity.username, filename)] = content

    def list(self, identity):
        self.calls.append(('list', identity))
        if self.fail:
            raise SFTPBackendUnavailable('backend down')
        return [
            file_entry(filename, len(content), 1500000000)
            for (username, filename), content in sorted(self.files.items())
            if username == identity.username
        ]


class StaticAuthenticator(object):
    """Accept the users of a {username: password} dict."""

    def __init__(self, users):
        self.users = users

    def authenticate(self, username, secret):
        if self.users.get(username) != secret:
            raise AuthenticationError('invalid password')
        return Identity(username, secret)
