"""Virtual path normalization and the per-directory operation policy."""

import posixpath

from sftpgateway.exceptions import SFTPForbidden

ROOT = '/'
INCOMING_DIR = '/in'
PRICELIST_DIR = '/Hinnat'
TOP_LEVEL_DIRS = (INCOMING_DIR, PRICELIST_DIR)

PRICELIST_FILENAME = 'salhydro_kaikki.zip'
INCOMING_SIZE_LIMIT = 100 * 1024
UPLOAD_SIZE_LIMIT = 50 * 1024 * 1024

LIST = 'list'
READ = 'read'
WRITE = 'write'
MKDIR = 'mkdir'


def normalize(path):
    """Return the canonical form of a virtual path.

    Accepts bytes (as they come off the wire) or str.
    The result always starts with a single slash, with '.' and '..'
    resolved lexically, so it can never climb above the root.
    """
    if isinstance(path, bytes):
        try:
            path = path.decode('utf-8')
        except UnicodeDecodeError:
            raise SFTPForbidden('invalid path encoding')
    if path in ('', '.'):
        return ROOT
    return posixpath.normpath('/' + path.lstrip('/'))


def top_level(path):
    """Return the whitelisted directory a normalized path falls under.

    None means the path is outside the exposed namespace.
    """
    if path == ROOT:
        return ROOT
    for directory in TOP_LEVEL_DIRS:
        if path == directory or path.startswith(directory + '/'):
            return directory
    return None


def container(path):
    """The whitelisted directory whose rules govern an entry at path."""
    directory = top_level(path)
    if directory == path:
        return ROOT
    return directory


class DirectoryPolicy:
    """Map each whitelisted directory to the operations it permits.

    The policy does not depend on the user: one instance is built at
    startup and shared, read-only, by every session.
    """

    def __init__(self, pricelist_writable=False):
        pricelist = {LIST, READ}
        if pricelist_writable:
            pricelist |= {WRITE, MKDIR}
        self.pricelist_writable = pricelist_writable
        self._rules = {
            ROOT: frozenset([LIST]),
            INCOMING_DIR: frozenset([LIST, WRITE]),
            PRICELIST_DIR: frozenset(pricelist),
        }

    def is_allowed(self, path):
        return top_level(path) is not None

    def operations(self, directory):
        return self._rules.get(directory, frozenset())

    def permits(self, path, operation):
        """Check operation against the rules of the directory governing path.

        Listing is governed by the directory being listed; every other
        operation by the directory containing the target.
        """
        if operation == LIST:
            directory = top_level(path)
        else:
            directory = container(path)
        return operation in self.operations(directory)
