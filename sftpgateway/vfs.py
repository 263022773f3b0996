"""The virtual filesystem every SFTP session sees.

Only three locations exist: the root, the write-only incoming directory
and the pricelist directory. Each request is checked against the
DirectoryPolicy before any storage adapter is touched; policy violations
never reach a backend, while backend errors travel back unchanged.
"""

import logging
import os
import posixpath
import time

from sftpgateway.abstractstorage import SFTPAbstractServerStorage
from sftpgateway.exceptions import (SFTPForbidden, SFTPNotAccessible,
                                    SFTPUnsupported, SFTPWriteOnly)
from sftpgateway.handles import (DirectoryHandle, ReadHandle,
                                 WriteHandle)
from sftpgateway.models import directory_entry, file_entry
from sftpgateway.policy import (INCOMING_DIR, INCOMING_SIZE_LIMIT, LIST,
                                MKDIR, READ, ROOT, TOP_LEVEL_DIRS,
                                UPLOAD_SIZE_LIMIT, WRITE, DirectoryPolicy,
                                container, normalize, top_level)

logger = logging.getLogger(__name__)

REMOVE = 'remove'
RENAME = 'rename'
RMDIR = 'rmdir'
SETSTAT = 'setstat'
SYMLINK = 'symlink'
READLINK = 'readlink'

_FORBIDDEN_COMMANDS = {
    REMOVE: 'access denied: delete operations not allowed',
    RENAME: 'access denied: rename operations not allowed',
    RMDIR: 'access denied: directory removal not allowed',
}


class SFTPServerVirtualFilesystem(SFTPAbstractServerStorage):
    """Access-control dispatcher bound to one identity.

    pricelist_storage serves the pricelist directory and incoming_storage
    receives uploads to the incoming directory. Both may be shared with
    other sessions; everything else here belongs to this session only.
    """

    def __init__(self, identity, pricelist_storage, incoming_storage,
                 directory_policy=None, size_limit=INCOMING_SIZE_LIMIT,
                 upload_limit=UPLOAD_SIZE_LIMIT):
        self.identity = identity
        self.pricelist = pricelist_storage
        self.incoming = incoming_storage
        self.policy = directory_policy or DirectoryPolicy()
        self.size_limit = size_limit
        self.upload_limit = upload_limit
        # synthesized entries keep one timestamp for the whole session
        self._mtime = int(time.time())

    def _deny(self, exc_class, action, path, reason):
        logger.warning(
            "%s denied: user %s on %s (%s)",
            action, self.identity.username, path, reason
        )
        return exc_class(reason)

    def _allowed_path(self, action, path):
        path = normalize(path)
        if not self.policy.is_allowed(path):
            raise self._deny(
                SFTPForbidden, action, path, 'access denied: path not allowed')
        return path

    def _synthesized(self, path):
        if path == ROOT:
            return directory_entry(ROOT, self._mtime)
        return directory_entry(posixpath.basename(path), self._mtime)

    def open_read(self, path):
        """Return a ReadHandle over the content of path."""
        path = self._allowed_path('Read', path)
        logger.info("Reading file: %s for user: %s",
                    path, self.identity.username)

        if top_level(path) == INCOMING_DIR:
            raise self._deny(
                SFTPWriteOnly, 'Read', path,
                'access denied: /in/ directory is write-only'
            )
        if not self.policy.permits(path, READ):
            raise self._deny(
                SFTPForbidden, 'Read', path,
                'access denied: read not allowed from this path'
            )

        return ReadHandle(path, self.pricelist.download(self.identity, path))

    def open_write(self, path):
        """Return a WriteHandle that uploads its content on close."""
        path = self._allowed_path('Write', path)
        logger.info("Writing file: %s for user: %s",
                    path, self.identity.username)

        if not self.policy.permits(path, WRITE):
            raise self._deny(
                SFTPForbidden, 'Write', path,
                'access denied: write not allowed to this path'
            )

        if container(path) == INCOMING_DIR:
            if posixpath.dirname(path) != INCOMING_DIR:
                raise self._deny(
                    SFTPForbidden, 'Write', path,
                    'access denied: /in/ has no subdirectories'
                )
            return WriteHandle(
                path, self._incoming_flusher(path), limit=self.size_limit)

        return WriteHandle(
            path, self._pricelist_flusher(path), limit=self.upload_limit)

    def _incoming_flusher(self, path):
        filename = posixpath.basename(path)

        def flush(content):
            logger.info("Forwarding %s (%d bytes) for user: %s",
                        path, len(content), self.identity.username)
            self.incoming.store(self.identity, filename, content)

        return flush

    def _pricelist_flusher(self, path):
        def flush(content):
            logger.info("Uploading %s (%d bytes) for user: %s",
                        path, len(content), self.identity.username)
            self.pricelist.upload(self.identity, path, content)

        return flush

    def listdir(self, path):
        """Return the Entries of directory path."""
        path = self._allowed_path('List', path)
        logger.info("Listing directory: %s for user: %s",
                    path, self.identity.username)

        if not self.policy.permits(path, LIST):
            raise self._deny(
                SFTPForbidden, 'List', path,
                'access denied: listing not allowed'
            )

        if path == ROOT:
            return [self._synthesized(d) for d in TOP_LEVEL_DIRS]

        if top_level(path) == INCOMING_DIR:
            if path != INCOMING_DIR:
                raise self._deny(
                    SFTPNotAccessible, 'List', path,
                    'access denied: /in/ has no subdirectories'
                )
            return self.incoming.list(self.identity)

        return self.pricelist.list(self.identity, path)

    def getattr(self, path):
        """Return the Entry for path.

        The root and the top level directories are synthesized, so
        changing into them works even when a backend is down.
        """
        path = self._allowed_path('Stat', path)

        if path == ROOT or path in TOP_LEVEL_DIRS:
            return self._synthesized(path)

        if top_level(path) == INCOMING_DIR:
            raise self._deny(
                SFTPNotAccessible, 'Stat', path,
                'access denied: files in /in/ are not accessible'
            )

        return self.pricelist.metadata(self.identity, path)

    def command(self, method, path):
        """Run a namespace-changing command (remove, rename, mkdir...)."""
        path = self._allowed_path(method.capitalize(), path)
        logger.info("File command: %s %s for user: %s",
                    method, path, self.identity.username)

        if method in _FORBIDDEN_COMMANDS:
            raise self._deny(
                SFTPForbidden, method.capitalize(), path,
                _FORBIDDEN_COMMANDS[method]
            )

        if method == MKDIR:
            if not self.policy.permits(path, MKDIR):
                raise self._deny(
                    SFTPForbidden, 'Mkdir', path,
                    'access denied: directory creation not allowed '
                    'in this location'
                )
            return self.pricelist.mkdir(self.identity, path)

        raise SFTPUnsupported('operation %s not supported' % method)

    # SFTPAbstractServerStorage

    def verify(self, filename):
        """Normalize filename and check it lies inside the namespace."""
        path = normalize(filename)
        if not self.policy.is_allowed(path):
            raise self._deny(
                SFTPForbidden, 'Access', path, 'access denied: path not allowed')
        return path

    def realpath(self, filename):
        """Canonicalize lexically, without asking any backend."""
        path = self.verify(filename)
        if path == ROOT or path in TOP_LEVEL_DIRS:
            return self._synthesized(path)
        return file_entry(posixpath.basename(path), 0, self._mtime)

    def stat(self, filename, lstat=False, fstat=False):
        if fstat:
            # filename is an handle
            return filename.stat()
        return self.getattr(filename)

    def setstat(self, filename, attrs, fsetstat=False):
        self.command(SETSTAT, filename.path if fsetstat else filename)

    def opendir(self, filename):
        return DirectoryHandle(filename, self.listdir(filename))

    def open(self, filename, flags, mode):
        if flags & (os.O_WRONLY | os.O_RDWR):
            return self.open_write(filename)
        return self.open_read(filename)

    def mkdir(self, filename, mode):
        self.command(MKDIR, filename)

    def rmdir(self, filename):
        self.command(RMDIR, filename)

    def rm(self, filename):
        self.command(REMOVE, filename)

    def rename(self, oldpath, newpath):
        self.command(RENAME, oldpath)

    def symlink(self, linkpath, targetpath):
        self.command(SYMLINK, linkpath)

    def readlink(self, filename):
        self.command(READLINK, filename)

    def write(self, handle, off, chunk):
        if not isinstance(handle, WriteHandle):
            raise SFTPForbidden('handle not opened for writing')
        handle.write_at(off, chunk)
        return True

    def read(self, handle, off, size):
        if not isinstance(handle, ReadHandle):
            raise SFTPForbidden('handle not opened for reading')
        return handle.read_at(off, size)

    def close(self, handle):
        handle.close()

    def abort(self, handle):
        if isinstance(handle, WriteHandle):
            handle.discard()
        else:
            handle.close()
