"""Handles bridging streamed SFTP reads and writes to discrete backend calls."""

import logging
import posixpath

from sftpgateway.exceptions import SFTPSizeLimitExceeded
from sftpgateway.models import directory_entry, file_entry
from sftpgateway.policy import normalize

logger = logging.getLogger(__name__)


class WriteBuffer:
    """A growable byte buffer filled by offset.

    Chunks may arrive in any order; the buffer grows to the highest
    offset touched and gaps stay zero-filled until written.
    """

    def __init__(self):
        self._data = bytearray()

    def write_at(self, offset, chunk):
        end = offset + len(chunk)
        if end > len(self._data):
            self._data.extend(bytes(end - len(self._data)))
        self._data[offset:end] = chunk
        return len(chunk)

    def getvalue(self):
        return bytes(self._data)

    def __len__(self):
        return len(self._data)


class ReadHandle:
    """Serve offset reads from content downloaded in one backend call."""

    def __init__(self, path, data):
        self.path = path
        self.data = data

    def read_at(self, offset, size):
        return self.data[offset:offset + size]

    def stat(self):
        return file_entry(posixpath.basename(self.path), len(self.data))

    def close(self):
        self.data = b''


class WriteHandle:
    """Own the buffer of one upload and flush it exactly once on close.

    flush receives the complete content as bytes. Nothing reaches the
    backend before close, and a handle that is discarded (the session
    went away) never flushes.
    """

    def __init__(self, path, flush, limit=None):
        self.path = path
        self.limit = limit
        self.closed = False
        self.oversized = False
        self._flush = flush
        self._buffer = WriteBuffer()

    def write_at(self, offset, chunk):
        if self.closed:
            raise ValueError('write to a closed handle: %s' % self.path)
        if self.limit is not None and offset + len(chunk) > self.limit:
            self.oversized = True
            raise SFTPSizeLimitExceeded(
                'file size exceeds %d bytes limit' % self.limit)
        return self._buffer.write_at(offset, chunk)

    def close(self):
        if self.closed:
            return
        self.closed = True
        content = self._buffer.getvalue()
        self._buffer = None
        if self.oversized:
            raise SFTPSizeLimitExceeded(
                'file size exceeds %d bytes limit' % self.limit)
        if not content:
            logger.info('Nothing written to %s, skipping upload', self.path)
            return
        self._flush(content)

    def discard(self):
        """Drop buffered content without flushing."""
        if not self.closed:
            logger.info('Discarding unflushed upload to %s', self.path)
        self.closed = True
        self._buffer = None

    def stat(self):
        size = len(self._buffer) if self._buffer is not None else 0
        return file_entry(posixpath.basename(self.path), size)


class DirectoryHandle:
    """Iterate once over the entries of a listing."""

    def __init__(self, path, entries):
        self.path = path
        self._entries = iter(entries)

    def stat(self):
        return directory_entry(posixpath.basename(normalize(self.path)) or '/')

    def __iter__(self):
        return self

    def __next__(self):
        return next(self._entries)

    def close(self):
        self._entries = iter(())
