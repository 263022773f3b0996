"""Plain value types shared by the dispatcher, adapters and authenticators."""

from collections import namedtuple
import time


class Identity(namedtuple('Identity', ['username', 'credential'])):
    """The authenticated principal of one session."""
    __slots__ = ()

    def __repr__(self):
        # keep the credential out of logs
        return 'Identity(username=%r)' % self.username


Entry = namedtuple('Entry', ['name', 'size', 'mtime', 'is_dir'])


def directory_entry(name, mtime=None):
    """Synthesize a directory entry."""
    return Entry(name, 0, int(time.time()) if mtime is None else mtime, True)


def file_entry(name, size, mtime=None):
    return Entry(name, size, int(time.time()) if mtime is None else mtime, False)
