"""Abstract SFTP storage, the interface the server drives. Subclass it!"""

from sftpgateway.exceptions import SFTPUnsupported


class SFTPAbstractServerStorage:
    """Abstract per-session storage. Subclass it and override the methods.

    Every method not overridden answers with SFTPUnsupported,
    which the server reports as SSH2_FX_OP_UNSUPPORTED.
    """

    def verify(self, filename):
        """Verify that the user may address filename at all.

        Return the (normalized) filename or raise SFTPForbidden.
        """
        return filename

    def realpath(self, filename):
        """Return the Entry to report for a canonicalized filename."""
        raise SFTPUnsupported()

    def stat(self, filename, lstat=False, fstat=False):
        """stat, lstat and fstat requests.

        Return an Entry.
        Filename is an handle in the fstat variant.
        """
        raise SFTPUnsupported()

    def setstat(self, filename, attrs, fsetstat=False):
        """setstat and fsetstat requests.

        Filename is an handle in the fsetstat variant.
        """
        raise SFTPUnsupported()

    def opendir(self, filename):
        """Return an iterator over the Entries in filename."""
        raise SFTPUnsupported()

    def open(self, filename, flags, mode):
        """Return the file handle."""
        raise SFTPUnsupported()

    def mkdir(self, filename, mode):
        """Create directory with given mode."""
        raise SFTPUnsupported()

    def rmdir(self, filename):
        """Remove directory."""
        raise SFTPUnsupported()

    def rm(self, filename):
        """Remove file."""
        raise SFTPUnsupported()

    def rename(self, oldpath, newpath):
        """Move/rename file."""
        raise SFTPUnsupported()

    def symlink(self, linkpath, targetpath):
        """Symlink file."""
        raise SFTPUnsupported()

    def readlink(self, filename):
        """Readlink of filename."""
        raise SFTPUnsupported()

    def write(self, handle, off, chunk):
        """Write chunk at offset of handle."""
        raise SFTPUnsupported()

    def read(self, handle, off, size):
        """Read from the handle size, starting from offset off."""
        raise SFTPUnsupported()

    def close(self, handle):
        """Close the file handle."""
        return

    def abort(self, handle):
        """Drop a handle left open when the session ended."""
        return
