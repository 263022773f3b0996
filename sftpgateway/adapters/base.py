"""Storage adapter contracts.

Adapters are shared by every session, so they hold no per-user state:
the identity travels with each call. A capability an adapter does not
have answers with SFTPUnsupported.
"""

from sftpgateway.exceptions import SFTPUnsupported


class PricelistStorage:
    """Contract for the store behind the pricelist directory.

    Paths are normalized virtual paths (e.g. '/Hinnat/salhydro_kaikki.zip').
    """

    def download(self, identity, path):
        """Return the full content of path as bytes."""
        raise SFTPUnsupported('download is not supported by this storage')

    def upload(self, identity, path, content):
        """Store content at path, all or nothing."""
        raise SFTPUnsupported('upload is not supported by this storage')

    def list(self, identity, path):
        """Return the Entries of directory path, ordered by name."""
        raise SFTPUnsupported('listing is not supported by this storage')

    def exists(self, identity, path):
        raise SFTPUnsupported('existence checks are not supported by this storage')

    def metadata(self, identity, path):
        """Return the Entry describing path."""
        raise SFTPUnsupported('metadata lookup is not supported by this storage')

    def mkdir(self, identity, path):
        raise SFTPUnsupported('directory creation is not supported by this storage')


class IncomingStorage:
    """Contract for the store receiving uploads to the incoming directory."""

    def store(self, identity, filename, content):
        """Accept content uploaded as filename."""
        raise SFTPUnsupported('storing is not supported by this storage')

    def list(self, identity):
        """Return the Entries retained for identity, ordered by name."""
        raise SFTPUnsupported('listing is not supported by this storage')
