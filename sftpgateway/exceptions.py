"""SFTP Exceptions."""


class SFTPException(Exception):

    def __init__(self, msg=None):
        super().__init__(msg)
        self.msg = msg


class SFTPForbidden(SFTPException):
    pass


class SFTPWriteOnly(SFTPForbidden):
    """Read attempted inside a write-only directory."""


class SFTPNotAccessible(SFTPForbidden):
    """The path exists in the namespace but cannot be inspected."""


class SFTPNotFound(SFTPException):
    pass


class SFTPSizeLimitExceeded(SFTPException):
    pass


class SFTPBackendUnavailable(SFTPException):
    pass


class SFTPUnsupported(SFTPException):
    pass


class AuthenticationError(Exception):
    pass


class ConfigError(ValueError):
    pass
