"""An SFTP gateway exposing a restricted virtual filesystem."""

__version__ = '1.0.0'
