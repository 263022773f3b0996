"""SSH transport: paramiko server, sftp subsystem and the accept loop."""

import logging
import os
import select
import socket
import threading

import paramiko

from sftpgateway.exceptions import AuthenticationError
from sftpgateway.server import SFTPServer
from sftpgateway.vfs import SFTPServerVirtualFilesystem

logger = logging.getLogger(__name__)

HOST_KEY_BITS = 2048


def load_or_create_host_key(path):
    """Load the RSA host key at path, generating it on first start."""
    if os.path.exists(path):
        logger.info("Loading host key from %s", path)
        return paramiko.RSAKey.from_private_key_file(path)

    logger.info("Generating new %d bit RSA host key at %s",
                HOST_KEY_BITS, path)
    key = paramiko.RSAKey.generate(HOST_KEY_BITS)
    key.write_private_key_file(path)
    os.chmod(path, 0o600)
    return key


class GatewaySSHServer(paramiko.ServerInterface):
    """Per-connection paramiko server: password logins and session channels.

    After a successful login the Identity is kept in self.identity.
    """

    def __init__(self, authenticator, address=None):
        self.authenticator = authenticator
        self.address = address
        self.identity = None

    def get_allowed_auths(self, username):
        return 'password'

    def check_auth_password(self, username, password):
        try:
            self.identity = self.authenticator.authenticate(username, password)
        except AuthenticationError as e:
            logger.warning("Authentication failed for user %s from %s: %s",
                           username, self.address, e)
            return paramiko.AUTH_FAILED
        logger.info("User %s logged in from %s", username, self.address)
        return paramiko.AUTH_SUCCESSFUL

    def check_channel_request(self, kind, chanid):
        if kind == 'session':
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED


class SFTPGatewayHandler(paramiko.SubsystemHandler):
    """Run the SFTP engine over the channel of an authenticated session."""

    def __init__(self, channel, name, server, pricelist_storage,
                 incoming_storage, directory_policy=None, **kwargs):
        super().__init__(channel, name, server)
        self.pricelist_storage = pricelist_storage
        self.incoming_storage = incoming_storage
        self.directory_policy = directory_policy
        self.storage_kwargs = kwargs

    def start_subsystem(self, name, transport, channel):
        identity = self.get_server().identity
        if identity is None:
            logger.error("sftp subsystem requested without authentication")
            channel.close()
            return

        logger.info("SFTP session started for user %s", identity.username)
        storage = SFTPServerVirtualFilesystem(
            identity,
            self.pricelist_storage,
            self.incoming_storage,
            directory_policy=self.directory_policy,
            **self.storage_kwargs
        )
        try:
            SFTPServer(storage, owner=identity.username).serve(channel)
        except (EOFError, socket.error) as e:
            logger.info("SFTP channel for user %s closed: %s",
                        identity.username, e)
        finally:
            logger.info("SFTP session ended for user %s", identity.username)


class GatewayServer:
    """Accept SSH connections and serve each one in its own thread."""

    def __init__(self, host, port, host_key, authenticator,
                 pricelist_storage, incoming_storage, directory_policy=None,
                 **storage_kwargs):
        self.host = host
        self.port = port
        self.host_key = host_key
        self.authenticator = authenticator
        self.subsystem_args = (pricelist_storage, incoming_storage,
                               directory_policy)
        self.storage_kwargs = storage_kwargs
        self.sock = None
        self.event = threading.Event()
        self.transports = set()
        self.lock = threading.Lock()

    @property
    def address(self):
        return self.sock.getsockname() if self.sock else None

    def listen(self):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setblocking(0)
        sock.bind((self.host, self.port))
        sock.listen(100)
        self.sock = sock
        logger.info("SFTP gateway listening on %s:%d", *self.address[:2])

    def serve_forever(self):
        if self.sock is None:
            self.listen()

        try:
            while not self.event.is_set():
                ready_to_read, _, _ = select.select([self.sock], [], [], 1)
                if self.sock not in ready_to_read:
                    continue
                try:
                    client_socket, address = self.sock.accept()
                except BlockingIOError:
                    continue
                client_socket.setblocking(1)
                logger.info("New connection from %s", address)
                t = threading.Thread(
                    target=self.handle_connection,
                    args=(client_socket, address),
                    name='sftp-%s:%d' % address[:2]
                )
                t.daemon = True
                t.start()
        finally:
            self.sock.close()
            self.sock = None

    def handle_connection(self, client_socket, address):
        ts = paramiko.Transport(client_socket)
        ts.add_server_key(self.host_key)
        ts.set_subsystem_handler(
            'sftp', SFTPGatewayHandler,
            *self.subsystem_args, **self.storage_kwargs)

        with self.lock:
            self.transports.add(ts)
        try:
            ts.start_server(server=GatewaySSHServer(self.authenticator,
                                                    address))
            # paramiko only holds weak references to channels: an
            # accepted channel must stay referenced until we hang up
            channels = []
            while ts.is_active() and not self.event.is_set():
                chan = ts.accept(1)
                if chan is not None:
                    channels.append(chan)
        except (paramiko.SSHException, EOFError, socket.error) as e:
            logger.warning("Connection from %s failed: %s", address, e)
        finally:
            ts.close()
            with self.lock:
                self.transports.discard(ts)
            logger.info("Connection from %s closed", address)

    def stop(self):
        """Stop accepting and drop every open connection."""
        logger.info("Stopping SFTP gateway")
        self.event.set()
        with self.lock:
            transports = list(self.transports)
        for ts in transports:
            ts.close()
