import os
import shutil
import stat
import tempfile
import threading
import unittest
import logging

import paramiko

from sftpgateway.policy import DirectoryPolicy
from sftpgateway.tests.utils import *
from sftpgateway.transport import (GatewaySSHServer, GatewayServer,
                                   load_or_create_host_key)

# attach existing loggers (use -p no:logging to see output)
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(levelname)s - %(message)s'
)

USERS = {'alice': 'wonderland'}


class HostKeyTest(unittest.TestCase):

    def test_create_then_load(self):
        tmpdir = tempfile.mkdtemp()
        try:
            path = os.path.join(tmpdir, 'host_key')
            key = load_or_create_host_key(path)
            self.assertEqual(stat.S_IMODE(os.stat(path).st_mode), 0o600)
            self.assertEqual(key.get_bits(), 2048)
            self.assertEqual(load_or_create_host_key(path).get_fingerprint(),
                             key.get_fingerprint())
        finally:
            shutil.rmtree(tmpdir)


class SSHServerTest(unittest.TestCase):

    def setUp(self):
        self.server = GatewaySSHServer(StaticAuthenticator(USERS))

    def test_password_only(self):
        self.assertEqual(self.server.get_allowed_auths('alice'), 'password')

    def test_check_auth_password(self):
        self.assertEqual(self.server.check_auth_password('alice', 'nope'),
                         paramiko.AUTH_FAILED)
        self.assertIsNone(self.server.identity)
        self.assertEqual(
            self.server.check_auth_password('alice', 'wonderland'),
            paramiko.AUTH_SUCCESSFUL)
        self.assertEqual(self.server.identity.username, 'alice')

    def test_session_channels_only(self):
        self.assertEqual(self.server.check_channel_request('session', 1),
                         paramiko.OPEN_SUCCEEDED)
        self.assertEqual(
            self.server.check_channel_request('direct-tcpip', 2),
            paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED)


class GatewayServerTest(unittest.TestCase):
    """Drive a live gateway with the paramiko SFTP client."""

    @classmethod
    def setUpClass(cls):
        cls.pricelist = MemoryPricelistStorage()
        cls.incoming = MemoryIncomingStorage()
        cls.gateway = GatewayServer(
            '127.0.0.1', 0,
            paramiko.RSAKey.generate(2048),
            StaticAuthenticator(USERS),
            cls.pricelist,
            cls.incoming,
            DirectoryPolicy()
        )
        cls.gateway.listen()
        cls.port = cls.gateway.address[1]
        cls.thread = threading.Thread(target=cls.gateway.serve_forever,
                                      name="server")
        cls.thread.start()

    @classmethod
    def tearDownClass(cls):
        cls.gateway.stop()
        cls.thread.join(10)

    def setUp(self):
        self.transport = paramiko.Transport(('127.0.0.1', self.port))
        self.transport.connect(username='alice', password='wonderland')
        self.sftp = paramiko.SFTPClient.from_transport(self.transport)

    def tearDown(self):
        self.sftp.close()
        self.transport.close()

    def test_wrong_password(self):
        transport = paramiko.Transport(('127.0.0.1', self.port))
        try:
            self.assertRaises(paramiko.AuthenticationException,
                              transport.connect,
                              username='alice', password='wrong')
        finally:
            transport.close()

    def test_listdir_root(self):
        self.assertEqual(self.sftp.listdir('/'), ['in', 'Hinnat'])
        self.assertEqual(self.sftp.listdir('.'), ['in', 'Hinnat'])

    def test_channels_stay_open(self):
        second = paramiko.SFTPClient.from_transport(self.transport)
        try:
            self.assertEqual(second.listdir('/Hinnat'),
                             ['salhydro_kaikki.zip'])
            self.assertEqual(self.sftp.listdir('/'), ['in', 'Hinnat'])
            self.assertEqual(second.listdir('/'), ['in', 'Hinnat'])
        finally:
            second.close()

    def test_chdir(self):
        self.sftp.chdir('/Hinnat')
        self.assertEqual(self.sftp.getcwd(), '/Hinnat')
        self.assertEqual(self.sftp.listdir(), ['salhydro_kaikki.zip'])

    def test_download(self):
        with self.sftp.open('/Hinnat/salhydro_kaikki.zip') as f:
            self.assertEqual(f.read(), PRICELIST_DATA)
        self.assertEqual(self.sftp.stat('/Hinnat/salhydro_kaikki.zip').st_size,
                         len(PRICELIST_DATA))

    def test_upload(self):
        with self.sftp.open('/in/order.txt', 'w') as f:
            f.write(b'hello')
        self.assertEqual(self.incoming.files[('alice', 'order.txt')],
                         b'hello')

    def test_upload_too_big(self):
        f = self.sftp.open('/in/big.bin', 'w', bufsize=0)
        self.assertRaises(IOError, f.write, b'x' * 200000)
        f.close()
        self.assertNotIn(('alice', 'big.bin'), self.incoming.files)
        # the session survives the failure
        self.assertEqual(self.sftp.listdir('/'), ['in', 'Hinnat'])

    def test_denied(self):
        self.assertRaises(IOError, self.sftp.open, '/in/order.txt')
        self.assertRaises(IOError, self.sftp.remove,
                          '/Hinnat/salhydro_kaikki.zip')
        self.assertRaises(IOError, self.sftp.rename, '/in/a', '/in/b')
        self.assertRaises(IOError, self.sftp.rmdir, '/in')
        self.assertRaises(IOError, self.sftp.mkdir, '/Hinnat/new')
        self.assertRaises(IOError, self.sftp.listdir, '/etc')
        self.assertTrue(stat.S_ISDIR(self.sftp.stat('/in').st_mode))


if __name__ == "__main__":
    unittest.main()
