import unittest

import bcrypt
import sqlalchemy as sql

from sftpgateway.adapters.database import (DatabaseIncomingStorage,
                                           IncomingFileModel, UserModel,
                                           create_engine, create_tables)
from sftpgateway.auth import DatabaseAuthenticator
from sftpgateway.exceptions import AuthenticationError, SFTPBackendUnavailable
from sftpgateway.models import Identity


def add_user(engine, username, password, is_active=True):
    password_hash = bcrypt.hashpw(password.encode(), bcrypt.gensalt(4))
    with engine.begin() as conn:
        conn.execute(UserModel.__table__.insert().values(
            username=username,
            password_hash=password_hash.decode(),
            is_active=is_active
        ))


class DatabaseTestCase(unittest.TestCase):

    def setUp(self):
        self.engine = create_engine('sqlite://')
        create_tables(self.engine)
        add_user(self.engine, 'alice', 'wonderland')
        add_user(self.engine, 'bob', 'builder')

    def tearDown(self):
        self.engine.dispose()


class DatabaseIncomingStorageTest(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.storage = DatabaseIncomingStorage(self.engine)
        self.alice = Identity('alice', 'token')

    def rows(self):
        table = IncomingFileModel.__table__
        with self.engine.connect() as conn:
            return conn.execute(
                sql.select(table.c.username, table.c.filename,
                           table.c.file_content, table.c.file_size)
                .order_by(table.c.id)
            ).all()

    def test_store(self):
        self.storage.store(self.alice, 'order.txt', b'hello')
        rows = self.rows()
        self.assertEqual(len(rows), 1)
        self.assertEqual(tuple(rows[0]), ('alice', 'order.txt', b'hello', 5))

    def test_store_replaces(self):
        self.storage.store(self.alice, 'order.txt', b'first')
        self.storage.store(self.alice, 'order.txt', b'second version')
        rows = self.rows()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].file_content, b'second version')
        self.assertEqual(rows[0].file_size, 14)

    def test_binary_content(self):
        content = bytes(range(256))
        self.storage.store(self.alice, 'blob.bin', content)
        self.assertEqual(self.rows()[0].file_content, content)

    def test_list(self):
        self.storage.store(self.alice, 'b.txt', b'bb')
        self.storage.store(self.alice, 'a.txt', b'a')
        self.storage.store(Identity('bob', 'token'), 'c.txt', b'ccc')

        entries = self.storage.list(self.alice)
        self.assertEqual([e.name for e in entries], ['a.txt', 'b.txt'])
        self.assertEqual([e.size for e in entries], [1, 2])
        self.assertFalse(any(e.is_dir for e in entries))
        self.assertGreater(entries[0].mtime, 0)

    def test_list_empty(self):
        self.assertEqual(self.storage.list(Identity('carol', 'x')), [])

    def test_unavailable(self):
        IncomingFileModel.__table__.drop(self.engine)
        self.assertRaises(SFTPBackendUnavailable, self.storage.store,
                          self.alice, 'order.txt', b'x')
        self.assertRaises(SFTPBackendUnavailable, self.storage.list,
                          self.alice)


class DatabaseAuthenticatorTest(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.authenticator = DatabaseAuthenticator(self.engine)

    def test_success(self):
        identity = self.authenticator.authenticate('alice', 'wonderland')
        self.assertEqual(identity.username, 'alice')
        self.assertTrue(identity.credential)
        self.assertNotEqual(identity.credential, 'wonderland')

    def test_fresh_credential_per_login(self):
        first = self.authenticator.authenticate('bob', 'builder')
        second = self.authenticator.authenticate('bob', 'builder')
        self.assertNotEqual(first.credential, second.credential)

    def test_wrong_password(self):
        self.assertRaises(AuthenticationError,
                          self.authenticator.authenticate, 'alice', 'nope')

    def test_unknown_user(self):
        self.assertRaises(AuthenticationError,
                          self.authenticator.authenticate, 'mallory', 'x')

    def test_inactive_user(self):
        add_user(self.engine, 'carol', 'secret', is_active=False)
        self.assertRaises(AuthenticationError,
                          self.authenticator.authenticate, 'carol', 'secret')

    def test_malformed_hash(self):
        with self.engine.begin() as conn:
            conn.execute(UserModel.__table__.insert().values(
                username='dave', password_hash='plaintext'))
        self.assertRaises(AuthenticationError,
                          self.authenticator.authenticate, 'dave', 'plaintext')

    def test_identity_repr_hides_credential(self):
        identity = self.authenticator.authenticate('alice', 'wonderland')
        self.assertNotIn(identity.credential, repr(identity))


if __name__ == "__main__":
    unittest.main()
