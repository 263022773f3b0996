import unittest

from sftpgateway.exceptions import SFTPForbidden
from sftpgateway.policy import (INCOMING_DIR, LIST, MKDIR, PRICELIST_DIR,
                                READ, ROOT, WRITE, DirectoryPolicy,
                                container, normalize, top_level)


class NormalizeTest(unittest.TestCase):

    def test_root_forms(self):
        for path in ('', '.', '/', '//', b'.', b'/', '/..', '../..'):
            self.assertEqual(normalize(path), ROOT)

    def test_relative_paths_are_rooted(self):
        self.assertEqual(normalize('in/order.csv'), '/in/order.csv')
        self.assertEqual(normalize(b'Hinnat'), '/Hinnat')

    def test_dot_segments(self):
        self.assertEqual(normalize('/in/../Hinnat/./x'), '/Hinnat/x')
        self.assertEqual(normalize('/in/../../etc/passwd'), '/etc/passwd')
        self.assertEqual(normalize('/Hinnat/'), '/Hinnat')

    def test_invalid_encoding(self):
        self.assertRaises(SFTPForbidden, normalize, b'/in/\xff\xfe')


class DirectoryPolicyTest(unittest.TestCase):

    def test_top_level(self):
        self.assertEqual(top_level('/'), ROOT)
        self.assertEqual(top_level('/in'), INCOMING_DIR)
        self.assertEqual(top_level('/in/a/b'), INCOMING_DIR)
        self.assertEqual(top_level('/Hinnat/x'), PRICELIST_DIR)
        self.assertIsNone(top_level('/etc/passwd'))
        self.assertIsNone(top_level('/inbox'))
        self.assertIsNone(top_level('/Hinnatx'))

    def test_container(self):
        self.assertEqual(container('/in'), ROOT)
        self.assertEqual(container('/in/a'), INCOMING_DIR)
        self.assertEqual(container('/Hinnat'), ROOT)

    def test_is_allowed(self):
        policy = DirectoryPolicy()
        self.assertTrue(policy.is_allowed('/'))
        self.assertTrue(policy.is_allowed('/in/order.csv'))
        self.assertFalse(policy.is_allowed('/etc'))

    def test_read_only_pricelist(self):
        policy = DirectoryPolicy()
        self.assertEqual(policy.operations(ROOT), {LIST})
        self.assertEqual(policy.operations(INCOMING_DIR), {LIST, WRITE})
        self.assertEqual(policy.operations(PRICELIST_DIR), {LIST, READ})

        self.assertTrue(policy.permits('/', LIST))
        self.assertTrue(policy.permits('/in', LIST))
        self.assertTrue(policy.permits('/in/order.csv', WRITE))
        self.assertFalse(policy.permits('/in/order.csv', READ))
        self.assertTrue(policy.permits('/Hinnat/salhydro_kaikki.zip', READ))
        self.assertFalse(policy.permits('/Hinnat/salhydro_kaikki.zip', WRITE))
        self.assertFalse(policy.permits('/Hinnat/new', MKDIR))
        self.assertFalse(policy.permits('/newfile', WRITE))

    def test_writable_pricelist(self):
        policy = DirectoryPolicy(pricelist_writable=True)
        self.assertEqual(policy.operations(PRICELIST_DIR),
                         {LIST, READ, WRITE, MKDIR})
        self.assertTrue(policy.permits('/Hinnat/salhydro_kaikki.zip', WRITE))
        self.assertTrue(policy.permits('/Hinnat/archive', MKDIR))
        self.assertFalse(policy.permits('/Hinnat', MKDIR))
        self.assertFalse(policy.permits('/in/sub', MKDIR))

    def test_unknown_directory(self):
        self.assertEqual(DirectoryPolicy().operations('/etc'), frozenset())


if __name__ == "__main__":
    unittest.main()
