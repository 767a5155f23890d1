from unittest import TestCase

from aionegotiate import (
    NegotiationConfiguration,
    NegotiationRole,
    role_from_identifiers,
)


class NegotiationConfigurationTest(TestCase):
    def test_defaults(self):
        configuration = NegotiationConfiguration()
        self.assertEqual(configuration.role, NegotiationRole.RESPONDER_PREFERRED)
        self.assertTrue(configuration.initiate)

    def test_polite(self):
        self.assertFalse(NegotiationRole.INITIATOR_PREFERRED.polite)
        self.assertTrue(NegotiationRole.RESPONDER_PREFERRED.polite)


class RoleFromIdentifiersTest(TestCase):
    def test_opposite_roles(self):
        self.assertEqual(
            role_from_identifiers("alice", "bob"), NegotiationRole.INITIATOR_PREFERRED
        )
        self.assertEqual(
            role_from_identifiers("bob", "alice"), NegotiationRole.RESPONDER_PREFERRED
        )

    def test_same_identifier(self):
        with self.assertRaises(ValueError) as cm:
            role_from_identifiers("alice", "alice")
        self.assertEqual(
            str(cm.exception), "Peer identifiers must differ (got 'alice' twice)"
        )
