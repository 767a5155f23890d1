from unittest import TestCase

from aionegotiate import (
    OperationError,
    SignalingEnvelope,
    envelope_from_string,
    envelope_to_string,
)


class SignalingEnvelopeTest(TestCase):
    def test_bad_type(self):
        with self.assertRaises(ValueError) as cm:
            SignalingEnvelope(type="bye", data=None)
        self.assertEqual(
            str(cm.exception),
            "'type' must be in ['offer', 'answer', 'ice'] (got 'bye')",
        )

    def test_good_type(self):
        envelope = SignalingEnvelope(type="ice", data={"candidate": ""})
        self.assertEqual(envelope.type, "ice")
        self.assertEqual(envelope.data, {"candidate": ""})


class EnvelopeCodecTest(TestCase):
    def test_offer_from_string(self):
        envelope = envelope_from_string(
            '{"type": "offer", "data": {"type": "offer", "sdp": "v=0\\r\\n"}}'
        )
        self.assertEqual(
            envelope,
            SignalingEnvelope(type="offer", data={"sdp": "v=0\r\n", "type": "offer"}),
        )

    def test_ice_to_string(self):
        envelope = SignalingEnvelope(
            type="ice",
            data={
                "candidate": "candidate:0 1 UDP 2122252543 192.168.99.7 33543 typ host",
                "sdpMLineIndex": 0,
                "sdpMid": "0",
            },
        )
        self.assertEqual(
            envelope_to_string(envelope),
            '{"data": {"candidate": "candidate:0 1 UDP 2122252543 192.168.99.7 '
            '33543 typ host", "sdpMLineIndex": 0, "sdpMid": "0"}, "type": "ice"}',
        )

    def test_invalid_json(self):
        with self.assertRaises(OperationError) as cm:
            envelope_from_string("{")
        self.assertTrue(str(cm.exception).startswith("Envelope is not valid JSON"))

    def test_missing_data(self):
        with self.assertRaises(OperationError) as cm:
            envelope_from_string('{"type": "offer"}')
        self.assertEqual(
            str(cm.exception), "Envelope must be an object with 'type' and 'data'"
        )

    def test_not_an_object(self):
        with self.assertRaises(OperationError):
            envelope_from_string('["offer"]')

    def test_unknown_type(self):
        with self.assertRaises(OperationError) as cm:
            envelope_from_string('{"type": "bye", "data": null}')
        self.assertEqual(
            str(cm.exception),
            "'type' must be in ['offer', 'answer', 'ice'] (got 'bye')",
        )
