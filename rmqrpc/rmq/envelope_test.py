"""Tests for the message envelope and payload codec."""

import unittest
from unittest.mock import Mock

from rmqrpc.rmq.envelope import CONTENT_TYPE, Envelope, decode_payload, encode_payload


class TestPayloadCodec(unittest.TestCase):
    """Tests for encode_payload / decode_payload."""

    def test_encode_is_utf8_json(self):
        """Test that payloads encode to UTF-8 JSON."""
        self.assertEqual(encode_payload({"name": "é"}), b'{"name": "\\u00e9"}')

    def test_decode_bytes_and_str(self):
        """Test that both bytes and str bodies decode."""
        self.assertEqual(decode_payload(b'{"a": 1}'), {"a": 1})
        self.assertEqual(decode_payload('"text"'), "text")

    def test_decode_invalid_raises_value_error(self):
        """Test that invalid JSON raises ValueError."""
        with self.assertRaises(ValueError):
            decode_payload(b"not json")

    def test_decode_invalid_utf8_raises_value_error(self):
        """Test that invalid UTF-8 raises ValueError."""
        with self.assertRaises(ValueError):
            decode_payload(b"\xff\xfe")


class TestEnvelope(unittest.TestCase):
    """Tests for Envelope."""

    def test_from_message_with_str_body(self):
        """Test building an envelope from a message with a str body."""
        message = Mock()
        message.body = '{"x": 1}'
        message.properties = {"reply_to": "amq.rabbitmq.reply-to.abc", "correlation_id": "cid"}
        message.method = {"routing_key": "invoice.create"}

        envelope = Envelope.from_message(message)

        self.assertEqual(envelope.routing_key, "invoice.create")
        self.assertEqual(envelope.payload, b'{"x": 1}')
        self.assertEqual(envelope.reply_to, "amq.rabbitmq.reply-to.abc")
        self.assertEqual(envelope.correlation_id, "cid")
        self.assertEqual(envelope.decode(), {"x": 1})

    def test_from_message_with_bytes_properties(self):
        """Test that bytes properties are decoded to str."""
        message = Mock()
        message.body = b""
        message.properties = {"correlation_id": b"cid"}
        message.method = {"routing_key": b"reply"}

        envelope = Envelope.from_message(message)

        self.assertTrue(envelope.is_empty)
        self.assertEqual(envelope.correlation_id, "cid")
        self.assertEqual(envelope.routing_key, "reply")
        self.assertIsNone(envelope.reply_to)

    def test_from_message_replaces_invalid_utf8_properties(self):
        """Test that invalid UTF-8 in properties is replaced, not raised."""
        message = Mock()
        message.body = "1"
        message.properties = {"reply_to": b"\xff\xfe", "correlation_id": b"ok\xff"}
        message.method = {"routing_key": "t"}

        envelope = Envelope.from_message(message)

        self.assertEqual(envelope.reply_to, "\ufffd\ufffd")
        self.assertEqual(envelope.correlation_id, "ok\ufffd")

    def test_from_message_without_properties(self):
        """Test building an envelope from a message with no properties."""
        message = Mock()
        message.body = None
        message.properties = None
        message.method = None

        envelope = Envelope.from_message(message)

        self.assertEqual(envelope.routing_key, "")
        self.assertTrue(envelope.is_empty)
        self.assertIsNone(envelope.correlation_id)

    def test_properties_for_request(self):
        """Test request properties carry reply_to and correlation_id."""
        envelope = Envelope("t", b"1", reply_to="replies", correlation_id="cid")

        self.assertEqual(
            envelope.properties(),
            {"content_type": CONTENT_TYPE, "reply_to": "replies", "correlation_id": "cid"},
        )

    def test_properties_for_notification(self):
        """Test notification properties carry only the content type."""
        envelope = Envelope("t", b"1")

        self.assertEqual(envelope.properties(), {"content_type": CONTENT_TYPE})


if __name__ == "__main__":
    unittest.main()
