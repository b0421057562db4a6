"""
Wire envelope and JSON payload codec.

An Envelope is the transport-neutral view of an AMQP message: routing key,
UTF-8 JSON body, and the optional reply_to / correlation_id properties.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

CONTENT_TYPE = "application/json"


def encode_payload(value: Any) -> bytes:
    """Serialize a JSON-representable value to UTF-8 bytes."""
    return json.dumps(value).encode("utf-8")


def decode_payload(payload: Union[bytes, str]) -> Any:
    """Parse a UTF-8 JSON body.

    Raises:
        ValueError: If the body is not valid JSON (json.JSONDecodeError
            and UnicodeDecodeError are both ValueError subclasses)
    """
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    return json.loads(payload)


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    return value or None


@dataclass(frozen=True)
class Envelope:
    """
    A message as seen by the dispatchers.

    Attributes:
        routing_key: Topic the message was published with
        payload: Raw body; empty for a reply with no content
        reply_to: Queue the sender consumes replies from
        correlation_id: Token pairing a reply with its request
    """
    routing_key: str
    payload: bytes
    reply_to: Optional[str] = None
    correlation_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return len(self.payload) == 0

    def decode(self) -> Any:
        return decode_payload(self.payload)

    @classmethod
    def from_message(cls, message) -> "Envelope":
        """
        Build an Envelope from an amqpstorm Message.

        amqpstorm hands out str or bytes depending on its auto_decode
        setting; both are accepted.
        """
        body = message.body
        if body is None:
            body = b""
        elif isinstance(body, str):
            body = body.encode("utf-8")

        properties = message.properties or {}
        method = message.method or {}

        return cls(
            routing_key=_as_str(method.get("routing_key")) or "",
            payload=bytes(body),
            reply_to=_as_str(properties.get("reply_to")),
            correlation_id=_as_str(properties.get("correlation_id")),
        )

    def properties(self) -> dict:
        """AMQP basic properties for publishing this envelope."""
        properties = {"content_type": CONTENT_TYPE}
        if self.reply_to:
            properties["reply_to"] = self.reply_to
        if self.correlation_id:
            properties["correlation_id"] = self.correlation_id
        return properties
