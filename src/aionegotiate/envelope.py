import json
from dataclasses import dataclass
from typing import Any

from .exceptions import OperationError

ENVELOPE_TYPES = ["offer", "answer", "ice"]


@dataclass
class SignalingEnvelope:
    """
    The :class:`SignalingEnvelope` is the unit exchanged over a signaling
    channel.

    Its `data` is passed through untouched between the media binding and the
    wire: a session description for `"offer"` and `"answer"`, an ICE
    candidate for `"ice"`.
    """

    type: str
    "One of `\"offer\"`, `\"answer\"` or `\"ice\"`."
    data: Any
    "The payload, opaque to the negotiation engine."

    def __post_init__(self) -> None:
        if self.type not in ENVELOPE_TYPES:
            raise ValueError(
                f"'type' must be in {ENVELOPE_TYPES} (got '{self.type}')"
            )


def envelope_from_string(message_str: str) -> SignalingEnvelope:
    try:
        message = json.loads(message_str)
    except ValueError as exc:
        raise OperationError(f"Envelope is not valid JSON: {exc}") from exc

    if not isinstance(message, dict) or "data" not in message:
        raise OperationError("Envelope must be an object with 'type' and 'data'")
    try:
        return SignalingEnvelope(type=message.get("type"), data=message["data"])
    except ValueError as exc:
        raise OperationError(str(exc)) from exc


def envelope_to_string(envelope: SignalingEnvelope) -> str:
    return json.dumps({"data": envelope.data, "type": envelope.type}, sort_keys=True)
