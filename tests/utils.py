import asyncio
import functools
import logging
import os
import sys
import unittest
from collections.abc import Callable, Coroutine
from typing import Any, Optional, TypeVar, cast

if sys.version_info >= (3, 10):
    from typing import ParamSpec
else:
    from typing_extensions import ParamSpec

from aionegotiate.binding import Candidate, Description, MediaBinding
from aionegotiate.envelope import SignalingEnvelope
from aionegotiate.exceptions import (
    InvalidStateError,
    OperationError,
    SignalingClosedError,
)
from aionegotiate.signaling import BaseSignaling

P = ParamSpec("P")
T = TypeVar("T")


class FakeTrack:
    def __init__(self, kind: str) -> None:
        self.kind = kind


class FakeMediaBinding(MediaBinding):
    """
    An in-memory media binding which enforces the same preconditions as a
    real peer connection and records every call made to it.
    """

    def __init__(self, name: str) -> None:
        super().__init__()
        self.name = name
        self.calls: list[tuple[str, Optional[str]]] = []
        self.candidates: list[Candidate] = []
        self.closed = False
        self.offer_gate: Optional[asyncio.Event] = None
        self.stuck = False
        self.tracks: list[FakeTrack] = []

        self._counter = 0
        self._local: Optional[Description] = None
        self._remote: Optional[Description] = None
        self._state = "stable"

    @property
    def signalingState(self) -> str:
        return self._state

    @property
    def localDescription(self) -> Optional[Description]:
        return self._local

    @property
    def remoteDescription(self) -> Optional[Description]:
        return self._remote

    def remote_description_count(self) -> int:
        return len([c for c in self.calls if c[0] == "setRemoteDescription"])

    async def createOffer(self) -> Description:
        self.calls.append(("createOffer", None))
        if self.offer_gate is not None:
            await self.offer_gate.wait()
        await asyncio.sleep(0)
        self._counter += 1
        return {"sdp": f"{self.name}-offer-{self._counter}", "type": "offer"}

    async def createAnswer(self) -> Description:
        self.calls.append(("createAnswer", None))
        await asyncio.sleep(0)
        if self._state != "have-remote-offer":
            raise OperationError(f"Cannot create answer in {self._state}")
        self._counter += 1
        return {"sdp": f"{self.name}-answer-{self._counter}", "type": "answer"}

    async def setLocalDescription(self, description: Description) -> None:
        self.calls.append(("setLocalDescription", description["type"]))
        await asyncio.sleep(0)
        self._check_not_closed()
        if description["type"] == "offer":
            if self._state not in ["stable", "have-local-offer"]:
                raise OperationError(f"Cannot set local offer in {self._state}")
            if not self.stuck:
                self._state = "have-local-offer"
        else:
            if self._state != "have-remote-offer":
                raise OperationError(f"Cannot set local answer in {self._state}")
            self._state = "stable"
        self._local = description

    async def setRemoteDescription(self, description: Description) -> None:
        kind = description.get("type") if isinstance(description, dict) else None
        self.calls.append(("setRemoteDescription", kind))
        await asyncio.sleep(0)
        self._check_not_closed()
        if not isinstance(description, dict) or not isinstance(
            description.get("sdp"), str
        ):
            raise OperationError(f"Malformed session description: {description!r}")

        if description.get("type") == "offer":
            if self._state != "stable":
                raise OperationError(f"Cannot set remote offer in {self._state}")
            self._state = "have-remote-offer"
        elif description.get("type") == "answer":
            if self._state != "have-local-offer":
                raise OperationError(f"Cannot set remote answer in {self._state}")
            self._state = "stable"
        else:
            raise OperationError(f"Malformed session description: {description!r}")
        self._remote = description

    async def rollback(self) -> None:
        self.calls.append(("rollback", None))
        if self._state != "have-local-offer":
            raise InvalidStateError(f"Cannot rollback in {self._state}")
        self._state = "stable"
        self._local = None

    async def addIceCandidate(self, candidate: Candidate) -> None:
        self.calls.append(("addIceCandidate", candidate.get("candidate")))
        if self._remote is None:
            raise InvalidStateError(
                "Cannot add ICE candidate without remote description"
            )
        if candidate.get("candidate") == "bogus":
            raise OperationError("ICE candidate rejected")
        self.candidates.append(candidate)

    def addLocalTrack(self, track: Any) -> None:
        self.tracks.append(track)
        self.emit("negotiationneeded")

    async def close(self) -> None:
        self.closed = True

    def _check_not_closed(self) -> None:
        if self.closed:
            raise OperationError("Media binding is closed")


class RecordingSignaling(BaseSignaling):
    """
    A signaling channel which keeps sent envelopes for inspection.
    """

    def __init__(self) -> None:
        self.closed = False
        self.sent: list[SignalingEnvelope] = []

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        self.closed = True

    async def receive(self) -> Optional[SignalingEnvelope]:
        return None

    async def send(self, envelope: SignalingEnvelope) -> None:
        if self.closed:
            raise SignalingClosedError("Signaling channel is closed")
        self.sent.append(envelope)

    def sent_types(self) -> list[str]:
        return [envelope.type for envelope in self.sent]


class TestCase(unittest.TestCase):
    def ensureIsInstance(self, obj: object, cls: type[T]) -> T:
        self.assertIsInstance(obj, cls)
        return cast(T, obj)


def asynctest(
    coro: Callable[P, Coroutine[None, None, None]],
) -> Callable[P, None]:
    @functools.wraps(coro)
    def wrap(*args: P.args, **kwargs: P.kwargs) -> None:
        asyncio.run(coro(*args, **kwargs))

    return wrap


def candidate(n: int) -> Candidate:
    return {
        "candidate": f"candidate:{n} 1 UDP 2122252543 192.168.99.{n} 3354{n} typ host",
        "sdpMLineIndex": 0,
        "sdpMid": "0",
    }


async def settle(iterations: int = 20) -> None:
    for _ in range(iterations):
        await asyncio.sleep(0)


async def wait_for(predicate: Callable[[], bool], timeout: float = 5) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)


if os.environ.get("AIONEGOTIATE_DEBUG"):
    logging.basicConfig(level=logging.DEBUG)
