import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Optional

from pyee.asyncio import AsyncIOEventEmitter

from .binding import Candidate, Description, MediaBinding
from .configuration import NegotiationConfiguration, NegotiationRole
from .envelope import SignalingEnvelope
from .events import MEDIA_KINDS, RemoteTrackEvent
from .exceptions import (
    InvalidStateError,
    NegotiationError,
    OperationError,
    SignalingClosedError,
)
from .signaling import BaseSignaling

SIGNALING_STATES = ["stable", "have-local-offer", "have-remote-offer"]

logger = logging.getLogger(__name__)


class NegotiationEngine(AsyncIOEventEmitter):
    """
    The :class:`NegotiationEngine` owns the offer / answer and ICE candidate
    exchange of a single peer connection.

    Glare is resolved with the "perfect negotiation" pattern: when both peers
    offer at once, the polite peer rolls back its own offer and answers, while
    the impolite peer ignores the incoming offer and waits for its answer.

    All operations, whether requested by the host or triggered by the media
    binding, run one at a time and to completion.

    Events:

    - `"signalingstatechange"` when :attr:`signalingState` changes.
    - `"track"` with a :class:`RemoteTrackEvent` for remote audio or video.
    - `"failed"` with the exception which ended the session.
    - `"closed"` once the session is torn down.

    :param binding: The :class:`MediaBinding` of the peer connection.
    :param signaling: The :class:`BaseSignaling` used to reach the remote peer.
    :param configuration: An optional :class:`NegotiationConfiguration`.
    """

    def __init__(
        self,
        binding: MediaBinding,
        signaling: BaseSignaling,
        configuration: Optional[NegotiationConfiguration] = None,
    ) -> None:
        super().__init__()
        self.__binding = binding
        self.__configuration = configuration or NegotiationConfiguration()
        self.__id = uuid.uuid4().hex[:8]
        self.__lock = asyncio.Lock()
        self.__signaling = signaling
        self.__tasks: set[asyncio.Future] = set()

        self.__closed = False
        self.__ignoreOffer = False
        self.__negotiationInFlight = False
        self.__negotiationNeeded = False
        self.__pendingCandidates: list[Candidate] = []
        self.__signalingState = "stable"
        self.__started = False

        binding.on("closed", self.__onBindingClosed)
        binding.on("icecandidate", self.__onIceCandidate)
        binding.on("negotiationneeded", self.__onNegotiationNeeded)
        binding.on("track", self.__onTrack)

    @property
    def closed(self) -> bool:
        "Whether the session has been torn down."
        return self.__closed

    @property
    def ignoreOffer(self) -> bool:
        """
        Whether the last remote offer collided with a local offer and was
        ignored. Only the impolite peer ever ignores an offer.
        """
        return self.__ignoreOffer

    @property
    def negotiationInFlight(self) -> bool:
        "Whether a local offer is waiting for its answer."
        return self.__negotiationInFlight

    @property
    def pendingCandidates(self) -> list[Candidate]:
        "The remote candidates waiting for a remote description, in arrival order."
        return list(self.__pendingCandidates)

    @property
    def role(self) -> NegotiationRole:
        return self.__configuration.role

    @property
    def signalingState(self) -> str:
        """
        The current signaling state.

        Possible values: `"stable"`, `"have-local-offer"`, `"have-remote-offer"`.

        When the state changes, the `"signalingstatechange"` event is fired.
        """
        return self.__signalingState

    async def start(self, tracks: Iterable[Any] = ()) -> None:
        """
        Start the session: add the local media tracks and, unless the
        configuration says otherwise, send the initial offer.

        :param tracks: The media tracks to transmit.
        """
        self.__assertNotClosed()
        if self.__started:
            raise InvalidStateError("Session has already been started")
        self.__started = True

        await self.__step(self.__start, list(tracks))

    async def submitRemoteEnvelope(self, envelope: SignalingEnvelope) -> None:
        """
        Feed one envelope received from the remote peer.

        :raises OperationError: if the envelope was rejected, in which case the
                                session has been torn down.
        """
        if self.__closed:
            logger.info(
                "NegotiationEngine(%s) dropping %s envelope: session is closed",
                self.__id,
                envelope.type,
            )
            return

        await self.__step(self.__handleEnvelope, envelope)

    async def close(self) -> None:
        """
        Tear the session down, aborting any round in progress.
        """
        if self.__closed:
            return
        self.__closed = True
        self.__log_debug(
            "closing (signalingState %s, %d pending candidates dropped)",
            self.__signalingState,
            len(self.__pendingCandidates),
        )

        # abort the current round
        self.__ignoreOffer = False
        self.__negotiationInFlight = False
        self.__negotiationNeeded = False
        self.__pendingCandidates.clear()

        await self.__binding.close()
        self.__binding.remove_all_listeners()
        self.emit("closed")

        # no more events will be emitted, so remove all event listeners
        # to facilitate garbage collection.
        self.remove_all_listeners()

    async def __start(self, tracks: list[Any]) -> None:
        for track in tracks:
            self.__log_debug("adding local %s track", getattr(track, "kind", "?"))
            self.__binding.addLocalTrack(track)

        if self.__configuration.initiate:
            await self.__negotiate()

    async def __negotiate(self) -> None:
        if self.__closed:
            return
        if self.__negotiationInFlight or self.__signalingState != "stable":
            self.__log_debug(
                "negotiation needed while in %s, deferred until stable",
                self.__signalingState,
            )
            return

        # the offer covers every change made so far
        self.__negotiationNeeded = False
        self.__negotiationInFlight = True
        offer = await self.__binding.createOffer()
        if self.__closed:
            return
        await self.__binding.setLocalDescription(offer)
        if self.__closed:
            return
        self.__setSignalingState("have-local-offer")
        await self.__send("offer", self.__binding.localDescription)

    async def __negotiateIfNeeded(self) -> None:
        if self.__negotiationNeeded and not self.__closed:
            self.__log_debug("round complete, negotiating deferred changes")
            await self.__negotiate()

    async def __handleEnvelope(self, envelope: SignalingEnvelope) -> None:
        if self.__closed:
            logger.info(
                "NegotiationEngine(%s) dropping %s envelope: session is closed",
                self.__id,
                envelope.type,
            )
            return

        self.__log_debug("< %s", envelope.type)
        if envelope.type == "offer":
            await self.__handleOffer(envelope.data)
        elif envelope.type == "answer":
            await self.__handleAnswer(envelope.data)
        elif envelope.type == "ice":
            await self.__handleCandidate(envelope.data)
        else:
            raise OperationError(f'Unknown envelope type "{envelope.type}"')

    async def __handleOffer(self, description: Description) -> None:
        collision = self.__negotiationInFlight or self.__signalingState != "stable"

        self.__ignoreOffer = collision and not self.role.polite
        if self.__ignoreOffer:
            logger.info(
                "NegotiationEngine(%s) ignoring remote offer: it collides with "
                "the local offer and this peer is impolite",
                self.__id,
            )
            return

        if collision:
            self.__log_debug("remote offer collides with local offer, rolling back")
            await self.__binding.rollback()
            self.__negotiationInFlight = False
            self.__negotiationNeeded = True
            self.__setSignalingState("stable")

        await self.__binding.setRemoteDescription(description)
        if self.__closed:
            return
        self.__setSignalingState("have-remote-offer")

        answer = await self.__binding.createAnswer()
        if self.__closed:
            return
        await self.__binding.setLocalDescription(answer)
        if self.__closed:
            return
        self.__setSignalingState("stable")
        await self.__send("answer", self.__binding.localDescription)

        await self.__flushCandidates()
        await self.__negotiateIfNeeded()

    async def __handleAnswer(self, description: Description) -> None:
        if (
            not self.__negotiationInFlight
            or self.__signalingState != "have-local-offer"
        ):
            raise OperationError(
                f'Cannot handle answer in signaling state "{self.__signalingState}"'
            )

        await self.__binding.setRemoteDescription(description)
        if self.__closed:
            return
        self.__negotiationInFlight = False
        self.__setSignalingState("stable")

        await self.__flushCandidates()
        await self.__negotiateIfNeeded()

    async def __handleCandidate(self, candidate: Candidate) -> None:
        if (
            self.__signalingState == "stable"
            and self.__binding.remoteDescription is not None
        ):
            await self.__applyCandidate(candidate)
        else:
            self.__pendingCandidates.append(candidate)
            self.__log_debug(
                "buffering remote candidate in %s (%d pending)",
                self.__signalingState,
                len(self.__pendingCandidates),
            )

    async def __applyCandidate(self, candidate: Candidate) -> None:
        if self.__binding.remoteDescription is None:
            raise InvalidStateError(
                "Cannot apply ICE candidate before a remote description is set"
            )

        try:
            await self.__binding.addIceCandidate(candidate)
        except OperationError as exc:
            # candidates gathered for an ignored offer are expected to fail
            if not self.__ignoreOffer:
                raise
            logger.info(
                "NegotiationEngine(%s) ignoring candidate of an ignored offer: %s",
                self.__id,
                exc,
            )

    async def __flushCandidates(self) -> None:
        candidates, self.__pendingCandidates = self.__pendingCandidates, []
        if candidates:
            self.__log_debug("flushing %d buffered candidates", len(candidates))
        for candidate in candidates:
            if self.__closed:
                return
            await self.__applyCandidate(candidate)

    async def __send(self, type: str, data: Any) -> None:
        if self.__closed:
            self.__log_debug("not sending %s: session is closed", type)
            return

        self.__log_debug("> %s", type)
        await self.__signaling.send(SignalingEnvelope(type=type, data=data))

    async def __sendCandidate(self, candidate: Candidate) -> None:
        await self.__send("ice", candidate)

    async def __step(
        self, operation: Callable[..., Awaitable[None]], *args: Any
    ) -> None:
        async with self.__lock:
            try:
                await operation(*args)
            except SignalingClosedError as exc:
                if not self.__closed:
                    logger.info(
                        "NegotiationEngine(%s) signaling channel closed: %s",
                        self.__id,
                        exc,
                    )
                    await self.close()
                raise
            except Exception as exc:
                if self.__closed:
                    # closing mid-round makes the media binding refuse the rest
                    self.__log_debug("round aborted by close: %r", exc)
                    return
                await self.__fail(exc)
                raise

    async def __runScheduledStep(
        self, operation: Callable[..., Awaitable[None]], *args: Any
    ) -> None:
        try:
            await self.__step(operation, *args)
        except Exception:
            # already logged and reported through "failed" or "closed"
            pass

    def __schedule(self, operation: Callable[..., Awaitable[None]], *args: Any) -> None:
        task = asyncio.ensure_future(self.__runScheduledStep(operation, *args))
        self.__tasks.add(task)
        task.add_done_callback(self.__tasks.discard)

    async def __fail(self, exc: Exception) -> None:
        logger.error(
            "NegotiationEngine(%s) negotiation failed in %s: %r",
            self.__id,
            self.__signalingState,
            exc,
            exc_info=not isinstance(exc, NegotiationError),
        )
        self.emit("failed", exc)
        await self.close()

    def __onBindingClosed(self) -> None:
        if not self.__closed:
            self.__log_debug("media binding closed")
            task = asyncio.ensure_future(self.close())
            self.__tasks.add(task)
            task.add_done_callback(self.__tasks.discard)

    def __onIceCandidate(self, candidate: Optional[Candidate]) -> None:
        if candidate is None:
            self.__log_debug("local ICE gathering complete")
        elif self.__closed:
            self.__log_debug("not sending local candidate: session is closed")
        else:
            self.__schedule(self.__sendCandidate, candidate)

    def __onNegotiationNeeded(self) -> None:
        if not self.__closed:
            self.__negotiationNeeded = True
            self.__schedule(self.__negotiate)

    def __onTrack(self, event: RemoteTrackEvent) -> None:
        if event.kind not in MEDIA_KINDS:
            logger.warning(
                "NegotiationEngine(%s) dropping remote track of kind %r",
                self.__id,
                event.kind,
            )
            return

        self.__log_debug("remote %s track arrived", event.kind)
        self.emit("track", event)

    def __assertNotClosed(self) -> None:
        if self.__closed:
            raise InvalidStateError("NegotiationEngine is closed")

    def __log_debug(self, msg: str, *args: object) -> None:
        logger.debug(f"NegotiationEngine({self.__id}) {msg}", *args)

    def __setSignalingState(self, state: str) -> None:
        assert state in SIGNALING_STATES
        actual = self.__binding.signalingState
        if actual != state:
            raise InvalidStateError(
                f'Signaling state drifted: expected "{state}", '
                f'media binding is in "{actual}"'
            )

        if state != self.__signalingState:
            self.__log_debug("signalingState %s -> %s", self.__signalingState, state)
            self.__signalingState = state
            self.emit("signalingstatechange")
