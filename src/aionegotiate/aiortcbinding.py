import logging
from typing import Any, Optional

from aiortc import (
    MediaStreamTrack,
    RTCConfiguration,
    RTCIceCandidate,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc import exceptions as rtc_exceptions
from aiortc.sdp import SessionDescription, candidate_from_sdp

from .binding import Candidate, Description, MediaBinding
from .events import RemoteTrackEvent
from .exceptions import InvalidStateError, OperationError

logger = logging.getLogger(__name__)

# errors raised by aiortc when parsing or applying a description
RTC_DESCRIPTION_ERRORS = (
    AssertionError,
    IndexError,
    KeyError,
    ValueError,
    rtc_exceptions.InternalError,
    rtc_exceptions.InvalidAccessError,
    rtc_exceptions.InvalidStateError,
    rtc_exceptions.OperationError,
)


def description_from_json(description: Description) -> RTCSessionDescription:
    try:
        return RTCSessionDescription(sdp=description["sdp"], type=description["type"])
    except (KeyError, TypeError, ValueError) as exc:
        raise OperationError(f"Malformed session description: {exc!r}") from exc


def description_to_json(description: RTCSessionDescription) -> Description:
    return {"sdp": description.sdp, "type": description.type}


def candidate_from_json(candidate: Candidate) -> Optional[RTCIceCandidate]:
    """
    Parse a candidate in the browser's JSON form, or return `None` for the
    empty end-of-candidates marker.
    """
    try:
        line = candidate["candidate"]
        if not line:
            return None
        ice = candidate_from_sdp(line.split(":", 1)[1])
        ice.sdpMid = candidate.get("sdpMid")
        ice.sdpMLineIndex = candidate.get("sdpMLineIndex")
    except (AssertionError, IndexError, KeyError, TypeError, ValueError) as exc:
        raise OperationError(f"Malformed ICE candidate: {exc!r}") from exc
    return ice


class RTCPeerConnectionBinding(MediaBinding):
    """
    A :class:`MediaBinding` backed by an aiortc :class:`RTCPeerConnection`.

    aiortc gathers candidates while applying the local description and embeds
    them in it, so this binding never emits `"icecandidate"`. aiortc does not
    expose the remote media streams either: the `"track"` events it emits
    carry an empty `streams` list, use their `track` directly.

    :param configuration: An optional :class:`RTCConfiguration`.
    """

    def __init__(self, configuration: Optional[RTCConfiguration] = None) -> None:
        super().__init__()
        self.__pc = RTCPeerConnection(configuration=configuration)

        @self.__pc.on("track")
        def on_track(track: MediaStreamTrack) -> None:
            self.emit("track", RemoteTrackEvent(track=track))

        @self.__pc.on("connectionstatechange")
        def on_connectionstatechange() -> None:
            if self.__pc.connectionState in ["closed", "failed"]:
                self.emit("closed")

    @property
    def pc(self) -> RTCPeerConnection:
        "The wrapped :class:`RTCPeerConnection`."
        return self.__pc

    @property
    def signalingState(self) -> str:
        return self.__pc.signalingState

    @property
    def localDescription(self) -> Optional[Description]:
        description = self.__pc.localDescription
        return description_to_json(description) if description else None

    @property
    def remoteDescription(self) -> Optional[Description]:
        description = self.__pc.remoteDescription
        return description_to_json(description) if description else None

    async def createOffer(self) -> Description:
        try:
            return description_to_json(await self.__pc.createOffer())
        except RTC_DESCRIPTION_ERRORS as exc:
            raise OperationError(f"Offer could not be created: {exc!r}") from exc

    async def createAnswer(self) -> Description:
        try:
            return description_to_json(await self.__pc.createAnswer())
        except RTC_DESCRIPTION_ERRORS as exc:
            raise OperationError(f"Answer could not be created: {exc!r}") from exc

    async def setLocalDescription(self, description: Description) -> None:
        try:
            await self.__pc.setLocalDescription(description_from_json(description))
        except RTC_DESCRIPTION_ERRORS as exc:
            raise OperationError(f"Local description rejected: {exc!r}") from exc

    async def setRemoteDescription(self, description: Description) -> None:
        try:
            await self.__pc.setRemoteDescription(description_from_json(description))
        except RTC_DESCRIPTION_ERRORS as exc:
            raise OperationError(f"Remote description rejected: {exc!r}") from exc

    async def rollback(self) -> None:
        if self.__pc.signalingState != "have-local-offer":
            raise InvalidStateError(
                f'Cannot rollback in signaling state "{self.__pc.signalingState}"'
            )

        # aiortc does not implement rollback, drop the pending offer ourselves
        logger.debug("RTCPeerConnectionBinding() rolling back local offer")
        self.__pc._RTCPeerConnection__pendingLocalDescription = None  # type: ignore

        # release the mids and m-lines which only the dropped offer assigned
        negotiated = self.__negotiatedMids()
        transceivers = self.__pc.getTransceivers()
        negotiatedTransports = set(
            t.receiver.transport for t in transceivers if t.mid in negotiated
        )
        for transceiver in transceivers:
            if transceiver.mid is None or transceiver.mid in negotiated:
                continue
            logger.debug(
                "RTCPeerConnectionBinding() releasing %s mid %s",
                transceiver.kind,
                transceiver.mid,
            )
            transceiver._set_mid(None)  # type: ignore
            transceiver._set_mline_index(None)  # type: ignore
            dtlsTransport = transceiver.receiver.transport
            if dtlsTransport not in negotiatedTransports:
                dtlsTransport.transport._role_set = False

        self.__pc._RTCPeerConnection__setSignalingState("stable")  # type: ignore

    def __negotiatedMids(self) -> set[str]:
        mids: set[str] = set()
        for description in [self.__pc.localDescription, self.__pc.remoteDescription]:
            if description is not None:
                parsed = SessionDescription.parse(description.sdp)
                mids.update(media.rtp.muxId for media in parsed.media)
        return mids

    async def addIceCandidate(self, candidate: Candidate) -> None:
        if self.__pc.remoteDescription is None:
            raise InvalidStateError(
                "Cannot add ICE candidate without remote description"
            )

        try:
            await self.__pc.addIceCandidate(candidate_from_json(candidate))
        except ValueError as exc:
            raise OperationError(f"ICE candidate rejected: {exc}") from exc

    def addLocalTrack(self, track: Any) -> None:
        try:
            self.__pc.addTrack(track)
        except (
            rtc_exceptions.InternalError,
            rtc_exceptions.InvalidAccessError,
            rtc_exceptions.InvalidStateError,
        ) as exc:
            raise OperationError(f"Track rejected: {exc}") from exc
        self.emit("negotiationneeded")

    async def close(self) -> None:
        await self.__pc.close()
