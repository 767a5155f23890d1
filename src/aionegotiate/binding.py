from abc import ABCMeta, abstractmethod
from typing import Any, Optional

from pyee.asyncio import AsyncIOEventEmitter

# JSON objects as exchanged by browsers: {"type", "sdp"} for descriptions,
# {"candidate", "sdpMid", "sdpMLineIndex"} for candidates.
Description = dict[str, Any]
Candidate = dict[str, Any]


class MediaBinding(AsyncIOEventEmitter, metaclass=ABCMeta):
    """
    The capability interface of the media transport a
    :class:`NegotiationEngine` drives.

    A binding wraps exactly one peer connection. Besides the methods below it
    emits the following events:

    - `"icecandidate"`, with a local candidate or `None` once gathering is
      complete.
    - `"negotiationneeded"`, whenever the set of transceivers changed.
    - `"track"`, with a :class:`RemoteTrackEvent`.
    - `"closed"`, when the underlying connection closed or failed for good.
    """

    @property
    @abstractmethod
    def signalingState(self) -> str:
        """
        The description-negotiation state of the connection: `"stable"`,
        `"have-local-offer"` or `"have-remote-offer"`.
        """

    @property
    @abstractmethod
    def localDescription(self) -> Optional[Description]:
        """
        The local description currently in effect, as it should be sent to
        the remote party.
        """

    @property
    @abstractmethod
    def remoteDescription(self) -> Optional[Description]:
        """
        The remote description currently in effect, or `None`.
        """

    @abstractmethod
    async def createOffer(self) -> Description: ...

    @abstractmethod
    async def createAnswer(self) -> Description: ...

    @abstractmethod
    async def setLocalDescription(self, description: Description) -> None:
        """
        Apply a local description.

        :raises OperationError: if the description is rejected.
        """

    @abstractmethod
    async def setRemoteDescription(self, description: Description) -> None:
        """
        Apply a remote description.

        :raises OperationError: if the description is malformed or does not
                                match the local configuration.
        """

    @abstractmethod
    async def rollback(self) -> None:
        """
        Discard the pending local offer and return to `"stable"`.
        """

    @abstractmethod
    async def addIceCandidate(self, candidate: Candidate) -> None:
        """
        Add a candidate received from the remote party.

        :raises InvalidStateError: if no remote description is set.
        :raises OperationError: if the candidate is rejected.
        """

    @abstractmethod
    def addLocalTrack(self, track: Any) -> None:
        """
        Add a media track to transmit to the remote party.
        """

    @abstractmethod
    async def close(self) -> None: ...
