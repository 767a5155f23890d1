from dataclasses import dataclass, field
from typing import Any

MEDIA_KINDS = ["audio", "video"]


@dataclass
class RemoteTrackEvent:
    """
    This event is fired when a media track is added by the remote party.
    """

    track: Any
    "The remote media track, for instance an aiortc :class:`MediaStreamTrack`."
    streams: list[Any] = field(default_factory=list)
    """
    The media streams containing the track, when the binding knows them.
    Empty for aiortc, which only reports the track.
    """

    @property
    def kind(self) -> str:
        "The track kind, `\"audio\"` or `\"video\"` for routable tracks."
        return getattr(self.track, "kind", "")
