"""
Protocol definitions for the peer session collaborators.

This module defines interfaces (Python Protocols) that allow:
- Swapping implementations (aiortc, a browser bridge, test fakes)
- Testing the negotiation state machine without real media devices
- Clear contracts between the negotiator and its collaborators

Session descriptions and ICE candidates travel as plain dicts in the
browser's JSON shape:

    {"type": "offer", "sdp": "v=0..."}
    {"candidate": "candidate:...", "sdpMid": "0", "sdpMLineIndex": 0}
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from .messages import SignalingMessage

SessionDescription = Dict[str, Any]
IceCandidate = Dict[str, Any]
MessageHandler = Callable[[SignalingMessage], Awaitable[None]]
LostHandler = Callable[[Exception], Awaitable[None]]


class MediaTrack(Protocol):
    """A single audio or video track."""

    kind: str
    enabled: bool

    def stop(self) -> None:
        """Release the underlying device/source. Idempotent."""
        ...


class MediaStream(Protocol):
    """A bundle of tracks captured or received together."""

    def get_tracks(self) -> List[MediaTrack]:
        ...

    def get_audio_tracks(self) -> List[MediaTrack]:
        ...

    def get_video_tracks(self) -> List[MediaTrack]:
        ...


class MediaDevices(Protocol):
    """Local capture devices."""

    async def get_user_media(self, audio: bool, video: bool) -> MediaStream:
        """
        Open capture devices.

        Raises:
            MediaAcquisitionFailed: permission denied or device unavailable
        """
        ...


class PeerConnection(Protocol):
    """
    One WebRTC peer connection.

    Events registered with on():
        "icecandidate"          handler(candidate: IceCandidate)
        "track"                 handler(track: MediaTrack, stream: Optional[MediaStream])
        "connectionstatechange" handler(state: str)
    Handlers are coroutine functions.
    """

    remote_description: Optional[SessionDescription]
    connection_state: str

    def on(self, event: str, handler: Callable[..., Awaitable[None]]) -> None:
        ...

    def add_track(self, track: MediaTrack, stream: MediaStream) -> None:
        ...

    async def create_offer(self) -> SessionDescription:
        ...

    async def create_answer(self) -> SessionDescription:
        ...

    async def set_local_description(self, description: SessionDescription) -> None:
        ...

    async def set_remote_description(self, description: SessionDescription) -> None:
        ...

    async def add_ice_candidate(self, candidate: IceCandidate) -> None:
        ...

    async def close(self) -> None:
        ...


PeerConnectionFactory = Callable[[List[str]], PeerConnection]


class SignalingChannel(Protocol):
    """
    Broadcast channel for one (match, user) pair.

    Delivers to the handler only the messages addressed to the user.
    """

    async def open(self, handler: MessageHandler, on_lost: Optional[LostHandler] = None) -> None:
        """
        Subscribe and start delivering. Raises SignalingFailed.

        on_lost is awaited with a SignalingFailed if the subscription
        drops after opening.
        """
        ...

    async def send(self, message: SignalingMessage) -> None:
        """Broadcast a message. Raises SignalingFailed."""
        ...

    async def close(self) -> None:
        ...


SignalingChannelFactory = Callable[[str, str], SignalingChannel]
