"""
Peer Session State

Observable state of one call attempt. Owned and mutated by the
negotiator; read by the UI layer.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .protocols import IceCandidate, MediaStream, PeerConnection, SignalingChannel


class NegotiationState(str, Enum):
    IDLE = "idle"
    OFFERING = "offering"
    AWAITING_OFFER = "awaiting_offer"
    CONNECTING = "connecting"
    ACTIVE = "active"
    ENDED = "ended"
    ERROR = "error"


@dataclass
class PeerSession:
    """State of a single call attempt."""

    call_type: str = "voice"
    state: NegotiationState = NegotiationState.IDLE

    local_stream: Optional[MediaStream] = None
    remote_stream: Optional[MediaStream] = None
    peer_connection: Optional[PeerConnection] = None
    channel: Optional[SignalingChannel] = None

    is_connecting: bool = False
    is_active: bool = False
    is_muted: bool = False
    is_video_off: bool = False
    error: Optional[str] = None

    # Remote candidates received before the remote description
    pending_candidates: List[IceCandidate] = field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.state in (NegotiationState.ENDED, NegotiationState.ERROR)

    @property
    def in_progress(self) -> bool:
        return self.state not in (NegotiationState.IDLE, NegotiationState.ENDED, NegotiationState.ERROR)

    def reset_flags(self) -> None:
        self.is_connecting = False
        self.is_active = False
        self.is_muted = False
        self.is_video_off = False
        self.pending_candidates.clear()
