"""
WebRTC Peer Session Package

Client-side negotiation of a peer-to-peer call between the two
participants of a match.

Modules:
- negotiator: PeerSessionNegotiator state machine
- session: PeerSession state and NegotiationState
- signaling: Redis pub/sub signaling channel
- messages: signaling envelope
- protocols: media, peer connection and channel interfaces
- media: TrackStream container
- exceptions: negotiation errors
"""

from .exceptions import (
    NegotiatorError,
    MediaAcquisitionFailed,
    SignalingFailed,
    ConnectionFailed,
)
from .messages import SignalingMessage, parse_signaling_message, require_signaling_message
from .media import TrackStream
from .session import NegotiationState, PeerSession
from .signaling import RedisSignalingChannel
from .negotiator import PeerSessionNegotiator

__all__ = [
    # Exceptions
    "NegotiatorError",
    "MediaAcquisitionFailed",
    "SignalingFailed",
    "ConnectionFailed",
    # Messages
    "SignalingMessage",
    "parse_signaling_message",
    "require_signaling_message",
    # State
    "NegotiationState",
    "PeerSession",
    # Collaborators
    "TrackStream",
    "RedisSignalingChannel",
    "PeerSessionNegotiator",
]
