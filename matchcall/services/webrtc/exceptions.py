"""
Peer Session Exceptions

Errors raised while negotiating a peer-to-peer call. Any of them aborts
the session; the message is what the user sees.
"""


class NegotiatorError(Exception):
    """Base exception for peer session errors"""
    pass


class MediaAcquisitionFailed(NegotiatorError):
    """Raised when microphone/camera access is denied or no device is available"""
    pass


class SignalingFailed(NegotiatorError):
    """Raised when the signaling channel cannot be opened or a message cannot be delivered"""
    pass


class ConnectionFailed(NegotiatorError):
    """Raised when the peer connection reports failed or disconnected"""
    pass
