"""
Application-wide constants for configuration and tuning.

This file centralizes the magic numbers and channel names used across
the calling backend.

Note: Environment-dependent settings (DB, Redis, secrets) belong in settings.py.
This file is for operational parameters that rarely change between environments.
"""

# ==============================================================================
# CALL REQUESTS
# ==============================================================================

# Call kinds a requester may ask for
CALL_TYPES: tuple[str, ...] = ("voice", "video")

# Statuses a responder may set
RESPONSE_STATUSES: tuple[str, ...] = ("accepted", "rejected")

# Statuses returned by the list action
LISTED_STATUSES: tuple[str, ...] = ("pending", "accepted")

# Actions accepted by the call-request endpoint
CALL_REQUEST_ACTIONS: tuple[str, ...] = ("create", "respond", "unblock", "list")

# ==============================================================================
# REDIS PUB/SUB CHANNELS
# ==============================================================================

# Row change events for call_requests / call_blocks (formatted with match_id)
CALL_EVENTS_CHANNEL: str = "channel:call_events:{match_id}"

# Pattern the notification relay subscribes to
CALL_EVENTS_PATTERN: str = "channel:call_events:*"

# WebRTC signaling topic shared by both participants of a match
SIGNALING_CHANNEL: str = "webrtc:{match_id}"

# ==============================================================================
# SIGNALING
# ==============================================================================

# Seconds to wait for a pub/sub message before re-checking for shutdown
SIGNALING_POLL_TIMEOUT_SEC: float = 1.0

# Peer connection states that tear a session down
TERMINAL_CONNECTION_STATES: tuple[str, ...] = ("failed", "disconnected")

# ==============================================================================
# WEBSOCKET CLOSE CODES
# ==============================================================================

# Policy violation (bad/missing token, not a participant)
WS_POLICY_VIOLATION: int = 1008

# ==============================================================================
# DATABASE CONNECTION POOL
# ==============================================================================

# SQLAlchemy connection pool size
DB_POOL_SIZE: int = 10

# SQLAlchemy max overflow connections
DB_POOL_MAX_OVERFLOW: int = 20
