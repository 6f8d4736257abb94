"""Business Logic Services.

This package contains the service modules that implement the calling
core of MatchCall.

Service Categories:
- call_request: Call Request Coordinator (create/respond/unblock/list, expiry)
- call_events: Row change events published to Redis
- connection: WebSocket connections watching a match
- webrtc: Client-side Peer Session Negotiator and signaling
- core: Repositories
"""
