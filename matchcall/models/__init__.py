"""
Database Models Package

This module exports all SQLAlchemy models used by the calling core.

Tables:
1. profiles - Player identity (read-only here)
2. matches - Mutual match between two players (read-only here)
3. call_requests - Voice/video call solicitations
4. call_blocks - Standing refusals created by rejections
5. match_permissions - Per-participant accepted call kinds
"""

from .database import (
    engine,
    AsyncSessionLocal,
    Base,
    init_db,
    reset_db,
    get_db,
)

from .profile import Profile
from .match import Match
from .call_request import CallRequest, CallRequestStatus, CallType
from .call_block import CallBlock
from .match_permission import MatchPermission

__all__ = [
    # Database utilities
    "engine",
    "AsyncSessionLocal",
    "Base",
    "init_db",
    "reset_db",
    "get_db",

    # Models
    "Profile",
    "Match",
    "CallRequest",
    "CallRequestStatus",
    "CallType",
    "CallBlock",
    "MatchPermission",
]
