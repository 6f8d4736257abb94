"""
Connection Management Module

Re-exports ConnectionManager and MatchConnection.
"""
from .models import MatchConnection
from .manager import ConnectionManager
from .notifications import parse_call_event

# Singleton instance
connection_manager = ConnectionManager()

__all__ = [
    "MatchConnection",
    "ConnectionManager",
    "connection_manager",
    "parse_call_event",
]
