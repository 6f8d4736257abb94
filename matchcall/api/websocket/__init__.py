"""
WebSocket API module.

Provides the WebSocket router for match events and signaling.
"""
from .router import router

__all__ = ["router"]
