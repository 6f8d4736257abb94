"""
Client-side helpers for the chat page.
"""
from .api import CallRequestClient, CallRequestClientError

__all__ = ["CallRequestClient", "CallRequestClientError"]
