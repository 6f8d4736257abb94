"""
Core Infrastructure Module

Shared infrastructure used across the services:
- CallRepository: Centralized database queries for call requests and blocks

Usage:
    from matchcall.services.core import get_call_repository
"""

from matchcall.services.core.repositories import CallRepository, get_call_repository

__all__ = [
    "CallRepository",
    "get_call_repository",
]
