"""
SITA Core - Database Client.

Provides hosted database access for the preference and profile tables.
"""

from sita.db.client import get_client, reset_client

__all__ = [
    "get_client",
    "reset_client",
]
