"""Centralized cache key management for consistency and type safety.

This module provides a single source of truth for cache key patterns used by
the ledger services, ensuring consistency and preventing key collisions.
"""

from beartype import beartype


class CacheKeys:
    """Centralized cache key management."""

    # Cache key prefix
    COMPLIANCE_PREFIX = "compliance"

    @staticmethod
    @beartype
    def compliance_record(client_id: str) -> str:
        """Cache key for a compliance record by client id."""
        return f"{CacheKeys.COMPLIANCE_PREFIX}:client:{client_id}"

    @staticmethod
    @beartype
    def keys_for_client(client_id: str) -> list[str]:
        """Every cache key that must be dropped when a client's record changes."""
        return [CacheKeys.compliance_record(client_id)]
