"""SoftLayer provider configuration.

Immutable configuration dataclass for the SoftLayer backend.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_ENDPOINT = "https://api.softlayer.com/rest/v3.1"


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class SoftLayer:
    """SoftLayer provider configuration.

    Example:
        >>> config = SoftLayer(username="me", api_key="...")

    Args:
        username: Account username.
        api_key: API key paired with the username.
        endpoint: REST endpoint root. Default: public v3.1 endpoint.
        request_timeout: Per-request timeout in seconds. Default: 60.
        max_attempts: Attempts per request on 429/5xx/connection errors. Default: 5.
    """

    username: str
    api_key: str
    endpoint: str = DEFAULT_ENDPOINT
    request_timeout: float = 60.0
    max_attempts: int = 5

    def __repr__(self) -> str:
        return f"SoftLayer(username={self.username!r}, endpoint={self.endpoint!r})"


# =============================================================================
# Exports
# =============================================================================

__all__ = ["DEFAULT_ENDPOINT", "SoftLayer"]
