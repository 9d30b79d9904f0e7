"""Upstream client protocol.

The core depends only on this interface, never on RookClient directly,
so tests can substitute a double.
"""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class UpstreamResponse:
    status: int
    body: Any  # parsed JSON, raw text, or None for an empty body

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300


@runtime_checkable
class UpstreamClient(Protocol):
    """Capability surface the core needs from the health-data provider."""

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> UpstreamResponse:
        """Send one request and return whatever status the provider answered with.

        Raises:
            UpstreamError: on transport failure (no response at all).
        """
        ...
