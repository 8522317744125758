from dataclasses import dataclass
from enum import IntEnum, auto
from typing import Any


class ControllerState(IntEnum):
    """Polling controller lifecycle status"""

    UNINITIALIZED = auto()
    SEEDED = auto()  # Showing fresh cached data, no live result yet
    LOADING = auto()  # No usable data, refresh in flight
    READY = auto()  # Latest refresh succeeded
    ERROR = auto()  # Latest refresh failed, previous data retained


@dataclass(frozen=True, slots=True)
class MintStats:
    """Best-known aggregate exposed to consumers."""

    total_minted: int = 0
    recent_mints: tuple[str, ...] = ()
    is_loading: bool = True
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalMinted": self.total_minted,
            "recentMints": list(self.recent_mints),
            "isLoading": self.is_loading,
            "error": self.error,
        }
