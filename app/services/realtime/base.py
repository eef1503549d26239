"""
Settings Broadcaster Abstract Base Class

A broadcaster carries "setting X changed" events between processes so every
storefront worker can drop its cached copy and re-read the row.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator


@dataclass(frozen=True)
class SettingsChange:
    """
    A change event.

    Attributes:
        key: Settings key that was written or deleted
        origin: Instance id of the store that made the change
    """
    key: str
    origin: str

    def to_dict(self) -> dict:
        return {"key": self.key, "origin": self.origin}


class BaseBroadcaster(ABC):
    """Abstract base class for settings change broadcasters."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., "local", "redis")."""
        pass

    @abstractmethod
    async def publish(self, change: SettingsChange) -> None:
        """Send a change event to every listener."""
        pass

    @abstractmethod
    def listen(self) -> AsyncIterator[SettingsChange]:
        """
        Return an async iterator over incoming change events.

        When the listener is registered is up to the broadcaster: the local
        one registers on this call, Redis subscribes on the first iteration.
        Events published before registration are missed; the updated_at
        poller picks those up.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check broadcaster connectivity."""
        pass

    async def close(self) -> None:
        """Release connections. Default: nothing to release."""
        return None
