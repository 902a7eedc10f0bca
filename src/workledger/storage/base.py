"""Abstract key-value store interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional


class KeyValueStore(ABC):
    """Durable store of JSON-serializable values addressed by string keys."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the backing store."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the backing store."""
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get the value stored under key, or None if absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under key, replacing any previous value."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove key. Removing a missing key is not an error."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every key."""
        pass

    @abstractmethod
    def keys(self, prefix: Optional[str] = None) -> list[str]:
        """List stored keys in sorted order, optionally only those with a prefix."""
        pass
