"\"\"\"Key-value stores backing session persistence.\"\"\""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .json_file import JsonFileStore
from .memory import InMemoryStore


@runtime_checkable
class KeyValueStore(Protocol):
    """Durable string slot contract.

    Implementations may raise on any call (unavailable medium, quota, permissions);
    callers are expected to guard each call.
    """

    def save(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    def load(self, key: str) -> str | None:
        """Return the stored value or None when the key is absent."""

    def remove(self, key: str) -> None:
        """Delete ``key``; absent keys are ignored."""


__all__ = ["KeyValueStore", "InMemoryStore", "JsonFileStore"]
