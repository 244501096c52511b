"""Exception types shared across the store and engines."""

from __future__ import annotations


class ProvmemError(Exception):
    """Base class for provmem errors."""


class FactNotFoundError(ProvmemError, KeyError):
    """Raised by store writes that target an unknown fact id."""

    def __init__(self, fact_id: str) -> None:
        super().__init__(fact_id)
        self.fact_id = fact_id

    def __str__(self) -> str:
        return f"Fact not found: {self.fact_id}"


class ImmutableFieldError(ProvmemError, ValueError):
    """Raised when an update touches ``id``, ``provenance`` or ``category``."""


class StoreTransactionError(ProvmemError):
    """Raised when an atomic multi-fact write fails and is rolled back."""


class EmbeddingError(ProvmemError):
    """Raised by similarity providers when an embedding call fails."""
