"""Abstract repository for per-store checkout settings."""

from __future__ import annotations

from abc import ABC, abstractmethod

from checkout_core.domain.model.store import StoreSettings


class StoreSettingsRepository(ABC):

    @abstractmethod
    def get_by_id(self, store_id: str) -> StoreSettings | None:
        """Return a store's checkout settings, or None if not found."""

    @abstractmethod
    def list_all(self) -> list[StoreSettings]:
        """Return every configured store."""

    @abstractmethod
    def save(self, store: StoreSettings) -> None:
        """Persist new or updated settings."""
