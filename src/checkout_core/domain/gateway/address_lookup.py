"""Abstract postal-code address enrichment."""

from __future__ import annotations

from abc import ABC, abstractmethod

from checkout_core.domain.model.address import AddressEnrichment


class AddressLookup(ABC):

    @abstractmethod
    async def lookup(self, postal_code: str) -> AddressEnrichment | None:
        """Return street/neighborhood/city/state for a postal code, or None.

        Best effort only.  Raises LookupFailure when the service fails.
        """
