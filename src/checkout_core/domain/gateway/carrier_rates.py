"""Abstract carrier-rate service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from checkout_core.domain.model.delivery import CarrierQuote


class CarrierRateService(ABC):

    @abstractmethod
    async def quote(self, postal_code: str, service_ids: list[str]) -> list[CarrierQuote]:
        """Quote every service for one destination in a single request.

        Results may be partial and come back in any order.  Raises
        QuotationUnavailable when no quote could be obtained at all.
        """
