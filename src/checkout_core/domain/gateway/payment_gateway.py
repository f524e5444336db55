"""Abstract payment gateway (card tokenization only)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from checkout_core.domain.model.payment import TokenizedCard


class PaymentGateway(ABC):

    @abstractmethod
    async def tokenize_card(
        self,
        number: str,
        holder_name: str,
        expiry_month: int,
        expiry_year: int,
        cvv: str,
        tax_id: str = "",
    ) -> TokenizedCard:
        """Exchange raw card data for a single-use token.

        Raises TokenizationRejected when the issuer declines and
        TokenizationTransportError for anything else.
        """
