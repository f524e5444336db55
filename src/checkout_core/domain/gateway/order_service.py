"""Abstract order service: the final write of a checkout."""

from __future__ import annotations

from abc import ABC, abstractmethod

from checkout_core.domain.model.session import OrderDraft


class OrderService(ABC):

    @abstractmethod
    async def submit(self, draft: OrderDraft) -> str:
        """Record the order and return its id.

        Raises OrderSubmissionFailure with a customer-facing message.
        Submitting a draft with an already-seen ``reference`` must not
        create a second order.
        """
