"""Abstract identity store: account lookup and customer login.

Defined in the domain layer so the checkout never depends on a
particular auth backend.  Concrete implementations live in the
infrastructure layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from checkout_core.domain.model.identity import AccountSummary, AuthSession


class IdentityStore(ABC):

    @abstractmethod
    async def lookup_by_email(self, email: str) -> AccountSummary | None:
        """Return the account registered under *email*, or None.

        Raises LookupFailure when the store cannot be reached.
        """

    @abstractmethod
    async def authenticate(self, email: str, password: str) -> AuthSession:
        """Log a customer in.  Raises AuthenticationError on bad credentials."""

    @abstractmethod
    async def request_login_link(self, email: str) -> None:
        """Send a passwordless login link.  Raises LookupFailure on failure."""
