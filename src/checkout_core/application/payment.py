"""Application service: Payment Resolver.

Holds the selected payment method and, for credit cards, the typed card
fields and the credential obtained by tokenizing them.

A credential is only ever valid for the exact card fields it was
obtained with: any edit drops it.  Tokenization is single-flight; a
second request while one is outstanding is ignored, not queued, and
failures are never retried automatically.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import date

from checkout_core.application.dto import PaymentSnapshot
from checkout_core.application.observable import Resolver
from checkout_core.domain.exceptions import (
    TokenizationError,
    TokenizationRejected,
    TokenizationTransportError,
    ValidationError,
)
from checkout_core.domain.gateway.payment_gateway import PaymentGateway
from checkout_core.domain.model.payment import (
    GENERIC_FAILURE,
    MAX_INSTALLMENTS,
    CardCredential,
    CardFields,
    PaymentMethod,
    PaymentSettings,
)
from checkout_core.domain.model.value_objects import Money
from checkout_core.domain.service.order_total import installment_schedule

logger = logging.getLogger(__name__)

DEFAULT_TOKENIZE_TIMEOUT = 12.0
DECLINED_CARD = "This card was declined. Change the card details and try again."


class PaymentResolver(Resolver):

    def __init__(
        self,
        gateway: PaymentGateway,
        settings: PaymentSettings,
        *,
        tokenize_timeout: float = DEFAULT_TOKENIZE_TIMEOUT,
        today: Callable[[], date] = date.today,
    ) -> None:
        super().__init__()
        self._gateway = gateway
        self._settings = settings
        self._tokenize_timeout = tokenize_timeout
        self._today = today

        self._method: PaymentMethod | None = None
        self._card = CardFields()
        self._card_revision = 0
        self._installments = 1
        self._credential: CardCredential | None = None
        self._tokenizing = False
        self._last_error: str | None = None
        self._rejected_revision: int | None = None

    # --- Queries --------------------------------------------------------------

    @property
    def settings(self) -> PaymentSettings:
        return self._settings

    @property
    def method(self) -> PaymentMethod | None:
        return self._method

    @property
    def credential(self) -> CardCredential | None:
        return self._credential

    @property
    def tokenizing(self) -> bool:
        return self._tokenizing

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def max_installments(self) -> int:
        return min(self._settings.max_installments_no_interest, MAX_INSTALLMENTS)

    def enabled_methods(self) -> tuple[PaymentMethod, ...]:
        return tuple(m for m in PaymentMethod if m in self._settings.enabled_methods)

    def card_errors(self) -> dict[str, str]:
        return self._card.errors(self._today())

    @property
    def valid(self) -> bool:
        method = self._method
        if method is None or method not in self._settings.enabled_methods:
            return False
        if method == PaymentMethod.CREDIT_CARD:
            return self._credential is not None and not self._tokenizing
        return True

    def snapshot(self, total: Money) -> PaymentSnapshot:
        """Publish the payment state; installments are sized on *total*."""
        is_card = self._method == PaymentMethod.CREDIT_CARD
        return PaymentSnapshot(
            method=self._method,
            valid=self.valid,
            enabled_methods=self.enabled_methods(),
            installments=(
                tuple(installment_schedule(total, self._settings.max_installments_no_interest))
                if is_card
                else ()
            ),
            selected_installments=self._installments,
            credential=self._credential,
            card_brand=self._card.brand,
            card_errors=self.card_errors() if is_card else {},
            tokenizing=self._tokenizing,
            last_error=self._last_error,
        )

    # --- Commands -------------------------------------------------------------

    def select(self, method: PaymentMethod) -> None:
        self._ensure_editable()
        if method not in self._settings.enabled_methods:
            raise ValidationError(f"Payment method '{method.value}' is not enabled for this store")
        self._method = method
        if method != PaymentMethod.CREDIT_CARD:
            self._credential = None
        self._notify()

    def clear_selection(self) -> None:
        self._ensure_editable()
        self._method = None
        self._credential = None
        self._notify()

    def edit_card(self, **changes: str) -> None:
        """Change any of number, expiry, holder_name, cvv, tax_id.

        Always invalidates a previously obtained credential.
        """
        self._ensure_editable()
        self._card = replace(self._card, **changes)
        self._card_revision += 1
        if self._credential is not None:
            logger.debug("Card fields edited; dropping tokenized credential")
        self._credential = None
        self._last_error = None
        self._notify()

    def set_installments(self, count: int) -> None:
        self._ensure_editable()
        if not 1 <= count <= self.max_installments:
            raise ValidationError(
                f"Installments must be between 1 and {self.max_installments}, got {count}"
            )
        self._installments = count
        if self._credential is not None:
            self._credential = replace(self._credential, installments=count)
        self._notify()

    async def tokenize(self) -> CardCredential | None:
        """Exchange the typed card for a gateway token.

        Returns the credential, or None when the call was ignored because
        another tokenization is in flight or the card changed meanwhile.
        Field problems raise ValidationError before any network call;
        gateway problems raise TokenizationRejected or
        TokenizationTransportError.  A declined card is not resent until
        one of its fields is edited.
        """
        self._ensure_editable()
        if self._method != PaymentMethod.CREDIT_CARD:
            raise ValidationError("Select credit card before tokenizing a card")
        if self._card_revision == self._rejected_revision:
            raise ValidationError(self._last_error or DECLINED_CARD)
        if self._tokenizing:
            logger.debug("Tokenization already in flight; ignoring second request")
            return None

        errors = self.card_errors()
        if errors:
            raise ValidationError(next(iter(errors.values())))

        card = self._card
        revision = self._card_revision
        self._tokenizing = True
        self._last_error = None
        self._notify()
        try:
            result = await asyncio.wait_for(
                self._gateway.tokenize_card(
                    number=card.number_digits,
                    holder_name=card.holder_name.strip(),
                    expiry_month=card.expiry_month,
                    expiry_year=card.expiry_year,
                    cvv=card.cvv.strip(),
                    tax_id=card.tax_id.strip(),
                ),
                timeout=self._tokenize_timeout,
            )
        except asyncio.TimeoutError as exc:
            self._last_error = GENERIC_FAILURE
            logger.warning("Card tokenization timed out after %ss", self._tokenize_timeout)
            raise TokenizationTransportError(GENERIC_FAILURE) from exc
        except TokenizationError as exc:
            self._last_error = str(exc)
            logger.warning("Card tokenization failed: %s", exc)
            if isinstance(exc, TokenizationRejected):
                self._rejected_revision = revision
            raise
        finally:
            self._tokenizing = False
            self._notify()

        if revision != self._card_revision or self._method != PaymentMethod.CREDIT_CARD:
            logger.debug("Card changed during tokenization; discarding token")
            return None

        self._credential = CardCredential(
            token=result.token,
            brand=result.brand or card.brand,
            installments=self._installments,
            last_four=card.number_digits[-4:],
        )
        self._notify()
        return self._credential

    def invalidate_credential(self) -> None:
        """Drop the card token (after a failed order, the token is spent)."""
        if self._credential is not None:
            logger.debug("Invalidating card credential")
        self._credential = None
        self._notify()
