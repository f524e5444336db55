"""Tests for the PaymentResolver: card validation, tokenization and credentials."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from checkout_core.application.payment import PaymentResolver
from checkout_core.domain.exceptions import (
    CheckoutLockedError,
    TokenizationRejected,
    TokenizationTransportError,
    ValidationError,
)
from checkout_core.domain.model.payment import GENERIC_FAILURE, PaymentMethod, PaymentSettings
from checkout_core.domain.model.value_objects import Money
from tests.fakes import FakePaymentGateway, run_until

pytestmark = pytest.mark.asyncio

VALID_CARD = {
    "number": "4111 1111 1111 1111",
    "expiry": "12/30",
    "holder_name": "Maria Silva",
    "cvv": "123",
}


def _setup(settings: PaymentSettings | None = None, **kwargs) -> tuple[PaymentResolver, FakePaymentGateway]:
    gateway = FakePaymentGateway()
    settings = settings or PaymentSettings(
        pix_discount_percent=Decimal("5"), max_installments_no_interest=6
    )
    resolver = PaymentResolver(gateway, settings, today=lambda: date(2026, 6, 15), **kwargs)
    return resolver, gateway


def _card_ready(resolver: PaymentResolver) -> None:
    resolver.select(PaymentMethod.CREDIT_CARD)
    resolver.edit_card(**VALID_CARD)


# ── Method selection ─────────────────────────────────────────────────────────


class TestSelection:

    async def test_non_card_methods_are_immediately_valid(self):
        resolver, _ = _setup()
        for method in (PaymentMethod.PIX, PaymentMethod.BOLETO, PaymentMethod.WHATSAPP):
            resolver.select(method)
            assert resolver.valid

    async def test_disabled_method_rejected(self):
        resolver, _ = _setup(PaymentSettings(enabled_methods=frozenset({PaymentMethod.PIX})))
        with pytest.raises(ValidationError, match="not enabled"):
            resolver.select(PaymentMethod.BOLETO)
        assert resolver.enabled_methods() == (PaymentMethod.PIX,)

    async def test_card_without_credential_is_invalid(self):
        resolver, _ = _setup()
        _card_ready(resolver)
        assert not resolver.valid

    async def test_nothing_selected_is_invalid(self):
        resolver, _ = _setup()
        assert not resolver.valid


# ── Tokenization ─────────────────────────────────────────────────────────────


class TestTokenization:

    async def test_successful_tokenization(self):
        resolver, gateway = _setup()
        _card_ready(resolver)
        credential = await resolver.tokenize()
        assert credential.token == "tok_1"
        assert credential.last_four == "1111"
        assert credential.installments == 1
        assert resolver.valid
        assert gateway.calls[0]["number"] == "4111111111111111"
        assert gateway.calls[0]["expiry_year"] == 2030

    async def test_field_errors_never_reach_gateway(self):
        resolver, gateway = _setup()
        resolver.select(PaymentMethod.CREDIT_CARD)
        resolver.edit_card(**{**VALID_CARD, "expiry": "01/20"})
        with pytest.raises(ValidationError, match="expired"):
            await resolver.tokenize()
        assert gateway.calls == []

    async def test_tokenize_requires_card_method(self):
        resolver, _ = _setup()
        resolver.select(PaymentMethod.PIX)
        with pytest.raises(ValidationError):
            await resolver.tokenize()

    async def test_second_request_in_flight_is_ignored(self):
        resolver, gateway = _setup()
        _card_ready(resolver)
        gateway.gate = asyncio.Event()

        first = asyncio.ensure_future(resolver.tokenize())
        await run_until(lambda: len(gateway.calls) == 1)
        assert resolver.tokenizing
        assert not resolver.valid

        assert await resolver.tokenize() is None
        gateway.gate.set()
        assert (await first).token == "tok_1"
        assert len(gateway.calls) == 1

    async def test_edit_during_tokenization_discards_token(self):
        resolver, gateway = _setup()
        _card_ready(resolver)
        gateway.gate = asyncio.Event()

        pending = asyncio.ensure_future(resolver.tokenize())
        await run_until(lambda: len(gateway.calls) == 1)
        resolver.edit_card(cvv="999")
        gateway.gate.set()

        assert await pending is None
        assert resolver.credential is None

    async def test_issuer_rejection(self):
        resolver, gateway = _setup()
        _card_ready(resolver)
        gateway.reject_with = "Insufficient funds on this card"
        with pytest.raises(TokenizationRejected):
            await resolver.tokenize()
        assert resolver.last_error == "Insufficient funds on this card"
        assert resolver.credential is None
        assert not resolver.tokenizing

    async def test_declined_card_is_not_resent_until_edited(self):
        resolver, gateway = _setup()
        _card_ready(resolver)
        gateway.reject_with = "Insufficient funds on this card"
        with pytest.raises(TokenizationRejected):
            await resolver.tokenize()

        with pytest.raises(ValidationError, match="Insufficient funds"):
            await resolver.tokenize()
        assert len(gateway.calls) == 1

        gateway.reject_with = None
        resolver.edit_card(cvv="999")
        assert await resolver.tokenize() is not None
        assert len(gateway.calls) == 2

    async def test_transport_error_can_be_retried_with_same_card(self):
        resolver, gateway = _setup()
        _card_ready(resolver)
        gateway.transport_error = True
        with pytest.raises(TokenizationTransportError):
            await resolver.tokenize()

        gateway.transport_error = False
        assert await resolver.tokenize() is not None
        assert len(gateway.calls) == 2

    async def test_timeout_is_a_transport_error(self):
        resolver, gateway = _setup(tokenize_timeout=0.01)
        _card_ready(resolver)
        gateway.hang = True
        with pytest.raises(TokenizationTransportError):
            await resolver.tokenize()
        assert resolver.last_error == GENERIC_FAILURE


# ── Credential lifetime ──────────────────────────────────────────────────────


class TestCredentialLifetime:

    async def test_any_card_edit_drops_credential(self):
        resolver, _ = _setup()
        _card_ready(resolver)
        await resolver.tokenize()
        resolver.edit_card(holder_name="Maria S Silva")
        assert resolver.credential is None
        assert not resolver.valid

    async def test_switching_method_drops_credential(self):
        resolver, _ = _setup()
        _card_ready(resolver)
        await resolver.tokenize()
        resolver.select(PaymentMethod.PIX)
        resolver.select(PaymentMethod.CREDIT_CARD)
        assert resolver.credential is None

    async def test_installments_carried_on_credential(self):
        resolver, _ = _setup()
        _card_ready(resolver)
        await resolver.tokenize()
        resolver.set_installments(3)
        assert resolver.credential.installments == 3

    async def test_installments_above_store_limit_rejected(self):
        resolver, _ = _setup()
        with pytest.raises(ValidationError):
            resolver.set_installments(7)

    async def test_snapshot_lists_installments_for_card(self):
        resolver, _ = _setup()
        _card_ready(resolver)
        snapshot = resolver.snapshot(Money.of("300"))
        assert len(snapshot.installments) == 6
        assert snapshot.installments[2].amount == Money.of("100.00")
        assert snapshot.card_brand == "visa"

    async def test_locked_resolver_refuses_edits(self):
        resolver, _ = _setup()
        _card_ready(resolver)
        resolver.lock()
        with pytest.raises(CheckoutLockedError):
            resolver.edit_card(cvv="321")
        with pytest.raises(CheckoutLockedError):
            await resolver.tokenize()
