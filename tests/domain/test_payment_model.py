"""Unit tests for card fields, brand inference and payment settings."""

from datetime import date
from decimal import Decimal

import pytest

from checkout_core.domain.exceptions import ValidationError
from checkout_core.domain.model.payment import (
    GENERIC_DECLINE,
    CardFields,
    PaymentSettings,
    infer_card_brand,
    issuer_message,
    parse_expiry,
)

TODAY = date(2026, 6, 15)


def _card(**overrides) -> CardFields:
    fields = {
        "number": "4111 1111 1111 1111",
        "expiry": "12/30",
        "holder_name": "Maria Silva",
        "cvv": "123",
    }
    fields.update(overrides)
    return CardFields(**fields)


class TestBrandInference:

    @pytest.mark.parametrize(
        "number, brand",
        [
            ("4111111111111111", "visa"),
            ("5555 5555 5555 4444", "master"),
            ("2223000048400011", "master"),
            ("378282246310005", "amex"),
            ("6011111111111117", "discover"),
            ("3530111333300000", "jcb"),
            ("30569309025904", "diners"),
            ("6362970000457013", "elo"),
            ("6062825624254001", "hipercard"),
            ("9999", "unknown"),
            ("", "unknown"),
        ],
    )
    def test_brand(self, number, brand):
        assert infer_card_brand(number) == brand


class TestExpiry:

    def test_short_year(self):
        assert parse_expiry("07/29") == (7, 2029)

    def test_long_year(self):
        assert parse_expiry("7/2031") == (7, 2031)

    def test_garbage(self):
        assert parse_expiry("July") is None


class TestCardFieldErrors:

    def test_valid_card_has_no_errors(self):
        assert _card().errors(TODAY) == {}

    def test_short_number(self):
        assert "number" in _card(number="4111 1111").errors(TODAY)

    def test_expired_card(self):
        assert _card(expiry="05/26").errors(TODAY)["expiry"] == "Card has expired"

    def test_current_month_is_still_valid(self):
        assert "expiry" not in _card(expiry="06/26").errors(TODAY)

    def test_bad_month(self):
        assert "expiry" in _card(expiry="13/30").errors(TODAY)

    def test_bad_cvv(self):
        assert "cvv" in _card(cvv="12a").errors(TODAY)

    def test_short_holder_name(self):
        assert "holder_name" in _card(holder_name="Al").errors(TODAY)

    def test_tax_id_optional_but_checked_when_present(self):
        assert "tax_id" not in _card(tax_id="").errors(TODAY)
        assert "tax_id" not in _card(tax_id="123.456.789-09").errors(TODAY)
        assert "tax_id" in _card(tax_id="1234").errors(TODAY)


class TestPaymentSettings:

    def test_discount_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            PaymentSettings(pix_discount_percent=Decimal("120"))

    def test_zero_installments_rejected(self):
        with pytest.raises(ValidationError):
            PaymentSettings(max_installments_no_interest=0)


def test_issuer_message_falls_back_to_generic_decline():
    assert issuer_message("cc_rejected_insufficient_amount") == "Insufficient funds on this card"
    assert issuer_message("cc_rejected_other_reason") == GENERIC_DECLINE
    assert issuer_message(None) == GENERIC_DECLINE
