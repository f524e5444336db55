"""Mercado Pago card tokenization client.

Only the ``/v1/card_tokens`` endpoint is used: the raw card goes to the
gateway, the token comes back, and nothing else in the checkout ever
sees the card number.
"""

from __future__ import annotations

import logging

import httpx

from checkout_core.domain.exceptions import TokenizationRejected, TokenizationTransportError
from checkout_core.domain.gateway.payment_gateway import PaymentGateway
from checkout_core.domain.model.payment import (
    GENERIC_FAILURE,
    TokenizedCard,
    infer_card_brand,
    issuer_message,
)
from checkout_core.domain.model.value_objects import digits_only

logger = logging.getLogger(__name__)


class MercadoPagoPaymentGateway(PaymentGateway):
    """Mercado Pago HTTP client"""

    def __init__(
        self,
        public_key: str,
        base_url: str = "https://api.mercadopago.com",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.public_key = public_key
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=15.0)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def tokenize_card(
        self,
        number: str,
        holder_name: str,
        expiry_month: int,
        expiry_year: int,
        cvv: str,
        tax_id: str = "",
    ) -> TokenizedCard:
        cardholder: dict = {"name": holder_name}
        tax_digits = digits_only(tax_id)
        if tax_digits:
            cardholder["identification"] = {
                "type": "CNPJ" if len(tax_digits) == 14 else "CPF",
                "number": tax_digits,
            }
        payload = {
            "card_number": digits_only(number),
            "expiration_month": expiry_month,
            "expiration_year": expiry_year,
            "security_code": cvv,
            "cardholder": cardholder,
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/v1/card_tokens",
                params={"public_key": self.public_key},
                json=payload,
            )
        except httpx.HTTPError as e:
            logger.error(f"Error calling Mercado Pago: {e}")
            raise TokenizationTransportError(GENERIC_FAILURE) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            status_detail = data.get("status_detail") if isinstance(data, dict) else None
            if isinstance(data, dict) and (
                data.get("status") == "rejected"
                or (status_detail or "").startswith("cc_rejected")
            ):
                logger.info(f"Card rejected by issuer: {status_detail}")
                raise TokenizationRejected(issuer_message(status_detail))
            logger.error(f"Mercado Pago tokenization failed: {response.status_code}")
            raise TokenizationTransportError(GENERIC_FAILURE)

        token = data.get("id") if isinstance(data, dict) else None
        if not token:
            raise TokenizationTransportError(GENERIC_FAILURE)
        brand = data.get("payment_method_id") or infer_card_brand(number)
        return TokenizedCard(token=token, brand=brand)
