"""Melhor Envio carrier quotation client.

One POST quotes every requested service at once.  Services the
aggregator reports with an ``error`` come back as unavailable quotes;
services missing from the response are left to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

import httpx

from checkout_core.domain.exceptions import QuotationUnavailable, ValidationError
from checkout_core.domain.gateway.carrier_rates import CarrierRateService
from checkout_core.domain.model.address import normalize_postal_code
from checkout_core.domain.model.delivery import CarrierQuote, carrier_service_name
from checkout_core.domain.model.value_objects import Money

logger = logging.getLogger(__name__)

USER_AGENT = "storefront-checkout (suporte@storefront-checkout.dev)"


@dataclass(frozen=True)
class Parcel:
    """Package dimensions in cm and kg; the aggregator's minimums by default."""

    width: float = 11
    height: float = 2
    length: float = 16
    weight: float = 0.3
    insurance_value: Decimal = Decimal("0")
    quantity: int = 1


class MelhorEnvioCarrierRates(CarrierRateService):
    """Melhor Envio HTTP client"""

    def __init__(
        self,
        origin_postal_code: str,
        token: str,
        base_url: str = "https://sandbox.melhorenvio.com.br",
        parcels: list[Parcel] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.origin_postal_code = normalize_postal_code(origin_postal_code)
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.parcels = parcels or [Parcel()]
        self.client = client or httpx.AsyncClient(timeout=15.0)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def quote(self, postal_code: str, service_ids: list[str]) -> list[CarrierQuote]:
        code = normalize_postal_code(postal_code)
        payload = {
            "from": {"postal_code": self.origin_postal_code},
            "to": {"postal_code": code},
            "products": [
                {
                    "id": str(i + 1),
                    "width": p.width,
                    "height": p.height,
                    "length": p.length,
                    "weight": p.weight,
                    "insurance_value": float(p.insurance_value),
                    "quantity": p.quantity,
                }
                for i, p in enumerate(self.parcels)
            ],
            "services": ",".join(service_ids),
        }
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.token}",
            "User-Agent": USER_AGENT,
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/api/v2/me/shipment/calculate",
                json=payload,
                headers=headers,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Melhor Envio quotation failed: {e.response.status_code}")
            raise QuotationUnavailable(
                f"Carrier quotation failed with status {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error calling Melhor Envio: {e}")
            raise QuotationUnavailable(f"Carrier quotation failed: {e}") from e

        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise QuotationUnavailable("Unexpected carrier quotation response")

        wanted = set(service_ids)
        quotes = []
        for raw in data:
            if not isinstance(raw, dict):
                logger.warning("Skipping malformed carrier quotation entry: %r", raw)
                continue
            service_id = str(raw.get("id", ""))
            if service_id in wanted:
                quotes.append(self._to_quote(service_id, code, raw))
        return quotes

    @staticmethod
    def _to_quote(service_id: str, postal_code: str, raw: dict) -> CarrierQuote:
        name = raw.get("name") or carrier_service_name(service_id)
        company = (raw.get("company") or {}).get("name")
        if company and company not in name:
            name = f"{company} {name}"
        if raw.get("error"):
            return CarrierQuote.unavailable(service_id, postal_code, name)

        try:
            price = Money.of(raw.get("custom_price") or raw.get("price"))
        except ValidationError:
            return CarrierQuote.unavailable(service_id, postal_code, name)

        days = raw.get("custom_delivery_range") or raw.get("delivery_range") or {}
        try:
            fallback = int(raw.get("delivery_time") or 0)
            days_min = int(days.get("min", fallback))
            days_max = int(days.get("max", fallback))
        except (ValueError, TypeError, AttributeError):
            logger.warning("Unreadable delivery time for service %s: %r", service_id, raw)
            return CarrierQuote.unavailable(service_id, postal_code, name)
        return CarrierQuote(
            service_id=service_id,
            postal_code=postal_code,
            price=price.quantize(),
            estimated_days_min=days_min,
            estimated_days_max=days_max,
            available=True,
            name=name,
        )
