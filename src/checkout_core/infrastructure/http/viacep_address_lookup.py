"""ViaCEP postal-code address lookup."""

from __future__ import annotations

import logging

import httpx

from checkout_core.domain.exceptions import LookupFailure
from checkout_core.domain.gateway.address_lookup import AddressLookup
from checkout_core.domain.model.address import AddressEnrichment, normalize_postal_code

logger = logging.getLogger(__name__)


class ViaCepAddressLookup(AddressLookup):
    """ViaCEP HTTP client"""

    def __init__(
        self,
        base_url: str = "https://viacep.com.br",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def lookup(self, postal_code: str) -> AddressEnrichment | None:
        code = normalize_postal_code(postal_code)
        try:
            response = await self.client.get(f"{self.base_url}/ws/{code}/json/")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"ViaCEP returned {e.response.status_code} for {code}")
            raise LookupFailure(f"Address lookup failed with status {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise LookupFailure(f"Address lookup failed: {e}") from e

        if not isinstance(data, dict) or data.get("erro"):
            return None
        return AddressEnrichment(
            street=data.get("logradouro") or "",
            neighborhood=data.get("bairro") or "",
            city=data.get("localidade") or "",
            state=data.get("uf") or "",
        )
