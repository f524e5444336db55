"""Composition root: builds adapters from settings and assembles checkouts.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from collections.abc import Sequence

import httpx

from checkout_core.application.delivery import DeliveryResolver
from checkout_core.application.finalize_checkout import CheckoutCoordinator
from checkout_core.application.identification import IdentificationResolver
from checkout_core.application.payment import PaymentResolver
from checkout_core.domain.model.cart import CartLine
from checkout_core.domain.model.identity import AuthSession
from checkout_core.domain.model.store import StoreSettings
from checkout_core.infrastructure.http.melhor_envio_carrier_rates import (
    MelhorEnvioCarrierRates,
)
from checkout_core.infrastructure.http.mercadopago_payment_gateway import (
    MercadoPagoPaymentGateway,
)
from checkout_core.infrastructure.http.viacep_address_lookup import ViaCepAddressLookup
from checkout_core.infrastructure.persistence.json_identity_store import JsonIdentityStore
from checkout_core.infrastructure.persistence.json_order_service import JsonOrderService
from checkout_core.infrastructure.persistence.json_store_settings_repository import (
    JsonStoreSettingsRepository,
)
from checkout_core.infrastructure.settings import CheckoutSettings


def load_settings() -> CheckoutSettings:
    return CheckoutSettings.from_env()


def http_client() -> httpx.AsyncClient:
    """One pooled client shared by every HTTP adapter of a session."""
    return httpx.AsyncClient(timeout=15.0)


def store_settings_repository(settings: CheckoutSettings) -> JsonStoreSettingsRepository:
    return JsonStoreSettingsRepository(settings.data_dir / "stores.json")


def identity_store(settings: CheckoutSettings) -> JsonIdentityStore:
    return JsonIdentityStore(settings.data_dir / "accounts.json")


def order_service(settings: CheckoutSettings) -> JsonOrderService:
    return JsonOrderService(settings.data_dir / "orders.json")


def address_lookup(settings: CheckoutSettings, client: httpx.AsyncClient) -> ViaCepAddressLookup:
    return ViaCepAddressLookup(base_url=settings.viacep_url, client=client)


def carrier_rates(
    settings: CheckoutSettings, store: StoreSettings, client: httpx.AsyncClient
) -> MelhorEnvioCarrierRates:
    return MelhorEnvioCarrierRates(
        origin_postal_code=store.origin_postal_code or settings.origin_postal_code,
        token=settings.melhor_envio_token,
        base_url=settings.melhor_envio_url,
        client=client,
    )


def payment_gateway(
    settings: CheckoutSettings, client: httpx.AsyncClient
) -> MercadoPagoPaymentGateway:
    return MercadoPagoPaymentGateway(
        public_key=settings.mercadopago_public_key,
        base_url=settings.mercadopago_url,
        client=client,
    )


def build_checkout(
    settings: CheckoutSettings,
    store: StoreSettings,
    lines: Sequence[CartLine],
    client: httpx.AsyncClient,
    auth_session: AuthSession | None = None,
) -> CheckoutCoordinator:
    """Assemble one checkout session for *store*.

    The caller owns *client* and closes it when the session is discarded.
    """
    identification = IdentificationResolver(
        identity_store(settings),
        auth_session=auth_session,
        debounce_seconds=settings.email_debounce_seconds,
        require_store_name=store.require_store_name,
    )
    delivery = DeliveryResolver(
        carrier_rates(settings, store, client),
        address_lookup(settings, client),
        store.delivery,
        quote_timeout=settings.quote_timeout,
    )
    payment = PaymentResolver(
        payment_gateway(settings, client),
        store.payment,
        tokenize_timeout=settings.tokenize_timeout,
    )
    return CheckoutCoordinator(
        lines,
        identification,
        delivery,
        payment,
        order_service(settings),
        submit_timeout=settings.submit_timeout,
    )
