"""Store-level checkout configuration, as set up in the back office."""

from __future__ import annotations

from dataclasses import dataclass, field

from checkout_core.domain.model.delivery import DeliverySettings
from checkout_core.domain.model.payment import PaymentSettings


@dataclass(frozen=True)
class StoreSettings:

    id: str
    name: str
    delivery: DeliverySettings = field(default_factory=DeliverySettings)
    payment: PaymentSettings = field(default_factory=PaymentSettings)
    require_store_name: bool = True
    origin_postal_code: str = ""
