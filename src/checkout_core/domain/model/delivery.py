"""Delivery methods, carrier quotes and local courier pricing."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from checkout_core.domain.exceptions import ValidationError
from checkout_core.domain.model.address import Address, normalize_postal_code
from checkout_core.domain.model.value_objects import Money


class DeliveryOption(Enum):
    """Store-level policy restricting which methods may be offered."""

    DELIVERY_ONLY = "delivery_only"
    DELIVERY_AND_PICKUP = "delivery_and_pickup"
    PICKUP_ONLY = "pickup_only"

    @property
    def allows_pickup(self) -> bool:
        return self in (DeliveryOption.PICKUP_ONLY, DeliveryOption.DELIVERY_AND_PICKUP)

    @property
    def allows_delivery(self) -> bool:
        return self in (DeliveryOption.DELIVERY_ONLY, DeliveryOption.DELIVERY_AND_PICKUP)


class DeliveryKind(Enum):
    PICKUP = "pickup"
    LOCAL_COURIER = "local_courier"
    CARRIER = "carrier"


@dataclass(frozen=True)
class DeliveryMethod:
    """Pickup, LocalCourier or CarrierService(service_id)."""

    kind: DeliveryKind
    service_id: str | None = None

    def __post_init__(self) -> None:
        if self.kind == DeliveryKind.CARRIER and not self.service_id:
            raise ValidationError("Carrier delivery requires a service id")
        if self.kind != DeliveryKind.CARRIER and self.service_id is not None:
            raise ValidationError(f"{self.kind.value} delivery takes no service id")

    @staticmethod
    def pickup() -> DeliveryMethod:
        return DeliveryMethod(DeliveryKind.PICKUP)

    @staticmethod
    def local_courier() -> DeliveryMethod:
        return DeliveryMethod(DeliveryKind.LOCAL_COURIER)

    @staticmethod
    def carrier(service_id: str) -> DeliveryMethod:
        return DeliveryMethod(DeliveryKind.CARRIER, str(service_id))

    @property
    def is_pickup(self) -> bool:
        return self.kind == DeliveryKind.PICKUP

    @property
    def is_carrier(self) -> bool:
        return self.kind == DeliveryKind.CARRIER

    def __str__(self) -> str:
        if self.is_carrier:
            return f"carrier:{self.service_id}"
        return self.kind.value


# Carrier aggregator service ids
CARRIER_SERVICE_NAMES = {
    "1": "Correios SEDEX",
    "2": "Correios PAC",
    "17": "Correios Mini Envios",
}


def carrier_service_name(service_id: str) -> str:
    return CARRIER_SERVICE_NAMES.get(service_id, f"Carrier {service_id}")


@dataclass(frozen=True)
class CarrierQuote:
    """A priced offer for one carrier service to one destination postal code."""

    service_id: str
    postal_code: str
    price: Money
    estimated_days_min: int
    estimated_days_max: int
    available: bool = True
    name: str = ""

    @staticmethod
    def unavailable(service_id: str, postal_code: str, name: str = "") -> CarrierQuote:
        return CarrierQuote(
            service_id=service_id,
            postal_code=postal_code,
            price=Money.zero(),
            estimated_days_min=0,
            estimated_days_max=0,
            available=False,
            name=name,
        )


class QuoteStatus(Enum):
    LOADING = "LOADING"
    READY = "READY"
    UNAVAILABLE = "UNAVAILABLE"


class RuleScope(Enum):
    ZIPCODE = "zipcode"
    NEIGHBORHOOD = "neighborhood"
    CITY = "city"


# Most specific scope first
_SCOPE_PRECEDENCE = (RuleScope.ZIPCODE, RuleScope.NEIGHBORHOOD, RuleScope.CITY)


@dataclass(frozen=True)
class ShippingRule:
    """A merchant-defined local delivery fee for a zipcode, neighborhood or city."""

    name: str
    scope: RuleScope
    value: str
    fee: Money

    def matches(self, address: Address) -> bool:
        if self.scope == RuleScope.ZIPCODE:
            return normalize_postal_code(self.value) == normalize_postal_code(address.postal_code)
        target = address.neighborhood if self.scope == RuleScope.NEIGHBORHOOD else address.city
        return _fold(self.value) == _fold(target) and bool(target.strip())


@dataclass(frozen=True)
class LocalCourierPricing:
    """How the store prices its own courier (motoboy).

    Rules are tried zipcode first, then neighborhood, then city; the flat
    fee is the fallback.  With neither, the courier cannot be priced.
    """

    rules: tuple[ShippingRule, ...] = ()
    flat_fee: Money | None = None
    estimated_days_min: int = 1
    estimated_days_max: int = 2

    @property
    def is_configured(self) -> bool:
        return bool(self.rules) or self.flat_fee is not None

    def fee_for(self, address: Address) -> Money | None:
        for scope in _SCOPE_PRECEDENCE:
            for rule in self.rules:
                if rule.scope == scope and rule.matches(address):
                    return rule.fee
        return self.flat_fee


@dataclass(frozen=True)
class DeliverySettings:
    option: DeliveryOption = DeliveryOption.DELIVERY_AND_PICKUP
    carrier_service_ids: tuple[str, ...] = ()
    local_courier: LocalCourierPricing = field(default_factory=LocalCourierPricing)
    pickup_address: str = ""


def _fold(value: str) -> str:
    return " ".join(value.split()).casefold()
