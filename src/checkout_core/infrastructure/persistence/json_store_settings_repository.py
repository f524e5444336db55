"""JSON-file-backed implementation of StoreSettingsRepository."""

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from pathlib import Path

from checkout_core.domain.exceptions import ValidationError
from checkout_core.domain.model.delivery import (
    DeliveryOption,
    DeliverySettings,
    LocalCourierPricing,
    RuleScope,
    ShippingRule,
)
from checkout_core.domain.model.payment import PaymentMethod, PaymentSettings
from checkout_core.domain.model.store import StoreSettings
from checkout_core.domain.model.value_objects import Money
from checkout_core.domain.repository.store_settings_repository import (
    StoreSettingsRepository,
)


class JsonStoreSettingsRepository(StoreSettingsRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._ensure_file()

    # --- StoreSettingsRepository interface ------------------------------------

    def get_by_id(self, store_id: str) -> StoreSettings | None:
        for raw in self._load_raw():
            if raw["id"] == store_id:
                return self._to_domain(raw)
        return None

    def list_all(self) -> list[StoreSettings]:
        return [self._to_domain(raw) for raw in self._load_raw()]

    def save(self, store: StoreSettings) -> None:
        records = self._load_raw()
        replaced = False
        for i, raw in enumerate(records):
            if raw["id"] == store.id:
                records[i] = self._to_raw(store)
                replaced = True
                break
        if not replaced:
            records.append(self._to_raw(store))
        self._persist_raw(records)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(store: StoreSettings) -> dict:
        courier = store.delivery.local_courier
        return {
            "id": store.id,
            "name": store.name,
            "require_store_name": store.require_store_name,
            "origin_postal_code": store.origin_postal_code,
            "delivery_option": store.delivery.option.value,
            "carrier_service_ids": list(store.delivery.carrier_service_ids),
            "pickup_address": store.delivery.pickup_address,
            "local_courier": {
                "flat_fee": str(courier.flat_fee.amount) if courier.flat_fee else None,
                "estimated_days": [courier.estimated_days_min, courier.estimated_days_max],
                "rules": [
                    {
                        "name": rule.name,
                        "scope": rule.scope.value,
                        "value": rule.value,
                        "fee": str(rule.fee.amount),
                    }
                    for rule in courier.rules
                ],
            },
            "payment": {
                "enabled_methods": [
                    m.value for m in PaymentMethod if m in store.payment.enabled_methods
                ],
                "pix_discount_percent": str(store.payment.pix_discount_percent),
                "max_installments_no_interest": store.payment.max_installments_no_interest,
            },
        }

    @staticmethod
    def _to_domain(raw: dict) -> StoreSettings:
        try:
            courier_raw = raw.get("local_courier") or {}
            days = courier_raw.get("estimated_days") or [1, 2]
            flat_fee = courier_raw.get("flat_fee")
            courier = LocalCourierPricing(
                rules=tuple(
                    ShippingRule(
                        name=r.get("name", ""),
                        scope=RuleScope(r["scope"]),
                        value=r["value"],
                        fee=Money.of(r["fee"]),
                    )
                    for r in courier_raw.get("rules", [])
                ),
                flat_fee=Money.of(flat_fee) if flat_fee is not None else None,
                estimated_days_min=int(days[0]),
                estimated_days_max=int(days[1]),
            )
            payment_raw = raw.get("payment") or {}
            return StoreSettings(
                id=raw["id"],
                name=raw.get("name", raw["id"]),
                require_store_name=raw.get("require_store_name", True),
                origin_postal_code=raw.get("origin_postal_code", ""),
                delivery=DeliverySettings(
                    option=DeliveryOption(raw.get("delivery_option", "delivery_and_pickup")),
                    carrier_service_ids=tuple(str(s) for s in raw.get("carrier_service_ids", [])),
                    local_courier=courier,
                    pickup_address=raw.get("pickup_address", ""),
                ),
                payment=PaymentSettings(
                    enabled_methods=frozenset(
                        PaymentMethod(m)
                        for m in payment_raw.get("enabled_methods", [m.value for m in PaymentMethod])
                    ),
                    pix_discount_percent=Decimal(str(payment_raw.get("pix_discount_percent", "0"))),
                    max_installments_no_interest=int(
                        payment_raw.get("max_installments_no_interest", 1)
                    ),
                ),
            )
        except (KeyError, ValueError, IndexError, InvalidOperation) as exc:
            raise ValidationError(
                f"Invalid settings for store {raw.get('id')!r}: {exc}"
            ) from exc

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> list[dict]:
        return json.loads(self._file_path.read_text(encoding="utf-8"))

    def _persist_raw(self, records: list[dict]) -> None:
        self._file_path.write_text(
            json.dumps(records, indent=2) + "\n", encoding="utf-8"
        )

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text("[]", encoding="utf-8")
