"""Tests for the JSON-file adapters, each against a fresh tmp_path."""

import json
from decimal import Decimal

import pytest

from checkout_core.domain.exceptions import (
    AuthenticationError,
    LookupFailure,
    ValidationError,
)
from checkout_core.domain.model.cart import CartLine
from checkout_core.domain.model.delivery import (
    DeliveryMethod,
    DeliveryOption,
    DeliverySettings,
    LocalCourierPricing,
    RuleScope,
    ShippingRule,
)
from checkout_core.domain.model.identity import Guest
from checkout_core.domain.model.payment import PaymentMethod, PaymentSettings
from checkout_core.domain.model.session import OrderDraft, OrderTotals
from checkout_core.domain.model.store import StoreSettings
from checkout_core.domain.model.value_objects import Money, Quantity
from checkout_core.infrastructure.persistence.json_identity_store import JsonIdentityStore
from checkout_core.infrastructure.persistence.json_order_service import JsonOrderService
from checkout_core.infrastructure.persistence.json_store_settings_repository import (
    JsonStoreSettingsRepository,
)


# ── Store settings ───────────────────────────────────────────────────────────


class TestJsonStoreSettingsRepository:

    def _store(self) -> StoreSettings:
        return StoreSettings(
            id="loja-ana",
            name="Loja da Ana",
            delivery=DeliverySettings(
                option=DeliveryOption.DELIVERY_ONLY,
                carrier_service_ids=("1", "17"),
                local_courier=LocalCourierPricing(
                    rules=(ShippingRule("Centro", RuleScope.NEIGHBORHOOD, "Centro", Money.of("9.90")),),
                    flat_fee=Money.of("20"),
                ),
            ),
            payment=PaymentSettings(
                enabled_methods=frozenset({PaymentMethod.PIX, PaymentMethod.CREDIT_CARD}),
                pix_discount_percent=Decimal("5"),
                max_installments_no_interest=6,
            ),
            require_store_name=False,
            origin_postal_code="01001000",
        )

    def test_save_and_reload(self, tmp_path):
        repo = JsonStoreSettingsRepository(tmp_path / "stores.json")
        repo.save(self._store())
        assert JsonStoreSettingsRepository(tmp_path / "stores.json").get_by_id("loja-ana") == self._store()

    def test_save_replaces_existing(self, tmp_path):
        repo = JsonStoreSettingsRepository(tmp_path / "stores.json")
        repo.save(self._store())
        repo.save(self._store())
        assert len(repo.list_all()) == 1

    def test_unknown_store(self, tmp_path):
        assert JsonStoreSettingsRepository(tmp_path / "stores.json").get_by_id("nope") is None

    def test_missing_payment_section_enables_everything(self, tmp_path):
        path = tmp_path / "stores.json"
        path.write_text(json.dumps([{"id": "minimal"}]), encoding="utf-8")
        store = JsonStoreSettingsRepository(path).get_by_id("minimal")
        assert store.payment.enabled_methods == frozenset(PaymentMethod)
        assert store.delivery.option == DeliveryOption.DELIVERY_AND_PICKUP

    def test_invalid_settings_rejected(self, tmp_path):
        path = tmp_path / "stores.json"
        path.write_text(json.dumps([{"id": "bad", "delivery_option": "teleport"}]), encoding="utf-8")
        with pytest.raises(ValidationError, match="bad"):
            JsonStoreSettingsRepository(path).get_by_id("bad")


# ── Identity store ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
class TestJsonIdentityStore:

    def _store(self, tmp_path) -> JsonIdentityStore:
        store = JsonIdentityStore(tmp_path / "accounts.json")
        store.add_account("cus-1", "Ana@Example.com", "s3cret", full_name="Ana Souza")
        return store

    async def test_lookup(self, tmp_path):
        store = self._store(tmp_path)
        assert (await store.lookup_by_email("ana@example.com")).customer_id == "cus-1"
        assert await store.lookup_by_email("other@example.com") is None

    async def test_password_is_not_stored_in_clear(self, tmp_path):
        self._store(tmp_path)
        assert "s3cret" not in (tmp_path / "accounts.json").read_text(encoding="utf-8")

    async def test_authenticate(self, tmp_path):
        session = await self._store(tmp_path).authenticate("ana@example.com", "s3cret")
        assert session.customer_id == "cus-1"
        assert session.profile.full_name == "Ana Souza"

    async def test_wrong_password(self, tmp_path):
        with pytest.raises(AuthenticationError):
            await self._store(tmp_path).authenticate("ana@example.com", "guess")

    async def test_login_link_goes_to_outbox(self, tmp_path):
        await self._store(tmp_path).request_login_link("ana@example.com")
        outbox = json.loads((tmp_path / "login_links.json").read_text(encoding="utf-8"))
        assert [entry["customer_id"] for entry in outbox] == ["cus-1"]

    async def test_login_link_for_unknown_email(self, tmp_path):
        with pytest.raises(LookupFailure):
            await self._store(tmp_path).request_login_link("nobody@example.com")

    async def test_corrupt_file_is_a_lookup_failure(self, tmp_path):
        path = tmp_path / "accounts.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(LookupFailure):
            await JsonIdentityStore(path).lookup_by_email("ana@example.com")


# ── Order service ────────────────────────────────────────────────────────────


def _draft() -> OrderDraft:
    return OrderDraft(
        identity=Guest(full_name="Ana Souza", email="ana@example.com", store_name="Loja da Ana"),
        lines=(CartLine("p1", Money.of("50.00"), Quantity(2), "Camiseta"),),
        delivery_method=DeliveryMethod.pickup(),
        destination=None,
        payment_method=PaymentMethod.PIX,
        credential=None,
        totals=OrderTotals(
            subtotal=Money.of("100.00"),
            delivery_fee=Money.zero(),
            discount=Money.of("5.00"),
            total=Money.of("95.00"),
        ),
    )


@pytest.mark.asyncio
class TestJsonOrderService:

    async def test_submit_assigns_sequential_ids(self, tmp_path):
        service = JsonOrderService(tmp_path / "orders.json")
        assert await service.submit(_draft()) == "1"
        assert await service.submit(_draft()) == "2"

    async def test_persisted_order(self, tmp_path):
        service = JsonOrderService(tmp_path / "orders.json")
        order_id = await service.submit(_draft())
        raw = service.get_by_id(order_id)
        assert raw["total"] == "95.00"
        assert raw["customer"]["type"] == "guest"
        assert raw["delivery"]["method"] == "pickup"
        assert raw["payment"] == {"method": "pix", "card": None}

    async def test_same_reference_is_not_recorded_twice(self, tmp_path):
        service = JsonOrderService(tmp_path / "orders.json")
        draft = _draft()
        first = await service.submit(draft)
        assert await service.submit(draft) == first
        assert len(json.loads((tmp_path / "orders.json").read_text(encoding="utf-8"))) == 1
