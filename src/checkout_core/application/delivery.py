"""Application service: Delivery Resolver.

Keeps the selected delivery method, the destination address and the
carrier quotes that price it.

Quotes are cached per destination postal code.  Changing the postal
code drops every cached quote synchronously, before the new quotation
request is issued, so a quote for an old destination can never price
the order.  Quotation and address lookups are tagged with a sequence
number; results for a superseded sequence are ignored.
"""

from __future__ import annotations

import asyncio
import logging

from checkout_core.application.dto import DeliveryOptionView, DeliverySnapshot
from checkout_core.application.observable import Resolver
from checkout_core.domain.exceptions import LookupFailure, QuotationUnavailable, ValidationError
from checkout_core.domain.gateway.address_lookup import AddressLookup
from checkout_core.domain.gateway.carrier_rates import CarrierRateService
from checkout_core.domain.model.address import (
    Address,
    is_valid_postal_code,
    normalize_postal_code,
)
from checkout_core.domain.model.delivery import (
    CarrierQuote,
    DeliveryKind,
    DeliveryMethod,
    DeliverySettings,
    QuoteStatus,
    carrier_service_name,
)
from checkout_core.domain.model.value_objects import Money

logger = logging.getLogger(__name__)

DEFAULT_QUOTE_TIMEOUT = 12.0


class DeliveryResolver(Resolver):

    def __init__(
        self,
        carrier_rates: CarrierRateService,
        address_lookup: AddressLookup,
        settings: DeliverySettings,
        *,
        quote_timeout: float = DEFAULT_QUOTE_TIMEOUT,
        lookup_timeout: float = DEFAULT_QUOTE_TIMEOUT,
    ) -> None:
        super().__init__()
        self._carrier_rates = carrier_rates
        self._address_lookup = address_lookup
        self._settings = settings
        self._quote_timeout = quote_timeout
        self._lookup_timeout = lookup_timeout

        self._method: DeliveryMethod | None = None
        self._address = Address()
        self._quotes: dict[str, CarrierQuote] = {}
        self._quote_status: dict[str, QuoteStatus] = {}
        self._quote_seq = 0
        self._address_seq = 0
        self._enriched: dict[str, str] = {}

    # --- Queries --------------------------------------------------------------

    @property
    def settings(self) -> DeliverySettings:
        return self._settings

    @property
    def method(self) -> DeliveryMethod | None:
        return self._method

    @property
    def address(self) -> Address:
        return self._address

    @property
    def quotes(self) -> dict[str, CarrierQuote]:
        return dict(self._quotes)

    def quote_status(self, service_id: str) -> QuoteStatus | None:
        return self._quote_status.get(service_id)

    @property
    def quote_seq(self) -> int:
        return self._quote_seq

    def is_permitted(self, method: DeliveryMethod) -> bool:
        """Whether the store's delivery policy offers *method* at all."""
        option = self._settings.option
        if method.kind == DeliveryKind.PICKUP:
            return option.allows_pickup
        if not option.allows_delivery:
            return False
        if method.kind == DeliveryKind.LOCAL_COURIER:
            return self._settings.local_courier.is_configured
        return method.service_id in self._settings.carrier_service_ids

    def fee_for(self, method: DeliveryMethod) -> Money | None:
        """Concrete fee for *method* right now, or None if it cannot be priced."""
        if method.kind == DeliveryKind.PICKUP:
            return Money.zero()
        if method.kind == DeliveryKind.LOCAL_COURIER:
            return self._settings.local_courier.fee_for(self._address)
        quote = self._usable_quote(method.service_id)
        return quote.price if quote else None

    def days_for(self, method: DeliveryMethod) -> tuple[int, int] | None:
        if method.kind == DeliveryKind.PICKUP:
            return None
        if method.kind == DeliveryKind.LOCAL_COURIER:
            courier = self._settings.local_courier
            return courier.estimated_days_min, courier.estimated_days_max
        quote = self._usable_quote(method.service_id)
        return (quote.estimated_days_min, quote.estimated_days_max) if quote else None

    @property
    def fee(self) -> Money | None:
        return self.fee_for(self._method) if self._method else None

    @property
    def valid(self) -> bool:
        method = self._method
        if method is None or not self.is_permitted(method):
            return False
        if method.is_pickup:
            return True
        if not self._address.is_complete:
            return False
        return self.fee_for(method) is not None

    def options(self) -> list[DeliveryOptionView]:
        views: list[DeliveryOptionView] = []
        if self._settings.option.allows_pickup:
            pickup = DeliveryMethod.pickup()
            views.append(
                DeliveryOptionView(
                    method=pickup, label="Pickup", selectable=True, fee=Money.zero()
                )
            )
        if not self._settings.option.allows_delivery:
            return views

        courier = DeliveryMethod.local_courier()
        if self.is_permitted(courier):
            views.append(
                DeliveryOptionView(
                    method=courier,
                    label="Local courier",
                    selectable=True,
                    fee=self.fee_for(courier),
                    estimated_days=self.days_for(courier),
                )
            )
        for service_id in self._settings.carrier_service_ids:
            carrier = DeliveryMethod.carrier(service_id)
            status = self._quote_status.get(service_id)
            views.append(
                DeliveryOptionView(
                    method=carrier,
                    label=carrier_service_name(service_id),
                    selectable=status == QuoteStatus.READY,
                    loading=status == QuoteStatus.LOADING,
                    fee=self.fee_for(carrier),
                    estimated_days=self.days_for(carrier),
                )
            )
        return views

    def snapshot(self) -> DeliverySnapshot:
        method = self._method
        needs_address = method is not None and not method.is_pickup
        return DeliverySnapshot(
            method=method,
            valid=self.valid,
            fee=self.fee,
            estimated_days=self.days_for(method) if method else None,
            destination=self._address if needs_address else None,
            options=tuple(self.options()),
            missing_fields=tuple(self._address.missing_fields()) if needs_address else (),
        )

    # --- Commands -------------------------------------------------------------

    def select(self, method: DeliveryMethod) -> None:
        self._ensure_editable()
        if not self.is_permitted(method):
            raise ValidationError(f"Delivery method '{method}' is not offered by this store")
        if method.is_carrier:
            status = self._quote_status.get(method.service_id)
            name = carrier_service_name(method.service_id)
            if status == QuoteStatus.LOADING:
                raise QuotationUnavailable(f"{name} is still being quoted")
            if status != QuoteStatus.READY:
                raise QuotationUnavailable(f"{name} is not available for this destination")
        self._method = method
        self._notify()

    def clear_selection(self) -> None:
        self._ensure_editable()
        self._method = None
        self._notify()

    def set_postal_code(self, raw: str) -> None:
        """Change the destination postal code.

        Cached quotes are dropped before anything else happens.  A
        structurally valid code then triggers one batched quotation and a
        best-effort address lookup.
        """
        self._ensure_editable()
        code = normalize_postal_code(raw)
        if code == self._address.postal_code:
            return

        self._invalidate_quotes()
        self._address_seq += 1
        self._address = self._address.with_changes(postal_code=code)
        if self._method is not None and self._method.is_carrier:
            logger.debug("Postal code changed; clearing carrier selection %s", self._method)
            self._method = None

        if is_valid_postal_code(code):
            self._request_quotes(code)
            self._spawn(
                self._enrich_address(self._address_seq, code),
                name=f"address-lookup-{code}",
            )
        self._notify()

    def update_address(self, **fields: str) -> None:
        """Edit street, number, complement, neighborhood, city or state."""
        self._ensure_editable()
        postal_code = fields.pop("postal_code", None)
        if fields:
            self._address = self._address.with_changes(**fields)
        if postal_code is not None:
            self.set_postal_code(postal_code)
        else:
            self._notify()

    def refresh_quotes(self) -> None:
        """Re-quote the current destination (e.g. after a timeout)."""
        self._ensure_editable()
        code = self._address.postal_code
        if not is_valid_postal_code(code):
            raise ValidationError("Enter a complete postal code before quoting")
        self._invalidate_quotes()
        self._request_quotes(code)
        self._notify()

    # --- Quotation machinery --------------------------------------------------

    def _invalidate_quotes(self) -> None:
        self._quote_seq += 1
        self._quotes.clear()
        self._quote_status.clear()

    def _request_quotes(self, code: str) -> None:
        service_ids = list(self._settings.carrier_service_ids)
        if not service_ids or not self._settings.option.allows_delivery:
            return
        for service_id in service_ids:
            self._quote_status[service_id] = QuoteStatus.LOADING
        self._spawn(
            self._fetch_quotes(self._quote_seq, code, service_ids),
            name=f"carrier-quote-{self._quote_seq}",
        )

    async def _fetch_quotes(self, seq: int, code: str, service_ids: list[str]) -> None:
        try:
            received = await asyncio.wait_for(
                self._carrier_rates.quote(code, service_ids), timeout=self._quote_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Carrier quotation for %s timed out after %ss", code, self._quote_timeout)
            received = []
        except QuotationUnavailable as exc:
            logger.warning("Carrier quotation for %s failed: %s", code, exc)
            received = []
        except Exception:
            logger.exception("Carrier quotation for %s crashed", code)
            received = []

        if seq != self._quote_seq:
            logger.debug("Discarding stale carrier quotes #%d for %s", seq, code)
            return

        by_service = {
            quote.service_id: quote
            for quote in received
            if normalize_postal_code(quote.postal_code) == code
        }
        for service_id in service_ids:
            quote = by_service.get(service_id) or CarrierQuote.unavailable(
                service_id, code, carrier_service_name(service_id)
            )
            self._quotes[service_id] = quote
            self._quote_status[service_id] = (
                QuoteStatus.READY if quote.available else QuoteStatus.UNAVAILABLE
            )

        method = self._method
        if method is not None and method.is_carrier and self._usable_quote(method.service_id) is None:
            logger.info("Selected carrier %s became unavailable; clearing selection", method)
            self._method = None
        self._notify()

    def _usable_quote(self, service_id: str | None) -> CarrierQuote | None:
        if service_id is None or self._quote_status.get(service_id) != QuoteStatus.READY:
            return None
        quote = self._quotes.get(service_id)
        if quote is None or not quote.available:
            return None
        return quote

    async def _enrich_address(self, seq: int, code: str) -> None:
        try:
            found = await asyncio.wait_for(
                self._address_lookup.lookup(code), timeout=self._lookup_timeout
            )
        except (LookupFailure, asyncio.TimeoutError) as exc:
            logger.warning("Address lookup for %s failed, manual entry still accepted: %r", code, exc)
            return
        except Exception:
            logger.exception("Address lookup for %s crashed, manual entry still accepted", code)
            return

        if seq != self._address_seq or self._locked:
            logger.debug("Discarding stale address lookup for %s", code)
            return
        if found is None:
            logger.info("No address found for postal code %s", code)
            return

        changes = {}
        for name, value in (
            ("street", found.street),
            ("neighborhood", found.neighborhood),
            ("city", found.city),
            ("state", found.state),
        ):
            value = (value or "").strip()
            current = getattr(self._address, name).strip()
            # Typed values win; only blanks or earlier lookup values are replaced
            if value and (not current or current == self._enriched.get(name)):
                changes[name] = value
        if changes:
            self._enriched.update(changes)
            self._address = self._address.with_changes(**changes)
            self._notify()
