"""JSON-file-backed implementation of OrderService.

Drafts are appended to ``orders.json``.  A draft whose ``reference`` was
already recorded returns the existing order id instead of creating a
duplicate.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from checkout_core.domain.exceptions import OrderSubmissionFailure
from checkout_core.domain.gateway.order_service import OrderService
from checkout_core.domain.model.identity import Authenticated
from checkout_core.domain.model.session import OrderDraft

logger = logging.getLogger(__name__)


class JsonOrderService(OrderService):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._ensure_file()

    # --- OrderService interface -----------------------------------------------

    async def submit(self, draft: OrderDraft) -> str:
        try:
            orders = self._load_raw()
            for raw in orders:
                if raw["reference"] == draft.reference:
                    logger.info("Order reference %s already recorded as #%s", draft.reference, raw["id"])
                    return str(raw["id"])

            order_id = max((o["id"] for o in orders), default=0) + 1
            orders.append(self._to_raw(order_id, draft))
            self._persist_raw(orders)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise OrderSubmissionFailure("Could not record the order. Please try again.") from exc
        return str(order_id)

    def get_by_id(self, order_id: str) -> dict | None:
        for raw in self._load_raw():
            if str(raw["id"]) == str(order_id):
                return raw
        return None

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(order_id: int, draft: OrderDraft) -> dict:
        identity = draft.identity
        if isinstance(identity, Authenticated):
            customer = {
                "type": "customer",
                "customer_id": identity.customer_id,
                "full_name": identity.profile.full_name,
                "email": identity.profile.email,
                "phone": identity.profile.phone,
            }
        else:
            customer = {
                "type": "guest",
                "full_name": identity.full_name,
                "email": identity.email,
                "phone": identity.phone,
                "store_name": identity.store_name,
            }

        destination = draft.destination
        credential = draft.credential
        return {
            "id": order_id,
            "reference": draft.reference,
            "created_at": draft.created_at.isoformat(),
            "customer": customer,
            "items": [
                {
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "quantity": line.quantity.value,
                    "unit_price": str(line.unit_price.amount),
                    "currency": line.unit_price.currency,
                }
                for line in draft.lines
            ],
            "delivery": {
                "method": str(draft.delivery_method),
                "fee": str(draft.totals.delivery_fee.amount),
                "address": (
                    {
                        "postal_code": destination.postal_code,
                        "street": destination.street,
                        "number": destination.number,
                        "complement": destination.complement,
                        "neighborhood": destination.neighborhood,
                        "city": destination.city,
                        "state": destination.state,
                    }
                    if destination is not None
                    else None
                ),
            },
            "payment": {
                "method": draft.payment_method.value,
                "card": (
                    {
                        "token": credential.token,
                        "brand": credential.brand,
                        "installments": credential.installments,
                        "last_four": credential.last_four,
                    }
                    if credential is not None
                    else None
                ),
            },
            "subtotal": str(draft.totals.subtotal.amount),
            "discount": str(draft.totals.discount.amount),
            "total": str(draft.totals.total.amount),
        }

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> list[dict]:
        return json.loads(self._file_path.read_text(encoding="utf-8"))

    def _persist_raw(self, orders: list[dict]) -> None:
        self._file_path.write_text(
            json.dumps(orders, indent=2) + "\n", encoding="utf-8"
        )

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text("[]", encoding="utf-8")
