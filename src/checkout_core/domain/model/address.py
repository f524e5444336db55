"""Delivery destination."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace

from checkout_core.domain.model.value_objects import digits_only

POSTAL_CODE_LENGTH = 8  # Brazilian CEP

REQUIRED_ADDRESS_FIELDS = ("postal_code", "street", "number", "neighborhood", "city", "state")


def normalize_postal_code(raw: str | None) -> str:
    return digits_only(raw)


def is_valid_postal_code(raw: str | None) -> bool:
    return len(normalize_postal_code(raw)) == POSTAL_CODE_LENGTH


@dataclass(frozen=True)
class Address:
    """A postal address.  Fields may be blank while the user is typing."""

    postal_code: str = ""
    street: str = ""
    number: str = ""
    complement: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""

    def missing_fields(self) -> list[str]:
        missing = [
            name for name in REQUIRED_ADDRESS_FIELDS
            if not getattr(self, name).strip()
        ]
        if "postal_code" not in missing and not is_valid_postal_code(self.postal_code):
            missing.insert(0, "postal_code")
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def with_changes(self, **changes: str) -> Address:
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise TypeError(f"Unknown address fields: {', '.join(sorted(unknown))}")
        return replace(self, **changes)


@dataclass(frozen=True)
class AddressEnrichment:
    """Result of a postal-code lookup.  Any field may be empty."""

    street: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""
