"""Who is checking out.

An actor is either an authenticated customer, a guest who typed their
details, or not yet resolved.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_NAME_LENGTH = 3


def normalize_email(raw: str | None) -> str:
    return (raw or "").strip().lower()


def is_valid_email(raw: str | None) -> bool:
    return bool(EMAIL_PATTERN.match(normalize_email(raw)))


class IdentificationState(Enum):
    UNRESOLVED = "UNRESOLVED"
    AUTHENTICATED = "AUTHENTICATED"
    GUEST = "GUEST"
    EMAIL_EXISTS = "EMAIL_EXISTS"


@dataclass(frozen=True)
class CustomerProfile:
    full_name: str
    email: str
    phone: str = ""


@dataclass(frozen=True)
class AuthSession:
    """Externally supplied proof that the actor is logged in."""

    customer_id: str
    profile: CustomerProfile


@dataclass(frozen=True)
class AccountSummary:
    customer_id: str
    display_name: str = ""


@dataclass(frozen=True)
class Authenticated:
    customer_id: str
    profile: CustomerProfile


@dataclass(frozen=True)
class Guest:
    full_name: str
    email: str
    phone: str = ""
    store_name: str = ""


@dataclass(frozen=True)
class Unresolved:
    pass


Identity = Authenticated | Guest | Unresolved


@dataclass(frozen=True)
class EmailMatchResult:
    email: str
    exists: bool
    account: AccountSummary | None = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
