"""JSON-file-backed implementation of IdentityStore.

Accounts are stored with a salted PBKDF2 password hash.  Passwordless
links cannot be e-mailed from a flat file, so requests are appended to
a ``login_links.json`` outbox next to the accounts file for a mailer
to pick up.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
from datetime import datetime, timezone
from pathlib import Path

from checkout_core.domain.exceptions import AuthenticationError, LookupFailure
from checkout_core.domain.gateway.identity_store import IdentityStore
from checkout_core.domain.model.identity import (
    AccountSummary,
    AuthSession,
    CustomerProfile,
    normalize_email,
)

logger = logging.getLogger(__name__)

_PBKDF2_ITERATIONS = 120_000


def hash_password(password: str, salt: str) -> str:
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt), _PBKDF2_ITERATIONS
    )
    return digest.hex()


class JsonIdentityStore(IdentityStore):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._outbox_path = file_path.with_name("login_links.json")
        self._ensure_file(self._file_path)

    # --- IdentityStore interface ----------------------------------------------

    async def lookup_by_email(self, email: str) -> AccountSummary | None:
        raw = self._find(email)
        if raw is None:
            return None
        return AccountSummary(customer_id=raw["customer_id"], display_name=raw.get("full_name", ""))

    async def authenticate(self, email: str, password: str) -> AuthSession:
        raw = self._find(email)
        if raw is None or not hmac.compare_digest(
            hash_password(password, raw["password_salt"]), raw["password_hash"]
        ):
            raise AuthenticationError("Incorrect e-mail or password")
        return AuthSession(
            customer_id=raw["customer_id"],
            profile=CustomerProfile(
                full_name=raw.get("full_name", ""),
                email=raw["email"],
                phone=raw.get("phone", ""),
            ),
        )

    async def request_login_link(self, email: str) -> None:
        raw = self._find(email)
        if raw is None:
            raise LookupFailure("No account found for this e-mail")
        try:
            self._ensure_file(self._outbox_path)
            outbox = json.loads(self._outbox_path.read_text(encoding="utf-8"))
            outbox.append(
                {
                    "customer_id": raw["customer_id"],
                    "email": raw["email"],
                    "requested_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            self._outbox_path.write_text(json.dumps(outbox, indent=2) + "\n", encoding="utf-8")
        except (OSError, ValueError) as exc:
            raise LookupFailure("Could not queue the login link") from exc
        logger.info("Queued login link for customer %s", raw["customer_id"])

    # --- Administration -------------------------------------------------------

    def add_account(
        self,
        customer_id: str,
        email: str,
        password: str,
        full_name: str = "",
        phone: str = "",
    ) -> None:
        records = self._load_raw()
        salt = secrets.token_hex(16)
        record = {
            "customer_id": customer_id,
            "email": normalize_email(email),
            "full_name": full_name,
            "phone": phone,
            "password_salt": salt,
            "password_hash": hash_password(password, salt),
        }
        records = [r for r in records if r["customer_id"] != customer_id]
        records.append(record)
        self._file_path.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")

    # --- File helpers ---------------------------------------------------------

    def _find(self, email: str) -> dict | None:
        wanted = normalize_email(email)
        for raw in self._load_raw():
            if normalize_email(raw["email"]) == wanted:
                return raw
        return None

    def _load_raw(self) -> list[dict]:
        try:
            return json.loads(self._file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise LookupFailure(f"Identity store unavailable: {exc}") from exc

    @staticmethod
    def _ensure_file(path: Path) -> None:
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("[]", encoding="utf-8")
