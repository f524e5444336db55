"""Application service: Identification Resolver.

Decides whether the actor is a logged-in customer, a guest, or a
visitor whose e-mail already belongs to an account.

E-mail existence checks are debounced and tagged with a sequence
number: every edit bumps the sequence, and a lookup result is applied
only if its sequence is still the latest one issued.  A lookup that
fails or times out degrades to GUEST (fail open) and is logged.
"""

from __future__ import annotations

import asyncio
import logging

from checkout_core.application.dto import IdentificationSnapshot
from checkout_core.application.observable import Resolver
from checkout_core.domain.exceptions import LookupFailure, ValidationError
from checkout_core.domain.gateway.identity_store import IdentityStore
from checkout_core.domain.model.identity import (
    MIN_NAME_LENGTH,
    Authenticated,
    AuthSession,
    EmailMatchResult,
    Guest,
    Identity,
    IdentificationState,
    Unresolved,
    is_valid_email,
    normalize_email,
)

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5
DEFAULT_LOOKUP_TIMEOUT = 10.0


class IdentificationResolver(Resolver):

    def __init__(
        self,
        identity_store: IdentityStore,
        *,
        auth_session: AuthSession | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT,
        require_store_name: bool = True,
    ) -> None:
        super().__init__()
        self._identity_store = identity_store
        self._debounce_seconds = debounce_seconds
        self._lookup_timeout = lookup_timeout
        self._require_store_name = require_store_name

        self._auth = auth_session
        self._full_name = ""
        self._email = ""
        self._phone = ""
        self._store_name = ""

        self._state = (
            IdentificationState.AUTHENTICATED if auth_session else IdentificationState.UNRESOLVED
        )
        self._match: EmailMatchResult | None = None
        self._lookup_seq = 0
        self._debounce_task: asyncio.Task | None = None
        self._login_link_sent = False

    # --- Queries --------------------------------------------------------------

    @property
    def state(self) -> IdentificationState:
        return self._state

    @property
    def lookup_seq(self) -> int:
        return self._lookup_seq

    @property
    def last_match(self) -> EmailMatchResult | None:
        return self._match

    def errors(self) -> dict[str, str]:
        """Field-level problems for guest entry.  Empty when authenticated."""
        if self._state == IdentificationState.AUTHENTICATED:
            return {}

        errors: dict[str, str] = {}
        name = self._full_name.strip()
        if not name:
            errors["full_name"] = "Enter your full name"
        elif len(name) < MIN_NAME_LENGTH:
            errors["full_name"] = f"Name must have at least {MIN_NAME_LENGTH} characters"

        if not self._email.strip():
            errors["email"] = "Enter a valid e-mail"
        elif not is_valid_email(self._email):
            errors["email"] = "Invalid e-mail"

        if self._require_store_name:
            store_name = self._store_name.strip()
            if not store_name:
                errors["store_name"] = "Enter your store name"
            elif len(store_name) < MIN_NAME_LENGTH:
                errors["store_name"] = (
                    f"Store name must have at least {MIN_NAME_LENGTH} characters"
                )
        return errors

    @property
    def valid(self) -> bool:
        if self._state == IdentificationState.AUTHENTICATED:
            return True
        return self._state == IdentificationState.GUEST and not self.errors()

    def identity(self) -> Identity:
        if self._state == IdentificationState.AUTHENTICATED and self._auth is not None:
            return Authenticated(customer_id=self._auth.customer_id, profile=self._auth.profile)
        if self._state == IdentificationState.GUEST:
            return Guest(
                full_name=self._full_name.strip(),
                email=normalize_email(self._email),
                phone=self._phone.strip(),
                store_name=self._store_name.strip(),
            )
        return Unresolved()

    def snapshot(self) -> IdentificationSnapshot:
        return IdentificationSnapshot(
            state=self._state,
            valid=self.valid,
            identity=self.identity(),
            errors=self.errors(),
            email_exists=self._state == IdentificationState.EMAIL_EXISTS,
            lookup_pending=self._state == IdentificationState.UNRESOLVED and self.busy,
            login_link_sent=self._login_link_sent,
        )

    # --- Guest edits ----------------------------------------------------------

    def edit_email(self, email: str) -> None:
        """Record a keystroke-level edit and schedule a debounced lookup."""
        self._ensure_guest_editable()
        self._email = email
        self._match = None
        self._login_link_sent = False
        self._restart_lookup()
        self._notify()

    def update_guest(
        self,
        *,
        full_name: str | None = None,
        phone: str | None = None,
        store_name: str | None = None,
    ) -> None:
        self._ensure_guest_editable()
        if full_name is not None:
            self._full_name = full_name
        if phone is not None:
            self._phone = phone
        if store_name is not None:
            self._store_name = store_name
        self._notify()

    # --- Login ----------------------------------------------------------------

    async def login(self, password: str) -> AuthSession:
        """Log in with the typed e-mail.  AuthenticationError propagates."""
        self._ensure_editable()
        email = self._require_email()
        session = await self._identity_store.authenticate(email, password)
        logger.info("Checkout login succeeded for customer %s", session.customer_id)
        self.set_auth_session(session)
        return session

    async def request_login_link(self) -> None:
        """Ask the identity store to e-mail a passwordless login link."""
        self._ensure_editable()
        email = self._require_email()
        try:
            await self._identity_store.request_login_link(email)
        except LookupFailure:
            logger.warning("Could not send login link to %s", email)
            raise
        self._login_link_sent = True
        self._notify()

    def set_auth_session(self, session: AuthSession | None) -> None:
        """Apply an externally supplied auth session (or clear it)."""
        self._ensure_editable()
        self._cancel_debounce()
        self._lookup_seq += 1
        self._auth = session
        if session is not None:
            self._state = IdentificationState.AUTHENTICATED
            self._match = None
            self._notify()
            return
        self._restart_lookup()
        self._notify()

    def logout(self) -> None:
        self.set_auth_session(None)

    # --- Lookup machinery -----------------------------------------------------

    def _restart_lookup(self) -> None:
        self._cancel_debounce()
        self._lookup_seq += 1
        email = normalize_email(self._email)
        if is_valid_email(email):
            self._state = IdentificationState.UNRESOLVED
            self._debounce_task = self._spawn(
                self._debounced_lookup(self._lookup_seq, email),
                name=f"email-lookup-{self._lookup_seq}",
            )
        else:
            # Format problems are reported through errors(), never as "not found"
            self._state = IdentificationState.GUEST

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    async def _debounced_lookup(self, seq: int, email: str) -> None:
        if self._debounce_seconds > 0:
            await asyncio.sleep(self._debounce_seconds)
        if seq != self._lookup_seq:
            return
        # From here on the request is issued; later edits supersede it by seq.
        self._debounce_task = None

        try:
            account = await asyncio.wait_for(
                self._identity_store.lookup_by_email(email), timeout=self._lookup_timeout
            )
        except (LookupFailure, asyncio.TimeoutError) as exc:
            logger.warning("E-mail lookup for %s failed, continuing as guest: %r", email, exc)
            self._fail_open(seq)
            return
        except Exception:
            logger.exception("E-mail lookup for %s crashed, continuing as guest", email)
            self._fail_open(seq)
            return

        if seq != self._lookup_seq or normalize_email(self._email) != email:
            logger.debug("Discarding stale e-mail lookup #%d for %s", seq, email)
            return

        self._match = EmailMatchResult(email=email, exists=account is not None, account=account)
        if account is not None:
            logger.info("Checkout e-mail %s belongs to an existing account", email)
            self._state = IdentificationState.EMAIL_EXISTS
        else:
            self._state = IdentificationState.GUEST
        self._notify()

    # --- Internal helpers -----------------------------------------------------

    def _fail_open(self, seq: int) -> None:
        if seq != self._lookup_seq:
            return
        self._match = None
        self._state = IdentificationState.GUEST
        self._notify()

    def _ensure_guest_editable(self) -> None:
        self._ensure_editable()
        if self._state == IdentificationState.AUTHENTICATED:
            raise ValidationError("Customer details come from the logged-in account")

    def _require_email(self) -> str:
        email = normalize_email(self._email)
        if not is_valid_email(email):
            raise ValidationError("Enter a valid e-mail first")
        return email
