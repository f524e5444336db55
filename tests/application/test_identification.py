"""Tests for the IdentificationResolver.

Uses the in-memory identity store; lookups are debounced with a zero
delay unless a test is about debouncing itself.
"""

import asyncio

import pytest

from checkout_core.application.identification import IdentificationResolver
from checkout_core.domain.exceptions import (
    AuthenticationError,
    CheckoutLockedError,
    ValidationError,
)
from checkout_core.domain.model.identity import (
    Authenticated,
    AuthSession,
    CustomerProfile,
    Guest,
    IdentificationState,
    Unresolved,
)
from tests.fakes import FakeIdentityStore, run_until

pytestmark = pytest.mark.asyncio


def _setup(
    accounts: dict[str, str] | None = None, **kwargs
) -> tuple[IdentificationResolver, FakeIdentityStore]:
    store = FakeIdentityStore(accounts or {"known@example.com": "s3cret"})
    kwargs.setdefault("debounce_seconds", 0)
    return IdentificationResolver(store, **kwargs), store


def _fill_guest(resolver: IdentificationResolver) -> None:
    resolver.update_guest(full_name="Ana Souza", phone="11999990000", store_name="Loja da Ana")


# ── Email lookup ─────────────────────────────────────────────────────────────


class TestEmailLookup:

    async def test_unknown_email_becomes_guest(self):
        resolver, store = _setup()
        _fill_guest(resolver)
        resolver.edit_email("ana@example.com")
        assert resolver.state == IdentificationState.UNRESOLVED
        await resolver.settle()
        assert resolver.state == IdentificationState.GUEST
        assert store.lookups == ["ana@example.com"]
        assert resolver.valid
        assert resolver.identity() == Guest(
            full_name="Ana Souza",
            email="ana@example.com",
            phone="11999990000",
            store_name="Loja da Ana",
        )

    async def test_known_email_is_flagged(self):
        resolver, _ = _setup()
        _fill_guest(resolver)
        resolver.edit_email("Known@Example.com ")
        await resolver.settle()
        assert resolver.state == IdentificationState.EMAIL_EXISTS
        assert resolver.last_match.exists
        assert not resolver.valid
        assert resolver.snapshot().email_exists

    async def test_invalid_format_never_looks_up(self):
        resolver, store = _setup()
        resolver.edit_email("not-an-email")
        await resolver.settle()
        assert store.lookups == []
        assert resolver.state == IdentificationState.GUEST
        assert resolver.errors()["email"] == "Invalid e-mail"
        assert not resolver.valid

    async def test_rapid_edits_issue_one_lookup(self):
        resolver, store = _setup(debounce_seconds=0.01)
        for partial in ("ana@", "ana@exa", "ana@example.co", "ana@example.com"):
            resolver.edit_email(partial)
        await resolver.settle()
        assert store.lookups == ["ana@example.com"]

    async def test_stale_lookup_is_discarded(self):
        resolver, store = _setup()
        _fill_guest(resolver)
        gate = asyncio.Event()
        store.gates["known@example.com"] = gate

        resolver.edit_email("known@example.com")
        await run_until(lambda: store.lookups == ["known@example.com"])
        resolver.edit_email("fresh@example.com")
        await run_until(lambda: resolver.state == IdentificationState.GUEST)

        gate.set()
        await resolver.settle()
        assert resolver.state == IdentificationState.GUEST
        assert resolver.last_match.email == "fresh@example.com"

    async def test_lookup_failure_fails_open(self):
        resolver, store = _setup()
        store.fail_lookups = True
        _fill_guest(resolver)
        resolver.edit_email("known@example.com")
        await resolver.settle()
        assert resolver.state == IdentificationState.GUEST
        assert resolver.valid

    async def test_lookup_crash_fails_open(self):
        resolver, store = _setup()
        store.crash_lookups = True
        _fill_guest(resolver)
        resolver.edit_email("known@example.com")
        await resolver.settle()
        assert resolver.state == IdentificationState.GUEST
        assert resolver.last_match is None
        assert resolver.valid

    async def test_lookup_timeout_fails_open(self):
        resolver, store = _setup(lookup_timeout=0.01)
        store.gates["ana@example.com"] = asyncio.Event()
        resolver.edit_email("ana@example.com")
        await resolver.settle()
        assert resolver.state == IdentificationState.GUEST

    async def test_pending_lookup_blocks_validity(self):
        resolver, store = _setup()
        _fill_guest(resolver)
        gate = asyncio.Event()
        store.gates["ana@example.com"] = gate
        resolver.edit_email("ana@example.com")
        assert not resolver.valid
        assert resolver.snapshot().lookup_pending
        gate.set()
        await resolver.settle()
        assert resolver.valid


# ── Guest details ────────────────────────────────────────────────────────────


class TestGuestDetails:

    async def test_store_name_required_by_default(self):
        resolver, _ = _setup()
        resolver.update_guest(full_name="Ana Souza")
        resolver.edit_email("ana@example.com")
        await resolver.settle()
        assert "store_name" in resolver.errors()
        assert not resolver.valid

    async def test_store_name_optional_when_disabled(self):
        resolver, _ = _setup(require_store_name=False)
        resolver.update_guest(full_name="Ana Souza")
        resolver.edit_email("ana@example.com")
        await resolver.settle()
        assert resolver.valid

    async def test_short_name_rejected(self):
        resolver, _ = _setup()
        resolver.update_guest(full_name="Al")
        assert "full_name" in resolver.errors()

    async def test_unresolved_identity(self):
        resolver, _ = _setup()
        assert resolver.identity() == Unresolved()
        assert not resolver.valid

    async def test_listeners_are_notified(self):
        resolver, _ = _setup()
        calls = []
        unsubscribe = resolver.subscribe(lambda: calls.append(resolver.state))
        resolver.update_guest(full_name="Ana Souza")
        unsubscribe()
        resolver.update_guest(full_name="Ana S.")
        assert len(calls) == 1


# ── Login ────────────────────────────────────────────────────────────────────


class TestLogin:

    async def _existing(self) -> IdentificationResolver:
        resolver, _ = _setup()
        resolver.edit_email("known@example.com")
        await resolver.settle()
        return resolver

    async def test_login_authenticates(self):
        resolver = await self._existing()
        session = await resolver.login("s3cret")
        assert resolver.state == IdentificationState.AUTHENTICATED
        assert resolver.valid
        assert resolver.identity() == Authenticated(
            customer_id=session.customer_id, profile=session.profile
        )

    async def test_wrong_password(self):
        resolver = await self._existing()
        with pytest.raises(AuthenticationError):
            await resolver.login("wrong")
        assert resolver.state == IdentificationState.EMAIL_EXISTS

    async def test_login_link(self):
        resolver, store = _setup()
        resolver.edit_email("known@example.com")
        await resolver.settle()
        await resolver.request_login_link()
        assert store.link_requests == ["known@example.com"]
        assert resolver.snapshot().login_link_sent

    async def test_login_requires_valid_email(self):
        resolver, _ = _setup()
        with pytest.raises(ValidationError):
            await resolver.login("s3cret")

    async def test_logout_looks_up_again(self):
        resolver = await self._existing()
        await resolver.login("s3cret")
        resolver.logout()
        await resolver.settle()
        assert resolver.state == IdentificationState.EMAIL_EXISTS

    async def test_preauthenticated_session(self):
        session = AuthSession("cus-1", CustomerProfile("Ana Souza", "ana@example.com"))
        resolver, store = _setup(auth_session=session)
        assert resolver.state == IdentificationState.AUTHENTICATED
        assert resolver.valid
        assert store.lookups == []

    async def test_guest_edits_refused_when_authenticated(self):
        session = AuthSession("cus-1", CustomerProfile("Ana Souza", "ana@example.com"))
        resolver, _ = _setup(auth_session=session)
        with pytest.raises(ValidationError):
            resolver.edit_email("other@example.com")


class TestLocking:

    async def test_locked_resolver_refuses_edits(self):
        resolver, _ = _setup()
        resolver.lock()
        with pytest.raises(CheckoutLockedError):
            resolver.edit_email("ana@example.com")
        resolver.unlock()
        resolver.edit_email("ana@example.com")
        await resolver.settle()
