"""Enrollment and sign-in behaviour against a real SQLite store."""

from __future__ import annotations

import anyio
import pytest

from authservice.database import AccountStore
from authservice.errors import (
    AccountNotFoundError,
    DuplicateAccountError,
    ExpiredTokenError,
    InvalidCredentialsError,
)
from authservice.passwords import CredentialHasher
from authservice.services import EnrollmentService, VerificationService, register_account
from authservice.tokens import TokenIssuer

from conftest import FakeClock


@pytest.fixture()
def enrollment(store: AccountStore, hasher: CredentialHasher, tokens: TokenIssuer) -> EnrollmentService:
    return EnrollmentService(store, hasher, tokens)


@pytest.fixture()
def verification(store: AccountStore, hasher: CredentialHasher, tokens: TokenIssuer) -> VerificationService:
    return VerificationService(store, hasher, tokens)


def test_enroll_then_sign_in(
    enrollment: EnrollmentService,
    verification: VerificationService,
    tokens: TokenIssuer,
) -> None:
    async def scenario() -> None:
        result = await enrollment.enroll(
            name="A", email="a@x.com", password="secret1", role="student", branch="CS"
        )
        assert result.account.is_admin is False
        assert result.account.id is not None
        assert result.account.password_hash != "secret1"
        assert tokens.verify(result.token) == result.account.id

        token = await verification.verify("a@x.com", "secret1")
        assert tokens.verify(token) == result.account.id

        with pytest.raises(InvalidCredentialsError):
            await verification.verify("a@x.com", "wrong")

    anyio.run(scenario)


def test_duplicate_enrollment_leaves_existing_account_untouched(
    enrollment: EnrollmentService,
    store: AccountStore,
) -> None:
    async def scenario() -> None:
        first = await enrollment.enroll(
            name="A", email="a@x.com", password="secret1", role="student", branch="CS"
        )
        with pytest.raises(DuplicateAccountError):
            await enrollment.enroll(
                name="B", email="A@X.com", password="other-pass", role="staff", branch="IT"
            )
        assert await store.find_by_email("a@x.com") == first.account

    anyio.run(scenario)


def test_concurrent_insert_conflict_is_reported_as_duplicate(
    enrollment: EnrollmentService,
    store: AccountStore,
    monkeypatch,
) -> None:
    async def scenario() -> None:
        await enrollment.enroll(name="A", email="a@x.com", password="secret1", role="student", branch="CS")

        async def stale_lookup(_email: str):
            return None

        monkeypatch.setattr(store, "find_by_email", stale_lookup)
        with pytest.raises(DuplicateAccountError):
            await enrollment.enroll(name="A", email="a@x.com", password="secret1", role="student", branch="CS")

    anyio.run(scenario)


def test_sign_in_for_unknown_email_reports_not_found(verification: VerificationService) -> None:
    with pytest.raises(AccountNotFoundError):
        anyio.run(verification.verify, "nobody@x.com", "secret1")


def test_sign_in_token_carries_five_day_expiry(
    enrollment: EnrollmentService,
    verification: VerificationService,
    tokens: TokenIssuer,
    clock: FakeClock,
) -> None:
    async def scenario() -> str:
        await enrollment.enroll(name="A", email="a@x.com", password="secret1", role="student", branch="CS")
        return await verification.verify("a@x.com", "secret1")

    token = anyio.run(scenario)
    clock.advance(days=4, hours=23)
    assert tokens.verify(token)
    clock.advance(hours=2)
    with pytest.raises(ExpiredTokenError):
        tokens.verify(token)


def test_current_account_resolves_by_id(
    enrollment: EnrollmentService,
    verification: VerificationService,
) -> None:
    async def scenario() -> None:
        result = await enrollment.enroll(
            name="A", email="a@x.com", password="secret1", role="student", branch="CS"
        )
        current = await verification.current_account(result.account.id)
        assert current == result.account

        with pytest.raises(AccountNotFoundError):
            await verification.current_account(result.account.id + 100)

    anyio.run(scenario)


def test_register_account_can_store_admin_in_one_write(
    store: AccountStore, hasher: CredentialHasher, monkeypatch
) -> None:
    saves = []
    original_save = store.save

    async def counting_save(account):
        saves.append(account)
        return await original_save(account)

    monkeypatch.setattr(store, "save", counting_save)
    account = anyio.run(
        lambda: register_account(
            store,
            hasher,
            name="Root",
            email="Root@Example.com",
            password="secret1",
            role="staff",
            branch="IT",
            is_admin=True,
        )
    )

    assert len(saves) == 1
    assert account.is_admin is True
    assert account.email == "root@example.com"
    assert hasher.verify("secret1", account.password_hash)

    with pytest.raises(DuplicateAccountError):
        anyio.run(
            lambda: register_account(
                store,
                hasher,
                name="Root",
                email="root@example.com",
                password="secret1",
                role="staff",
                branch="IT",
            )
        )
