from __future__ import annotations

import importlib.util
from pathlib import Path

import anyio
import pytest

from authservice.database import AccountStore
from authservice.errors import DuplicateAccountError

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "create_user.py"


@pytest.fixture(scope="module")
def create_user_module():
    spec = importlib.util.spec_from_file_location("create_user_script", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    spec.loader.exec_module(module)
    return module


def _create(module, store: AccountStore, *, admin: bool, email: str = "admin@example.com"):
    return anyio.run(
        lambda: module.create_account(
            store,
            name="Admin",
            email=email,
            password="secret1",
            role="staff",
            branch="IT",
            admin=admin,
        )
    )


def test_script_can_create_admin_accounts(create_user_module, store: AccountStore) -> None:
    account = _create(create_user_module, store, admin=True)
    assert account.is_admin is True

    regular = _create(create_user_module, store, admin=False, email="user@example.com")
    assert regular.is_admin is False


def test_script_rejects_existing_email(create_user_module, store: AccountStore) -> None:
    _create(create_user_module, store, admin=False)
    with pytest.raises(DuplicateAccountError):
        _create(create_user_module, store, admin=True)
