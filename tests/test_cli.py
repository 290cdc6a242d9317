"""
tests/test_cli.py -- Tests for the seed and create-user commands in main.py.

Each test points DATABASE_URL at a fresh SQLite file under tmp_path and clears
the get_settings() cache so the CLI picks it up.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

import main
from core.config import get_settings
from rbac.seed import DEFAULT_ADMIN_EMAIL
from rbac.store import RbacStore


@pytest.fixture()
def db_url(tmp_path, monkeypatch: pytest.MonkeyPatch) -> Generator[str, None, None]:
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


def test_seed_command(db_url: str, capsys: pytest.CaptureFixture) -> None:
    assert main.main(["seed"]) == 0
    out = capsys.readouterr().out
    assert "Superadmin created" in out

    store = RbacStore(db_url)
    try:
        assert store.get_user_by_email(DEFAULT_ADMIN_EMAIL) is not None
    finally:
        store.close()


def test_create_user_command(db_url: str, capsys: pytest.CaptureFixture) -> None:
    main.main(["seed"])
    code = main.main(["create-user", "--email", "cli@example.com", "--role", "admin", "--password", "cli-pw"])
    assert code == 0
    assert "User created: cli@example.com" in capsys.readouterr().out

    store = RbacStore(db_url)
    try:
        user = store.get_user_by_email("cli@example.com")
        assert store.get_role(user.role_id).name == "admin"
    finally:
        store.close()


def test_create_user_unknown_role(db_url: str, capsys: pytest.CaptureFixture) -> None:
    code = main.main(["create-user", "--email", "x@example.com", "--role", "nope", "--password", "pw"])
    assert code == 1
    assert "does not exist" in capsys.readouterr().out


def test_create_user_duplicate_email(db_url: str, capsys: pytest.CaptureFixture) -> None:
    main.main(["seed"])
    code = main.main(["create-user", "--email", DEFAULT_ADMIN_EMAIL, "--password", "pw"])
    assert code == 1
    assert "Email already in use." in capsys.readouterr().out


def test_no_command_prints_help(capsys: pytest.CaptureFixture) -> None:
    assert main.main([]) == 0
    assert "usage: gridgate" in capsys.readouterr().out
