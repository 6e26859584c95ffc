"""Tests for super-admin credential lookup."""

from types import SimpleNamespace

import pytest

from cargo_ledger import credentials
from cargo_ledger.credentials import SuperAdminCredentials, super_admin_credentials


class _FakeSecretClient:
    requested = []

    def access_secret_version(self, name):
        self.requested.append(name)
        return SimpleNamespace(payload=SimpleNamespace(data=b"from-secret\n"))


class _BrokenSecretClient:
    def access_secret_version(self, name):
        raise RuntimeError("permission denied")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SUPER_ADMIN_USER", "SUPER_ADMIN_PASS", "SUPER_ADMIN_SECRET_NAME"):
        monkeypatch.delenv(name, raising=False)


def test_disabled_without_user(monkeypatch):
    monkeypatch.setenv("SUPER_ADMIN_PASS", "secret")
    assert super_admin_credentials() is None


def test_disabled_without_password(monkeypatch):
    monkeypatch.setenv("SUPER_ADMIN_USER", "admin")
    assert super_admin_credentials() is None


def test_plain_env_password(monkeypatch):
    monkeypatch.setenv("SUPER_ADMIN_USER", " admin ")
    monkeypatch.setenv("SUPER_ADMIN_PASS", "secret")
    assert super_admin_credentials() == SuperAdminCredentials("admin", "secret")


def test_secret_manager_takes_precedence(monkeypatch):
    monkeypatch.setenv("SUPER_ADMIN_USER", "admin")
    monkeypatch.setenv("SUPER_ADMIN_PASS", "ignored")
    monkeypatch.setenv("SUPER_ADMIN_SECRET_NAME", "projects/p/secrets/super-admin")
    monkeypatch.setattr(credentials.secretmanager, "SecretManagerServiceClient", _FakeSecretClient)
    _FakeSecretClient.requested = []

    assert super_admin_credentials() == SuperAdminCredentials("admin", "from-secret")
    assert _FakeSecretClient.requested == ["projects/p/secrets/super-admin/versions/latest"]


def test_secret_failure_disables_super_admin(monkeypatch):
    monkeypatch.setenv("SUPER_ADMIN_USER", "admin")
    monkeypatch.setenv("SUPER_ADMIN_SECRET_NAME", "projects/p/secrets/super-admin")
    monkeypatch.setattr(credentials.secretmanager, "SecretManagerServiceClient", _BrokenSecretClient)
    assert super_admin_credentials() is None
