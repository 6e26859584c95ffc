"""Tests for environment lookups."""

from cargo_ledger.config import get_env


def test_get_env_strips_value(monkeypatch):
    monkeypatch.setenv("LEDGER_STORE", "  local ")
    assert get_env("LEDGER_STORE") == "local"


def test_get_env_blank_is_unset(monkeypatch):
    monkeypatch.setenv("LEDGER_STORE", "   ")
    assert get_env("LEDGER_STORE") is None


def test_get_env_missing(monkeypatch):
    monkeypatch.delenv("LEDGER_STORE", raising=False)
    assert get_env("LEDGER_STORE") is None
