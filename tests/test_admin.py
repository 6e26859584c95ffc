"""Tests for super-admin tenant management."""

from datetime import date

import pytest

from cargo_ledger.admin import (
    create_company,
    filter_companies,
    is_expired,
    one_year_from,
    update_company,
)
from cargo_ledger.errors import LedgerError, TenantHierarchyError
from cargo_ledger.models import AppSettings, Company, DEFAULT_STAGES
from cargo_ledger.seed import default_tenants

TODAY = date(2026, 10, 14)


@pytest.fixture
def tenants():
    return default_tenants(TODAY)


# ---------------------------------------------------------------------------
# create_company
# ---------------------------------------------------------------------------

def test_create_branch_with_defaults(tenants):
    updated, company = create_company(
        tenants, "khobar", "secret", {"company_name": "KHOBAR BRANCH", "invoice_prefix": "KHB-"}, "1", today=TODAY
    )
    assert len(updated) == 4
    assert updated[-1] is company
    assert company.parent_id == "1"
    assert company.expiry_date == "2027-10-14"
    assert company.settings.invoice_prefix == "KHB-"
    assert company.settings.stage_names() == list(DEFAULT_STAGES)
    assert {a.id for a in company.financial_accounts} >= {"acc_sales", "acc_rent"}
    assert company.items
    assert company.invoices == []


def test_create_requires_name_and_login(tenants):
    with pytest.raises(LedgerError):
        create_company(tenants, "khobar", "secret", {"company_name": ""})
    with pytest.raises(LedgerError):
        create_company(tenants, "", "secret", {"company_name": "X"})


def test_create_rejects_taken_username(tenants):
    with pytest.raises(LedgerError):
        create_company(tenants, "test1", "secret", {"company_name": "DUPLICATE"})


def test_create_rejects_branch_parent(tenants):
    with pytest.raises(TenantHierarchyError):
        create_company(tenants, "khobar", "secret", {"company_name": "KHOBAR"}, parent_id="2")


def test_one_year_from_leap_day():
    assert one_year_from(date(2024, 2, 29)) == "2025-02-28"
    assert one_year_from(TODAY) == "2027-10-14"


# ---------------------------------------------------------------------------
# update_company
# ---------------------------------------------------------------------------

def test_update_blank_values_keep_previous(tenants):
    updated, company = update_company(
        tenants,
        "2",
        username="",
        password=None,
        settings={"company_name": "", "location": "AL KHOBAR"},
        parent_id="1",
    )
    assert company.username == "test1"
    assert company.password == "test1"
    assert company.settings.company_name == "TEST BRANCH 1"
    assert company.settings.location == "AL KHOBAR"
    assert company.parent_id == "1"
    assert company.invoices == tenants[1].invoices
    assert [t.id for t in updated] == ["1", "2", "3"]


def test_update_detaches_branch(tenants):
    _, company = update_company(tenants, "3", parent_id=None)
    assert company.is_head_office


def test_update_rejects_taken_username(tenants):
    with pytest.raises(LedgerError):
        update_company(tenants, "2", username="test2", parent_id="1")


def test_update_rejects_head_office_with_branches_moving_under_another(tenants):
    with pytest.raises(TenantHierarchyError):
        update_company(tenants, "1", parent_id="2")


# ---------------------------------------------------------------------------
# filter_companies
# ---------------------------------------------------------------------------

def _company(tenant_id, name, expiry):
    return Company(
        id=tenant_id,
        username=f"user{tenant_id}",
        password="pw",
        expiry_date=expiry,
        settings=AppSettings(company_name=name),
    )


class TestFilterCompanies:
    @pytest.fixture(autouse=True)
    def companies(self):
        self.companies = [
            _company("c", "CALM CARGO", "2027-06-01"),
            _company("a", "AMBER LOGISTICS", "2026-10-01"),
            _company("b", "BLUE FREIGHT", "2026-11-01"),
        ]

    def _ids(self, **kwargs):
        return [c.id for c in filter_companies(self.companies, today=TODAY, **kwargs)]

    def test_all_sorted_by_expiry(self):
        assert self._ids() == ["a", "b", "c"]

    def test_expiring_within_thirty_days(self):
        assert self._ids(expiry_filter="EXPIRING") == ["b"]

    def test_expired(self):
        assert self._ids(expiry_filter="EXPIRED") == ["a"]

    def test_search(self):
        assert self._ids(search="freight") == ["b"]


def test_expiry_day_itself_is_still_valid():
    company = _company("x", "X", "2026-10-14")
    assert not is_expired(company, TODAY)
    assert is_expired(company, date(2026, 10, 15))
