from __future__ import annotations


class LedgerError(Exception):
    """Base class for errors raised by the ledger engine."""


class InvalidCredentialsError(LedgerError):
    pass


class AccountExpiredError(LedgerError):
    pass


class PermissionDeniedError(LedgerError):
    pass


class TenantNotFoundError(LedgerError):
    pass


class TenantHierarchyError(LedgerError):
    """A tenant would end up below a branch (only one level of nesting is allowed)."""


class InvoiceNotFoundError(LedgerError):
    pass


class AmbiguousInvoiceError(LedgerError):
    """The same invoice number exists in more than one tenant of the network."""


class UnknownStatusError(LedgerError):
    pass


class PersistenceError(LedgerError):
    """Loading or saving the tenant snapshot failed; the in-memory copy is intact."""
