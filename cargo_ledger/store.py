from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError

from cargo_ledger.config import get_env
from cargo_ledger.errors import PersistenceError
from cargo_ledger.models import Company


logger = logging.getLogger(__name__)

STORAGE_KEY = "qovoz_companies_v10"


class TenantStore(Protocol):
    def load(self) -> list[Company]:
        ...

    def save_all(self, tenants: list[Company]) -> None:
        ...


def tenant_to_document(tenant: Company) -> Dict[str, Any]:
    return tenant.model_dump(mode="json", by_alias=True)


def tenant_from_document(data: Dict[str, Any], doc_id: Optional[str] = None) -> Company:
    payload = dict(data)
    if doc_id and not payload.get("id"):
        payload["id"] = doc_id
    return Company.model_validate(payload)


class InMemoryTenantStore:
    """Keeps serialized documents, so callers never share model instances with the store."""

    def __init__(self, tenants: Optional[list[Company]] = None) -> None:
        self._lock = threading.Lock()
        self._documents: Dict[str, Dict[str, Any]] = {}
        if tenants:
            self.save_all(tenants)

    def load(self) -> list[Company]:
        with self._lock:
            documents = list(self._documents.values())
        return [tenant_from_document(doc) for doc in documents]

    def save_all(self, tenants: list[Company]) -> None:
        documents = {t.id: tenant_to_document(t) for t in tenants}
        with self._lock:
            self._documents.update(documents)


class LocalFileTenantStore:
    """Single JSON document on disk, keyed like the browser key-value store."""

    def __init__(self, path: str | Path, key: str = STORAGE_KEY) -> None:
        self.path = Path(path)
        self.key = key
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Could not read {self.path}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    def load(self) -> list[Company]:
        with self._lock:
            raw = self._read().get(self.key) or []
        try:
            return [tenant_from_document(doc) for doc in raw]
        except ValidationError as exc:
            raise PersistenceError(f"Stored tenants are not valid: {exc}") from exc

    def save_all(self, tenants: list[Company]) -> None:
        with self._lock:
            data = self._read()
            existing = {doc.get("id"): doc for doc in data.get(self.key) or []}
            for tenant in tenants:
                existing[tenant.id] = tenant_to_document(tenant)
            data[self.key] = list(existing.values())
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
                tmp.replace(self.path)
            except OSError as exc:
                raise PersistenceError(f"Could not write {self.path}: {exc}") from exc


def build_store(backend: Optional[str] = None) -> TenantStore:
    backend = (backend or get_env("LEDGER_STORE") or "memory").lower()
    if backend == "memory":
        return InMemoryTenantStore()
    if backend == "local":
        return LocalFileTenantStore(get_env("LEDGER_LOCAL_PATH") or "ledger_data.json")
    if backend == "firestore":
        from cargo_ledger.firestore_store import FirestoreTenantStore

        return FirestoreTenantStore()
    raise ValueError(f"Unknown LEDGER_STORE backend: {backend}")
