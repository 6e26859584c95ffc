from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore
from pydantic import ValidationError

from cargo_ledger.config import get_env
from cargo_ledger.errors import PersistenceError
from cargo_ledger.models import Company
from cargo_ledger.store import tenant_from_document, tenant_to_document


logger = logging.getLogger(__name__)

# Firestore rejects batches with more than 500 writes.
_BATCH_LIMIT = 450


def _get_database() -> Optional[str]:
    return get_env("FIRESTORE_DATABASE")


def _collection_name() -> str:
    return get_env("FIRESTORE_COLLECTION") or "companies"


class FirestoreTenantStore:
    """One document per tenant, keyed by tenant id."""

    def __init__(self, client: Any = None, collection: Optional[str] = None) -> None:
        self._client = client
        self._collection = collection or _collection_name()

    def _get_collection(self):
        if self._client is None:
            self._client = firestore.Client(database=_get_database())
        return self._client.collection(self._collection)

    def load(self) -> list[Company]:
        col = self._get_collection()
        tenants: list[Company] = []
        try:
            for doc in col.stream():
                data = doc.to_dict() or {}
                try:
                    tenants.append(tenant_from_document(data, doc.id))
                except ValidationError as exc:
                    raise PersistenceError(f"Tenant document {doc.id} is not valid: {exc}") from exc
        except GoogleAPICallError as exc:
            raise PersistenceError(f"Firestore load failed: {exc}") from exc
        logger.info("Loaded tenants from Firestore", extra={"count": len(tenants)})
        return tenants

    def save_all(self, tenants: list[Company]) -> None:
        col = self._get_collection()
        client = self._client
        try:
            for start in range(0, len(tenants), _BATCH_LIMIT):
                batch = client.batch()
                for tenant in tenants[start:start + _BATCH_LIMIT]:
                    record: Dict[str, Any] = tenant_to_document(tenant)
                    record["updated_at"] = firestore.SERVER_TIMESTAMP
                    batch.set(col.document(tenant.id), record)
                batch.commit()
        except GoogleAPICallError as exc:
            raise PersistenceError(f"Firestore save failed: {exc}") from exc

    def client_info(self) -> Dict[str, Any]:
        col = self._get_collection()
        return {
            "project": self._client.project,
            "database": _get_database() or "(default)",
            "collection": col.id,
        }
