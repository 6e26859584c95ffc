from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from google.cloud import secretmanager

from cargo_ledger.config import get_env


logger = logging.getLogger(__name__)


class SuperAdminCredentials(NamedTuple):
    username: str
    password: str


def _get_super_admin_password() -> Optional[str]:
    secret_name = get_env("SUPER_ADMIN_SECRET_NAME")
    if secret_name:
        client = secretmanager.SecretManagerServiceClient()
        version = client.access_secret_version(name=f"{secret_name}/versions/latest")
        return version.payload.data.decode("utf-8").strip()
    return get_env("SUPER_ADMIN_PASS")


def super_admin_credentials() -> Optional[SuperAdminCredentials]:
    """Configured super-admin login, or None when super-admin access is disabled."""
    username = get_env("SUPER_ADMIN_USER")
    if not username:
        return None
    try:
        password = _get_super_admin_password()
    except Exception:
        logger.exception("Could not read super-admin password; super-admin login disabled")
        return None
    if not password:
        return None
    return SuperAdminCredentials(username, password)
