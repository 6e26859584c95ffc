from __future__ import annotations

import os
from typing import Optional


def get_env(name: str) -> Optional[str]:
    """Stripped value of ``name``, or None when unset or blank."""
    value = os.getenv(name)
    return value.strip() if value and value.strip() else None
