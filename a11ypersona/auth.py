"""
Auth — API Key Guard for Rule-Set Mutations

Scans and persona lookups are public. Routes that change the rule set
(PUT /rules, POST /rules/reload, analyze with auto_apply) require an
X-API-Key header once keys are configured.

Keys come from A11Y_API_KEYS (comma-separated). Only their SHA-256
hashes are kept in memory. With no keys configured, auth is disabled
(dev mode).
"""

from __future__ import annotations

import hashlib
import os
import secrets
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


def _hash(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()


_VALID_KEY_HASHES: set[str] = {
    _hash(k.strip()) for k in os.getenv("A11Y_API_KEYS", "").split(",") if k.strip()
}


def auth_enabled() -> bool:
    return len(_VALID_KEY_HASHES) > 0


def _verify_key(api_key: str) -> bool:
    if not api_key:
        return False
    return _hash(api_key) in _VALID_KEY_HASHES


def check_api_key(api_key: Optional[str]) -> Optional[str]:
    """
    Validate a key for a mutating operation.

    Returns a short key id for logging, or None in dev mode.
    Raises HTTPException 401 (missing) or 403 (invalid).
    """
    if not auth_enabled():
        return None
    if not api_key:
        raise HTTPException(status_code=401, detail="Missing API key. Include X-API-Key header.")
    if not _verify_key(api_key):
        raise HTTPException(status_code=403, detail="Invalid API key.")
    return _hash(api_key)[:12]


async def require_api_key(
    api_key: Optional[str] = Security(API_KEY_HEADER),
) -> Optional[str]:
    """FastAPI dependency form of check_api_key."""
    return check_api_key(api_key)


def generate_api_key() -> str:
    """Generate a new API key. Utility for key provisioning."""
    return f"a11y_{secrets.token_urlsafe(32)}"
