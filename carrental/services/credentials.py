from __future__ import annotations

from typing import Protocol

import structlog

from carrental.models.store import Store
from carrental.utils.constants import Role
from carrental.utils.security import check_hash, generate_hash

logger = structlog.get_logger(__name__)


class CredentialVerifier(Protocol):
    def __call__(self, role: str, identifier: str, secret: str) -> bool: ...


class StoreCredentialVerifier:
    """Checks (role, username, password) against werkzeug hashes kept in the Store."""

    def __init__(self, store: Store):
        self.store = store

    def __call__(self, role: str, identifier: str, secret: str) -> bool:
        user = self.store.find_user(identifier)
        if not user or user.get("role") != role:
            return False
        return check_hash(secret, user["password_hash"])

    def register(self, username: str, role: str, password: str):
        """Create a login. Returns (ok, message, user_id)."""
        role = (role or "").lower().strip()
        username = (username or "").strip()
        if role not in Role.ALL:
            return False, "Role must be admin/hoster/customer", None
        if not username or not password:
            return False, "Username and password are required", None
        if self.store.user_exists(username):
            return False, "Username exists", None
        uid = self.store.create_user(username, generate_hash(password), role)
        logger.info("user_registered", user_id=uid, role=role)
        return True, "User created", uid
