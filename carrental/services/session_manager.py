"""Server-held sessions: issue, validate, extend, revoke, expire."""

from __future__ import annotations

import threading
from datetime import timedelta
from typing import Optional

import structlog

from carrental.exceptions import (
    InvalidCredentialsError,
    InvalidRoleError,
    SessionExpiredError,
    SessionNotFoundError,
    returns_result,
)
from carrental.models.session import Session
from carrental.services.common import is_blank
from carrental.services.credentials import CredentialVerifier
from carrental.utils.clock import Clock
from carrental.utils.constants import Role
from carrental.utils.security import new_session_token

logger = structlog.get_logger(__name__)


class SessionManager:
    """
    Sessions live in a dict keyed by opaque token. Expiry is evaluated lazily
    on every read; the optional sweeper only reclaims memory and takes the
    same lock as validate/extend/revoke.
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        clock: Clock,
        ttl: timedelta = timedelta(hours=24),
        warning_window: timedelta = timedelta(minutes=5),
        sweep_interval: float = 15 * 60,
    ):
        self.verifier = verifier
        self.clock = clock
        self.ttl = ttl
        self.warning_window = warning_window
        self.sweep_interval = sweep_interval
        self._sessions: dict[str, Session] = {}
        self._lock = threading.RLock()
        self._sweeper: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @returns_result
    def authenticate(self, role: str, identifier: str, secret: str) -> Session:
        if is_blank(identifier) or is_blank(secret):
            raise InvalidCredentialsError("Please provide both identifier and access code")
        if role not in Role.ALL:
            raise InvalidRoleError()
        identifier = identifier.strip()
        if not self.verifier(role, identifier, secret):
            logger.info("login_rejected", role=role, identifier=identifier)
            raise InvalidCredentialsError()

        now = self.clock.now()
        with self._lock:
            sid = new_session_token()
            while sid in self._sessions:
                sid = new_session_token()
            session = Session(
                session_id=sid,
                role=role,
                principal_id=identifier,
                issued_at=now,
                expires_at=now + self.ttl,
                last_activity_at=now,
            )
            self._sessions[sid] = session
        logger.info("session_issued", role=role, principal_id=identifier, expires_at=session.expires_at.isoformat())
        return session.copy()

    def _live(self, session_id: str) -> Session:
        """Return the live record or raise; drops it when expired. Caller holds the lock."""
        session = self._sessions.get(session_id) if session_id else None
        if session is None:
            raise SessionNotFoundError()
        if not session.is_valid_at(self.clock.now()):
            del self._sessions[session_id]
            logger.info("session_expired", principal_id=session.principal_id)
            raise SessionExpiredError()
        return session

    @returns_result
    def validate(self, session_id: str) -> Session:
        with self._lock:
            session = self._live(session_id)
            now = self.clock.now()
            session.last_activity_at = now
            if session.expires_at - now <= self.warning_window:
                session.expiry_warning = True
            return session.copy()

    @returns_result
    def extend(self, session_id: str) -> Session:
        with self._lock:
            session = self._live(session_id)
            now = self.clock.now()
            session.expires_at = now + self.ttl
            session.last_activity_at = now
            session.expiry_warning = False
            logger.info("session_extended", principal_id=session.principal_id)
            return session.copy()

    def revoke(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is not None:
                logger.info("session_revoked")

    def time_until_expiry(self, session_id: str) -> timedelta:
        """Zero for unknown or expired sessions; an expired record is dropped."""
        with self._lock:
            try:
                session = self._live(session_id)
            except (SessionNotFoundError, SessionExpiredError):
                return timedelta(0)
            return session.expires_at - self.clock.now()

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    # ---------- Expiry sweep ----------
    def sweep_expired(self) -> int:
        """Drop every expired session; return how many were removed."""
        with self._lock:
            now = self.clock.now()
            dead = [sid for sid, s in self._sessions.items() if not s.is_valid_at(now)]
            for sid in dead:
                del self._sessions[sid]
        if dead:
            logger.debug("session_sweep", removed=len(dead))
        return len(dead)

    def _run_sweeper(self):
        while not self._stop.wait(self.sweep_interval):
            self.sweep_expired()

    def start_sweeper(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._run_sweeper, name="session-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1)
            self._sweeper = None
