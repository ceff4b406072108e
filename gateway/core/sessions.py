"""Session table for streaming tool-protocol connections.

Lifecycle
---------
CREATED:  stream opened after key validation.
ACTIVE:   endpoint event emitted; heartbeat loop running.
EXPIRED:  age exceeded the session timeout (checked first on every heartbeat).
REVOKED:  periodic revalidation of the originating credential failed.
CLOSED:   the client disconnected.

Sessions in a terminal state (EXPIRED, REVOKED, CLOSED) are removed from the
table. ``discard`` is synchronous so it is safe to call from a
``finally`` block while the streaming task is being cancelled.

Scopes are copied from the originating key at creation. Revalidation may
narrow them to the key's current scopes but never widens them.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Tuple

from gateway.core import metrics
from gateway.core.api_keys import Principal
from gateway.core.exceptions import InternalError, UnauthorizedError

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"
    CLOSED = "closed"


_TERMINAL_STATES = {
    "expired": SessionState.EXPIRED,
    "revoked": SessionState.REVOKED,
    "closed": SessionState.CLOSED,
}


class HeartbeatOutcome(str, Enum):
    ALIVE = "alive"
    EXPIRED = "expired"
    REVOKED = "revoked"


@dataclass
class Session:
    session_id: str
    user_id: str
    scopes: Tuple[str, ...]
    key_id: str
    created_at: float
    last_validated_at: float
    tool_calls: int = 0
    state: SessionState = field(default=SessionState.CREATED)

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes


class SessionManager:
    """Owns the session table; every mutation happens under one lock."""

    def __init__(
        self,
        timeout_seconds: float = 300.0,
        revalidation_interval_seconds: float = 30.0,
        max_tool_calls: int = 20,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeout_seconds = timeout_seconds
        self.revalidation_interval_seconds = revalidation_interval_seconds
        self.max_tool_calls = max_tool_calls
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def create_session(self, principal: Principal) -> Session:
        now = self._clock()
        session = Session(
            session_id=str(uuid.uuid4()),
            user_id=principal.user_id,
            scopes=tuple(principal.scopes),
            key_id=principal.key_id,
            created_at=now,
            last_validated_at=now,
        )
        with self._lock:
            self._sweep_locked(now)
            self._sessions[session.session_id] = session
            metrics.set_active_sessions(len(self._sessions))
        logger.info("Session %s opened for key %s", session.session_id, session.key_id)
        return session

    def sweep_expired(self) -> int:
        """Remove every timed-out session. Returns how many were removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        # Covers streams that were never started, so their finally never ran
        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
        for session_id in expired:
            self._remove_locked(session_id, "expired")
        return len(expired)

    def activate(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.state = SessionState.ACTIVE

    def _is_expired(self, session: Session, now: float) -> bool:
        return now - session.created_at > self.timeout_seconds

    def get_session(self, session_id: str) -> Optional[Session]:
        """Return a live session, removing it if it has timed out."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self._is_expired(session, self._clock()):
                self._remove_locked(session_id, "expired")
                return None
            return session

    def discard(self, session_id: str, reason: str = "closed") -> bool:
        """Remove a session. Returns False if it was already gone."""
        with self._lock:
            return self._remove_locked(session_id, reason)

    def _remove_locked(self, session_id: str, reason: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.state = _TERMINAL_STATES.get(reason, SessionState.CLOSED)
        metrics.set_active_sessions(len(self._sessions))
        metrics.record_session_closed(reason)
        logger.info("Session %s removed (%s, %d tool call(s))", session_id, reason, session.tool_calls)
        return True

    def register_tool_call(self, session: Session) -> bool:
        """Count one dispatched call. Returns False once the budget is exceeded."""
        with self._lock:
            session.tool_calls += 1
            return session.tool_calls <= self.max_tool_calls

    async def heartbeat(
        self,
        session_id: str,
        revalidate: Callable[[], Awaitable[Principal]],
    ) -> HeartbeatOutcome:
        """
        Run one heartbeat tick.

        Expiry is checked first. Only when the revalidation interval has
        elapsed is the originating credential re-validated; a rejected
        credential revokes the session. A key-store outage keeps the session
        and retries on the next tick.

        Args:
            session_id: Session to check
            revalidate: Coroutine factory re-validating the originating credential

        Returns:
            HeartbeatOutcome for this tick
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return HeartbeatOutcome.EXPIRED
            now = self._clock()
            if self._is_expired(session, now):
                self._remove_locked(session_id, "expired")
                return HeartbeatOutcome.EXPIRED
            if now - session.last_validated_at < self.revalidation_interval_seconds:
                return HeartbeatOutcome.ALIVE

        try:
            principal = await revalidate()
        except UnauthorizedError as e:
            logger.info("Session %s revoked: %s", session_id, e.detail)
            self.discard(session_id, "revoked")
            return HeartbeatOutcome.REVOKED
        except InternalError:
            logger.warning("Session %s revalidation deferred: key store unavailable", session_id)
            return HeartbeatOutcome.ALIVE

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return HeartbeatOutcome.EXPIRED
            if principal.key_id != session.key_id:
                self._remove_locked(session_id, "revoked")
                return HeartbeatOutcome.REVOKED
            session.scopes = tuple(s for s in session.scopes if s in principal.scopes)
            session.last_validated_at = now
        return HeartbeatOutcome.ALIVE
