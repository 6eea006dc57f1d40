from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from couponhub.core.config import settings

logger = logging.getLogger(__name__)


class SessionError(Exception):
    pass


class SessionExpired(SessionError):
    pass


class AccountLocked(SessionError):
    def __init__(self, locked_until: float):
        super().__init__("Account temporarily locked due to failed login attempts")
        self.locked_until = locked_until


@dataclass
class SessionActivity:
    session_id: str
    user_id: str
    ip_address: str
    user_agent: str
    created_at: float
    last_activity: float


@dataclass
class _FailedAttempts:
    count: int
    last_attempt: float


def _to_datetime(ts: float | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class SessionManager:
    """
    Tracks signed-in sessions, failed login attempts and account lockouts.

    State is process-local. Every mutation happens under one lock so counters stay
    consistent when requests are served from several threads.
    """

    def __init__(
        self,
        *,
        activity_timeout: int = settings.SESSION_ACTIVITY_TIMEOUT_SECONDS,
        max_concurrent: int = settings.SESSION_MAX_CONCURRENT,
        max_failed_attempts: int = settings.LOGIN_MAX_FAILED_ATTEMPTS,
        lockout_seconds: int = settings.LOGIN_LOCKOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.activity_timeout = activity_timeout
        self.max_concurrent = max_concurrent
        self.max_failed_attempts = max_failed_attempts
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._sessions: dict[str, SessionActivity] = {}
        self._failed: dict[str, _FailedAttempts] = {}
        self._lock = threading.Lock()

    # -------------------------
    # Sessions
    # -------------------------
    def create_session(self, user_id: str, *, ip_address: str, user_agent: str) -> str:
        now = self._clock()
        sid = uuid.uuid4().hex
        with self._lock:
            self._sessions[sid] = SessionActivity(
                session_id=sid,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=now,
                last_activity=now,
            )
            own = sorted(
                (s for s in self._sessions.values() if s.user_id == user_id),
                key=lambda s: s.last_activity,
            )
            evicted = own[: max(len(own) - self.max_concurrent, 0)]
            for s in evicted:
                del self._sessions[s.session_id]

        if evicted:
            logger.info("Evicted %d idle session(s) for user %s (concurrent limit)", len(evicted), user_id)
        return sid

    def validate(self, session_id: str, user_id: str) -> SessionActivity:
        now = self._clock()
        with self._lock:
            locked_until = self._locked_until(user_id, now)
            if locked_until is not None:
                raise AccountLocked(locked_until)

            activity = self._sessions.get(session_id)
            if activity is None or activity.user_id != user_id:
                raise SessionExpired("Session not found or revoked")

            if now - activity.last_activity > self.activity_timeout:
                del self._sessions[session_id]
                raise SessionExpired("Session expired due to inactivity")

            activity.last_activity = now
            return activity

    def is_active(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def invalidate(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def force_logout_user(self, user_id: str, reason: str) -> int:
        with self._lock:
            sids = [sid for sid, s in self._sessions.items() if s.user_id == user_id]
            for sid in sids:
                del self._sessions[sid]

        logger.info("Force logged out user %s: %s (%d sessions removed)", user_id, reason, len(sids))
        return len(sids)

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [sid for sid, s in self._sessions.items() if now - s.last_activity > self.activity_timeout]
            for sid in stale:
                del self._sessions[sid]
            for uid in [uid for uid, a in self._failed.items() if now - a.last_attempt >= self.lockout_seconds]:
                del self._failed[uid]
        return len(stale)

    # -------------------------
    # Failed logins / lockout
    # -------------------------
    def _locked_until(self, user_id: str, now: float) -> float | None:
        attempts = self._failed.get(user_id)
        if attempts is None or attempts.count < self.max_failed_attempts:
            return None
        until = attempts.last_attempt + self.lockout_seconds
        if now < until:
            return until
        # lockout elapsed
        del self._failed[user_id]
        return None

    def check_lockout(self, user_id: str) -> None:
        with self._lock:
            locked_until = self._locked_until(user_id, self._clock())
        if locked_until is not None:
            raise AccountLocked(locked_until)

    def record_failed_attempt(self, user_id: str) -> int:
        now = self._clock()
        with self._lock:
            attempts = self._failed.get(user_id)
            if attempts is None:
                attempts = self._failed[user_id] = _FailedAttempts(count=0, last_attempt=now)
            attempts.count += 1
            attempts.last_attempt = now
            count = attempts.count

        if count >= self.max_failed_attempts:
            logger.warning(
                "Account %s locked after %d failed login attempts",
                user_id,
                count,
                extra={"security_event": "account_locked", "user_id": user_id},
            )
        return count

    def clear_failed_attempts(self, user_id: str) -> None:
        with self._lock:
            self._failed.pop(user_id, None)

    unlock = clear_failed_attempts

    # -------------------------
    # Reporting
    # -------------------------
    def stats(self) -> dict:
        now = self._clock()
        with self._lock:
            locked = sum(
                1
                for a in self._failed.values()
                if a.count >= self.max_failed_attempts and now < a.last_attempt + self.lockout_seconds
            )
            return {
                "activeSessions": len(self._sessions),
                "failedAttempts": len(self._failed),
                "lockedUsers": locked,
            }

    def session_info(self, user_id: str) -> dict:
        now = self._clock()
        with self._lock:
            own = [s for s in self._sessions.values() if s.user_id == user_id]
            locked_until = self._locked_until(user_id, now)
            last = max((s.last_activity for s in own), default=None)

        return {
            "activeSessions": len(own),
            "lastActivity": _to_datetime(last),
            "isLocked": locked_until is not None,
            "lockoutUntil": _to_datetime(locked_until),
        }

    def reset(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._failed.clear()


session_manager = SessionManager()
