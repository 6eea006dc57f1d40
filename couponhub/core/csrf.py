from __future__ import annotations

import secrets
import threading
import time
from typing import Callable

from couponhub.core.config import settings


class CsrfTokenStore:
    """Anti-forgery tokens bound to the caller that requested them (session id or anon:<ip>)."""

    def __init__(self, ttl_seconds: int = settings.CSRF_TOKEN_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self._ttl = ttl_seconds
        self._clock = clock
        self._tokens: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def issue(self, owner: str) -> str:
        token = secrets.token_urlsafe(32)
        now = self._clock()
        with self._lock:
            self._tokens[token] = (owner, now + self._ttl)
            for t in [t for t, (_, exp) in self._tokens.items() if exp < now]:
                del self._tokens[t]
        return token

    def validate(self, token: str | None, owner: str) -> bool:
        if not token:
            return False
        now = self._clock()
        with self._lock:
            stored = self._tokens.get(token)
            if stored is None:
                return False
            bound_owner, expires = stored
            if expires < now:
                del self._tokens[token]
                return False
        return secrets.compare_digest(bound_owner, owner)

    def reset(self) -> None:
        with self._lock:
            self._tokens.clear()


csrf_tokens = CsrfTokenStore()
