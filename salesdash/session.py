from __future__ import annotations

import hmac
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Literal, Optional, Tuple

from salesdash.config import Settings
from salesdash.errors import AuthenticationError


Role = Literal["admin", "department"]
ADMIN_DISPLAY_NAME = "管理员"
DEFAULT_SESSION_TTL = 8 * 3600


@dataclass(frozen=True)
class UserSession:
    role: Role
    username: str
    department_filter: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _same(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def authenticate(username: str, password: str, settings: Settings) -> UserSession:
    """Admin credentials open everything; any department name with the shared password is scoped to it."""
    username = (username or "").strip()
    password = password or ""
    if _same(username, settings.admin_user) and _same(password, settings.admin_password):
        return UserSession(role="admin", username=ADMIN_DISPLAY_NAME)
    if username and _same(password, settings.department_password):
        return UserSession(role="department", username=username, department_filter=username)
    raise AuthenticationError("Wrong username or password.")


class SessionRegistry:
    """In-memory bearer tokens for the API; a token lapses ``ttl_seconds`` after it was issued."""

    def __init__(self, ttl_seconds: float = DEFAULT_SESSION_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._ttl = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, Tuple[UserSession, float]] = {}

    def _prune(self, now: float) -> None:
        expired = [token for token, (_, issued) in self._sessions.items() if now - issued >= self._ttl]
        for token in expired:
            del self._sessions[token]

    def issue(self, session: UserSession) -> str:
        token = secrets.token_urlsafe(24)
        with self._lock:
            now = self._clock()
            self._prune(now)
            self._sessions[token] = (session, now)
        return token

    def get(self, token: Optional[str]) -> Optional[UserSession]:
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            session, issued = entry
            if self._clock() - issued >= self._ttl:
                del self._sessions[token]
                return None
            return session

    def revoke(self, token: Optional[str]) -> None:
        if not token:
            return
        with self._lock:
            self._sessions.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
