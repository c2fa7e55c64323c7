"""Expiring conversation sessions for the chat bot.

A session holds the step a chat user is on and the answers collected so
far. Sessions are keyed by (platform, platform user id), expire after a
fixed idle time and are capped in number; when the store is full the
least recently touched session is evicted. The store lives in process
memory, so a restart drops every conversation in progress and users start
over with their command.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger(__name__)

SessionKey = tuple[str, str]


@dataclass
class BotSession:
    step: str
    data: dict[str, str] = field(default_factory=dict)
    expires_at: float = 0.0


class BotSessionStore:
    """Bounded in-memory session map with per-session idle expiry.

    Args:
        ttl_seconds: Idle time after which a session is discarded.
        max_sessions: Capacity; the oldest session is evicted beyond it.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        ttl_seconds: float = 900,
        max_sessions: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: OrderedDict[SessionKey, BotSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, platform: str, platform_user_id: str) -> BotSession | None:
        """Return the live session for a chat user, dropping it if expired."""
        key = (platform, platform_user_id)
        session = self._sessions.get(key)
        if session is None:
            return None
        if session.expires_at <= self._clock():
            del self._sessions[key]
            logger.debug("bot.session_expired", platform=platform)
            return None
        return session

    def start(self, platform: str, platform_user_id: str, step: str) -> BotSession:
        """Begin a fresh session, replacing any session in progress."""
        session = BotSession(step=step)
        self.save(platform, platform_user_id, session)
        return session

    def save(self, platform: str, platform_user_id: str, session: BotSession) -> None:
        """Store a session and push its expiry out by the full TTL."""
        key = (platform, platform_user_id)
        session.expires_at = self._clock() + self.ttl_seconds
        self._sessions[key] = session
        self._sessions.move_to_end(key)
        if len(self._sessions) > self.max_sessions:
            self.purge_expired()
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info("bot.session_evicted", platform=evicted[0])

    def discard(self, platform: str, platform_user_id: str) -> bool:
        """Drop a session; True if one was live."""
        session = self.get(platform, platform_user_id)
        if session is None:
            return False
        del self._sessions[(platform, platform_user_id)]
        return True

    def purge_expired(self) -> int:
        """Remove every expired session; returns how many were removed."""
        now = self._clock()
        expired = [key for key, s in self._sessions.items() if s.expires_at <= now]
        for key in expired:
            del self._sessions[key]
        return len(expired)
