"""In-memory collection of debate sessions with one active selection."""

import logging
import time
from collections.abc import Callable

from config.config_loader import SessionConfig, TimingConfig
from debatemate.errors import ValidationError
from debatemate.providers.base import Adjudicator
from debatemate.session import DebateSession

logger = logging.getLogger(__name__)

_SORT_ORDERS = ("date", "name")


class SessionStore:
    """Maps session id to DebateSession.

    Created once at process start; :meth:`close` tears every session down.
    Sessions are independent: each owns its own speakers and timers.
    """

    def __init__(
        self,
        adjudicator: Adjudicator,
        timing: TimingConfig,
        settings: SessionConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._adjudicator = adjudicator
        self._timing = timing
        self._settings = settings or SessionConfig()
        self._clock = clock
        self._sessions: dict[str, DebateSession] = {}
        self._active_id: str | None = None
        self._created = 0

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create(self, title: str | None = None) -> DebateSession:
        """Create a session in setup phase and make it the active one."""
        self._created += 1
        session = DebateSession(
            self._adjudicator,
            self._timing,
            self._settings,
            title=title or f"New Debate {self._created}",
            clock=self._clock,
        )
        self._sessions[session.id] = session
        self._active_id = session.id
        logger.info("Created session %s (%s)", session.id, session.title)
        return session

    def get(self, session_id: str) -> DebateSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise ValidationError(f"Unknown session id: {session_id!r}") from None

    def update(self, session_id: str, **fields) -> DebateSession:
        session = self.get(session_id)
        session.update(**fields)
        return session

    def delete(self, session_id: str) -> None:
        """Close and remove a session. If it was active, the newest remaining one becomes active."""
        session = self.get(session_id)
        session.close()
        del self._sessions[session_id]
        logger.info("Deleted session %s", session_id)
        if self._active_id == session_id:
            remaining = self.list_sessions("date")
            self._active_id = remaining[0].id if remaining else None

    def select(self, session_id: str) -> DebateSession:
        session = self.get(session_id)
        self._active_id = session_id
        return session

    @property
    def active(self) -> DebateSession | None:
        if self._active_id is None:
            return None
        return self._sessions.get(self._active_id)

    def list_sessions(self, order: str = "date") -> list[DebateSession]:
        """Sessions newest first ("date") or by title ("name")."""
        if order not in _SORT_ORDERS:
            raise ValidationError(f"Unknown sort order {order!r}, expected one of {_SORT_ORDERS}")
        sessions = list(self._sessions.values())
        if order == "date":
            # Stable sort: ties keep the most recently created first
            return sorted(reversed(sessions), key=lambda s: s.state.created_at, reverse=True)
        return sorted(sessions, key=lambda s: s.title.casefold())

    def close(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
        self._active_id = None
