"""
Session Registry - Creates, finds and expires game sessions.

LIFECYCLE:
1. create(): new unique id, oracle token, state machine, hub
2. lookup(): every request resolves its session here; a miss is normal
3. expire(): fixed TTL after creation, the session is removed and its
   hub shut down, ending any live event streams

A verdict does not delete a session. Late visitors keep seeing the
final result until the TTL runs out.

PERSISTENCE RULES:
- In-memory only; everything is lost on restart
- One registry per process, constructed at startup and injected into
  the app (never a module global)
"""

from __future__ import annotations
import asyncio
import secrets
import string
import time
from collections.abc import Callable
from datetime import timedelta

from ..auth import issue_oracle_token
from ..observability.logging import get_logger
from ..rendering import GameRenderer
from .game import GameSession

logger = get_logger(__name__)

SESSION_ID_ALPHABET = string.ascii_letters + string.digits
DEFAULT_SESSION_ID_LENGTH = 12
DEFAULT_SESSION_TTL = 24 * 60 * 60.0


def random_session_id(length: int = DEFAULT_SESSION_ID_LENGTH) -> str:
    """Uniformly random identifier over [a-zA-Z0-9]."""
    return "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(length))


class SessionRegistry:
    """
    Concurrent map from session id to GameSession.

    Writers (create, expire, close) serialize on one asyncio.Lock.
    Readers (lookup) never take it; a dict read is atomic on the event
    loop and lookups far outnumber writes.

    Usage:
        registry = SessionRegistry(session_ttl=3600)

        session = await registry.create()
        same = registry.lookup(session.session_id)

        await registry.close()   # at shutdown
    """

    def __init__(
        self,
        session_ttl: float = DEFAULT_SESSION_TTL,
        token_ttl: float | None = None,
        id_length: int = DEFAULT_SESSION_ID_LENGTH,
        renderer: GameRenderer | None = None,
        id_factory: Callable[[int], str] | None = None,
    ) -> None:
        self.session_ttl = session_ttl
        self.token_ttl = token_ttl if token_ttl is not None else session_ttl
        self.id_length = id_length
        self.renderer = renderer or GameRenderer()
        self._id_factory = id_factory or random_session_id

        self._lock = asyncio.Lock()
        # None marks an id reserved by a create() still populating it
        self._sessions: dict[str, GameSession | None] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._expiry_tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return sum(1 for session in self._sessions.values() if session is not None)

    def __contains__(self, session_id: str) -> bool:
        return self.lookup(session_id) is not None

    def session_ids(self) -> list[str]:
        """Ids of all live sessions."""
        return [sid for sid, session in self._sessions.items() if session is not None]

    def lookup(self, session_id: str) -> GameSession | None:
        """Get a session by id, or None if unknown or expired."""
        return self._sessions.get(session_id)

    async def create(self) -> GameSession:
        """
        Create and register a new session.

        The id is re-rolled until unused and reserved before the session
        is built, so concurrent creators can never share one.
        """
        async with self._lock:
            session_id = self._id_factory(self.id_length)
            while session_id in self._sessions:
                logger.debug("session_id_collision", session_id=session_id)
                session_id = self._id_factory(self.id_length)
            self._sessions[session_id] = None

            try:
                capability = issue_oracle_token(
                    session_id, ttl=timedelta(seconds=self.token_ttl),
                )
                now = time.time()
                session = GameSession(
                    session_id=session_id,
                    capability=capability,
                    renderer=self.renderer,
                    created_at=now,
                    expires_at=now + self.session_ttl,
                )
            except Exception:
                del self._sessions[session_id]
                raise

            self._sessions[session_id] = session
            loop = asyncio.get_running_loop()
            self._timers[session_id] = loop.call_later(
                self.session_ttl, self._schedule_expiry, session_id,
            )

        logger.info("session_created", session_id=session_id, sessions=len(self))
        return session

    async def expire(self, session_id: str) -> bool:
        """
        Remove a session and shut down its hub.

        Returns False if the session was already gone.
        """
        async with self._lock:
            session = self._sessions.pop(session_id, None)
            timer = self._timers.pop(session_id, None)
        if timer is not None:
            timer.cancel()
        if session is None:
            return False

        await session.hub.shutdown()
        logger.info("session_expired", session_id=session_id, sessions=len(self))
        return True

    async def close(self) -> None:
        """Cancel all expiry timers and tear down every session."""
        async with self._lock:
            sessions = [s for s in self._sessions.values() if s is not None]
            self._sessions.clear()
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()

        for task in list(self._expiry_tasks):
            task.cancel()
        for session in sessions:
            await session.hub.shutdown()
        logger.info("registry_closed", closed=len(sessions))

    def _schedule_expiry(self, session_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self._expire_quietly(session_id))
        self._expiry_tasks.add(task)
        task.add_done_callback(self._expiry_tasks.discard)

    async def _expire_quietly(self, session_id: str) -> None:
        # Timer-driven; a failure here must only affect this one session.
        try:
            await self.expire(session_id)
        except Exception:
            logger.exception("session_expiry_failed", session_id=session_id)
