import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

from redis.asyncio import Redis
from sqlalchemy.orm import sessionmaker
from sqlalchemy import delete

from .admin_model import AdminSession
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

SessionData = Dict[str, Any]


class SessionStore:
    """Server-side session records keyed by the opaque id held in the session cookie."""

    kind = "abstract"

    async def load(self, sid: str) -> Optional[SessionData]:
        raise NotImplementedError

    async def save(self, sid: str, data: SessionData, max_age: int) -> None:
        raise NotImplementedError

    async def delete(self, sid: str) -> None:
        raise NotImplementedError

    async def sweep(self) -> int:
        return 0

    async def close(self) -> None:
        pass


class MemorySessionStore(SessionStore):
    kind = "memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._sessions: Dict[str, Tuple[float, SessionData]] = {}

    async def load(self, sid: str) -> Optional[SessionData]:
        entry = self._sessions.get(sid)
        if entry is None:
            return None
        expires_at, data = entry
        if expires_at <= self._clock():
            self._sessions.pop(sid, None)
            return None
        return dict(data)

    async def save(self, sid: str, data: SessionData, max_age: int) -> None:
        self._sessions[sid] = (self._clock() + max_age, dict(data))

    async def delete(self, sid: str) -> None:
        self._sessions.pop(sid, None)

    async def sweep(self) -> int:
        now = self._clock()
        expired = [sid for sid, (expires_at, _) in self._sessions.items() if expires_at <= now]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)


class DatabaseSessionStore(SessionStore):
    kind = "database"

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], float] = time.time):
        self._session_factory = session_factory
        self._clock = clock

    async def load(self, sid: str) -> Optional[SessionData]:
        async with self._session_factory() as session:
            row = await session.get(AdminSession, sid)
        if row is None or row.expires_at <= self._clock():
            return None
        return dict(row.data)

    async def save(self, sid: str, data: SessionData, max_age: int) -> None:
        async with self._session_factory() as session:
            row = await session.get(AdminSession, sid)
            if row is None:
                row = AdminSession(id=sid, data=data, expires_at=self._clock() + max_age)
            else:
                row.data = dict(data)
                row.expires_at = self._clock() + max_age
            session.add(row)
            await session.commit()

    async def delete(self, sid: str) -> None:
        async with self._session_factory() as session:
            await session.exec(delete(AdminSession).where(AdminSession.id == sid))
            await session.commit()

    async def sweep(self) -> int:
        async with self._session_factory() as session:
            result = await session.exec(delete(AdminSession).where(AdminSession.expires_at <= self._clock()))
            await session.commit()
        return result.rowcount or 0


class RedisSessionStore(SessionStore):
    kind = "redis"

    def __init__(self, client: Redis, prefix: str = "portfolio:session:"):
        self._client = client
        self._prefix = prefix

    async def load(self, sid: str) -> Optional[SessionData]:
        raw = await self._client.get(self._prefix + sid)
        if raw is None:
            return None
        return json.loads(raw)

    async def save(self, sid: str, data: SessionData, max_age: int) -> None:
        await self._client.set(self._prefix + sid, json.dumps(data), ex=max_age)

    async def delete(self, sid: str) -> None:
        await self._client.delete(self._prefix + sid)

    async def close(self) -> None:
        await self._client.aclose()


def create_session_store(settings, session_factory: Optional[sessionmaker]) -> SessionStore:
    kind = settings.session_store
    if kind == "auto":
        if settings.redis_url:
            kind = "redis"
        elif session_factory is not None:
            kind = "database"
        else:
            kind = "memory"

    if kind == "redis":
        if not settings.redis_url:
            raise ConfigurationError("SESSION_STORE=redis requires REDIS_URL")
        return RedisSessionStore(Redis.from_url(settings.redis_url))
    if kind == "database":
        if session_factory is None:
            raise ConfigurationError("SESSION_STORE=database requires DATABASE_URL")
        return DatabaseSessionStore(session_factory)
    return MemorySessionStore()
