"""
Session persistence.

Issued sessions are backed up server-side so a client that lost its tokens
mid-load can be restored from the refresh token, and so that sign-out can
revoke a session before its tokens expire.

Two stores share one interface:
    - RedisSessionStore: production, survives restarts, shared across workers
    - InMemorySessionStore: single process (development and tests)
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

from redis.asyncio import Redis, from_url

from core.config import settings

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "opentowork:session"


@dataclass
class SessionBackup:
    """A backed-up session."""

    session_id: str
    principal_id: str
    refresh_token_hash: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now

    def ttl_seconds(self) -> int:
        remaining = (self.expires_at - datetime.now(timezone.utc)).total_seconds()
        return max(int(remaining), 1)

    def to_json(self) -> str:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data["expires_at"] = self.expires_at.isoformat()
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "SessionBackup":
        data = json.loads(raw)
        data["created_at"] = datetime.fromisoformat(data["created_at"])
        data["expires_at"] = datetime.fromisoformat(data["expires_at"])
        return cls(**data)


class SessionStore(ABC):
    """Backup / restore / clear of issued sessions."""

    @abstractmethod
    async def backup(self, session: SessionBackup) -> None:
        """Save (or replace) the backup for ``session.session_id``."""

    @abstractmethod
    async def restore(self, session_id: str) -> Optional[SessionBackup]:
        """Return the live backup, or None if absent or expired."""

    @abstractmethod
    async def clear(self, session_id: str) -> None:
        """Drop one session backup."""

    @abstractmethod
    async def clear_principal(self, principal_id: str) -> int:
        """Drop every session of a principal. Returns how many were removed."""

    async def close(self) -> None:
        return None


class InMemorySessionStore(SessionStore):
    """Process-local session store."""

    def __init__(self):
        self._sessions: dict[str, SessionBackup] = {}
        self._lock = asyncio.Lock()

    async def backup(self, session: SessionBackup) -> None:
        async with self._lock:
            self._evict_expired()
            self._sessions[session.session_id] = session
        logger.debug(f"Session {session.session_id} backed up")

    def _evict_expired(self) -> None:
        """Drop abandoned sessions. Caller holds the lock."""
        now = datetime.now(timezone.utc)
        expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired session backups")

    async def restore(self, session_id: str) -> Optional[SessionBackup]:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired():
                logger.info(f"Session {session_id} backup has expired")
                del self._sessions[session_id]
                return None
            return session

    async def clear(self, session_id: str) -> None:
        async with self._lock:
            self._sessions.pop(session_id, None)

    async def clear_principal(self, principal_id: str) -> int:
        async with self._lock:
            doomed = [
                sid for sid, s in self._sessions.items() if s.principal_id == principal_id
            ]
            for sid in doomed:
                del self._sessions[sid]
        return len(doomed)


class RedisSessionStore(SessionStore):
    """Redis-backed session store; keys expire with the refresh token."""

    def __init__(self, redis_url: str, key_prefix: str = SESSION_KEY_PREFIX):
        self.key_prefix = key_prefix
        self._redis: Redis = from_url(redis_url, encoding="utf-8", decode_responses=True)

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}:{session_id}"

    def _principal_key(self, principal_id: str) -> str:
        return f"{self.key_prefix}:principal:{principal_id}"

    async def backup(self, session: SessionBackup) -> None:
        ttl = session.ttl_seconds()
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(self._key(session.session_id), session.to_json(), ex=ttl)
            pipe.sadd(self._principal_key(session.principal_id), session.session_id)
            pipe.expire(self._principal_key(session.principal_id), ttl)
            await pipe.execute()

    async def restore(self, session_id: str) -> Optional[SessionBackup]:
        raw = await self._redis.get(self._key(session_id))
        if not raw:
            return None
        session = SessionBackup.from_json(raw)
        if session.is_expired():
            await self._drop(session_id, session.principal_id)
            return None
        return session

    async def clear(self, session_id: str) -> None:
        raw = await self._redis.get(self._key(session_id))
        principal_id = SessionBackup.from_json(raw).principal_id if raw else None
        await self._drop(session_id, principal_id)

    async def _drop(self, session_id: str, principal_id: Optional[str]) -> None:
        """Delete the backup and its entry in the principal's session set."""
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.delete(self._key(session_id))
            if principal_id is not None:
                pipe.srem(self._principal_key(principal_id), session_id)
            await pipe.execute()

    async def clear_principal(self, principal_id: str) -> int:
        key = self._principal_key(principal_id)
        session_ids = await self._redis.smembers(key)
        if session_ids:
            await self._redis.delete(*[self._key(sid) for sid in session_ids])
        await self._redis.delete(key)
        return len(session_ids)

    async def close(self) -> None:
        await self._redis.aclose()
        logger.info("Redis session store closed")


def create_session_store(redis_url: Optional[str] = None) -> SessionStore:
    """Build the configured session store."""
    url = redis_url if redis_url is not None else settings.redis_url
    if url:
        logger.info("Using Redis session store")
        return RedisSessionStore(url)
    logger.info("Using in-memory session store")
    return InMemorySessionStore()
