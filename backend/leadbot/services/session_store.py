"""
Session Store Service - keeps live conversations in process memory.

Conversations are not persisted: a server restart ends every conversation,
just as a page reload does in the browser. A conversation left idle for longer
than its TTL is closed (cancelling any quote polling) and forgotten.
"""
import asyncio
from typing import Dict, List, Optional
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from leadbot.core.config import settings
from leadbot.core.errors import SessionNotFoundError
from leadbot.core.logging import logger
from leadbot.orchestration.coordinator import SubmissionCoordinator


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(ABC):
    """Abstract base class for conversation storage."""

    @abstractmethod
    async def get(self, tracking_id: str) -> Optional[SubmissionCoordinator]:
        """Get a conversation by tracking id, extending its lifetime."""
        pass

    @abstractmethod
    async def add(self, coordinator: SubmissionCoordinator) -> None:
        """Register a new conversation."""
        pass

    @abstractmethod
    async def remove(self, tracking_id: str) -> bool:
        """Tear down and forget a conversation."""
        pass

    async def require(self, tracking_id: str) -> SubmissionCoordinator:
        coordinator = await self.get(tracking_id)
        if coordinator is None:
            raise SessionNotFoundError(tracking_id)
        return coordinator


class InMemorySessionStore(SessionStore):
    """In-memory conversation registry with idle expiry."""

    def __init__(self, ttl_minutes: Optional[int] = None):
        self.ttl = timedelta(minutes=ttl_minutes if ttl_minutes is not None else settings.SESSION_TTL_MINUTES)
        self._sessions: Dict[str, SubmissionCoordinator] = {}
        self._expiry: Dict[str, datetime] = {}

    def _touch(self, tracking_id: str) -> None:
        self._expiry[tracking_id] = _now() + self.ttl

    async def cleanup_expired(self) -> List[str]:
        """Close and remove expired conversations; returns their tracking ids."""
        now = _now()
        expired = [k for k, v in self._expiry.items() if v < now]
        for tracking_id in expired:
            logger.info(f"[{tracking_id}] conversation expired after {self.ttl}")
            await self.remove(tracking_id)
        return expired

    async def sweep(self, interval: float) -> None:
        """Expire idle conversations every `interval` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            await self.cleanup_expired()

    async def get(self, tracking_id: str) -> Optional[SubmissionCoordinator]:
        await self.cleanup_expired()
        coordinator = self._sessions.get(tracking_id)
        if coordinator is not None:
            self._touch(tracking_id)
        return coordinator

    async def add(self, coordinator: SubmissionCoordinator) -> None:
        await self.cleanup_expired()
        self._sessions[coordinator.tracking_id] = coordinator
        self._touch(coordinator.tracking_id)

    async def remove(self, tracking_id: str) -> bool:
        coordinator = self._sessions.pop(tracking_id, None)
        self._expiry.pop(tracking_id, None)
        if coordinator is None:
            return False
        await coordinator.close()
        return True

    async def close_all(self) -> None:
        """Cancel every poller; called on shutdown."""
        for tracking_id in list(self._sessions):
            await self.remove(tracking_id)

    async def count(self) -> int:
        """Get the number of live conversations."""
        await self.cleanup_expired()
        return len(self._sessions)


# Singleton session store instance
_session_store: Optional[InMemorySessionStore] = None


def get_session_store() -> InMemorySessionStore:
    """Get the session store instance (creates if needed)."""
    global _session_store

    if _session_store is None:
        logger.info("Using in-memory conversation store")
        _session_store = InMemorySessionStore()

    return _session_store
