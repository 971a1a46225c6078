import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from uuid import uuid4

from .auth_provider import AuthProvider, SupabaseAuthProvider
from .config import get_settings
from .directory import SupabaseAccountDirectory
from .schemas.view import NavigationHint
from .session_router import SessionRouter
from .supabase_client import create_session_client

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Everything that belongs to one browser session."""

    id: str
    auth: AuthProvider
    directory: SupabaseAccountDirectory
    router: SessionRouter


ContextFactory = Callable[[str], Awaitable[SessionContext]]


async def create_supabase_context(session_id: str) -> SessionContext:
    client = await create_session_client()
    auth = SupabaseAuthProvider(client)
    directory = SupabaseAccountDirectory(client)
    router = SessionRouter(auth, directory, timeout=get_settings().AUTH_CHECK_TIMEOUT_SECONDS)
    return SessionContext(id=session_id, auth=auth, directory=directory, router=router)


class SessionRegistry:
    """
    Keeps one mounted session router per browser session id. Sessions idle for
    longer than ``idle_timeout`` seconds are unmounted and forgotten the next
    time a visitor opens one.
    """

    def __init__(
        self,
        factory: ContextFactory = create_supabase_context,
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._factory = factory
        self._idle_timeout = (
            idle_timeout if idle_timeout is not None else get_settings().SESSION_IDLE_TIMEOUT_SECONDS
        )
        self._clock = clock
        self._contexts: dict[str, SessionContext] = {}
        self._last_seen: dict[str, float] = {}
        self._lock = asyncio.Lock()

    def get(self, session_id: Optional[str]) -> Optional[SessionContext]:
        if not session_id:
            return None
        context = self._contexts.get(session_id)
        if context is not None:
            self._last_seen[session_id] = self._clock()
        return context

    async def open(self, hint: Optional[NavigationHint] = None) -> SessionContext:
        """Creates a context for a new visitor and mounts its router."""
        await self.sweep()
        session_id = uuid4().hex
        context = await self._factory(session_id)
        async with self._lock:
            self._contexts[session_id] = context
            self._last_seen[session_id] = self._clock()
        await context.router.mount(hint)
        logger.info("Opened browser session %s", session_id)
        return context

    async def sweep(self) -> int:
        """Closes every session idle for longer than the timeout."""
        deadline = self._clock() - self._idle_timeout
        stale = [session_id for session_id, seen in self._last_seen.items() if seen < deadline]
        for session_id in stale:
            await self.close(session_id)
        if stale:
            logger.info("Evicted %d idle browser sessions", len(stale))
        return len(stale)

    async def close(self, session_id: str) -> None:
        async with self._lock:
            context = self._contexts.pop(session_id, None)
            self._last_seen.pop(session_id, None)
        if context is not None:
            await context.router.unmount()
            logger.info("Closed browser session %s", session_id)

    async def close_all(self) -> None:
        for session_id in list(self._contexts):
            await self.close(session_id)

    def __len__(self) -> int:
        return len(self._contexts)
