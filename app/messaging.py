from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Dict, Optional

from domain.models import Viewport
from domain.page_context import PageContext
from domain.ports.overlay import OverlaySurface
from domain.ports.repositories import KeyValueStore
from domain.services.page_session import PageSession

logger = logging.getLogger(__name__)

SurfaceFactory = Callable[[PageContext], OverlaySurface]


class NoResidentEngineError(LookupError):
    """No engine instance is loaded for the page a message targets."""


class SessionRegistry:
    """Holds at most one engine instance per page context."""

    def __init__(
        self,
        store: KeyValueStore,
        surface_factory: SurfaceFactory,
        *,
        viewport: Viewport,
        native_bypass_hosts: list[str],
        min_selection_size: float,
    ) -> None:
        self.store = store
        self._surface_factory = surface_factory
        self._viewport = viewport
        self._native_bypass_hosts = list(native_bypass_hosts)
        self._min_selection_size = min_selection_size
        self._sessions: Dict[str, PageSession] = {}

    def get(self, page_key: str) -> Optional[PageSession]:
        return self._sessions.get(page_key)

    def require(self, page_key: str) -> PageSession:
        session = self._sessions.get(page_key)
        if session is None:
            msg = f"No engine resident for {page_key}"
            raise NoResidentEngineError(msg)
        return session

    async def inject(self, url: str) -> PageSession:
        context = PageContext.from_url(url)
        existing = self._sessions.get(context.page_key)
        if existing is not None:
            return existing
        session = PageSession(
            context,
            self.store,
            self._surface_factory(context),
            viewport=self._viewport,
            native_bypass_hosts=self._native_bypass_hosts,
            min_selection_size=self._min_selection_size,
        )
        self._sessions[context.page_key] = session
        await session.load()
        return session

    async def unload(self, page_key: str) -> bool:
        session = self._sessions.pop(page_key, None)
        if session is None:
            return False
        await session.flush()
        return True

    async def flush(self) -> None:
        for session in list(self._sessions.values()):
            await session.flush()

    def page_keys(self) -> list[str]:
        return sorted(self._sessions)


class MessageClient:
    """Sends messages from the control surface to the engine of a page.

    When no engine is resident it injects one and retries once after a fixed
    delay.
    """

    def __init__(self, registry: SessionRegistry, retry_delay_seconds: float = 0.1) -> None:
        self.registry = registry
        self.retry_delay_seconds = retry_delay_seconds

    async def send(self, url: str, message: Any) -> Any:
        page_key = PageContext.from_url(url).page_key
        try:
            return self._deliver(page_key, message)
        except NoResidentEngineError as exc:
            logger.warning("Could not send message: %s; injecting engine", exc)
        await self.registry.inject(url)
        await asyncio.sleep(self.retry_delay_seconds)
        return self._deliver(page_key, message)

    async def send_event(self, url: str, event: Any) -> Any:
        page_key = PageContext.from_url(url).page_key
        session = self.registry.get(page_key) or await self.registry.inject(url)
        return _payload(session.handle_event(event))

    def _deliver(self, page_key: str, message: Any) -> Any:
        session = self.registry.require(page_key)
        return _payload(session.handle(message))


def _payload(response: Any) -> Any:
    if response is None:
        return None
    return response.to_payload()
