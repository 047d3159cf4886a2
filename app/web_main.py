from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, ValidationError

from adapters.overlay.recording import RecordingOverlaySurface
from app.config import AppSettings, load_settings
from app.messaging import MessageClient, SessionRegistry
from app.wiring import build_key_value_store, default_viewport
from domain.page_context import PageContext, UnsupportedPageError
from domain.services.render_driver import rects_payload

logger = logging.getLogger(__name__)


class MessageEnvelope(BaseModel):
    url: str
    message: Dict[str, Any]


class EventEnvelope(BaseModel):
    url: str
    event: Dict[str, Any]


def create_app(settings: AppSettings) -> FastAPI:
    store = build_key_value_store(settings)
    surfaces: Dict[str, RecordingOverlaySurface] = {}

    def _surface_for(context: PageContext) -> RecordingOverlaySurface:
        surface = RecordingOverlaySurface()
        surfaces[context.page_key] = surface
        return surface

    registry = SessionRegistry(
        store,
        _surface_for,
        viewport=default_viewport(settings),
        native_bypass_hosts=settings.engine.native_bypass_hosts,
        min_selection_size=settings.engine.min_selection_size,
    )
    client = MessageClient(
        registry, retry_delay_seconds=settings.engine.reinject_retry_delay_seconds
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await registry.flush()

    app = FastAPI(title="Viewport Overlay Engine", lifespan=lifespan)
    app.state.registry = registry
    app.state.client = client

    @app.get("/health", response_class=ORJSONResponse)
    def health() -> Dict[str, Any]:
        return {"status": "ok", "pages": registry.page_keys()}

    @app.post("/api/messages", response_class=ORJSONResponse)
    async def post_message(envelope: MessageEnvelope) -> Any:
        try:
            return await client.send(envelope.url, envelope.message)
        except UnsupportedPageError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc

    @app.post("/api/events", response_class=ORJSONResponse)
    async def post_event(envelope: EventEnvelope) -> Any:
        try:
            return await client.send_event(envelope.url, envelope.event)
        except UnsupportedPageError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc

    @app.delete("/api/pages", response_class=ORJSONResponse)
    async def unload_page(url: str = Query(...)) -> Dict[str, Any]:
        page_key = _page_key(url)
        unloaded = await registry.unload(page_key)
        surfaces.pop(page_key, None)
        if unloaded:
            logger.info("Unloaded engine for %s", page_key)
        return {"pageKey": page_key, "unloaded": unloaded}

    @app.get("/api/overlay", response_class=ORJSONResponse)
    async def get_overlay(url: str = Query(...)) -> Dict[str, Any]:
        page_key = _page_key(url)
        session = registry.get(page_key)
        if session is None:
            raise HTTPException(status_code=404, detail=f"No engine resident for {page_key}")
        frame = session.frame
        surface = surfaces.get(page_key)
        selection = surface.selection if surface else None
        return {
            "pageKey": page_key,
            "visible": bool(frame and frame.visible),
            "sequence": frame.sequence if frame else 0,
            "rects": rects_payload(frame.rects) if frame else [],
            "scrollY": session.scroll_y,
            "viewport": {"width": session.viewport.width, "height": session.viewport.height},
            "engagementHidden": surface.engagement_hidden if surface else False,
            "selection": selection.rect.to_dict() if selection else None,
        }

    return app


def _page_key(url: str) -> str:
    try:
        return PageContext.from_url(url).page_key
    except UnsupportedPageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def build_default_app() -> FastAPI:
    return create_app(load_settings())
