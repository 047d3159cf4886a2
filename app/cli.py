from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from adapters.overlay.recording import RecordingOverlaySurface
from app.config import AppSettings, load_settings
from app.control_panel import ControlPanel
from app.messaging import MessageClient, SessionRegistry
from app.wiring import build_key_value_store, default_viewport
from domain.models import AreaType, Rect
from domain.page_context import UnsupportedPageError

app = typer.Typer(no_args_is_help=True)
areas_app = typer.Typer(no_args_is_help=True)
settings_app = typer.Typer(no_args_is_help=True)
app.add_typer(areas_app, name="areas")
app.add_typer(settings_app, name="settings")
console = Console()

T = TypeVar("T")


class CliRuntime:
    def __init__(self, settings: AppSettings) -> None:
        self.settings = settings
        self.store = build_key_value_store(settings)
        self.registry = SessionRegistry(
            self.store,
            lambda _context: RecordingOverlaySurface(),
            viewport=default_viewport(settings),
            native_bypass_hosts=settings.engine.native_bypass_hosts,
            min_selection_size=settings.engine.min_selection_size,
        )
        self.client = MessageClient(self.registry, retry_delay_seconds=0.0)

    def panel(self, url: str) -> ControlPanel:
        return ControlPanel(url, self.client, self.store)

    def run(self, work: Callable[[CliRuntime], Awaitable[T]]) -> T:
        async def _main() -> T:
            try:
                return await work(self)
            finally:
                await self.registry.flush()

        try:
            return asyncio.run(_main())
        except UnsupportedPageError as exc:
            console.print(f"[red]{exc}[/]")
            raise typer.Exit(code=1) from exc
        except ValidationError as exc:
            console.print(f"[red]Invalid input:[/] {exc}")
            raise typer.Exit(code=1) from exc


def _runtime(ctx: typer.Context) -> CliRuntime:
    runtime = ctx.obj
    if not isinstance(runtime, CliRuntime):
        runtime = CliRuntime(load_settings())
        ctx.obj = runtime
    return runtime


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, help="YAML config file."),
) -> None:
    settings = load_settings(config)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = CliRuntime(settings)


def _print_rects(rects: tuple[Rect, ...] | list[Rect], title: str) -> None:
    table = Table(title=title)
    for column in ("x", "y", "width", "height"):
        table.add_column(column, justify="right")
    for rect in rects:
        table.add_row(*(f"{value:g}" for value in (rect.x, rect.y, rect.width, rect.height)))
    console.print(table)


def _print_areas(runtime: CliRuntime, url: str) -> None:
    async def _list(rt: CliRuntime) -> list[Any]:
        return await rt.panel(url).list_areas()

    items = runtime.run(_list)
    if not items:
        console.print("[yellow]No color areas for this page[/]")
        return
    table = Table(title=url)
    table.add_column("id", justify="right")
    table.add_column("area")
    table.add_column("type")
    for item in items:
        table.add_row(str(item.area_id), item.label, item.type_label)
    console.print(table)


@app.command("rects")
def rects(
    ctx: typer.Context,
    url: str = typer.Option(..., help="Page URL."),
    scroll_y: float = typer.Option(0.0, help="Vertical scroll offset in CSS pixels."),
    width: Optional[float] = typer.Option(None, help="Viewport width."),
    height: Optional[float] = typer.Option(None, help="Viewport height."),
) -> None:
    runtime = _runtime(ctx)

    async def _compute(rt: CliRuntime) -> tuple[bool, tuple[Rect, ...]]:
        viewport = default_viewport(rt.settings)
        await rt.client.send_event(
            url,
            {
                "action": "resize",
                "width": width if width is not None else viewport.width,
                "height": height if height is not None else viewport.height,
            },
        )
        await rt.client.send_event(url, {"action": "scroll", "scrollY": scroll_y})
        session = rt.registry.get(rt.panel(url).page_key)
        frame = session.frame if session else None
        if frame is None:
            return False, ()
        return frame.visible, frame.rects

    visible, result = runtime.run(_compute)
    if not visible:
        console.print("[yellow]Overlay hidden for this page[/]")
        return
    _print_rects(result, f"Overlay rectangles (scrollY={scroll_y:g})")


@areas_app.command("list")
def list_areas(ctx: typer.Context, url: str = typer.Option(..., help="Page URL.")) -> None:
    _print_areas(_runtime(ctx), url)


@areas_app.command("add")
def add_area(
    ctx: typer.Context,
    url: str = typer.Option(..., help="Page URL."),
    x: float = typer.Option(..., help="Left edge in viewport pixels."),
    y: float = typer.Option(..., help="Top edge in viewport pixels."),
    width: float = typer.Option(..., help="Width in pixels."),
    height: float = typer.Option(..., help="Height in pixels."),
    area_type: AreaType = typer.Option(AreaType.FLOATING, "--type", help="fixed or floating."),
    scroll_y: float = typer.Option(0.0, help="Scroll offset at the time of selection."),
) -> None:
    runtime = _runtime(ctx)

    async def _add(rt: CliRuntime) -> None:
        await rt.panel(url).add_area(area_type)
        await _drag(rt, url, x, y, width, height, scroll_y)

    runtime.run(_add)
    _print_areas(runtime, url)


@areas_app.command("edit")
def edit_area(
    ctx: typer.Context,
    area_id: int = typer.Argument(..., help="Area id."),
    url: str = typer.Option(..., help="Page URL."),
    x: float = typer.Option(..., help="Left edge in viewport pixels."),
    y: float = typer.Option(..., help="Top edge in viewport pixels."),
    width: float = typer.Option(..., help="Width in pixels."),
    height: float = typer.Option(..., help="Height in pixels."),
    scroll_y: float = typer.Option(0.0, help="Scroll offset at the time of selection."),
) -> None:
    runtime = _runtime(ctx)

    async def _edit(rt: CliRuntime) -> None:
        await rt.client.send_event(url, {"action": "scroll", "scrollY": scroll_y})
        await rt.panel(url).edit_area(area_id)
        await _drag(rt, url, x, y, width, height, scroll_y)

    runtime.run(_edit)
    _print_areas(runtime, url)


@areas_app.command("delete")
def delete_area(
    ctx: typer.Context,
    area_id: int = typer.Argument(..., help="Area id."),
    url: str = typer.Option(..., help="Page URL."),
) -> None:
    runtime = _runtime(ctx)

    async def _delete(rt: CliRuntime) -> None:
        await rt.panel(url).delete_area(area_id)

    runtime.run(_delete)
    _print_areas(runtime, url)


@areas_app.command("toggle")
def toggle_area(
    ctx: typer.Context,
    area_id: int = typer.Argument(..., help="Area id."),
    url: str = typer.Option(..., help="Page URL."),
    scroll_y: float = typer.Option(0.0, help="Current scroll offset."),
) -> None:
    runtime = _runtime(ctx)

    async def _toggle(rt: CliRuntime) -> None:
        await rt.client.send_event(url, {"action": "scroll", "scrollY": scroll_y})
        await rt.panel(url).toggle_area_type(area_id)

    runtime.run(_toggle)
    _print_areas(runtime, url)


@areas_app.command("reset")
def reset_areas(ctx: typer.Context, url: str = typer.Option(..., help="Page URL.")) -> None:
    runtime = _runtime(ctx)

    async def _reset(rt: CliRuntime) -> None:
        await rt.panel(url).clear_areas()

    runtime.run(_reset)
    console.print(f"[green]Cleared areas for[/] {url}")


@settings_app.command("show")
def show_settings(ctx: typer.Context, url: str = typer.Option(..., help="Page URL.")) -> None:
    runtime = _runtime(ctx)

    async def _load(rt: CliRuntime) -> Any:
        return await rt.panel(url).load_settings()

    current = runtime.run(_load)
    console.print(f"monochrome: {current.monochrome}")
    console.print(f"hideEngagement: {current.hide_engagement}")


@settings_app.command("set")
def set_settings(
    ctx: typer.Context,
    url: str = typer.Option(..., help="Page URL."),
    monochrome: Optional[bool] = typer.Option(None, "--monochrome/--no-monochrome"),
    hide_engagement: Optional[bool] = typer.Option(
        None, "--hide-engagement/--show-engagement"
    ),
) -> None:
    runtime = _runtime(ctx)

    async def _set(rt: CliRuntime) -> Any:
        return await rt.panel(url).set_settings(
            monochrome=monochrome, hide_engagement=hide_engagement
        )

    updated = runtime.run(_set)
    console.print(f"[green]monochrome:[/] {updated.monochrome}")
    console.print(f"[green]hideEngagement:[/] {updated.hide_engagement}")


@app.command("serve")
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8080, help="Bind port."),
) -> None:
    import uvicorn

    from app.web_main import create_app

    runtime = _runtime(ctx)
    uvicorn.run(create_app(runtime.settings), host=host, port=port)


async def _drag(
    runtime: CliRuntime,
    url: str,
    x: float,
    y: float,
    width: float,
    height: float,
    scroll_y: float,
) -> None:
    await runtime.client.send_event(url, {"action": "scroll", "scrollY": scroll_y})
    await runtime.client.send_event(url, {"action": "pointerDown", "x": x, "y": y})
    await runtime.client.send_event(
        url, {"action": "pointerUp", "x": x + width, "y": y + height}
    )


if __name__ == "__main__":
    app()
