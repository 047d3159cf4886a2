from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from app.messaging import MessageClient
from domain.models import HIDE_ENGAGEMENT_KEY, MONOCHROME_KEY, Area, AreaType, OverlaySettings
from domain.page_context import PageContext
from domain.ports.repositories import KeyValueStore
from domain.services.area_store import parse_areas
from domain.services.page_session import read_bool_setting


@dataclass(frozen=True)
class AreaListItem:
    area_id: int
    label: str
    type_label: str
    area_type: AreaType


def describe_areas(areas: List[Area]) -> List[AreaListItem]:
    return [
        AreaListItem(
            area_id=area.id,
            label=f"Area {index} ({round(area.width)} x {round(area.height)})",
            type_label=area.type.label,
            area_type=area.type,
        )
        for index, area in enumerate(areas, start=1)
    ]


class ControlPanel:
    """Control surface for one page: settings toggles and the area list."""

    def __init__(self, url: str, client: MessageClient, settings_store: KeyValueStore) -> None:
        self.context = PageContext.from_url(url)
        self.url = url
        self._client = client
        self._settings_store = settings_store

    @property
    def page_key(self) -> str:
        return self.context.page_key

    async def load_settings(self) -> OverlaySettings:
        return OverlaySettings(
            monochrome=read_bool_setting(await self._settings_store.get(MONOCHROME_KEY)),
            hide_engagement=read_bool_setting(await self._settings_store.get(HIDE_ENGAGEMENT_KEY)),
        )

    async def set_settings(
        self,
        *,
        monochrome: Optional[bool] = None,
        hide_engagement: Optional[bool] = None,
    ) -> OverlaySettings:
        current = await self.load_settings()
        updated = OverlaySettings(
            monochrome=current.monochrome if monochrome is None else monochrome,
            hide_engagement=current.hide_engagement if hide_engagement is None else hide_engagement,
        )
        await self._settings_store.set(MONOCHROME_KEY, updated.monochrome)
        await self._settings_store.set(HIDE_ENGAGEMENT_KEY, updated.hide_engagement)
        await self._client.send(
            self.url, {"action": "updateSettings", "settings": updated.to_payload()}
        )
        return updated

    async def refresh_areas(self) -> List[Area]:
        return _areas_from(await self._client.send(self.url, {"action": "getAreas"}))

    async def list_areas(self) -> List[AreaListItem]:
        return describe_areas(await self.refresh_areas())

    async def add_area(self, area_type: AreaType) -> None:
        await self._client.send(
            self.url, {"action": "toggleSelectionMode", "areaType": area_type.value}
        )

    async def edit_area(self, area_id: int) -> None:
        await self._client.send(self.url, {"action": "editArea", "areaId": area_id})

    async def delete_area(self, area_id: int) -> List[Area]:
        return _areas_from(
            await self._client.send(self.url, {"action": "deleteArea", "areaId": area_id})
        )

    async def toggle_area_type(self, area_id: int) -> List[Area]:
        return _areas_from(
            await self._client.send(self.url, {"action": "toggleAreaType", "areaId": area_id})
        )

    async def clear_areas(self) -> List[Area]:
        return _areas_from(await self._client.send(self.url, {"action": "resetArea"}))


def _areas_from(response: Any) -> List[Area]:
    if not isinstance(response, dict):
        return []
    return parse_areas(response.get("areas"))
