from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from domain.models import Area, AreaType, OverlaySettings


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Ping(_Message):
    action: Literal["ping"] = "ping"


class UpdateSettings(_Message):
    action: Literal["updateSettings"] = "updateSettings"
    settings: OverlaySettings = Field(default_factory=OverlaySettings)


class ToggleSelectionMode(_Message):
    action: Literal["toggleSelectionMode"] = "toggleSelectionMode"
    area_type: AreaType = Field(default=AreaType.FLOATING, alias="areaType")


class ResetArea(_Message):
    action: Literal["resetArea"] = "resetArea"


class GetAreas(_Message):
    action: Literal["getAreas"] = "getAreas"


class DeleteArea(_Message):
    action: Literal["deleteArea"] = "deleteArea"
    area_id: int = Field(..., alias="areaId")


class EditArea(_Message):
    action: Literal["editArea"] = "editArea"
    area_id: int = Field(..., alias="areaId")


class ToggleAreaType(_Message):
    action: Literal["toggleAreaType"] = "toggleAreaType"
    area_id: int = Field(..., alias="areaId")


Message = Annotated[
    Union[
        Ping,
        UpdateSettings,
        ToggleSelectionMode,
        ResetArea,
        GetAreas,
        DeleteArea,
        EditArea,
        ToggleAreaType,
    ],
    Field(discriminator="action"),
]

MESSAGE_TYPES: tuple[type[_Message], ...] = (
    Ping,
    UpdateSettings,
    ToggleSelectionMode,
    ResetArea,
    GetAreas,
    DeleteArea,
    EditArea,
    ToggleAreaType,
)


class Scroll(_Message):
    action: Literal["scroll"] = "scroll"
    scroll_y: float = Field(..., alias="scrollY")


class Resize(_Message):
    action: Literal["resize"] = "resize"
    width: float
    height: float


class PointerDown(_Message):
    action: Literal["pointerDown"] = "pointerDown"
    x: float
    y: float


class PointerMove(_Message):
    action: Literal["pointerMove"] = "pointerMove"
    x: float
    y: float


class PointerUp(_Message):
    action: Literal["pointerUp"] = "pointerUp"
    x: Optional[float] = None
    y: Optional[float] = None


class CancelSelection(_Message):
    action: Literal["cancelSelection"] = "cancelSelection"


PageEvent = Annotated[
    Union[Scroll, Resize, PointerDown, PointerMove, PointerUp, CancelSelection],
    Field(discriminator="action"),
]

EVENT_TYPES: tuple[type[_Message], ...] = (
    Scroll,
    Resize,
    PointerDown,
    PointerMove,
    PointerUp,
    CancelSelection,
)

_MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)
_EVENT_ADAPTER: TypeAdapter[PageEvent] = TypeAdapter(PageEvent)


def parse_message(payload: Any) -> Message:
    if isinstance(payload, MESSAGE_TYPES):
        return payload
    return _MESSAGE_ADAPTER.validate_python(payload)


def parse_event(payload: Any) -> PageEvent:
    if isinstance(payload, EVENT_TYPES):
        return payload
    return _EVENT_ADAPTER.validate_python(payload)


class PingResponse(_Message):
    status: Literal["ok"] = "ok"
    page_key: str = Field(..., alias="pageKey")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class AreasResponse(_Message):
    areas: list[Area] = Field(default_factory=list)
    page_key: str = Field(..., alias="pageKey")

    def to_payload(self) -> dict[str, Any]:
        return {
            "areas": [area.to_payload() for area in self.areas],
            "pageKey": self.page_key,
        }


Response = Union[PingResponse, AreasResponse, None]
