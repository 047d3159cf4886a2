from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson


def read_json_object(path: Path) -> dict[str, Any]:
    """Parse a JSON file; anything but a top-level object reads as empty."""
    raw = path.read_bytes()
    if not raw.strip():
        return {}
    data = orjson.loads(raw)
    return data if isinstance(data, dict) else {}


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    tmp_path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS))
    tmp_path.replace(path)
