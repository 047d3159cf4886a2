from __future__ import annotations

from domain.models import AreaType, Rect
from domain.services.area_store import AreaStore, parse_areas
from tests.helpers.area_fixtures import make_area


def test_add_assigns_increasing_ids() -> None:
    store = AreaStore()

    first = store.add(Rect(10, 20, 100, 50), AreaType.FLOATING, 0.0)
    second = store.add(Rect(200, 20, 100, 50), AreaType.FLOATING, 0.0)

    assert (first.id, second.id) == (1, 2)
    assert store.next_id == 3
    assert [area.id for area in store.areas] == [1, 2]


def test_add_fixed_area_anchors_original_y() -> None:
    store = AreaStore()

    area = store.add(Rect(10, 100, 100, 50), AreaType.FIXED, 500.0)

    assert area.original_y == 600.0
    assert area.viewport_y(500.0) == 100.0
    assert area.viewport_y(550.0) == 50.0


def test_ids_are_not_reused_after_delete() -> None:
    store = AreaStore()
    store.add(Rect(0, 0, 50, 50), AreaType.FLOATING, 0.0)
    second = store.add(Rect(100, 0, 50, 50), AreaType.FLOATING, 0.0)

    assert store.delete(second.id) is True
    third = store.add(Rect(200, 0, 50, 50), AreaType.FLOATING, 0.0)

    assert third.id == 3


def test_reset_all_then_add_assigns_id_one() -> None:
    store = AreaStore([make_area(4, 0, 0, 50, 50), make_area(9, 100, 0, 50, 50)])
    assert store.next_id == 10

    store.reset_all()
    area = store.add(Rect(0, 0, 50, 50), AreaType.FLOATING, 0.0)

    assert area.id == 1
    assert store.areas == (area,)


def test_delete_unknown_id_is_a_no_op() -> None:
    store = AreaStore([make_area(1, 0, 0, 50, 50)])
    before = store.areas

    assert store.delete(42) is False
    assert store.areas == before


def test_find_returns_area_or_none() -> None:
    area = make_area(3, 0, 0, 50, 50)
    store = AreaStore([area])

    assert store.find(3) == area
    assert store.find(4) is None


def test_toggle_twice_restores_displayed_position() -> None:
    store = AreaStore([make_area(1, 30, 120, 80, 60)])
    scroll_y = 340.0
    before = store.areas[0].viewport_rect(scroll_y)

    once = store.toggle_type(1, scroll_y)
    assert once is not None
    assert once.type is AreaType.FIXED
    assert once.original_y == 460.0
    assert once.viewport_rect(scroll_y) == before

    twice = store.toggle_type(1, scroll_y)
    assert twice is not None
    assert twice.type is AreaType.FLOATING
    assert twice.viewport_rect(scroll_y) == before


def test_toggle_fixed_to_floating_uses_current_scroll() -> None:
    store = AreaStore([make_area(1, 0, 100, 50, 50, AreaType.FIXED, original_y=900)])

    toggled = store.toggle_type(1, 850.0)

    assert toggled is not None
    assert toggled.type is AreaType.FLOATING
    assert toggled.y == 50.0


def test_toggle_unknown_id_returns_none() -> None:
    store = AreaStore()

    assert store.toggle_type(5, 0.0) is None


def test_edit_slot_reuses_id_and_position() -> None:
    store = AreaStore(
        [make_area(1, 0, 0, 50, 50), make_area(2, 100, 0, 50, 50), make_area(3, 200, 0, 50, 50)]
    )

    removed = store.begin_edit(2)
    assert removed is not None
    assert [area.id for area in store.areas] == [1, 3]

    replaced = store.add(Rect(500, 500, 120, 80), AreaType.FIXED, 100.0)

    assert replaced.id == 2
    assert replaced.original_y == 600.0
    assert [area.id for area in store.areas] == [1, 2, 3]
    assert store.editing is None
    assert store.next_id == 4


def test_cancel_edit_restores_original_area() -> None:
    original = make_area(2, 100, 0, 50, 50)
    store = AreaStore([make_area(1, 0, 0, 50, 50), original])

    store.begin_edit(2)
    restored = store.cancel_edit()

    assert restored == original
    assert store.areas[1] == original
    assert store.cancel_edit() is None


def test_begin_edit_unknown_id_leaves_store_untouched() -> None:
    store = AreaStore([make_area(1, 0, 0, 50, 50)])

    assert store.begin_edit(7) is None
    assert store.editing is None
    assert len(store) == 1


def test_payload_uses_persisted_layout() -> None:
    store = AreaStore()
    store.add(Rect(10, 100, 100, 50), AreaType.FIXED, 20.0)
    store.add(Rect(10, 300, 100, 50), AreaType.FLOATING, 20.0)

    assert store.to_payload() == [
        {"id": 1, "x": 10.0, "y": 100.0, "width": 100.0, "height": 50.0, "type": "fixed", "originalY": 120.0},
        {"id": 2, "x": 10.0, "y": 300.0, "width": 100.0, "height": 50.0, "type": "floating"},
    ]


def test_parse_areas_skips_malformed_records() -> None:
    payload = [
        {"id": 1, "x": 0, "y": 0, "width": 20, "height": 20, "type": "floating"},
        {"id": 2, "x": 0, "y": 0, "width": -1, "height": 20, "type": "floating"},
        {"id": 3, "x": 0, "y": 0, "width": 20, "height": 20, "type": "fixed"},
        "garbage",
        {"id": 4, "x": 5, "y": 6, "width": 20, "height": 20, "type": "fixed", "originalY": 50},
    ]

    areas = parse_areas(payload)

    assert [area.id for area in areas] == [1, 4]
    assert areas[1].original_y == 50.0


def test_parse_areas_treats_non_lists_as_empty() -> None:
    assert parse_areas(None) == []
    assert parse_areas({"id": 1}) == []
    assert parse_areas("areas") == []


def test_replace_all_drops_duplicate_ids() -> None:
    store = AreaStore()

    store.replace_all([make_area(1, 0, 0, 50, 50), make_area(1, 100, 0, 50, 50)])

    assert len(store) == 1
    assert store.areas[0].x == 0
