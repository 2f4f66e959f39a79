"""Tests for the single-shot visibility triggers."""

from __future__ import annotations

import pytest

from app.services.visibility import Box, EagerTrigger, ManualTrigger, ViewportTrigger

VIEWPORT = Box(0, 0, 1280, 720)


def test_manual_trigger_fires_once() -> None:
    trigger = ManualTrigger()
    calls: list[str] = []
    trigger.subscribe(lambda: calls.append("first"))

    trigger.fire()
    trigger.fire()

    assert calls == ["first"]
    assert trigger.fired is True


def test_late_subscriber_is_called_immediately() -> None:
    trigger = ManualTrigger()
    trigger.fire()
    calls: list[int] = []

    trigger.subscribe(lambda: calls.append(1))

    assert calls == [1]


def test_eager_trigger_is_already_fired() -> None:
    trigger = EagerTrigger()
    calls: list[int] = []

    trigger.subscribe(lambda: calls.append(1))

    assert trigger.fired is True
    assert calls == [1]


def test_viewport_trigger_ignores_distant_elements() -> None:
    trigger = ViewportTrigger()
    calls: list[int] = []
    trigger.subscribe(lambda: calls.append(1))

    assert trigger.update(Box(0, 2000, 300, 450), VIEWPORT) is False
    assert calls == []


def test_viewport_trigger_fires_within_root_margin() -> None:
    trigger = ViewportTrigger()
    calls: list[int] = []
    trigger.subscribe(lambda: calls.append(1))

    # 150px below the fold is still inside the 200px observation margin.
    assert trigger.update(Box(0, 870, 300, 450), VIEWPORT) is True
    assert calls == [1]

    # Scrolling away and back does not fire again.
    trigger.update(Box(0, 5000, 300, 450), VIEWPORT)
    trigger.update(Box(0, 100, 300, 450), VIEWPORT)
    assert calls == [1]


def test_viewport_trigger_respects_threshold() -> None:
    trigger = ViewportTrigger(root_margin=0, threshold=0.5)

    assert trigger.update(Box(0, 620, 100, 400), VIEWPORT) is False
    assert trigger.update(Box(0, 400, 100, 400), VIEWPORT) is True


def test_viewport_trigger_rejects_invalid_threshold() -> None:
    with pytest.raises(ValueError):
        ViewportTrigger(threshold=1.5)


def test_viewport_trigger_fires_for_element_without_layout_size() -> None:
    trigger = ViewportTrigger()
    calls: list[int] = []
    trigger.subscribe(lambda: calls.append(1))

    assert trigger.update(Box(10, 2000, 300, 0), Box(0, 0, 1000, 800)) is False
    assert trigger.update(Box(10, 10, 300, 0), Box(0, 0, 1000, 800)) is True
    assert calls == [1]


def test_zero_area_element_on_region_edge_counts_as_inside() -> None:
    trigger = ViewportTrigger(root_margin=0)

    assert trigger.update(Box(0, 720, 0, 0), VIEWPORT) is True
