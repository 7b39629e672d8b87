"""Unit tests for the overlay window state machine."""

import asyncio

import pytest

from explain_overlay import EventTypes
from explain_overlay.models.accelerators import ESCAPE
from explain_overlay.models.capture_models import ArtifactKind
from explain_overlay.views.overlay_controller import (
    OverlayController, OverlayState, centered_position
)

from conftest import collect_events

PRIMARY = (0, 0, 1920, 1080)
SECONDARY = (1920, 0, 2560, 1440)


def locate(point):
    return SECONDARY if point[0] >= 1920 else PRIMARY


@pytest.fixture
def overlay(registry, event_bus, window_factory):
    return OverlayController(
        registry,
        event_bus,
        window_factory=window_factory,
        work_area_locator=locate
    )


def test_centered_position():
    assert centered_position(PRIMARY, (720, 600)) == (600, 240)
    assert centered_position(SECONDARY, (720, 600)) == (2840, 420)
    assert centered_position((10, 20, 300, 200), (720, 600)) == (10, 20)


@pytest.mark.asyncio
async def test_window_is_created_lazily(overlay, window_factory):
    assert overlay.state is OverlayState.UNINITIALIZED
    assert window_factory.created == []

    overlay.ensure_window()

    assert overlay.state is OverlayState.HIDDEN
    assert len(window_factory.created) == 1


@pytest.mark.asyncio
async def test_show_near_centers_on_cursor_display(overlay, window_factory, backend):
    await overlay.show_near((2000, 300))

    window = window_factory.created[0]
    assert window.moves == [(2840, 420)]
    assert window.visible
    assert window.all_workspaces == [True, False]
    assert window.focus_count == 1
    assert overlay.state is OverlayState.VISIBLE
    assert ESCAPE in backend.table


@pytest.mark.asyncio
async def test_show_near_twice_reuses_window(overlay, window_factory, backend):
    await overlay.show_near((100, 100))
    await overlay.show_near((2000, 100))

    assert len(window_factory.created) == 1
    assert window_factory.created[0].moves == [(600, 240), (2840, 420)]
    assert backend.register_calls.count(ESCAPE) == 1


@pytest.mark.asyncio
async def test_hide_keeps_window_and_releases_escape(overlay, window_factory, backend, event_bus):
    hidden = await collect_events(event_bus, EventTypes.OVERLAY_HIDDEN)
    await overlay.show_near((100, 100))

    await overlay.hide()
    await asyncio.sleep(0.05)

    assert overlay.state is OverlayState.HIDDEN
    assert overlay.window is window_factory.created[0]
    assert not overlay.window.visible
    assert ESCAPE not in backend.table
    assert hidden[0].data["reason"] == "request"


@pytest.mark.asyncio
async def test_escape_hotkey_hides_visible_overlay(overlay, backend):
    await overlay.show_near((100, 100))

    backend.trigger(ESCAPE)
    await asyncio.sleep(0.01)

    assert overlay.state is OverlayState.HIDDEN
    assert ESCAPE not in backend.table


@pytest.mark.asyncio
async def test_window_hide_request_hides(overlay, window_factory):
    await overlay.show_near((100, 100))

    window_factory.created[0].hide_requested.emit("close_button")
    await asyncio.sleep(0.01)

    assert overlay.state is OverlayState.HIDDEN


@pytest.mark.asyncio
async def test_native_close_forgets_window(overlay, window_factory, backend):
    await overlay.show_near((100, 100))

    window_factory.created[0].close()

    assert overlay.window is None
    assert overlay.state is OverlayState.UNINITIALIZED
    assert ESCAPE not in backend.table

    await overlay.show_near((100, 100))
    assert len(window_factory.created) == 2


@pytest.mark.asyncio
async def test_native_close_of_visible_window_reports_hidden(overlay, window_factory, event_bus):
    hidden = await collect_events(event_bus, EventTypes.OVERLAY_HIDDEN)
    await overlay.show_near((100, 100))

    window_factory.created[0].close()
    await asyncio.sleep(0.05)

    assert len(hidden) == 1
    assert hidden[0].data == {"reason": "window_closed", "last_position": (600, 240)}


@pytest.mark.asyncio
async def test_native_close_of_hidden_window_is_silent(overlay, window_factory, event_bus):
    hidden = await collect_events(event_bus, EventTypes.OVERLAY_HIDDEN)
    await overlay.show_near((100, 100))
    await overlay.hide()

    window_factory.created[0].close()
    await asyncio.sleep(0.05)

    assert [event.data["reason"] for event in hidden] == ["request"]


@pytest.mark.asyncio
async def test_send_artifact_without_window_is_dropped(overlay, window_factory):
    delivered = await overlay.send_artifact(ArtifactKind.TEXT_SELECTION, {"text": "hi"})

    assert delivered is False
    assert window_factory.created == []


@pytest.mark.asyncio
async def test_send_artifact_reaches_window(overlay, window_factory, event_bus):
    delivered_events = await collect_events(event_bus, EventTypes.OVERLAY_ARTIFACT_DELIVERED)
    await overlay.show_near((100, 100))

    assert await overlay.send_artifact(ArtifactKind.TEXT_SELECTION, {"text": "hi"})
    await asyncio.sleep(0.05)

    assert window_factory.created[0].artifacts == [(ArtifactKind.TEXT_SELECTION, {"text": "hi"})]
    assert delivered_events[0].data == {"kind": "text-selection-ready"}


@pytest.mark.asyncio
async def test_shutdown_closes_window(overlay, window_factory, backend):
    await overlay.show_near((100, 100))

    await overlay.shutdown()

    assert window_factory.created[0].closed
    assert overlay.window is None
    assert ESCAPE not in backend.table
