"""
Overlay Controller Module

Owns the single overlay window: lazy creation, placement on the display under
the cursor, show/hide, and the escape hotkey that is bound only while the
window is visible.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from ..controllers.event_bus import EventBus, get_event_bus
from ..controllers.shortcut_registry import ShortcutRegistry
from ..models.capture_models import ArtifactKind
from .. import EventTypes

logger = logging.getLogger(__name__)

Point = Tuple[int, int]
WorkArea = Tuple[int, int, int, int]


class OverlayState(Enum):
    UNINITIALIZED = "uninitialized"
    HIDDEN = "hidden"
    VISIBLE = "visible"


def _default_window_factory():
    from .overlay_window import OverlayWindow
    return OverlayWindow()


def _default_work_area_locator(point: Point) -> WorkArea:
    from .overlay_window import display_work_area
    return display_work_area(point)


def centered_position(work_area: WorkArea, size: Tuple[int, int]) -> Point:
    """Top-left corner that centers a window of the given size in a work area."""
    x, y, width, height = work_area
    window_width, window_height = size
    return (
        x + max(0, (width - window_width) // 2),
        y + max(0, (height - window_height) // 2)
    )


class OverlayController:
    """
    Overlay window state machine.

    Uninitialized -> Hidden when the window is first built, Hidden <-> Visible
    on show_near()/hide(), and back to Uninitialized when the native window
    is closed.
    """

    def __init__(
        self,
        registry: ShortcutRegistry,
        event_bus: Optional[EventBus] = None,
        window_factory: Optional[Callable[[], Any]] = None,
        work_area_locator: Optional[Callable[[Point], WorkArea]] = None
    ):
        """
        Initialize OverlayController.

        Args:
            registry: ShortcutRegistry owning the escape hotkey
            event_bus: EventBus for overlay notifications (global bus if None)
            window_factory: Builds the overlay window (OverlayWindow if None)
            work_area_locator: Maps a point to its display's work area
        """
        self._registry = registry
        self._event_bus = event_bus or get_event_bus()
        self._window_factory = window_factory or _default_window_factory
        self._work_area_locator = work_area_locator or _default_work_area_locator

        self.window: Optional[Any] = None
        self.state = OverlayState.UNINITIALIZED
        self._last_position: Optional[Point] = None

    def is_visible(self) -> bool:
        return self.state is OverlayState.VISIBLE and self.window is not None

    def ensure_window(self) -> Any:
        """Create the window if it does not exist yet."""
        if self.window is not None:
            return self.window

        window = self._window_factory()
        window.hide_requested.connect(self._on_hide_requested)
        window.window_closed.connect(self.handle_window_closed)

        self.window = window
        self.state = OverlayState.HIDDEN
        logger.info("Overlay window created")
        return window

    async def show_near(self, point: Point) -> None:
        """
        Show the window centered on the display containing a point.

        Calling this while already visible repositions the existing window.
        """
        window = self.ensure_window()

        work_area = self._work_area_locator(point)
        position = centered_position(work_area, window.size_tuple())

        window.set_visible_on_all_workspaces(True)
        window.raise_above_all()
        window.move_to(*position)
        window.show_inactive()

        # Focus on the next loop iteration so the window manager settles first
        await asyncio.sleep(0)

        if self.window is not window:
            logger.debug("Overlay window closed before focus")
            return

        window.set_visible_on_all_workspaces(False)
        window.focus_content()

        self.state = OverlayState.VISIBLE
        self._last_position = position
        self._registry.bind_escape(self._on_escape)

        await self._event_bus.emit(
            EventTypes.OVERLAY_SHOWN,
            {'position': position, 'work_area': work_area},
            source="OverlayController"
        )
        logger.info("Overlay shown at %s", position)

    async def hide(self, reason: str = "request") -> None:
        """Hide the window without destroying it."""
        self._registry.unbind_escape()

        if self.window is None or self.state is not OverlayState.VISIBLE:
            return

        self.window.hide()
        self.state = OverlayState.HIDDEN

        await self._event_bus.emit(
            EventTypes.OVERLAY_HIDDEN,
            {'reason': reason, 'last_position': self._last_position},
            source="OverlayController"
        )
        logger.info("Overlay hidden (reason: %s)", reason)

    async def send_artifact(self, kind: ArtifactKind, payload: Dict[str, Any]) -> bool:
        """
        Hand an artifact to the window.

        Returns:
            False if there is no window to receive it
        """
        if self.window is None:
            logger.debug("Dropping %s artifact, overlay window not created", kind.value)
            return False

        self.window.display_artifact(kind, payload)
        await self._event_bus.emit(
            EventTypes.OVERLAY_ARTIFACT_DELIVERED,
            {'kind': kind.value},
            source="OverlayController"
        )
        return True

    def handle_window_closed(self) -> None:
        """Forget a window that was closed natively."""
        was_visible = self.state is OverlayState.VISIBLE

        self._registry.unbind_escape()
        self.window = None
        self.state = OverlayState.UNINITIALIZED
        logger.debug("Overlay window closed")

        if was_visible:
            asyncio.create_task(self._event_bus.emit(
                EventTypes.OVERLAY_HIDDEN,
                {'reason': "window_closed", 'last_position': self._last_position},
                source="OverlayController"
            ))

    async def shutdown(self) -> None:
        self._registry.unbind_escape()
        window, self.window = self.window, None
        self.state = OverlayState.UNINITIALIZED
        if window is not None:
            window.close()

    def _on_escape(self) -> None:
        if self.state is OverlayState.VISIBLE:
            asyncio.create_task(self.hide(reason="escape_hotkey"))

    def _on_hide_requested(self, reason: str) -> None:
        asyncio.create_task(self.hide(reason=reason))
