"""
Orchestrator Module

Connects shortcut triggers to captures and captures to the overlay, and
exposes the settings surface used to inspect and rebind shortcuts.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Set, Tuple, Union

from .event_bus import EventBus, get_event_bus
from .shortcut_registry import ShortcutRegistry
from ..models.capture_models import (
    ArtifactKind, CaptureCancelled, CaptureFailed, CaptureResult, ImageCapture, TextCapture
)
from ..models.capture_service import CaptureService
from ..models.shortcut_models import ACTION_ORDER, LogicalAction, UpdateError, UpdateResult
from ..views.overlay_controller import OverlayController
from .. import EventTypes

logger = logging.getLogger(__name__)


def _default_cursor_provider() -> Tuple[int, int]:
    from PyQt6.QtGui import QCursor
    pos = QCursor.pos()
    return (pos.x(), pos.y())


class Orchestrator:
    """Routes each logical action through capture and into the overlay."""

    def __init__(
        self,
        registry: ShortcutRegistry,
        capture_service: CaptureService,
        overlay: OverlayController,
        event_bus: Optional[EventBus] = None,
        cursor_provider: Optional[Callable[[], Tuple[int, int]]] = None
    ):
        self.registry = registry
        self.capture_service = capture_service
        self.overlay = overlay
        self._event_bus = event_bus or get_event_bus()
        self._cursor_provider = cursor_provider or _default_cursor_provider

        self._in_flight: Set[LogicalAction] = set()

    async def initialize(self) -> None:
        """Load bindings and register one trigger per logical action."""
        await self.registry.load()
        await self.registry.activate({
            action: self._trigger_for(action) for action in LogicalAction
        })
        logger.info("Orchestrator initialized")

    def _trigger_for(self, action: LogicalAction) -> Callable[[], Any]:
        def trigger():
            return asyncio.ensure_future(self.handle_action(action))
        return trigger

    async def handle_action(self, action: LogicalAction) -> Optional[CaptureResult]:
        """
        Run one capture and surface its artifact.

        Returns:
            The capture result, or None if the trigger was ignored
        """
        if not self.registry.is_enabled():
            logger.debug("Shortcuts disabled, ignoring %s", action.value)
            return None

        if action in self._in_flight:
            logger.debug("Capture for %s already running, ignoring trigger", action.value)
            return None

        self._in_flight.add(action)
        try:
            await self._event_bus.emit(
                EventTypes.CAPTURE_STARTED, {'action': action.value}, source="Orchestrator"
            )

            if action is LogicalAction.TEXT_SELECTION:
                result = await self.capture_service.capture_selected_text()
            else:
                result = await self.capture_service.capture_region()

            if isinstance(result, CaptureCancelled):
                await self._event_bus.emit(
                    EventTypes.CAPTURE_CANCELLED, {'action': action.value}, source="Orchestrator"
                )
                return result

            if isinstance(result, CaptureFailed):
                await self._event_bus.emit(
                    EventTypes.CAPTURE_FAILED,
                    {'action': action.value, 'reason': result.reason},
                    source="Orchestrator"
                )
                return result

            await self._deliver(action, result)
            return result
        finally:
            self._in_flight.discard(action)

    async def _deliver(self, action: LogicalAction, result: CaptureResult) -> None:
        if isinstance(result, ImageCapture):
            kind = ArtifactKind.SCREENSHOT
            payload = {
                'data_url': result.to_data_url(),
                'raw_bytes': result.raw_bytes,
                'resolution': result.resolution,
                'explain': action is LogicalAction.SCREENSHOT_EXPLAIN,
            }
        elif isinstance(result, TextCapture):
            kind = ArtifactKind.TEXT_SELECTION
            payload = {'text': result.content, 'explain': True}
        else:
            return

        await self._event_bus.emit(
            EventTypes.CAPTURE_COMPLETED,
            {'action': action.value, 'kind': kind.value},
            source="Orchestrator"
        )

        await self.overlay.show_near(self._cursor_provider())
        await self.overlay.send_artifact(kind, payload)

    # Settings surface

    def get_shortcuts(self) -> Dict[str, str]:
        """Current accelerators keyed by action id, in display order."""
        bindings = (self.registry.get_binding(action) for action in ACTION_ORDER)
        return {binding.action.value: binding.accelerator for binding in bindings}

    async def update_shortcut(self, action: Union[LogicalAction, str], accelerator: str) -> UpdateResult:
        try:
            action = LogicalAction(action)
        except ValueError:
            logger.warning("Unknown shortcut action: %r", action)
            return UpdateResult.failure(UpdateError.INVALID)
        return await self.registry.update_binding(action, accelerator)

    async def reset_shortcuts(self) -> UpdateResult:
        return await self.registry.reset_to_defaults()

    async def disable_shortcuts(self) -> None:
        await self.registry.suspend_all()

    async def enable_shortcuts(self) -> None:
        await self.registry.resume_all()

    async def shutdown(self) -> None:
        """Close the overlay and release every hotkey."""
        await self.overlay.shutdown()
        self.registry.shutdown()
        logger.info("Orchestrator shutdown complete")
