"""
Shortcut Registry Module

Owns the mapping from logical actions to accelerators and the process-wide
hotkey registration table. Any change to the bindings tears down and rebuilds
every action hotkey rather than patching individual entries; the escape
hotkey is managed separately and survives rebuilds and suspension.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

from .event_bus import EventBus, get_event_bus
from ..models.accelerators import (
    ESCAPE, AcceleratorError, has_modifier, is_protected, normalize_accelerator,
    resolve_accelerator
)
from ..models.settings_manager import SettingsManager, SettingsPersistenceError
from ..models.shortcut_models import (
    DEFAULT_BINDINGS, LogicalAction, ShortcutBinding, UpdateError, UpdateResult
)
from .. import EventTypes

logger = logging.getLogger(__name__)


class HotkeyBackend(Protocol):
    """System hotkey table."""

    def register(self, accelerator: str, handler: Callable) -> bool: ...

    def unregister(self, accelerator: str) -> None: ...

    def unregister_all(self) -> None: ...


@dataclass
class HotkeyHandle:
    """One live entry of the hotkey table."""
    accelerator: str
    action: Optional[LogicalAction]
    registered_at: float = field(default_factory=time.time)


@dataclass
class RegistrationState:
    """Live hotkey table plus the global suspension switch."""
    entries: Dict[str, HotkeyHandle] = field(default_factory=dict)
    enabled: bool = True

    @property
    def escape_bound(self) -> bool:
        return ESCAPE in self.entries

    def action_accelerators(self) -> List[str]:
        return [acc for acc, handle in self.entries.items() if handle.action is not None]


def _noop() -> None:
    pass


class ShortcutRegistry:
    """
    Binding table, validation and hotkey lifecycle.

    Conflict checks always run against the in-memory bindings so rapid
    successive updates stay consistent without re-reading storage.
    """

    def __init__(
        self,
        backend: HotkeyBackend,
        settings_manager: SettingsManager,
        event_bus: Optional[EventBus] = None,
        platform: Optional[str] = None
    ):
        """
        Initialize ShortcutRegistry.

        Args:
            backend: System hotkey table
            settings_manager: Persistence for the bindings
            event_bus: EventBus for notifications (global bus if None)
            platform: Platform used to resolve "mod" (sys.platform if None)
        """
        self._backend = backend
        self._settings = settings_manager
        self._event_bus = event_bus or get_event_bus()
        self._platform = platform

        self._bindings: Dict[LogicalAction, str] = dict(DEFAULT_BINDINGS)
        self._handlers: Dict[LogicalAction, Callable] = {}
        self._state = RegistrationState()

    async def load(self) -> Dict[LogicalAction, str]:
        """Load persisted bindings (defaults on first run)."""
        self._bindings = await self._settings.load_bindings()
        logger.info(
            "Loaded shortcuts: %s",
            ", ".join(f"{action.value}={acc}" for action, acc in self._bindings.items())
        )
        return self.get_bindings()

    async def activate(self, handlers: Dict[LogicalAction, Callable]) -> None:
        """
        Bind each logical action to its current accelerator.

        Registration failures are logged and reported; the affected action
        stays inert until the bindings are rebuilt.
        """
        self._handlers = dict(handlers)
        await self._rebuild()

    def get_bindings(self) -> Dict[LogicalAction, str]:
        """Return a copy of the current bindings."""
        return dict(self._bindings)

    def get_binding(self, action: LogicalAction) -> ShortcutBinding:
        return ShortcutBinding(action=action, accelerator=self._bindings[action])

    def is_enabled(self) -> bool:
        return self._state.enabled

    def active_accelerators(self) -> List[str]:
        """Accelerators currently live in the hotkey table, escape included."""
        return list(self._state.entries)

    async def update_binding(self, action: LogicalAction, accelerator: str) -> UpdateResult:
        """
        Validate, persist and apply a new accelerator for one action.

        Returns:
            UpdateResult; on any failure the previous binding stays active
        """
        try:
            candidate = normalize_accelerator(accelerator)
        except AcceleratorError as e:
            logger.info("Rejected shortcut %r for %s: %s", accelerator, action.value, e)
            return UpdateResult.failure(UpdateError.INVALID)

        previous = self._bindings[action]
        chord = resolve_accelerator(candidate, self._platform)
        if chord == resolve_accelerator(previous, self._platform):
            return UpdateResult.success()

        if is_protected(candidate, self._platform):
            logger.info("Rejected protected shortcut %s for %s", candidate, action.value)
            return UpdateResult.failure(UpdateError.PROTECTED)

        if not has_modifier(candidate):
            logger.info("Rejected shortcut without modifier %s for %s", candidate, action.value)
            return UpdateResult.failure(UpdateError.INVALID)

        for other, other_accelerator in self._bindings.items():
            if other is not action and resolve_accelerator(other_accelerator, self._platform) == chord:
                logger.info("Shortcut %s already bound to %s", candidate, other.value)
                return UpdateResult.failure(UpdateError.DUPLICATE)

        if not self._probe(candidate):
            logger.info("Shortcut %s unavailable at the system level", candidate)
            return UpdateResult.failure(UpdateError.OS_REJECTED)

        self._bindings[action] = candidate
        try:
            await self._settings.save_bindings(self._bindings)
        except SettingsPersistenceError as e:
            logger.error("Failed to save shortcut for %s: %s", action.value, e)
            if self._bindings[action] == candidate:
                self._bindings[action] = previous
            return UpdateResult.failure(UpdateError.PERSIST_FAILED)

        if self._state.enabled:
            await self._rebuild()

        logger.info("Shortcut for %s changed from %s to %s", action.value, previous, candidate)
        await self._event_bus.emit(
            EventTypes.SHORTCUTS_UPDATED,
            {
                'action': action.value,
                'accelerator': candidate,
                'previous': previous
            },
            source="ShortcutRegistry"
        )
        return UpdateResult.success()

    async def reset_to_defaults(self) -> UpdateResult:
        """
        Restore the default bindings.

        Defaults stay in memory even when persisting them fails.
        """
        self._bindings = dict(DEFAULT_BINDINGS)

        result = UpdateResult.success()
        try:
            await self._settings.save_bindings(self._bindings)
        except SettingsPersistenceError as e:
            logger.error("Failed to save default shortcuts: %s", e)
            result = UpdateResult.failure(UpdateError.PERSIST_FAILED)

        if self._state.enabled:
            await self._rebuild()

        await self._event_bus.emit(
            EventTypes.SHORTCUTS_UPDATED,
            {'reset': True, 'shortcuts': {a.value: acc for a, acc in self._bindings.items()}},
            source="ShortcutRegistry"
        )
        return result

    async def suspend_all(self) -> None:
        """Unregister every action hotkey; escape is left alone."""
        if not self._state.enabled:
            return

        self._state.enabled = False
        self._teardown_actions()

        logger.info("Global shortcuts suspended")
        await self._event_bus.emit(EventTypes.SHORTCUTS_SUSPENDED, source="ShortcutRegistry")

    async def resume_all(self) -> None:
        """Re-register every action hotkey after suspend_all()."""
        if self._state.enabled:
            return

        self._state.enabled = True
        await self._rebuild()

        logger.info("Global shortcuts resumed")
        await self._event_bus.emit(
            EventTypes.SHORTCUTS_RESUMED,
            {'active': self._state.action_accelerators()},
            source="ShortcutRegistry"
        )

    def bind_escape(self, handler: Callable) -> bool:
        """Register the escape hotkey; a no-op when already bound."""
        if self._state.escape_bound:
            return True

        if not self._backend.register(ESCAPE, handler):
            logger.warning("Failed to register escape shortcut")
            return False

        self._state.entries[ESCAPE] = HotkeyHandle(accelerator=ESCAPE, action=None)
        logger.debug("Escape shortcut bound")
        return True

    def unbind_escape(self) -> None:
        """Release the escape hotkey; a no-op when not bound."""
        if not self._state.escape_bound:
            return

        self._backend.unregister(ESCAPE)
        del self._state.entries[ESCAPE]
        logger.debug("Escape shortcut released")

    def shutdown(self) -> None:
        """Tear down the whole hotkey table."""
        self._backend.unregister_all()
        self._state.entries.clear()
        logger.debug("ShortcutRegistry shutdown complete")

    def _probe(self, accelerator: str) -> bool:
        """Throwaway registration to test whether an accelerator is free."""
        if accelerator in self._state.entries:
            return True
        if not self._backend.register(accelerator, _noop):
            return False
        self._backend.unregister(accelerator)
        return True

    def _teardown_actions(self) -> None:
        for accelerator in self._state.action_accelerators():
            self._backend.unregister(accelerator)
            del self._state.entries[accelerator]

    async def _rebuild(self) -> None:
        """Tear down and re-register every action hotkey."""
        self._teardown_actions()
        if not self._state.enabled:
            return

        for action, accelerator in self._bindings.items():
            handler = self._handlers.get(action)
            if handler is None:
                continue

            if self._backend.register(accelerator, handler):
                self._state.entries[accelerator] = HotkeyHandle(accelerator=accelerator, action=action)
                continue

            logger.error("Failed to register global shortcut %s for %s", accelerator, action.value)
            await self._event_bus.emit(
                EventTypes.HOTKEY_REGISTRATION_FAILED,
                {'action': action.value, 'accelerator': accelerator},
                source="ShortcutRegistry"
            )
