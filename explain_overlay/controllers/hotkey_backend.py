"""
Hotkey Backend Module

System hotkey table backed by pynput's GlobalHotKeys listener. pynput keeps
one listener thread per hotkey set, so every change to the table stops the
running listener and starts a fresh one; changes made in the same event loop
iteration are coalesced into a single restart.

Activations arrive on the listener thread and are handed to the asyncio
event loop with call_soon_threadsafe before any handler runs.
"""

import asyncio
import inspect
import logging
from functools import partial
from typing import Callable, Dict, Optional

from pynput import keyboard

from ..models.accelerators import to_pynput_hotkey

logger = logging.getLogger(__name__)


class PynputHotkeyBackend:
    """Global hotkey registration on top of pynput."""

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        platform: Optional[str] = None
    ):
        """
        Initialize PynputHotkeyBackend.

        Args:
            loop: Event loop receiving activations (running loop if None)
            platform: Platform used to resolve "mod" (sys.platform if None)
        """
        self._loop = loop
        self._platform = platform
        self._handlers: Dict[str, Callable] = {}
        self._hotkeys: Dict[str, str] = {}
        self._listener: Optional[keyboard.GlobalHotKeys] = None
        self._restart_pending = False

    def register(self, accelerator: str, handler: Callable) -> bool:
        """
        Add an accelerator to the hotkey table.

        Returns:
            False if the accelerator is already taken or cannot be expressed
            as a pynput hotkey
        """
        if accelerator in self._handlers:
            return False

        try:
            hotkey = to_pynput_hotkey(accelerator, self._platform)
            keyboard.HotKey.parse(hotkey)
        except ValueError as e:
            logger.warning("Cannot register hotkey %s: %s", accelerator, e)
            return False

        if hotkey in self._hotkeys.values():
            logger.debug("Hotkey %s collides with an existing registration", hotkey)
            return False

        self._handlers[accelerator] = handler
        self._hotkeys[accelerator] = hotkey
        self._schedule_restart()

        logger.debug("Registered hotkey %s as %s", accelerator, hotkey)
        return True

    def unregister(self, accelerator: str) -> None:
        """Remove an accelerator; unknown accelerators are ignored."""
        if self._handlers.pop(accelerator, None) is None:
            return
        self._hotkeys.pop(accelerator, None)
        self._schedule_restart()
        logger.debug("Unregistered hotkey %s", accelerator)

    def unregister_all(self) -> None:
        """Clear the table and stop listening immediately."""
        self._handlers.clear()
        self._hotkeys.clear()
        self._stop_listener()
        logger.debug("All hotkeys unregistered")

    def _event_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            pass
        return self._loop

    def _schedule_restart(self) -> None:
        if self._restart_pending:
            return

        loop = self._event_loop()
        if loop is None or loop.is_closed():
            self._restart_listener()
            return

        self._restart_pending = True
        loop.call_soon(self._restart_listener)

    def _restart_listener(self) -> None:
        """Replace the running listener with one for the current table."""
        self._restart_pending = False
        self._stop_listener()

        if not self._hotkeys:
            return

        mapping = {
            hotkey: partial(self._on_activate, accelerator)
            for accelerator, hotkey in self._hotkeys.items()
        }

        listener = keyboard.GlobalHotKeys(mapping)
        listener.start()
        self._listener = listener

        if getattr(listener, 'IS_TRUSTED', True) is False:
            logger.warning(
                "Process is not trusted for input monitoring; global shortcuts will not fire"
            )

        logger.debug("Hotkey listener started with %d hotkeys", len(mapping))

    def _stop_listener(self) -> None:
        if self._listener is None:
            return
        listener, self._listener = self._listener, None
        listener.stop()

    def _on_activate(self, accelerator: str) -> None:
        """Listener thread callback."""
        loop = self._loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(self._dispatch, accelerator)
        except RuntimeError:
            # Loop already closed during shutdown
            logger.debug("Dropped hotkey %s after loop shutdown", accelerator)

    def _dispatch(self, accelerator: str) -> None:
        """Run the handler currently bound to an accelerator."""
        handler = self._handlers.get(accelerator)
        if handler is None:
            return

        try:
            result = handler()
            if inspect.isawaitable(result):
                asyncio.ensure_future(result)
        except Exception as e:
            logger.error("Error in hotkey handler for %s: %s", accelerator, e)
