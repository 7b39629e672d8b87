"""
Controllers package for ExplainOverlay

This package contains the Controller layer components following the MVC pattern:
- EventBus: Asynchronous event distribution system
- ShortcutRegistry: Logical action bindings and the global hotkey table
- PynputHotkeyBackend: System hotkey table on top of pynput
- Orchestrator: Shortcut -> capture -> overlay routing and the settings surface

Only the EventBus is re-exported here; hotkey_backend imports pynput, which
needs a display connection, so it is imported explicitly by the entry point.
"""

from .event_bus import EventBus, get_event_bus, set_event_bus

__all__ = [
    'EventBus',
    'get_event_bus',
    'set_event_bus'
]
