"""
ExplainOverlay Application

A lightweight desktop assistant that captures a screen region or the current
text selection through global shortcuts and hands the result to a floating
overlay window. Built with Python 3.12 following the MVC pattern.
"""

import os
import sys
from pathlib import Path

__version__ = "0.1.0"
__author__ = "ExplainOverlay Team"
__description__ = "Shortcut-driven capture overlay"

# Application metadata
APP_NAME = "ExplainOverlay"
APP_VERSION = __version__
APP_AUTHOR = __author__
APP_DESCRIPTION = __description__


def get_app_data_dir() -> str:
    """
    Get the application data directory for storing configuration files.

    On macOS this is ~/Library/Application Support/ExplainOverlay,
    on Windows %APPDATA%\\ExplainOverlay, elsewhere the XDG config directory.

    Returns:
        Path to the application data directory as a string
    """
    if sys.platform == "darwin":
        return str(Path.home() / "Library" / "Application Support" / APP_NAME)

    if os.name == 'nt':  # Windows
        appdata = os.getenv('APPDATA')
        if appdata:
            return str(Path(appdata) / APP_NAME)
        # Fallback to home directory if APPDATA is not set
        return str(Path.home() / f".{APP_NAME.lower()}")

    xdg_config = os.getenv('XDG_CONFIG_HOME')
    if xdg_config:
        return str(Path(xdg_config) / APP_NAME)
    return str(Path.home() / ".config" / APP_NAME)


# Configuration constants
SHORTCUTS_FILENAME = "shortcuts.json"
DEFAULT_LOG_LEVEL = "INFO"


class EventTypes:
    """Central registry of event types for the EventBus system."""

    # Application lifecycle
    APP_READY = "app.ready"
    APP_SHUTDOWN_REQUESTED = "app.shutdown_requested"
    APP_SHUTDOWN_STARTING = "app.shutdown_starting"

    # Capture events
    CAPTURE_STARTED = "capture.started"
    CAPTURE_COMPLETED = "capture.completed"
    CAPTURE_CANCELLED = "capture.cancelled"
    CAPTURE_FAILED = "capture.failed"

    # Overlay events
    OVERLAY_SHOWN = "overlay.shown"
    OVERLAY_HIDDEN = "overlay.hidden"
    OVERLAY_ARTIFACT_DELIVERED = "overlay.artifact_delivered"

    # Shortcut events
    SHORTCUTS_UPDATED = "shortcuts.updated"
    SHORTCUTS_SUSPENDED = "shortcuts.suspended"
    SHORTCUTS_RESUMED = "shortcuts.resumed"
    HOTKEY_REGISTRATION_FAILED = "hotkey.registration.failed"

    # Settings events
    SETTINGS_UPDATED = "settings.updated"

    # Error events
    ERROR_OCCURRED = "error.occurred"


class AppState:
    """Application state enumeration."""
    STARTING = "starting"
    READY = "ready"
    ERROR = "error"
    SHUTTING_DOWN = "shutting_down"
