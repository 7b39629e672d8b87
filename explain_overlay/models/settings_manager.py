"""
Settings Manager Module

Persists the shortcut bindings as a small JSON document in the per-user
application data directory. Missing or malformed files silently fall back
to the default bindings, as do files binding a protected or modifier-less
accelerator or the same key chord twice. Writes are atomic.
"""

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from ..controllers.event_bus import EventBus, get_event_bus
from .accelerators import (
    AcceleratorError, has_modifier, is_protected, normalize_accelerator, resolve_accelerator
)
from .shortcut_models import DEFAULT_BINDINGS, LogicalAction
from .. import EventTypes, SHORTCUTS_FILENAME, get_app_data_dir

logger = logging.getLogger(__name__)


class SettingsPersistenceError(Exception):
    """Raised when the settings file cannot be written."""
    pass


@dataclass
class ShortcutConfig:
    """Shortcut configuration as stored on disk."""
    textSelection: str = DEFAULT_BINDINGS[LogicalAction.TEXT_SELECTION]
    screenshotChat: str = DEFAULT_BINDINGS[LogicalAction.SCREENSHOT_CHAT]
    screenshotExplain: str = DEFAULT_BINDINGS[LogicalAction.SCREENSHOT_EXPLAIN]

    @classmethod
    def from_bindings(cls, bindings: Dict[LogicalAction, str]) -> 'ShortcutConfig':
        return cls(**{action.value: accelerator for action, accelerator in bindings.items()})

    def to_bindings(self) -> Dict[LogicalAction, str]:
        return {action: getattr(self, action.value) for action in LogicalAction}


class SettingsManager:
    """
    Shortcut settings persistence.

    The first successful load is cached; later loads return a copy of the
    cached bindings without touching the disk.
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        event_bus: Optional[EventBus] = None,
        platform: Optional[str] = None
    ):
        """
        Initialize SettingsManager.

        Args:
            config_dir: Directory holding the settings file (app data dir if None)
            event_bus: EventBus for change notifications (global bus if None)
            platform: Platform used to resolve "mod" when validating (sys.platform if None)
        """
        self.config_dir = Path(config_dir) if config_dir else Path(get_app_data_dir())
        self._event_bus = event_bus or get_event_bus()
        self._platform = platform

        self._bindings: Optional[Dict[LogicalAction, str]] = None
        self._settings_lock = asyncio.Lock()
        self._save_count = 0

        logger.debug("SettingsManager using %s", self.settings_path)

    @property
    def settings_path(self) -> Path:
        """Location of the shortcuts JSON document."""
        return self.config_dir / SHORTCUTS_FILENAME

    async def load_bindings(self) -> Dict[LogicalAction, str]:
        """
        Load bindings from disk, falling back to defaults.

        Returns:
            Mapping of logical action to canonical accelerator
        """
        async with self._settings_lock:
            if self._bindings is None:
                loop = asyncio.get_running_loop()
                raw = await loop.run_in_executor(None, self._read_file)
                self._bindings = self._parse(raw)
            return dict(self._bindings)

    def _read_file(self) -> Optional[Dict[str, Any]]:
        """Read the raw JSON document, or None if it is missing or unreadable."""
        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.debug("No shortcut settings file, using defaults")
            return None
        except (OSError, ValueError) as e:
            logger.debug("Unreadable shortcut settings file, using defaults: %s", e)
            return None

        return data if isinstance(data, dict) else None

    def _parse(self, raw: Optional[Dict[str, Any]]) -> Dict[LogicalAction, str]:
        """Validate a raw document; any problem yields the defaults."""
        if raw is None:
            return dict(DEFAULT_BINDINGS)

        bindings: Dict[LogicalAction, str] = {}
        for action in LogicalAction:
            value = raw.get(action.value)
            if not isinstance(value, str):
                logger.debug("Shortcut settings missing '%s', using defaults", action.value)
                return dict(DEFAULT_BINDINGS)
            try:
                accelerator = normalize_accelerator(value)
            except AcceleratorError as e:
                logger.debug("Invalid stored shortcut for '%s': %s", action.value, e)
                return dict(DEFAULT_BINDINGS)

            if not has_modifier(accelerator) or is_protected(accelerator, self._platform):
                logger.debug("Stored shortcut %s for '%s' is not allowed, using defaults", accelerator, action.value)
                return dict(DEFAULT_BINDINGS)
            bindings[action] = accelerator

        chords = {resolve_accelerator(acc, self._platform) for acc in bindings.values()}
        if len(chords) != len(bindings):
            logger.debug("Stored shortcuts contain duplicates, using defaults")
            return dict(DEFAULT_BINDINGS)

        return bindings

    async def save_bindings(self, bindings: Dict[LogicalAction, str]) -> None:
        """
        Persist bindings atomically.

        Args:
            bindings: Mapping of logical action to accelerator

        Raises:
            SettingsPersistenceError: If the file cannot be written
        """
        config = ShortcutConfig.from_bindings(bindings)

        async with self._settings_lock:
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, self._write_atomic, asdict(config))
            except OSError as e:
                logger.error("Failed to save shortcuts: %s", e)
                raise SettingsPersistenceError(str(e)) from e

            self._bindings = config.to_bindings()
            self._save_count += 1

        await self._event_bus.emit(
            EventTypes.SETTINGS_UPDATED,
            {
                'shortcuts': asdict(config),
                'timestamp': datetime.now().isoformat(),
                'save_count': self._save_count
            },
            source="SettingsManager"
        )

        logger.info("Shortcut settings saved")

    def _write_atomic(self, data: Dict[str, str]) -> None:
        """Write JSON through a temporary file and an atomic rename."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                'w',
                dir=self.config_dir,
                prefix=f".{SHORTCUTS_FILENAME}.",
                suffix=".tmp",
                delete=False,
                encoding='utf-8'
            ) as temp_file:
                temp_path = temp_file.name
                json.dump(data, temp_file, indent=2)

            os.replace(temp_path, self.settings_path)
            temp_path = None
        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as e:
                    logger.debug("Could not remove temporary settings file: %s", e)

    def __str__(self) -> str:
        return f"SettingsManager(path={self.settings_path}, saves={self._save_count})"
