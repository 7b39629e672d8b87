"""Unit tests for shortcut persistence."""

import asyncio
import json

import pytest

from explain_overlay import EventTypes, SHORTCUTS_FILENAME
from explain_overlay.models.settings_manager import SettingsManager, SettingsPersistenceError
from explain_overlay.models.shortcut_models import DEFAULT_BINDINGS, LogicalAction

from conftest import collect_events


def write_settings(directory, data):
    path = directory / SHORTCUTS_FILENAME
    if isinstance(data, str):
        path.write_text(data, encoding="utf-8")
    else:
        path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.mark.asyncio
async def test_missing_file_yields_defaults(settings_manager):
    assert await settings_manager.load_bindings() == DEFAULT_BINDINGS


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [
    "{not json",
    "[1, 2, 3]",
    {"textSelection": "mod+shift+c"},
    {"textSelection": "mod+", "screenshotChat": "mod+shift+x", "screenshotExplain": "mod+shift+e"},
    {"textSelection": "mod+shift+x", "screenshotChat": "mod+shift+x", "screenshotExplain": "mod+shift+e"},
    {"textSelection": 5, "screenshotChat": "mod+shift+x", "screenshotExplain": "mod+shift+e"},
])
async def test_unusable_file_falls_back_to_defaults(tmp_path, event_bus, content):
    write_settings(tmp_path, content)
    manager = SettingsManager(config_dir=tmp_path, event_bus=event_bus)

    assert await manager.load_bindings() == DEFAULT_BINDINGS


@pytest.mark.asyncio
@pytest.mark.parametrize("platform, content", [
    ("linux", {"textSelection": "mod+c", "screenshotChat": "escape", "screenshotExplain": "mod+shift+e"}),
    ("linux", {"textSelection": "ctrl+v", "screenshotChat": "mod+shift+x", "screenshotExplain": "mod+shift+e"}),
    ("darwin", {"textSelection": "cmd+shift+z", "screenshotChat": "mod+shift+x", "screenshotExplain": "mod+shift+e"}),
    ("linux", {"textSelection": "k", "screenshotChat": "mod+shift+x", "screenshotExplain": "mod+shift+e"}),
    ("linux", {"textSelection": "ctrl+shift+x", "screenshotChat": "mod+shift+x", "screenshotExplain": "mod+shift+e"}),
    ("darwin", {"textSelection": "cmd+shift+x", "screenshotChat": "mod+shift+x", "screenshotExplain": "mod+shift+e"}),
])
async def test_disallowed_stored_shortcuts_fall_back_to_defaults(tmp_path, event_bus, platform, content):
    write_settings(tmp_path, content)
    manager = SettingsManager(config_dir=tmp_path, event_bus=event_bus, platform=platform)

    assert await manager.load_bindings() == DEFAULT_BINDINGS


@pytest.mark.asyncio
async def test_concrete_modifier_for_other_platform_is_kept(tmp_path, event_bus):
    stored = {"textSelection": "ctrl+shift+x", "screenshotChat": "mod+shift+x", "screenshotExplain": "mod+shift+e"}
    write_settings(tmp_path, stored)
    manager = SettingsManager(config_dir=tmp_path, event_bus=event_bus, platform="darwin")

    bindings = await manager.load_bindings()

    assert bindings[LogicalAction.TEXT_SELECTION] == "ctrl+shift+x"


@pytest.mark.asyncio
async def test_legacy_accelerators_are_normalized(tmp_path, event_bus):
    write_settings(tmp_path, {
        "textSelection": "CommandOrControl+Shift+C",
        "screenshotChat": "CommandOrControl+Alt+X",
        "screenshotExplain": "CommandOrControl+Shift+E",
    })
    manager = SettingsManager(config_dir=tmp_path, event_bus=event_bus)

    bindings = await manager.load_bindings()

    assert bindings[LogicalAction.SCREENSHOT_CHAT] == "mod+alt+x"
    assert bindings[LogicalAction.TEXT_SELECTION] == "mod+shift+c"


@pytest.mark.asyncio
async def test_load_returns_copy(settings_manager):
    bindings = await settings_manager.load_bindings()
    bindings[LogicalAction.TEXT_SELECTION] = "mod+alt+z"

    assert (await settings_manager.load_bindings()) == DEFAULT_BINDINGS


@pytest.mark.asyncio
async def test_save_round_trips_through_disk(tmp_path, settings_manager, event_bus):
    bindings = dict(DEFAULT_BINDINGS)
    bindings[LogicalAction.SCREENSHOT_CHAT] = "mod+alt+k"

    await settings_manager.save_bindings(bindings)

    on_disk = json.loads((tmp_path / SHORTCUTS_FILENAME).read_text(encoding="utf-8"))
    assert on_disk == {
        "textSelection": "mod+shift+c",
        "screenshotChat": "mod+alt+k",
        "screenshotExplain": "mod+shift+e",
    }
    assert not list(tmp_path.glob("*.tmp"))

    fresh = SettingsManager(config_dir=tmp_path, event_bus=event_bus)
    assert await fresh.load_bindings() == bindings


@pytest.mark.asyncio
async def test_save_failure_raises_persistence_error(tmp_path, event_bus):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    manager = SettingsManager(config_dir=blocker, event_bus=event_bus)

    with pytest.raises(SettingsPersistenceError):
        await manager.save_bindings(dict(DEFAULT_BINDINGS))


@pytest.mark.asyncio
async def test_save_emits_settings_updated(settings_manager, event_bus):
    received = await collect_events(event_bus, EventTypes.SETTINGS_UPDATED)

    await settings_manager.save_bindings(dict(DEFAULT_BINDINGS))
    await asyncio.sleep(0.05)

    assert len(received) == 1
    assert received[0].data["shortcuts"]["screenshotExplain"] == "mod+shift+e"
    assert received[0].data["save_count"] == 1
