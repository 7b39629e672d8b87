"""Shared fakes and fixtures.

Nothing here touches the real hotkey table, clipboard, subprocesses or Qt,
so the suite runs headless.
"""

import io

import pytest
import pytest_asyncio
from PIL import Image

from explain_overlay.controllers.event_bus import EventBus
from explain_overlay.controllers.shortcut_registry import ShortcutRegistry
from explain_overlay.models.clipboard import ClipboardError
from explain_overlay.models.settings_manager import SettingsManager


class FakeHotkeyBackend:
    """In-memory hotkey table; accelerators in `rejected` always fail."""

    def __init__(self, rejected=()):
        self.table = {}
        self.rejected = set(rejected)
        self.register_calls = []

    def register(self, accelerator, handler):
        self.register_calls.append(accelerator)
        if accelerator in self.rejected or accelerator in self.table:
            return False
        self.table[accelerator] = handler
        return True

    def unregister(self, accelerator):
        self.table.pop(accelerator, None)

    def unregister_all(self):
        self.table.clear()

    def trigger(self, accelerator):
        return self.table[accelerator]()


class FakeClipboard:
    def __init__(self, text=""):
        self.text = text
        self.writes = []
        self.fail_reads = False
        self.fail_writes = False

    async def read_text(self):
        if self.fail_reads:
            raise ClipboardError("clipboard unavailable")
        return self.text

    async def write_text(self, text):
        if self.fail_writes:
            raise ClipboardError("clipboard unavailable")
        self.writes.append(text)
        self.text = text


class FakeRunner:
    """Records invocations; `on_run(program, args)` may raise or write files."""

    def __init__(self, on_run=None):
        self.calls = []
        self.on_run = on_run

    async def run(self, program, args):
        args = list(args)
        self.calls.append((program, args))
        if self.on_run is not None:
            self.on_run(program, args)


class FakeSignal:
    def __init__(self):
        self._slots = []

    def connect(self, slot):
        self._slots.append(slot)

    def emit(self, *args):
        for slot in list(self._slots):
            slot(*args)


class FakeOverlayWindow:
    def __init__(self, size=(720, 600)):
        self.hide_requested = FakeSignal()
        self.window_closed = FakeSignal()
        self._size = size
        self.visible = False
        self.closed = False
        self.moves = []
        self.all_workspaces = []
        self.focus_count = 0
        self.artifacts = []

    def size_tuple(self):
        return self._size

    def move_to(self, x, y):
        self.moves.append((x, y))

    def set_visible_on_all_workspaces(self, visible):
        self.all_workspaces.append(visible)

    def raise_above_all(self):
        pass

    def show_inactive(self):
        self.visible = True

    def focus_content(self):
        self.focus_count += 1

    def hide(self):
        self.visible = False

    def close(self):
        self.visible = False
        self.closed = True
        self.window_closed.emit()

    def display_artifact(self, kind, payload):
        self.artifacts.append((kind, payload))


class WindowFactory:
    def __init__(self):
        self.created = []

    def __call__(self):
        window = FakeOverlayWindow()
        self.created.append(window)
        return window


def png_bytes(size=(4, 3)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest_asyncio.fixture
async def event_bus():
    bus = EventBus()
    yield bus
    await bus.shutdown(timeout=0.5)


@pytest.fixture
def backend():
    return FakeHotkeyBackend()


@pytest.fixture
def settings_manager(tmp_path, event_bus):
    return SettingsManager(config_dir=tmp_path, event_bus=event_bus)


@pytest_asyncio.fixture
async def registry(backend, settings_manager, event_bus):
    registry = ShortcutRegistry(backend, settings_manager, event_bus)
    await registry.load()
    return registry


@pytest.fixture
def window_factory():
    return WindowFactory()


async def collect_events(bus, event_type):
    """Subscribe and return the list that receives matching events."""
    received = []
    await bus.subscribe(event_type, received.append)
    return received
