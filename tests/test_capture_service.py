"""Unit tests for CaptureService with fake subprocesses and clipboard."""

from pathlib import Path

import pytest

from explain_overlay.models.capture_models import (
    CaptureCancelled, CaptureFailed, ImageCapture, TextCapture
)
from explain_overlay.models.capture_service import (
    KEY_CODE_COPY, KEYSTROKE_COPY, OSASCRIPT, SCREENCAPTURE, CaptureService,
    CopyCommandError, CopyStrategyChain, ExternalCommandError, clipboard_changed
)

from conftest import FakeClipboard, FakeRunner, png_bytes


def make_service(tmp_path, runner, clipboard=None):
    return CaptureService(
        runner=runner,
        clipboard=clipboard or FakeClipboard(),
        temp_dir=tmp_path,
        poll_interval=0,
        copy_settle_delay=0
    )


def is_key_code_script(args):
    return any("key code 8" in arg for arg in args)


# Region capture

@pytest.mark.asyncio
async def test_region_capture_returns_image_and_deletes_temp_file(tmp_path):
    image = png_bytes((4, 3))

    def screencapture(program, args):
        Path(args[-1]).write_bytes(image)

    runner = FakeRunner(screencapture)
    result = await make_service(tmp_path, runner).capture_region()

    assert isinstance(result, ImageCapture)
    assert result.raw_bytes == image
    assert result.resolution == (4, 3)
    assert result.to_data_url().startswith("data:image/png;base64,")

    program, args = runner.calls[0]
    assert program == SCREENCAPTURE
    assert args[:2] == ["-i", "-x"]
    assert Path(args[-1]).parent == tmp_path
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_region_capture_nonzero_exit_is_cancelled(tmp_path):
    def escape_pressed(program, args):
        raise ExternalCommandError("screencapture exited with status 1", returncode=1)

    result = await make_service(tmp_path, FakeRunner(escape_pressed)).capture_region()

    assert isinstance(result, CaptureCancelled)
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_region_capture_missing_file_is_failed(tmp_path):
    result = await make_service(tmp_path, FakeRunner()).capture_region()

    assert isinstance(result, CaptureFailed)


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [b"", b"definitely not a png"])
async def test_region_capture_invalid_image_is_failed(tmp_path, content):
    def screencapture(program, args):
        Path(args[-1]).write_bytes(content)

    result = await make_service(tmp_path, FakeRunner(screencapture)).capture_region()

    assert isinstance(result, CaptureFailed)
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_region_captures_use_fresh_paths(tmp_path):
    image = png_bytes()

    def screencapture(program, args):
        Path(args[-1]).write_bytes(image)

    runner = FakeRunner(screencapture)
    service = make_service(tmp_path, runner)
    await service.capture_region()
    await service.capture_region()

    first, second = (args[-1] for _, args in runner.calls)
    assert first != second


# Text selection capture

@pytest.mark.asyncio
async def test_text_capture_without_change_fails_and_restores(tmp_path):
    clipboard = FakeClipboard("orig")
    runner = FakeRunner()

    result = await make_service(tmp_path, runner, clipboard).capture_selected_text()

    assert isinstance(result, CaptureFailed)
    assert clipboard.text == "orig"
    assert runner.calls[0][0] == OSASCRIPT


@pytest.mark.asyncio
async def test_text_capture_from_empty_clipboard(tmp_path):
    clipboard = FakeClipboard("")

    def copy(program, args):
        clipboard.text = "hello"

    result = await make_service(tmp_path, FakeRunner(copy), clipboard).capture_selected_text()

    assert result == TextCapture(content="hello", captured_at=result.captured_at)
    assert clipboard.text == ""


@pytest.mark.asyncio
async def test_text_capture_falls_back_to_keystroke(tmp_path):
    clipboard = FakeClipboard("orig")

    def copy(program, args):
        if is_key_code_script(args):
            raise ExternalCommandError("osascript exited with status 1", returncode=1)
        clipboard.text = "selected words"

    runner = FakeRunner(copy)
    result = await make_service(tmp_path, runner, clipboard).capture_selected_text()

    assert isinstance(result, TextCapture)
    assert result.content == "selected words"
    assert len(runner.calls) == 2
    assert clipboard.text == "orig"


@pytest.mark.asyncio
async def test_text_capture_both_strategies_fail(tmp_path):
    clipboard = FakeClipboard("orig")

    def broken(program, args):
        raise ExternalCommandError("not allowed assistive access", returncode=1)

    result = await make_service(tmp_path, FakeRunner(broken), clipboard).capture_selected_text()

    assert isinstance(result, CaptureFailed)
    assert "not allowed assistive access" in result.reason
    assert clipboard.text == "orig"


@pytest.mark.asyncio
async def test_whitespace_selection_counts_as_nothing(tmp_path):
    clipboard = FakeClipboard("orig")

    def copy(program, args):
        clipboard.text = "   \n"

    result = await make_service(tmp_path, FakeRunner(copy), clipboard).capture_selected_text()

    assert isinstance(result, CaptureFailed)
    assert clipboard.text == "orig"


@pytest.mark.asyncio
async def test_unreadable_clipboard_is_failed(tmp_path):
    clipboard = FakeClipboard("orig")
    clipboard.fail_reads = True

    result = await make_service(tmp_path, FakeRunner(), clipboard).capture_selected_text()

    assert isinstance(result, CaptureFailed)


@pytest.mark.asyncio
async def test_restore_failure_does_not_lose_capture(tmp_path):
    clipboard = FakeClipboard("orig")

    def copy(program, args):
        clipboard.text = "hello"
        clipboard.fail_writes = True

    result = await make_service(tmp_path, FakeRunner(copy), clipboard).capture_selected_text()

    assert isinstance(result, TextCapture)
    assert result.content == "hello"


# Copy strategy chain

@pytest.mark.asyncio
async def test_chain_stops_at_first_success():
    runner = FakeRunner()
    chain = CopyStrategyChain(runner, settle_delay=0)

    assert await chain.run() == KEY_CODE_COPY.name
    assert len(runner.calls) == 1


@pytest.mark.asyncio
async def test_chain_raises_last_error():
    def broken(program, args):
        raise ExternalCommandError("second" if not is_key_code_script(args) else "first")

    chain = CopyStrategyChain(FakeRunner(broken), [KEY_CODE_COPY, KEYSTROKE_COPY], settle_delay=0)

    with pytest.raises(CopyCommandError) as excinfo:
        await chain.run()
    assert str(excinfo.value.__cause__) == "second"


def test_chain_requires_a_strategy():
    with pytest.raises(ValueError):
        CopyStrategyChain(FakeRunner(), [])


def test_strategy_arguments_interleave_script_lines():
    args = KEYSTROKE_COPY.arguments()

    assert args == ["-e", 'tell application "System Events" to keystroke "c" using {command down}']


@pytest.mark.parametrize("original, current, changed", [
    ("", "", False),
    ("", "x", True),
    ("orig", "orig", False),
    ("orig", "", True),
    ("orig", "new", True),
])
def test_clipboard_changed(original, current, changed):
    assert clipboard_changed(original, current) is changed
