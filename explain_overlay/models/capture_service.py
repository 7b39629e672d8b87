"""
Capture Service Module

Runs the two capture flows behind the global shortcuts:

* region capture, which drives the interactive screencapture utility against
  a fresh temporary PNG path;
* text selection capture, which sends a synthetic copy to the frontmost
  application and watches the clipboard change, restoring the user's
  clipboard afterwards.

Both flows return a CaptureResult and never raise for expected failures.
"""

import asyncio
import io
import logging
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from uuid import uuid4

from PIL import Image

from .capture_models import (
    CaptureCancelled, CaptureFailed, CaptureResult, ImageCapture, TextCapture
)
from .clipboard import Clipboard, ClipboardError, preserved_clipboard

logger = logging.getLogger(__name__)

SCREENCAPTURE = "/usr/sbin/screencapture"
OSASCRIPT = "/usr/bin/osascript"

# Polling budget for the clipboard to reflect a synthetic copy
POLL_INTERVAL_SECONDS = 0.08
MAX_POLL_ATTEMPTS = 10
COPY_SETTLE_SECONDS = 0.08


class ExternalCommandError(Exception):
    """Raised when an external utility cannot be started or exits non-zero."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class CopyCommandError(Exception):
    """Raised when every copy strategy failed."""
    pass


class ProcessRunner:
    """Runs external utilities as asyncio subprocesses."""

    async def run(self, program: str, args: Sequence[str]) -> None:
        """
        Run a program to completion.

        Raises:
            ExternalCommandError: If the program cannot start or exits non-zero
        """
        try:
            process = await asyncio.create_subprocess_exec(
                program, *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise ExternalCommandError(f"Could not start {program}: {e}") from e

        _, stderr = await process.communicate()
        if process.returncode != 0:
            detail = stderr.decode(errors='replace').strip() if stderr else ""
            raise ExternalCommandError(
                f"{Path(program).name} exited with status {process.returncode}"
                + (f": {detail}" if detail else ""),
                returncode=process.returncode
            )


@dataclass(frozen=True)
class OsaScriptCopyStrategy:
    """Sends Cmd+C to the frontmost application through AppleScript."""
    name: str
    script: Tuple[str, ...]

    def arguments(self) -> List[str]:
        args: List[str] = []
        for line in self.script:
            args.extend(['-e', line])
        return args

    async def run(self, runner: ProcessRunner) -> None:
        await runner.run(OSASCRIPT, self.arguments())


# Raw key code chord; reliable in editors and browsers
KEY_CODE_COPY = OsaScriptCopyStrategy(
    name="key_code",
    script=(
        'tell application "System Events"',
        'set frontApp to name of first application process whose frontmost is true',
        'tell application process frontApp',
        'key code 8 using command down',
        'end tell',
        'end tell',
    )
)

# Logical keystroke; reliable in terminals
KEYSTROKE_COPY = OsaScriptCopyStrategy(
    name="keystroke",
    script=('tell application "System Events" to keystroke "c" using {command down}',)
)

DEFAULT_COPY_STRATEGIES = (KEY_CODE_COPY, KEYSTROKE_COPY)


class CopyStrategyChain:
    """
    Ordered fallback over copy strategies.

    The first strategy that succeeds wins; the last error is raised only when
    all of them fail.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        strategies: Sequence[OsaScriptCopyStrategy] = DEFAULT_COPY_STRATEGIES,
        settle_delay: float = COPY_SETTLE_SECONDS
    ):
        if not strategies:
            raise ValueError("At least one copy strategy is required")
        self.runner = runner
        self.strategies = tuple(strategies)
        self.settle_delay = settle_delay

    async def run(self) -> str:
        """
        Send a copy command.

        Returns:
            Name of the strategy that succeeded

        Raises:
            CopyCommandError: If every strategy failed
        """
        last_error: Optional[Exception] = None

        for strategy in self.strategies:
            try:
                await strategy.run(self.runner)
            except ExternalCommandError as e:
                logger.debug("Copy strategy '%s' failed: %s", strategy.name, e)
                last_error = e
                continue

            await asyncio.sleep(self.settle_delay)
            return strategy.name

        raise CopyCommandError(f"All copy strategies failed: {last_error}") from last_error


def clipboard_changed(original: str, current: str) -> bool:
    """An empty original counts any non-empty value as a change."""
    if original == "":
        return current != ""
    return current != original


class CaptureService:
    """
    Region and text selection capture.

    The two operations share no state apart from the system clipboard, which
    the text flow always restores.
    """

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        clipboard: Optional[Clipboard] = None,
        temp_dir: Optional[Path] = None,
        copy_strategies: Sequence[OsaScriptCopyStrategy] = DEFAULT_COPY_STRATEGIES,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_poll_attempts: int = MAX_POLL_ATTEMPTS,
        copy_settle_delay: float = COPY_SETTLE_SECONDS
    ):
        """
        Initialize CaptureService.

        Args:
            runner: Subprocess runner for screencapture/osascript
            clipboard: Clipboard access
            temp_dir: Directory for temporary captures (system temp if None)
            copy_strategies: Ordered copy strategies to try
            poll_interval: Delay between clipboard checks in seconds
            max_poll_attempts: Maximum number of clipboard checks
            copy_settle_delay: Delay after a successful copy command
        """
        self.runner = runner or ProcessRunner()
        self.clipboard = clipboard or Clipboard()
        self.temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self._copy_chain = CopyStrategyChain(self.runner, copy_strategies, copy_settle_delay)

    async def capture_region(self) -> CaptureResult:
        """
        Let the user select a screen region and return it as PNG bytes.

        Returns:
            ImageCapture on success, CaptureCancelled if the picker was
            dismissed or could not run, CaptureFailed if the file is unusable
        """
        path = self._temp_capture_path()
        loop = asyncio.get_running_loop()

        try:
            await self.runner.run(SCREENCAPTURE, ['-i', '-x', str(path)])
        except ExternalCommandError as e:
            logger.info("Region capture cancelled or failed: %s", e)
            await loop.run_in_executor(None, self._discard, path)
            return CaptureCancelled()

        try:
            raw_bytes = await loop.run_in_executor(None, path.read_bytes)
        except OSError as e:
            logger.error("Failed to read captured image: %s", e)
            return CaptureFailed(f"Captured image unreadable: {e}")
        finally:
            await loop.run_in_executor(None, self._discard, path)

        resolution = self._inspect_image(raw_bytes)
        if resolution is None:
            return CaptureFailed("Captured file is not a valid image")

        logger.info("Region captured: %dx%d, %d bytes", resolution[0], resolution[1], len(raw_bytes))
        return ImageCapture(raw_bytes=raw_bytes, resolution=resolution)

    async def capture_selected_text(self) -> CaptureResult:
        """
        Copy the frontmost application's selection through the clipboard.

        Returns:
            TextCapture on success, CaptureFailed when nothing was selected
            or the copy could not be issued
        """
        try:
            async with preserved_clipboard(self.clipboard) as original:
                try:
                    strategy = await self._copy_chain.run()
                except CopyCommandError as e:
                    logger.error("Failed to capture selected text: %s", e)
                    return CaptureFailed(str(e))

                logger.debug("Copy sent using '%s' strategy", strategy)
                captured = await self._wait_for_clipboard_change(original)
        except ClipboardError as e:
            logger.error("Failed to capture selected text: %s", e)
            return CaptureFailed(str(e))

        if captured is None or not captured.strip():
            logger.info("No text selected or captured")
            return CaptureFailed("No text selected")

        logger.info("Captured selected text (%d characters)", len(captured))
        return TextCapture(content=captured)

    async def _wait_for_clipboard_change(self, original: str) -> Optional[str]:
        """Poll the clipboard until it differs from the snapshot."""
        for _ in range(self.max_poll_attempts):
            await asyncio.sleep(self.poll_interval)
            current = await self.clipboard.read_text()
            if clipboard_changed(original, current):
                return current

        return None

    def _temp_capture_path(self) -> Path:
        """Unique, timestamp-derived path for one capture."""
        stamp = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
        return self.temp_dir / f"explain-overlay-{stamp}-{uuid4().hex[:8]}.png"

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not delete temporary capture %s: %s", path, e)

    @staticmethod
    def _inspect_image(raw_bytes: bytes) -> Optional[Tuple[int, int]]:
        """Return the image size, or None if the bytes are not a readable image."""
        if not raw_bytes:
            return None
        try:
            with Image.open(io.BytesIO(raw_bytes)) as image:
                image.verify()
                return image.size
        except (OSError, SyntaxError, ValueError) as e:
            logger.error("Captured image failed validation: %s", e)
            return None
