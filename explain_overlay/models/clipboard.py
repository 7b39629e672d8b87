"""
System clipboard access.

Wraps pyperclip with async helpers and provides preserved_clipboard(), a
scoped snapshot/restore around code that temporarily overwrites the
clipboard.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import pyperclip

logger = logging.getLogger(__name__)


class ClipboardError(Exception):
    """Raised when the clipboard cannot be read."""
    pass


class Clipboard:
    """Text clipboard backed by pyperclip; blocking calls run in the executor."""

    async def read_text(self) -> str:
        loop = asyncio.get_running_loop()
        try:
            text = await loop.run_in_executor(None, pyperclip.paste)
        except pyperclip.PyperclipException as e:
            raise ClipboardError(f"Clipboard read failed: {e}") from e
        return text or ""

    async def write_text(self, text: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, pyperclip.copy, text)
        except pyperclip.PyperclipException as e:
            raise ClipboardError(f"Clipboard write failed: {e}") from e


@asynccontextmanager
async def preserved_clipboard(clipboard: Clipboard) -> AsyncIterator[str]:
    """
    Snapshot the clipboard text and restore it on every exit path.

    Yields:
        The clipboard text as it was on entry

    Raises:
        ClipboardError: If the snapshot cannot be taken; nothing is restored
    """
    original = await clipboard.read_text()
    try:
        yield original
    finally:
        try:
            await clipboard.write_text(original)
        except ClipboardError as e:
            logger.warning("Failed to restore clipboard: %s", e)
