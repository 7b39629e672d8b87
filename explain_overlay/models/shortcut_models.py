"""
Data models for shortcut bindings.

Defines the logical actions a user can trigger, the default accelerator for
each, and the result type returned by binding updates.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class LogicalAction(Enum):
    """User-facing triggers, independent of the accelerator bound to them."""
    TEXT_SELECTION = "textSelection"
    SCREENSHOT_CHAT = "screenshotChat"
    SCREENSHOT_EXPLAIN = "screenshotExplain"


# Display order used by the settings surface
ACTION_ORDER = (
    LogicalAction.TEXT_SELECTION,
    LogicalAction.SCREENSHOT_EXPLAIN,
    LogicalAction.SCREENSHOT_CHAT,
)

DEFAULT_BINDINGS: Dict[LogicalAction, str] = {
    LogicalAction.TEXT_SELECTION: "mod+shift+c",
    LogicalAction.SCREENSHOT_CHAT: "mod+shift+x",
    LogicalAction.SCREENSHOT_EXPLAIN: "mod+shift+e",
}


@dataclass(frozen=True)
class ShortcutBinding:
    """A logical action and the accelerator currently bound to it."""
    action: LogicalAction
    accelerator: str


class UpdateError(Enum):
    """Reasons a binding update can be refused."""
    INVALID = "invalid"
    PROTECTED = "protected"
    DUPLICATE = "duplicate"
    OS_REJECTED = "os_rejected"
    PERSIST_FAILED = "persist_failed"

    @property
    def message(self) -> str:
        return _ERROR_MESSAGES[self]


_ERROR_MESSAGES = {
    UpdateError.INVALID: "Shortcut must combine at least one modifier with a key",
    UpdateError.PROTECTED: "This shortcut is protected and cannot be overridden",
    UpdateError.DUPLICATE: "This shortcut is already in use",
    UpdateError.OS_REJECTED: "This shortcut is in use by another application",
    UpdateError.PERSIST_FAILED: "Failed to save shortcut",
}


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of a settings call that changes bindings."""
    error: Optional[UpdateError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None

    @classmethod
    def success(cls) -> 'UpdateResult':
        return cls()

    @classmethod
    def failure(cls, error: UpdateError) -> 'UpdateResult':
        return cls(error=error)

    def to_dict(self) -> dict:
        """Serialize in the shape the settings surface expects."""
        if self.ok:
            return {'success': True}
        return {'success': False, 'error': self.error_message}
