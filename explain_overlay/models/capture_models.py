"""
Data models for capture results.

A capture produces exactly one of ImageCapture, TextCapture,
CaptureCancelled or CaptureFailed. Results are handed straight to the
orchestrator and never stored.
"""

import base64
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Union


class ArtifactKind(Enum):
    """Kinds of artifact the overlay can display."""
    SCREENSHOT = "screenshot-ready"
    TEXT_SELECTION = "text-selection-ready"


@dataclass(frozen=True)
class ImageCapture:
    """PNG bytes captured from an interactive region selection."""
    raw_bytes: bytes
    resolution: Optional[Tuple[int, int]] = None
    captured_at: datetime = field(default_factory=datetime.now)

    @property
    def size_bytes(self) -> int:
        return len(self.raw_bytes)

    def to_data_url(self) -> str:
        """Encode as a base64 PNG data URL."""
        encoded = base64.b64encode(self.raw_bytes).decode('ascii')
        return f"data:image/png;base64,{encoded}"


@dataclass(frozen=True)
class TextCapture:
    """Text copied out of the frontmost application."""
    content: str
    captured_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class CaptureCancelled:
    """The user dismissed the capture. Not an error."""
    pass


@dataclass(frozen=True)
class CaptureFailed:
    """The capture could not produce an artifact."""
    reason: str


CaptureResult = Union[ImageCapture, TextCapture, CaptureCancelled, CaptureFailed]
