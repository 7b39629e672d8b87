"""
Overlay Window Module

Frameless always-on-top window that receives captured artifacts. The window
only presents what it is given; the chat and explanation surfaces plug in
through display_artifact().
"""

import logging
import sys
from typing import Any, Dict, Optional, Tuple

from PyQt6.QtCore import QPoint, QRect, Qt, pyqtSignal
from PyQt6.QtGui import QCloseEvent, QFont, QGuiApplication, QKeyEvent, QPixmap
from PyQt6.QtWidgets import (
    QFrame, QHBoxLayout, QLabel, QPlainTextEdit, QPushButton, QScrollArea,
    QStackedWidget, QVBoxLayout, QWidget
)

from ..models.capture_models import ArtifactKind

logger = logging.getLogger(__name__)

DEFAULT_SIZE = (720, 600)
MINIMUM_SIZE = (360, 280)

_STYLESHEET = """
QWidget#overlayRoot {
    background-color: rgba(28, 28, 32, 240);
    border: 1px solid #3a3a42;
    border-radius: 10px;
}
QLabel#modeLabel {
    color: #e6e6e6;
    font-weight: bold;
}
QPushButton#closeButton {
    color: #bbbbbb;
    background: transparent;
    border: none;
    padding: 2px 8px;
}
QPushButton#closeButton:hover {
    color: #ffffff;
}
QPlainTextEdit#selectionView {
    color: #e6e6e6;
    background-color: #202026;
    border: 1px solid #33333b;
    border-radius: 6px;
}
QLabel#hintLabel {
    color: #8a8a92;
}
"""


def display_work_area(point: Tuple[int, int]) -> Tuple[int, int, int, int]:
    """
    Available geometry of the display containing a point.

    Falls back to the primary screen when the point is off every screen.

    Returns:
        (x, y, width, height) excluding docks and menu bars
    """
    screen = QGuiApplication.screenAt(QPoint(point[0], point[1])) or QGuiApplication.primaryScreen()
    if screen is None:
        return (0, 0, DEFAULT_SIZE[0], DEFAULT_SIZE[1])
    area: QRect = screen.availableGeometry()
    return (area.x(), area.y(), area.width(), area.height())


class OverlayWindow(QWidget):
    """
    Floating window showing the latest screenshot or text selection.

    Signals:
        hide_requested(str): the user asked to dismiss the window
        window_closed(): the native window was closed
    """

    hide_requested = pyqtSignal(str)
    window_closed = pyqtSignal()

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)

        self._mode_label: Optional[QLabel] = None
        self._stack: Optional[QStackedWidget] = None
        self._image_label: Optional[QLabel] = None
        self._text_view: Optional[QPlainTextEdit] = None
        self._hint_label: Optional[QLabel] = None

        self._setup_window()
        self._create_layout()

        logger.debug("OverlayWindow created")

    def _setup_window(self) -> None:
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint |
            Qt.WindowType.WindowStaysOnTopHint |
            Qt.WindowType.Tool
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

        self.resize(*DEFAULT_SIZE)
        self.setMinimumSize(*MINIMUM_SIZE)
        self.setWindowTitle("Explain Overlay")

    def _create_layout(self) -> None:
        outer = QVBoxLayout(self)
        outer.setContentsMargins(0, 0, 0, 0)

        root = QFrame()
        root.setObjectName("overlayRoot")
        outer.addWidget(root)

        layout = QVBoxLayout(root)
        layout.setContentsMargins(12, 10, 12, 12)
        layout.setSpacing(8)

        header = QHBoxLayout()
        self._mode_label = QLabel("Ready")
        self._mode_label.setObjectName("modeLabel")
        header.addWidget(self._mode_label)
        header.addStretch()

        close_button = QPushButton("✕")
        close_button.setObjectName("closeButton")
        close_button.setCursor(Qt.CursorShape.PointingHandCursor)
        close_button.clicked.connect(lambda: self.hide_requested.emit("close_button"))
        header.addWidget(close_button)
        layout.addLayout(header)

        self._stack = QStackedWidget()

        self._hint_label = QLabel("Use a shortcut to capture a region or selected text.")
        self._hint_label.setObjectName("hintLabel")
        self._hint_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._stack.addWidget(self._hint_label)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setFrameShape(QFrame.Shape.NoFrame)
        self._image_label = QLabel()
        self._image_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        scroll.setWidget(self._image_label)
        self._stack.addWidget(scroll)

        self._text_view = QPlainTextEdit()
        self._text_view.setObjectName("selectionView")
        self._text_view.setReadOnly(True)
        self._stack.addWidget(self._text_view)

        layout.addWidget(self._stack)

        self.setStyleSheet(_STYLESHEET)
        self.setFont(QFont("Helvetica Neue", 12))

    def size_tuple(self) -> Tuple[int, int]:
        return (self.width(), self.height())

    def move_to(self, x: int, y: int) -> None:
        self.move(x, y)

    def set_visible_on_all_workspaces(self, visible: bool) -> None:
        """Let the window join every Space, including full-screen ones."""
        if sys.platform != 'darwin':
            logger.debug("All-workspaces visibility is only applied on macOS")
            return

        import objc
        from AppKit import (
            NSWindowCollectionBehaviorCanJoinAllSpaces,
            NSWindowCollectionBehaviorFullScreenAuxiliary,
        )

        view = objc.objc_object(c_void_p=int(self.winId()))
        ns_window = view.window()
        if ns_window is None:
            return

        behavior = ns_window.collectionBehavior()
        flags = NSWindowCollectionBehaviorCanJoinAllSpaces | NSWindowCollectionBehaviorFullScreenAuxiliary
        ns_window.setCollectionBehavior_(behavior | flags if visible else behavior & ~flags)

    def raise_above_all(self) -> None:
        """Raise over other always-on-top windows."""
        self.raise_()

    def show_inactive(self) -> None:
        """Show without taking focus from the active application."""
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating, True)
        self.show()
        self.raise_()

    def focus_content(self) -> None:
        self.activateWindow()
        self.raise_()
        self.setFocus(Qt.FocusReason.ActiveWindowFocusReason)

    def display_artifact(self, kind: ArtifactKind, payload: Dict[str, Any]) -> None:
        """Present a capture result."""
        if kind is ArtifactKind.SCREENSHOT:
            pixmap = QPixmap()
            if not pixmap.loadFromData(payload.get('raw_bytes', b''), "PNG"):
                logger.error("Overlay could not decode screenshot")
                return
            self._image_label.setPixmap(pixmap)
            self._mode_label.setText("Explain screenshot" if payload.get('explain') else "Chat about screenshot")
            self._stack.setCurrentIndex(1)
        elif kind is ArtifactKind.TEXT_SELECTION:
            self._text_view.setPlainText(payload.get('text', ''))
            self._mode_label.setText("Explain selection")
            self._stack.setCurrentIndex(2)
        else:
            logger.warning("Unknown artifact kind: %s", kind)

    def keyPressEvent(self, a0: Optional[QKeyEvent]) -> None:
        if a0 is None:
            return
        if a0.key() == Qt.Key.Key_Escape:
            self.hide_requested.emit("escape_key")
            return
        super().keyPressEvent(a0)

    def closeEvent(self, a0: Optional[QCloseEvent]) -> None:
        super().closeEvent(a0)
        self.window_closed.emit()
