"""
Main Application Entry Point

Builds the capture engine, runs the Qt event processing inside the asyncio
loop, and tears everything down on SIGINT/SIGTERM or a shutdown request.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtWidgets import QApplication

from explain_overlay.controllers.event_bus import EventBus, get_event_bus
from explain_overlay.controllers.hotkey_backend import PynputHotkeyBackend
from explain_overlay.controllers.orchestrator import Orchestrator
from explain_overlay.controllers.shortcut_registry import ShortcutRegistry
from explain_overlay.models.capture_service import CaptureService
from explain_overlay.models.settings_manager import SettingsManager
from explain_overlay.utils.logging_config import get_logger, setup_logging
from explain_overlay.views.overlay_controller import OverlayController
from explain_overlay import APP_NAME, APP_VERSION, AppState, EventTypes

logger = get_logger(__name__)


class Application:
    """
    Main application class.

    Owns the QApplication and the engine components and drives their
    startup and shutdown order.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self.app_name = APP_NAME
        self.version = APP_VERSION
        self.state = AppState.STARTING
        self.config_dir = config_dir

        self.event_bus: Optional[EventBus] = None
        self.settings_manager: Optional[SettingsManager] = None
        self.registry: Optional[ShortcutRegistry] = None
        self.capture_service: Optional[CaptureService] = None
        self.overlay: Optional[OverlayController] = None
        self.orchestrator: Optional[Orchestrator] = None

        self.qt_app: Optional[QApplication] = None

        self._shutdown_event = asyncio.Event()

    async def initialize(self) -> bool:
        """
        Initialize all application components.

        Returns:
            True if initialization was successful
        """
        try:
            logger.info("Initializing %s v%s", self.app_name, self.version)

            self.event_bus = get_event_bus()
            await self._subscribe_to_events()

            existing_app = QApplication.instance()
            if existing_app is None:
                self.qt_app = QApplication(sys.argv)
                logger.info("Created new QApplication instance")
            else:
                self.qt_app = existing_app  # type: ignore
                logger.info("Using existing QApplication instance")
            self.qt_app.setQuitOnLastWindowClosed(False)

            self.settings_manager = SettingsManager(config_dir=self.config_dir, event_bus=self.event_bus)

            self.registry = ShortcutRegistry(
                backend=PynputHotkeyBackend(loop=asyncio.get_running_loop()),
                settings_manager=self.settings_manager,
                event_bus=self.event_bus
            )
            self.capture_service = CaptureService()
            self.overlay = OverlayController(registry=self.registry, event_bus=self.event_bus)

            self.orchestrator = Orchestrator(
                registry=self.registry,
                capture_service=self.capture_service,
                overlay=self.overlay,
                event_bus=self.event_bus
            )
            await self.orchestrator.initialize()

            self._setup_signal_handlers()

            self.state = AppState.READY
            await self.event_bus.emit(
                EventTypes.APP_READY,
                {'state': self.state, 'shortcuts': self.orchestrator.get_shortcuts()},
                source="application"
            )

            logger.info("Application initialization complete")
            return True

        except Exception as e:
            logger.error("Application initialization failed: %s", e)
            self.state = AppState.ERROR
            return False

    async def _subscribe_to_events(self) -> None:
        await self.event_bus.subscribe(
            EventTypes.APP_SHUTDOWN_REQUESTED,
            self._handle_shutdown_request
        )
        await self.event_bus.subscribe(
            EventTypes.HOTKEY_REGISTRATION_FAILED,
            self._handle_registration_failed
        )

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)
        if sys.platform != "win32":
            signal.signal(signal.SIGHUP, self._signal_handler)

    def _signal_handler(self, signum, frame):
        logger.info("Received signal %d, initiating shutdown", signum)
        self._shutdown_event.set()

    async def _handle_shutdown_request(self, event_data) -> None:
        logger.info("Shutdown requested by %s", event_data.source)
        self._shutdown_event.set()

    async def _handle_registration_failed(self, event_data) -> None:
        logger.warning(
            "Shortcut %s for %s is inactive; check Accessibility and Input Monitoring permissions",
            event_data.data.get('accelerator'),
            event_data.data.get('action')
        )

    async def run(self) -> int:
        """
        Run the main application loop.

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        try:
            if not await self.initialize():
                return 1

            logger.info("Application started successfully")

            qt_event_task = asyncio.create_task(self._process_qt_events())

            await self._shutdown_event.wait()
            logger.info("Application shutting down")

            qt_event_task.cancel()
            try:
                await qt_event_task
            except asyncio.CancelledError:
                pass

            return 0

        except KeyboardInterrupt:
            logger.info("Application interrupted by user")
            return 0

        finally:
            await self._shutdown()

    async def _process_qt_events(self) -> None:
        """Process Qt events in the asyncio loop."""
        while not self._shutdown_event.is_set():
            if self.qt_app:
                self.qt_app.processEvents()
            await asyncio.sleep(0.01)

    async def _shutdown(self) -> None:
        """Shut down components in reverse dependency order."""
        if self.state == AppState.SHUTTING_DOWN:
            return

        self.state = AppState.SHUTTING_DOWN
        logger.info("Starting application shutdown")

        if self.event_bus and not self.event_bus.is_shutdown():
            await self.event_bus.emit(EventTypes.APP_SHUTDOWN_STARTING, source="application")

        if self.orchestrator:
            await self.orchestrator.shutdown()

        if self.event_bus:
            await self.event_bus.shutdown()

        logger.info("Application shutdown complete")


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description=f"{APP_NAME} v{APP_VERSION} - capture a region or selection into a floating assistant"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"{APP_NAME} {APP_VERSION}"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set logging level"
    )

    parser.add_argument(
        "--log-dir",
        type=Path,
        help="Directory for log files"
    )

    parser.add_argument(
        "--config-dir",
        type=Path,
        help="Directory holding shortcuts.json"
    )

    return parser.parse_args(argv)


async def main() -> int:
    """
    Main application entry point.

    Returns:
        Exit code
    """
    args = parse_arguments()

    setup_logging(
        log_dir=args.log_dir,
        log_level="DEBUG" if args.debug else args.log_level,
        enable_console=True,
        enable_json=True
    )

    logger.info("Starting %s v%s", APP_NAME, APP_VERSION)

    app = Application(config_dir=args.config_dir)
    try:
        return await app.run()
    except Exception as e:
        logger.error("Fatal error: %s", e)
        return 1
    finally:
        logging.shutdown()


def run_app():
    """Synchronous console-script entry point."""
    try:
        return asyncio.run(main())
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(run_app())
