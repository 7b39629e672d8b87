"""
Views package for ExplainOverlay

This package contains the View layer components following the MVC pattern:
- OverlayController: Overlay window state machine and escape hotkey
- OverlayWindow: Frameless PyQt6 overlay window implementation
"""
