"""
Models package for ExplainOverlay

This package contains the Model layer components following the MVC pattern:
- accelerators: Accelerator parsing, protection and formatting
- shortcut_models / capture_models: Value types for bindings and captures
- SettingsManager: Shortcut persistence in the app data directory
- CaptureService: Region and text selection capture
- Clipboard: System clipboard access with scoped restore
"""
