"""Utility helpers for ExplainOverlay."""
