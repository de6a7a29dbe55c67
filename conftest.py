"""
Pytest configuration for jukebox tests.

Provides:
- @pytest.mark.mpv marker for tests requiring a real mpv binary
- Auto-skip of mpv tests when mpv is not installed
"""

import shutil

import pytest

MPV_AVAILABLE = shutil.which("mpv") is not None


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "mpv: marks tests as requiring the mpv player (skipped if unavailable)"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip mpv tests when mpv is unavailable."""
    if MPV_AVAILABLE:
        return

    skip_mpv = pytest.mark.skip(reason="mpv not available (not found on PATH)")
    for item in items:
        if "mpv" in item.keywords:
            item.add_marker(skip_mpv)
