# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/reddit_oauth/utils/browser.py

import logging
import os
import sys
import webbrowser

from ..errors import BrowserLaunchError

lib_logger = logging.getLogger("reddit_oauth")


def is_headless_environment() -> bool:
    """
    Detects environments where no browser can be opened (SSH sessions,
    containers, CI). REDDIT_OAUTH_HEADLESS=true forces headless mode.
    """
    forced = os.getenv("REDDIT_OAUTH_HEADLESS")
    if forced is not None:
        return forced.strip().lower() in {"1", "true", "yes", "on"}

    if sys.platform.startswith("linux"):
        return not (os.getenv("DISPLAY") or os.getenv("WAYLAND_DISPLAY"))
    return False


def open_browser(url: str) -> None:
    """Opens ``url`` in the default browser or raises BrowserLaunchError."""
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as e:
        lib_logger.warning(f"Failed to open browser: {e}")
        opened = False

    if not opened:
        raise BrowserLaunchError("Could not open browser. Is a default browser set?")
    lib_logger.info("Browser opened for Reddit OAuth flow")
