# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Platform-aware location of the Cursor local state database.
"""

import os
import sys
from pathlib import Path
from typing import Optional

from ..core.constants import STATE_DB_RELATIVE_PATH


def get_config_base_dir(platform: Optional[str] = None) -> Path:
    """
    Get the per-user application config directory for a platform.

    - darwin: ~/Library/Application Support
    - win32: %APPDATA% (falls back to ~/AppData/Roaming)
    - other: $XDG_CONFIG_HOME or ~/.config
    """
    platform = platform or sys.platform
    home = Path.home()

    if platform == "darwin":
        return home / "Library" / "Application Support"
    if platform == "win32":
        appdata = os.environ.get("APPDATA")
        return Path(appdata) if appdata else home / "AppData" / "Roaming"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    return Path(xdg) if xdg else home / ".config"


def get_state_db_path(platform: Optional[str] = None) -> Path:
    """Get the default path of Cursor's state.vscdb for this platform."""
    return get_config_base_dir(platform).joinpath(*STATE_DB_RELATIVE_PATH)
