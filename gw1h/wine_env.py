"""Isolation environment handed to every process gw1h spawns."""

from __future__ import annotations

import os
from typing import Mapping, Optional

from gw1h.settings import Settings


def wine_env(settings: Settings, base: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """Inherited environment plus WINEARCH and WINEPREFIX from ``settings``."""
    env = dict(os.environ if base is None else base)
    env["WINEARCH"] = settings.wine_arch
    env["WINEPREFIX"] = settings.wine_prefix
    return env


def wine_vars(settings: Settings) -> dict[str, str]:
    """Only the variables gw1h sets itself."""
    return {"WINEARCH": settings.wine_arch, "WINEPREFIX": settings.wine_prefix}
