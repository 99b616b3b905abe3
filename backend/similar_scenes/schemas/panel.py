from __future__ import annotations

from enum import Enum


class ViewportMode(str, Enum):
    mobile = "mobile"
    desktop = "desktop"


class PanelMountState(str, Enum):
    unmounted = "unmounted"
    mobile_mounted = "mobile_mounted"
    desktop_mounted = "desktop_mounted"


class WatcherState(str, Enum):
    idle = "idle"
    building = "building"
    active = "active"
