"""Fixed tuning values and the reserved markup contract.

These are deliberately not runtime settings: the panel behaves the same on
every Stash instance.
"""
from __future__ import annotations

import re

MIN_MATCH = 2
MAX_MATCH = 7
SAMPLE_SIZE = 10

DETECTION_INTERVAL_MS = 500
DETECTION_INTERVAL_SECONDS = DETECTION_INTERVAL_MS / 1000.0

# Matches the CSS media query `(max-width: 768px)` used for the mobile layout.
MOBILE_MAX_WIDTH = 768

SCENE_PATH_PATTERN = re.compile(r"/scenes/(\d+)")

PANEL_TITLE = "Similar Scenes"
UNTITLED_LABEL = "Untitled"

# Reserved ids: one marker per variant.
TAB_PANE_ID = "similar-scenes-panel"
TAB_LINK_ID = "similar-scenes-tab"
TAB_EVENT_KEY = "similar-scenes"
INLINE_WRAPPER_ID = "similar-scenes-wrapper"
GRID_ID = "similar-scenes-grid"

CONTAINER_CLASS = "similar-scenes-container"
HEADER_CLASS = "similar-scenes-header"
GRID_CLASS = "similar-scenes-grid"
REFRESH_CLASS = "similar-scenes-refresh-btn"
CARD_CLASS = "similar-scene-card"
CARD_MEDIA_CLASS = "similar-scene-media"
CARD_IMAGE_CLASS = "similar-scene-img"
CARD_PREVIEW_CLASS = "similar-scene-preview"
CARD_INFO_CLASS = "similar-scene-info"
CARD_TITLE_CLASS = "similar-scene-title"
CARD_TAGS_CLASS = "similar-scene-tags"

SCENE_ID_ATTR = "data-scene-id"


def scene_id_from_path(path: str | None) -> str | None:
    """Return the numeric scene id embedded in a location path, if any."""
    if not path:
        return None
    match = SCENE_PATH_PATTERN.search(path)
    return match.group(1) if match else None
