from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Tuple

from bs4 import Tag

from similar_scenes.core.constants import (
    CARD_CLASS,
    CARD_IMAGE_CLASS,
    CARD_INFO_CLASS,
    CARD_MEDIA_CLASS,
    CARD_PREVIEW_CLASS,
    CARD_TAGS_CLASS,
    CARD_TITLE_CLASS,
    CONTAINER_CLASS,
    GRID_CLASS,
    GRID_ID,
    HEADER_CLASS,
    INLINE_WRAPPER_ID,
    PANEL_TITLE,
    REFRESH_CLASS,
    SAMPLE_SIZE,
    SCENE_ID_ATTR,
    TAB_EVENT_KEY,
    TAB_LINK_ID,
    TAB_PANE_ID,
)
from similar_scenes.panel.page import (
    Event,
    HostPage,
    ListenerHandle,
    MountPointResolver,
    add_class,
    closest,
    remove_class,
    set_opacity,
)
from similar_scenes.recommendations.similarity import select_similar
from similar_scenes.schemas.panel import PanelMountState, ViewportMode
from similar_scenes.schemas.scene import Item, ScoredCandidate, SelectionResult

_log = logging.getLogger(__name__)

Selector = Callable[..., SelectionResult]

MARKER_IDS: Tuple[str, ...] = (TAB_PANE_ID, INLINE_WRAPPER_ID)


@dataclass
class MountedPanel:
    marker_id: str
    mode: ViewportMode
    current: Item
    catalog: Tuple[Item, ...]
    grid: Tag
    selection: SelectionResult
    handles: List[ListenerHandle] = field(default_factory=list)
    card_handles: List[ListenerHandle] = field(default_factory=list)


class PanelRenderer:
    """Builds, refreshes and removes the Similar Scenes panel in a host page.

    Two variants share the same header and card grid:

    * mobile: a tab appended to the scene page's tab bar plus a tab pane
    * desktop: a block inserted directly after the inline anchor

    The catalog handed to ``mount`` is kept for refreshes, so a refresh never
    touches the network.
    """

    def __init__(
        self,
        page: HostPage,
        *,
        select: Selector = select_similar,
        rng: random.Random | None = None,
        sample_size: int = SAMPLE_SIZE,
    ) -> None:
        self.page = page
        self._select = select
        self._rng = rng
        self.sample_size = sample_size
        self.panels: Dict[str, MountedPanel] = {}

    # --- state -----------------------------------------------------------
    def find_marker(self) -> Tag | None:
        for marker_id in MARKER_IDS:
            marker = self.page.get_element_by_id(marker_id)
            if marker is not None:
                return marker
        return None

    def marker_scene_id(self) -> str | None:
        marker = self.find_marker()
        if marker is None:
            return None
        return marker.get(SCENE_ID_ATTR)

    def mount_state(self) -> PanelMountState:
        if self.page.get_element_by_id(TAB_PANE_ID) is not None:
            return PanelMountState.mobile_mounted
        if self.page.get_element_by_id(INLINE_WRAPPER_ID) is not None:
            return PanelMountState.desktop_mounted
        return PanelMountState.unmounted

    # --- lifecycle -------------------------------------------------------
    def select(self, current: Item, catalog: Sequence[Item]) -> SelectionResult:
        return self._select(current, catalog, self.sample_size, rng=self._rng)

    def mount(
        self,
        current: Item,
        catalog: Sequence[Item],
        mode: ViewportMode,
        resolver: MountPointResolver,
        *,
        selection: SelectionResult | None = None,
    ) -> str | None:
        """Mount the variant for ``mode`` and return its marker id.

        Returns ``None`` without touching the page when either variant's marker
        already exists, the selection is empty, or the host structure the
        variant needs is missing.
        """
        marker_id = TAB_PANE_ID if mode == ViewportMode.mobile else INLINE_WRAPPER_ID
        existing = self.find_marker()
        if existing is not None:
            _log.debug("panel %s already mounted; skipping %s", existing.get("id"), marker_id)
            return None
        picks = selection if selection is not None else self.select(current, catalog)
        if not picks:
            _log.debug("no similar scenes for scene=%s; panel suppressed", current.id)
            return None
        if mode == ViewportMode.mobile:
            panel = self._mount_tab(current, tuple(catalog), picks, resolver)
        else:
            panel = self._mount_inline(current, tuple(catalog), picks, resolver)
        if panel is None:
            return None
        self.panels[panel.marker_id] = panel
        _log.info(
            "mounted %s panel for scene=%s with %d scene(s)",
            mode.value,
            current.id,
            len(picks),
        )
        return panel.marker_id

    def refresh(self, marker_id: str) -> SelectionResult:
        """Redraw the grid from a fresh sample of the cached catalog."""
        panel = self.panels.get(marker_id)
        if panel is None:
            raise KeyError(f"no mounted panel {marker_id!r}")
        picks = self.select(panel.current, panel.catalog)
        for handle in panel.card_handles:
            self.page.remove_listener(handle)
        panel.card_handles = []
        cards = [self._build_card(candidate, panel) for candidate in picks]
        self.page.replace_children(panel.grid, cards)
        panel.selection = picks
        _log.debug("refreshed %s with %d scene(s)", marker_id, len(picks))
        return picks

    def unmount(self) -> bool:
        """Remove whichever variant is mounted, including the mobile nav entry."""
        removed = False
        link = self.page.select_one(f'a[href="#{TAB_PANE_ID}"]')
        if link is not None:
            nav_item = closest(link, "nav-item") or link
            removed = self.page.remove(nav_item) or removed
        for marker_id in MARKER_IDS:
            removed = self.page.remove(self.page.get_element_by_id(marker_id)) or removed
        for panel in self.panels.values():
            for handle in panel.handles + panel.card_handles:
                self.page.remove_listener(handle)
        self.panels.clear()
        if removed:
            _log.info("unmounted similar scenes panel")
        return removed

    # --- variants --------------------------------------------------------
    def _mount_tab(
        self,
        current: Item,
        catalog: Tuple[Item, ...],
        picks: SelectionResult,
        resolver: MountPointResolver,
    ) -> MountedPanel | None:
        tab_bar = resolver.tab_bar()
        tab_content = resolver.tab_content()
        if tab_bar is None or tab_content is None:
            _log.warning("could not find scene tabs structure; tab panel not mounted")
            return None

        page = self.page
        nav_item = page.new_tag("li", classes=["nav-item"])
        link = page.new_tag(
            "a",
            classes=["nav-link"],
            text=PANEL_TITLE,
            attrs={
                "id": TAB_LINK_ID,
                "href": f"#{TAB_PANE_ID}",
                "data-rb-event-key": TAB_EVENT_KEY,
                "data-toggle": "tab",
                "role": "tab",
                "aria-controls": TAB_PANE_ID,
                "aria-selected": "false",
            },
        )
        nav_item.append(link)

        pane = page.new_tag(
            "div",
            classes=["tab-pane"],
            attrs={
                "id": TAB_PANE_ID,
                "role": "tabpanel",
                "aria-labelledby": TAB_LINK_ID,
                SCENE_ID_ATTR: current.id,
            },
        )
        container = page.new_tag("div", classes=[CONTAINER_CLASS])
        header, refresh_btn = self._build_header()
        grid = page.new_tag("div", classes=[GRID_CLASS], attrs={"id": GRID_ID})
        container.append(header)
        container.append(grid)
        pane.append(container)

        panel = MountedPanel(TAB_PANE_ID, ViewportMode.mobile, current, catalog, grid, picks)
        for candidate in picks:
            grid.append(self._build_card(candidate, panel))

        page.append(tab_bar, nav_item)
        page.append(tab_content, pane)

        # The host's own tab logic does not know this tab exists, so both
        # directions of activation are handled here.
        def _activate(event: Event) -> None:
            event.prevent_default()
            for other in tab_bar.find_all(class_="nav-link"):
                remove_class(other, "active")
                other["aria-selected"] = "false"
            for other in tab_content.find_all(class_="tab-pane", recursive=False):
                remove_class(other, "active", "show")
            add_class(link, "active")
            link["aria-selected"] = "true"
            add_class(pane, "active", "show")

        def _deactivate_on_sibling(event: Event) -> None:
            clicked = closest(event.target, "nav-link")
            if clicked is None or clicked is link:
                return
            remove_class(link, "active")
            link["aria-selected"] = "false"
            remove_class(pane, "active", "show")

        panel.handles.append(page.add_listener(link, "click", _activate))
        panel.handles.append(page.add_listener(tab_bar, "click", _deactivate_on_sibling))
        panel.handles.append(page.add_listener(refresh_btn, "click", self._refresh_handler(TAB_PANE_ID)))
        return panel

    def _mount_inline(
        self,
        current: Item,
        catalog: Tuple[Item, ...],
        picks: SelectionResult,
        resolver: MountPointResolver,
    ) -> MountedPanel | None:
        anchor = resolver.inline_anchor()
        if anchor is None:
            _log.warning("could not find target anchor; inline panel not mounted")
            return None

        page = self.page
        wrapper = page.new_tag(
            "div",
            classes=[CONTAINER_CLASS],
            attrs={"id": INLINE_WRAPPER_ID, SCENE_ID_ATTR: current.id},
        )
        header, refresh_btn = self._build_header()
        grid = page.new_tag("div", classes=[GRID_CLASS])
        wrapper.append(header)
        wrapper.append(grid)

        panel = MountedPanel(INLINE_WRAPPER_ID, ViewportMode.desktop, current, catalog, grid, picks)
        for candidate in picks:
            grid.append(self._build_card(candidate, panel))

        page.insert_after(anchor, wrapper)
        panel.handles.append(page.add_listener(refresh_btn, "click", self._refresh_handler(INLINE_WRAPPER_ID)))
        return panel

    # --- pieces ----------------------------------------------------------
    def _refresh_handler(self, marker_id: str) -> Callable[[Event], None]:
        def _on_refresh(event: Event) -> None:
            event.prevent_default()
            self.refresh(marker_id)

        return _on_refresh

    def _build_header(self) -> Tuple[Tag, Tag]:
        header = self.page.new_tag("div", classes=[HEADER_CLASS])
        header.append(self.page.new_tag("h4", text=PANEL_TITLE))
        refresh_btn = self.page.new_tag(
            "button",
            classes=["btn", "btn-secondary", "btn-sm", REFRESH_CLASS],
            text="Refresh",
            attrs={"type": "button", "aria-label": "Refresh similar scenes"},
        )
        header.append(refresh_btn)
        return header, refresh_btn

    def _build_card(self, candidate: ScoredCandidate, panel: MountedPanel) -> Tag:
        page = self.page
        item = candidate.item
        card = page.new_tag(
            "a",
            classes=[CARD_CLASS],
            attrs={"href": f"/scenes/{item.id}", SCENE_ID_ATTR: item.id},
        )

        media = page.new_tag("div", classes=[CARD_MEDIA_CLASS])
        img = page.new_tag(
            "img",
            classes=[CARD_IMAGE_CLASS],
            attrs={"src": item.screenshot_path, "loading": "lazy", "alt": item.display_label},
        )
        video = page.new_tag(
            "video",
            classes=[CARD_PREVIEW_CLASS],
            attrs={"loop": "", "muted": "", "playsinline": "", "preload": "none"},
        )
        if item.preview_path:
            video["src"] = item.preview_path
        set_opacity(video, 0)
        media.append(img)
        media.append(video)

        info = page.new_tag("div", classes=[CARD_INFO_CLASS])
        info.append(page.new_tag("div", classes=[CARD_TITLE_CLASS], text=item.display_label))
        info.append(page.new_tag("div", classes=[CARD_TAGS_CLASS], text=candidate.matching_tag_names))

        card.append(media)
        card.append(info)

        def _start_preview(event: Event) -> None:
            if not video.get("src"):
                return
            set_opacity(img, 0)
            set_opacity(video, 1)
            video["data-playing"] = "true"

        def _stop_preview(event: Event) -> None:
            if not video.get("src"):
                return
            if video.has_attr("data-playing"):
                del video["data-playing"]
            set_opacity(video, 0)
            set_opacity(img, 1)

        panel.card_handles.append(page.add_listener(card, "pointerenter", _start_preview))
        panel.card_handles.append(page.add_listener(card, "pointerleave", _stop_preview))
        return card
