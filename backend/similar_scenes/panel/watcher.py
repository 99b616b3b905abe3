from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from similar_scenes.core.constants import MOBILE_MAX_WIDTH, SCENE_ID_ATTR, scene_id_from_path
from similar_scenes.panel.page import HostPage, MountPointResolver, SceneTabsResolver
from similar_scenes.panel.renderer import PanelRenderer
from similar_scenes.panel.signals import SignalSource, default_signals
from similar_scenes.schemas.panel import PanelMountState, ViewportMode, WatcherState
from similar_scenes.schemas.scene import CatalogFilter
from similar_scenes.utils.graphql import GatewayError
from similar_scenes.utils.stash_api import DataGateway

_log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildToken:
    """Identifies one build; completion is only applied while it is current."""

    scene_id: str
    generation: int


class NavigationWatcher:
    """Keeps exactly one Similar Scenes panel in sync with the page location.

    Each detection cycle (``reconcile``) compares the location with the marker
    element in the page:

    * off a scene page: unmount whatever is mounted
    * marker for another scene: unmount it, then treat as page entry
    * marker for this scene: nothing to do
    * no marker: fetch, select and mount in a background build

    Cycles are driven by the signal sources passed in (a fixed-interval timer
    and a structural-change observer by default). Failed builds leave the
    watcher idle, so the next cycle retries at the same cadence. A build that
    finds nothing to show (no tags, no matches, no mount point) is not retried
    for that scene until the location changes or the watcher is restarted.
    """

    def __init__(
        self,
        page: HostPage,
        gateway: DataGateway,
        *,
        renderer: PanelRenderer | None = None,
        resolver: MountPointResolver | None = None,
        is_mobile: Callable[[], bool] | None = None,
        signals: SignalSource | None = None,
        catalog_filter: CatalogFilter | None = None,
    ) -> None:
        self.page = page
        self.gateway = gateway
        self.renderer = renderer or PanelRenderer(page)
        self.resolver = resolver or SceneTabsResolver(page)
        self._is_mobile = is_mobile or (lambda: page.matches_max_width(MOBILE_MAX_WIDTH))
        self.signals = signals if signals is not None else default_signals(page)
        self.catalog_filter = catalog_filter
        self.state = WatcherState.idle
        self.last_error: BaseException | None = None
        self._generation = 0
        self._token: BuildToken | None = None
        self._build_task: asyncio.Task[None] | None = None
        self._skipped_scene: str | None = None
        self._started = False

    # --- control ---------------------------------------------------------
    @property
    def started(self) -> bool:
        return self._started

    @property
    def mount_state(self) -> PanelMountState:
        return self.renderer.mount_state()

    def start(self) -> asyncio.Task[None] | None:
        """Attach the signal sources and run the initial detection cycle."""
        if self._started:
            return None
        self._started = True
        self._skipped_scene = None
        self.signals.start(self._on_signal)
        return self.reconcile()

    def stop(self, *, unmount: bool = False) -> None:
        if not self._started:
            return
        self._started = False
        self.signals.stop()
        self._invalidate()
        if unmount:
            self.renderer.unmount()
        self.state = WatcherState.active if self.renderer.find_marker() is not None else WatcherState.idle

    async def wait_for_build(self) -> None:
        task = self._build_task
        if task is not None and not task.done():
            await task

    def _on_signal(self, reason: str) -> None:
        _log.debug("detection cycle triggered by %s at %s", reason, self.page.location)
        self.reconcile()

    # --- transitions -----------------------------------------------------
    def reconcile(self) -> asyncio.Task[None] | None:
        """Run one detection cycle; returns the build task if one was started."""
        scene_id = scene_id_from_path(self.page.location)
        marker = self.renderer.find_marker()
        if self._skipped_scene is not None and self._skipped_scene != scene_id:
            self._skipped_scene = None

        if scene_id is None:
            if marker is not None or self.renderer.panels:
                self._teardown("left scene page")
            elif self.state == WatcherState.building:
                self._invalidate()
                self.state = WatcherState.idle
            return None

        if marker is not None:
            mounted_for = marker.get(SCENE_ID_ATTR)
            if mounted_for is None or mounted_for == scene_id:
                self.state = WatcherState.active
                return None
            self._teardown(f"navigated from scene {mounted_for} to {scene_id}")
        elif self.state == WatcherState.active:
            # The host re-rendered and dropped our marker
            self._teardown("panel marker disappeared")

        if self.state == WatcherState.building:
            if self._token is not None and self._token.scene_id == scene_id:
                return None
            self._invalidate()

        # Scenes that built to nothing stay quiet until the location changes
        if self._skipped_scene == scene_id:
            return None

        if not self.resolver.available():
            self.state = WatcherState.idle
            return None

        token = BuildToken(scene_id, self._generation)
        self._token = token
        self.state = WatcherState.building
        self._build_task = asyncio.get_running_loop().create_task(self._build(token))
        return self._build_task

    def _teardown(self, reason: str) -> None:
        _log.debug("tearing down panel: %s", reason)
        self._invalidate()
        self.renderer.unmount()
        self.state = WatcherState.idle

    def _invalidate(self) -> None:
        self._generation += 1
        self._token = None

    def _is_current(self, token: BuildToken) -> bool:
        return self._token is token and token.generation == self._generation

    def _finish(self, token: BuildToken, state: WatcherState) -> None:
        if self._is_current(token):
            self._token = None
            self.state = state

    def _is_stale(self, token: BuildToken) -> bool:
        if not self._is_current(token):
            return True
        if scene_id_from_path(self.page.location) != token.scene_id:
            return True
        return self.renderer.find_marker() is not None

    def _skip(self, token: BuildToken) -> None:
        if self._is_current(token):
            self._skipped_scene = token.scene_id
        self._finish(token, WatcherState.idle)

    async def _build(self, token: BuildToken) -> None:
        try:
            await self._run_build(token)
        except GatewayError as exc:
            self.last_error = exc
            _log.warning("similar scenes build failed for scene=%s: %s", token.scene_id, exc)
            self._finish(token, WatcherState.idle)
        except Exception as exc:
            self.last_error = exc
            _log.exception("unexpected error building similar scenes for scene=%s", token.scene_id)
            self._finish(token, WatcherState.idle)

    async def _run_build(self, token: BuildToken) -> None:
        item = await self.gateway.fetch_item(token.scene_id)
        if not item.tags:
            _log.info("scene %s has no tags; nothing to match", token.scene_id)
            self._skip(token)
            return
        catalog = await self.gateway.fetch_catalog(self.catalog_filter)

        if self._is_stale(token):
            _log.debug("discarding stale build for scene=%s", token.scene_id)
            if self._is_current(token):
                self._token = None
                self.state = WatcherState.active if self.renderer.find_marker() is not None else WatcherState.idle
            return

        self.last_error = None
        mode = ViewportMode.mobile if self._is_mobile() else ViewportMode.desktop
        selection = self.renderer.select(item, catalog)
        if not selection:
            _log.info("no similar scenes for scene=%s", token.scene_id)
            self._skip(token)
            return
        marker_id = self.renderer.mount(item, catalog, mode, self.resolver, selection=selection)
        if marker_id is None:
            self._skip(token)
            return
        self._finish(token, WatcherState.active)
