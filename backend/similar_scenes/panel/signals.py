"""Detection signal sources.

Every source has the same shape: ``start(emit)`` begins calling ``emit(reason)``
and ``stop()`` releases whatever handle the source owns. The watcher does not
care which source fired; a timer tick and a route change both lead to one
detection cycle.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, List

from similar_scenes.core.constants import DETECTION_INTERVAL_SECONDS
from similar_scenes.panel.page import HostPage

_log = logging.getLogger(__name__)

Emit = Callable[[str], None]


class SignalSource:
    def start(self, emit: Emit) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    @property
    def running(self) -> bool:
        raise NotImplementedError


class IntervalSignal(SignalSource):
    """Emits ``"tick"`` at a fixed cadence on the running event loop."""

    def __init__(self, interval: float = DETECTION_INTERVAL_SECONDS) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, emit: Emit) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(emit))

    async def _loop(self, emit: Emit) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                emit("tick")
            except Exception:
                # One failing cycle must not kill the fallback timer
                _log.exception("detection tick failed")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None


class StructureSignal(SignalSource):
    """Emits ``"location-changed"`` when a structural change follows a route change."""

    def __init__(self, page: HostPage) -> None:
        self.page = page
        self._last_location: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def start(self, emit: Emit) -> None:
        if self.running:
            return
        self._last_location = self.page.location

        def _on_mutation(page: HostPage) -> None:
            location = page.location
            if location == self._last_location:
                return
            _log.debug("location changed %s -> %s", self._last_location, location)
            self._last_location = location
            emit("location-changed")

        self._unsubscribe = self.page.observe(_on_mutation)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class MergedSignal(SignalSource):
    """Fans several sources into a single emit callback."""

    def __init__(self, *sources: SignalSource) -> None:
        self.sources: List[SignalSource] = list(sources)

    @property
    def running(self) -> bool:
        return any(source.running for source in self.sources)

    def start(self, emit: Emit) -> None:
        for source in self.sources:
            source.start(emit)

    def stop(self) -> None:
        for source in self.sources:
            source.stop()


def default_signals(page: HostPage, interval: float = DETECTION_INTERVAL_SECONDS) -> MergedSignal:
    return MergedSignal(IntervalSignal(interval), StructureSignal(page))
