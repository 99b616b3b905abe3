"""In-process model of the host application's page.

``HostPage`` holds the rendered document of a client-side routed app as a
BeautifulSoup tree. Location changes never reload the document; the host may
re-render parts of it instead. Structural changes made through the page's
helpers are reported to observers, and a small listener registry gives
elements DOM-style events with bubbling.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple

from bs4 import BeautifulSoup, Tag

_log = logging.getLogger(__name__)

_EMPTY_DOCUMENT = "<html><head></head><body></body></html>"

Listener = Callable[["Event"], None]
Observer = Callable[["HostPage"], None]


@dataclass
class Event:
    type: str
    target: Tag
    bubbles: bool = True
    current_target: Tag | None = None
    default_prevented: bool = False
    propagation_stopped: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


@dataclass(frozen=True, slots=True)
class ListenerHandle:
    element: Tag = field(compare=False)
    element_key: int
    type: str
    callback: Listener = field(compare=False)


def class_list(element: Tag) -> List[str]:
    raw = element.get("class")
    if raw is None:
        return []
    if isinstance(raw, str):
        return raw.split()
    return list(raw)


def has_class(element: Tag, name: str) -> bool:
    return name in class_list(element)


def add_class(element: Tag, *names: str) -> None:
    current = class_list(element)
    for name in names:
        if name not in current:
            current.append(name)
    element["class"] = current


def remove_class(element: Tag, *names: str) -> None:
    current = [c for c in class_list(element) if c not in names]
    if current:
        element["class"] = current
    elif element.has_attr("class"):
        del element["class"]


def closest(element: Tag, class_name: str) -> Tag | None:
    """Nearest element (the element itself included) carrying ``class_name``."""
    if has_class(element, class_name):
        return element
    return element.find_parent(class_=class_name)


def set_opacity(element: Tag, value: int) -> None:
    element["style"] = f"opacity: {value}"


class HostPage:
    def __init__(self, markup: str = "", *, location: str = "/", viewport_width: int = 1280) -> None:
        self.soup = BeautifulSoup(markup or _EMPTY_DOCUMENT, "html.parser")
        if self.soup.body is None:
            body = self.soup.new_tag("body")
            for child in list(self.soup.contents):
                body.append(child.extract())
            self.soup.append(body)
        self._location = location
        self.viewport_width = viewport_width
        self._listeners: Dict[int, Tuple[Tag, Dict[str, List[Listener]]]] = {}
        self._observers: List[Observer] = []

    # --- location --------------------------------------------------------
    @property
    def location(self) -> str:
        return self._location

    def navigate(self, path: str, body: str | None = None) -> None:
        """Client-side route change, optionally re-rendering the body."""
        self._location = path
        if body is not None:
            fragment = BeautifulSoup(body, "html.parser")
            self.replace_children(self.body, list(fragment.contents))
        else:
            self._notify()

    # --- viewport --------------------------------------------------------
    def matches_max_width(self, max_width: int) -> bool:
        return self.viewport_width <= max_width

    def resize(self, width: int) -> None:
        self.viewport_width = width

    # --- lookup ----------------------------------------------------------
    @property
    def body(self) -> Tag:
        return self.soup.body

    def get_element_by_id(self, element_id: str) -> Tag | None:
        return self.soup.find(id=element_id)

    def select_one(self, selector: str) -> Tag | None:
        return self.soup.select_one(selector)

    def select(self, selector: str) -> List[Tag]:
        return list(self.soup.select(selector))

    def contains(self, element: Tag | None) -> bool:
        if element is None:
            return False
        return element is self.soup or any(parent is self.soup for parent in element.parents)

    def html(self) -> str:
        return str(self.soup)

    # --- construction / mutation -----------------------------------------
    def new_tag(
        self,
        name: str,
        *,
        classes: Iterable[str] = (),
        text: str | None = None,
        attrs: Mapping[str, Any] | None = None,
    ) -> Tag:
        tag = self.soup.new_tag(name, attrs=dict(attrs or {}))
        names = list(classes)
        if names:
            tag["class"] = names
        if text is not None:
            tag.string = text
        return tag

    def append(self, parent: Tag, child: Tag) -> Tag:
        parent.append(child)
        self._notify()
        return child

    def insert_after(self, anchor: Tag, element: Tag) -> Tag:
        anchor.insert_after(element)
        self._notify()
        return element

    def remove(self, element: Tag | None) -> bool:
        if element is None or not self.contains(element):
            return False
        self._forget_subtree(element)
        element.extract()
        self._notify()
        return True

    def replace_children(self, parent: Tag, children: Iterable[Any]) -> None:
        for existing in list(parent.contents):
            if isinstance(existing, Tag):
                self._forget_subtree(existing)
            existing.extract()
        for child in children:
            parent.append(child)
        self._notify()

    # --- observers -------------------------------------------------------
    def observe(self, callback: Observer) -> Callable[[], None]:
        """Register a structural-change observer; returns its unsubscribe callable."""
        self._observers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._observers.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def _notify(self) -> None:
        for callback in list(self._observers):
            callback(self)

    # --- events ----------------------------------------------------------
    def add_listener(self, element: Tag, event_type: str, callback: Listener) -> ListenerHandle:
        key = id(element)
        entry = self._listeners.get(key)
        if entry is None or entry[0] is not element:
            entry = (element, {})
            self._listeners[key] = entry
        entry[1].setdefault(event_type, []).append(callback)
        return ListenerHandle(element, key, event_type, callback)

    def remove_listener(self, handle: ListenerHandle) -> None:
        entry = self._listeners.get(handle.element_key)
        if entry is None or entry[0] is not handle.element:
            return
        callbacks = entry[1].get(handle.type) or []
        for idx, cb in enumerate(callbacks):
            if cb is handle.callback:
                del callbacks[idx]
                break
        if not callbacks:
            entry[1].pop(handle.type, None)
        if not entry[1]:
            self._listeners.pop(handle.element_key, None)

    def listener_count(self, element: Tag, event_type: str | None = None) -> int:
        entry = self._listeners.get(id(element))
        if entry is None or entry[0] is not element:
            return 0
        if event_type is None:
            return sum(len(cbs) for cbs in entry[1].values())
        return len(entry[1].get(event_type) or [])

    def dispatch(self, target: Tag, event_type: str, *, bubbles: bool = True) -> Event:
        event = Event(type=event_type, target=target, bubbles=bubbles)
        path: List[Tag] = [target]
        if bubbles:
            path.extend(target.parents)
        for node in path:
            entry = self._listeners.get(id(node))
            if entry is None or entry[0] is not node:
                continue
            event.current_target = node
            for callback in list(entry[1].get(event_type) or []):
                callback(event)
            if event.propagation_stopped:
                break
        return event

    def click(self, target: Tag) -> Event:
        return self.dispatch(target, "click")

    def _forget_subtree(self, element: Tag) -> None:
        for node in [element, *element.find_all(True)]:
            entry = self._listeners.get(id(node))
            if entry is not None and entry[0] is node:
                self._listeners.pop(id(node), None)


class MountPointResolver:
    """Where in the host page the panel attaches."""

    def available(self) -> bool:
        raise NotImplementedError

    def tab_bar(self) -> Tag | None:
        raise NotImplementedError

    def tab_content(self) -> Tag | None:
        raise NotImplementedError

    def inline_anchor(self) -> Tag | None:
        raise NotImplementedError


class SceneTabsResolver(MountPointResolver):
    """Stash scene page layout: ``.scene-tabs`` with nav tabs and panes."""

    tabs_selector = ".scene-tabs"
    tab_bar_selector = ".scene-tabs .nav-tabs"
    tab_content_selector = ".scene-tabs .tab-content"
    anchor_class = "row"

    def __init__(self, page: HostPage) -> None:
        self.page = page

    def available(self) -> bool:
        return self.page.select_one(self.tabs_selector) is not None

    def tab_bar(self) -> Tag | None:
        return self.page.select_one(self.tab_bar_selector)

    def tab_content(self) -> Tag | None:
        return self.page.select_one(self.tab_content_selector)

    def inline_anchor(self) -> Tag | None:
        tabs = self.page.select_one(self.tabs_selector)
        if tabs is None:
            return None
        return closest(tabs, self.anchor_class)
