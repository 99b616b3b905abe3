from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from similar_scenes.core.constants import UNTITLED_LABEL


def _coerce_id(value: Any) -> Any:
    # Stash returns ids as strings, but fixtures and callers often pass ints.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class Tag(BaseModel):
    """A named classification; two tags are the same tag iff their ids match."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""

    @field_validator('id', mode='before')
    @classmethod
    def normalize_id(cls, value: Any) -> Any:
        return _coerce_id(value)


class Item(BaseModel):
    """A scene as seen by the panel: identity, label inputs, tags and media paths."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: Optional[str] = None
    fallback_name: str = ""
    tags: Tuple[Tag, ...] = ()
    screenshot_path: str = ""
    preview_path: Optional[str] = None

    @field_validator('id', mode='before')
    @classmethod
    def normalize_id(cls, value: Any) -> Any:
        return _coerce_id(value)

    @property
    def tag_ids(self) -> frozenset[str]:
        return frozenset(tag.id for tag in self.tags)

    @property
    def display_label(self) -> str:
        if self.title:
            return self.title
        if self.fallback_name:
            return self.fallback_name
        return UNTITLED_LABEL

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Item":
        """Build an item from a ``findScene`` / ``findScenes`` scene payload.

        Duplicate tag ids keep their first occurrence; missing ``files`` or
        ``paths`` blocks (``GetItem`` does not request them) yield empty values.
        """
        files = payload.get('files') or []
        fallback = ""
        if files and isinstance(files[0], Mapping):
            fallback = files[0].get('basename') or ""
        paths = payload.get('paths') or {}
        tags: list[Tag] = []
        seen: set[str] = set()
        for raw in payload.get('tags') or []:
            tag = Tag.model_validate(raw)
            if tag.id in seen:
                continue
            seen.add(tag.id)
            tags.append(tag)
        return cls(
            id=payload.get('id'),
            title=payload.get('title') or None,
            fallback_name=fallback,
            tags=tuple(tags),
            screenshot_path=paths.get('screenshot') or "",
            preview_path=paths.get('preview') or None,
        )


class ScoredCandidate(BaseModel):
    """A catalog item paired with the tags it shares with the current scene."""

    model_config = ConfigDict(frozen=True)

    item: Item
    matching_tags: Tuple[Tag, ...] = Field(default_factory=tuple)

    @property
    def match_count(self) -> int:
        return len(self.matching_tags)

    @property
    def matching_tag_names(self) -> str:
        return ", ".join(tag.name for tag in self.matching_tags)


SelectionResult = Tuple[ScoredCandidate, ...]


class CatalogFilter(BaseModel):
    """``FindFilterType`` subset used for the catalog query.

    ``per_page=-1`` asks Stash for every scene in one page.
    """

    per_page: int = -1
    page: int | None = None
    q: str | None = None
    sort: str | None = None
    direction: str | None = None

    def to_variables(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
