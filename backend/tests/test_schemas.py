import pytest
from pydantic import ValidationError

from similar_scenes.schemas.scene import CatalogFilter, Item, ScoredCandidate, Tag

from conftest import scene_payload


class TestDisplayLabel:
    def test_title_wins(self):
        assert Item(id="1", title="Beach", fallback_name="a.mp4").display_label == "Beach"

    def test_fallback_to_file_name(self):
        assert Item(id="1", title="", fallback_name="a.mp4").display_label == "a.mp4"

    def test_placeholder(self):
        assert Item(id="1").display_label == "Untitled"


class TestFromPayload:
    def test_catalog_payload(self):
        item = Item.from_payload(scene_payload(4, [1, 2], title=None, basename="clip.mp4"))
        assert item.id == "4"
        assert item.title == "Scene 4"
        assert item.fallback_name == "clip.mp4"
        assert item.screenshot_path == "/scene/4/screenshot"
        assert item.preview_path == "/scene/4/preview"
        assert item.tag_ids == frozenset({"1", "2"})

    def test_get_item_payload_without_media(self):
        item = Item.from_payload({"id": "9", "title": None, "tags": [{"id": "3", "name": "x"}]})
        assert item.fallback_name == ""
        assert item.screenshot_path == ""
        assert item.preview_path is None
        assert item.display_label == "Untitled"

    def test_duplicate_tags_collapse_by_id(self):
        payload = {"id": 1, "tags": [{"id": 5, "name": "a"}, {"id": "5", "name": "b"}, {"id": 6, "name": "c"}]}
        item = Item.from_payload(payload)
        assert [t.name for t in item.tags] == ["a", "c"]

    def test_empty_title_becomes_none(self):
        item = Item.from_payload(scene_payload(2, [], title="", basename="z.mp4"))
        assert item.title is None
        assert item.display_label == "z.mp4"

    def test_missing_preview(self):
        item = Item.from_payload(scene_payload(2, [1], preview=False))
        assert item.preview_path is None

    def test_missing_id_is_rejected(self):
        with pytest.raises(ValidationError):
            Item.from_payload({"title": "no id"})


def test_models_are_frozen():
    tag = Tag(id="1", name="a")
    with pytest.raises(ValidationError):
        tag.name = "b"


def test_scored_candidate_counts_matching_tags():
    item = Item(id="2")
    candidate = ScoredCandidate(item=item, matching_tags=(Tag(id="1", name="a"), Tag(id="2", name="b")))
    assert candidate.match_count == 2
    assert candidate.matching_tag_names == "a, b"


def test_catalog_filter_defaults_to_unpaginated():
    assert CatalogFilter().to_variables() == {"per_page": -1}
    assert CatalogFilter(q="beach", sort="date").to_variables() == {"per_page": -1, "q": "beach", "sort": "date"}
