import json
import random

import pytest

from similar_scenes.core.constants import INLINE_WRAPPER_ID, TAB_PANE_ID
from similar_scenes.entrypoint import build_parser, main, pick, preview
from similar_scenes.utils.graphql import ItemNotFound
from similar_scenes.utils.stash_api import DataGateway

from conftest import FakeTransport


class TestPick:
    @pytest.mark.asyncio
    async def test_returns_every_qualifying_scene(self, gateway):
        picks = await pick(gateway, 1, rng=random.Random(5))
        assert {p["id"] for p in picks} == {"2", "4", "5", "6"}
        by_id = {p["id"]: p for p in picks}
        assert by_id["4"]["match_count"] == 3
        assert by_id["6"]["matching_tags"] == ["tag3", "tag1"]
        assert by_id["2"]["label"] == "Scene 2"

    @pytest.mark.asyncio
    async def test_sample_size_caps_results(self, gateway):
        assert len(await pick(gateway, 1, sample_size=2)) == 2

    @pytest.mark.asyncio
    async def test_untagged_scene(self, gateway, transport):
        assert await pick(gateway, 7) == []
        assert transport.count("findScenes") == 0


class TestPreview:
    @pytest.mark.asyncio
    async def test_desktop_markup(self, gateway):
        html = await preview(gateway, 1, rng=random.Random(1))
        assert f'id="{INLINE_WRAPPER_ID}"' in html
        assert TAB_PANE_ID not in html

    @pytest.mark.asyncio
    async def test_mobile_markup(self, gateway):
        html = await preview(gateway, 1, mobile=True)
        assert f'id="{TAB_PANE_ID}"' in html

    @pytest.mark.asyncio
    async def test_gateway_errors_propagate(self, gateway):
        with pytest.raises(ItemNotFound):
            await preview(gateway, 404)


class TestMain:
    def test_pick_prints_json(self, capsys):
        transport = FakeTransport()
        assert main(["pick", "1", "--seed", "3", "--sample-size", "3"], gateway=DataGateway(transport)) == 0
        picks = json.loads(capsys.readouterr().out)
        assert len(picks) == 3
        assert transport.closed

    def test_preview_to_file(self, tmp_path):
        target = tmp_path / "scene.html"
        assert main(["preview", "1", "--mobile", "-o", str(target)], gateway=DataGateway(FakeTransport())) == 0
        assert f'id="{TAB_PANE_ID}"' in target.read_text(encoding="utf-8")

    def test_gateway_failure_exit_code(self, capsys):
        transport = FakeTransport()
        transport.failures = 5
        assert main(["pick", "1"], gateway=DataGateway(transport)) == 1
        assert capsys.readouterr().out == ""
        assert transport.closed

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])
