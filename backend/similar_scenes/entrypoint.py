from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from typing import Any, Dict, List, Sequence

from similar_scenes.core.config import settings
from similar_scenes.core.constants import MOBILE_MAX_WIDTH, SAMPLE_SIZE
from similar_scenes.core.logging_config import configure_logging
from similar_scenes.panel.page import HostPage
from similar_scenes.panel.renderer import PanelRenderer
from similar_scenes.panel.signals import MergedSignal
from similar_scenes.panel.watcher import NavigationWatcher
from similar_scenes.recommendations.similarity import select_similar
from similar_scenes.utils.graphql import GatewayError
from similar_scenes.utils.stash_api import DataGateway, build_gateway

_log = logging.getLogger(__name__)

# Minimal copy of the Stash scene page structure the panel attaches to.
SCENE_PAGE_MARKUP = """
<html><head><title>Scene</title></head><body>
<div id="root"><div class="row">
  <div class="scene-tabs">
    <div>
      <ul class="nav nav-tabs" role="tablist">
        <li class="nav-item"><a class="nav-link active" href="#scene-details-panel" role="tab">Details</a></li>
        <li class="nav-item"><a class="nav-link" href="#scene-markers-panel" role="tab">Markers</a></li>
      </ul>
    </div>
    <div class="tab-content">
      <div id="scene-details-panel" class="tab-pane active show" role="tabpanel"></div>
      <div id="scene-markers-panel" class="tab-pane" role="tabpanel"></div>
    </div>
  </div>
  <div class="scene-player-container"></div>
</div></div>
</body></html>
"""

_DESKTOP_WIDTH = 1280


def scene_page(scene_id: str | int, *, mobile: bool = False) -> HostPage:
    width = MOBILE_MAX_WIDTH if mobile else _DESKTOP_WIDTH
    return HostPage(SCENE_PAGE_MARKUP, location=f"/scenes/{scene_id}", viewport_width=width)


async def pick(
    gateway: DataGateway,
    scene_id: str | int,
    *,
    sample_size: int = SAMPLE_SIZE,
    rng: random.Random | None = None,
) -> List[Dict[str, Any]]:
    current = await gateway.fetch_item(scene_id)
    if not current.tags:
        _log.info("scene %s has no tags; nothing to match", scene_id)
        return []
    catalog = await gateway.fetch_catalog()
    return [
        {
            "id": candidate.item.id,
            "label": candidate.item.display_label,
            "match_count": candidate.match_count,
            "matching_tags": [tag.name for tag in candidate.matching_tags],
        }
        for candidate in select_similar(current, catalog, sample_size, rng=rng)
    ]


async def preview(
    gateway: DataGateway,
    scene_id: str | int,
    *,
    mobile: bool = False,
    rng: random.Random | None = None,
) -> str:
    """Run one detection cycle against a skeleton scene page and return its HTML."""
    page = scene_page(scene_id, mobile=mobile)
    watcher = NavigationWatcher(
        page,
        gateway,
        renderer=PanelRenderer(page, rng=rng),
        signals=MergedSignal(),
    )
    task = watcher.reconcile()
    if task is not None:
        await task
    if watcher.last_error is not None:
        raise watcher.last_error
    _log.info("preview for scene=%s finished with panel=%s", scene_id, watcher.mount_state.value)
    return page.html()


async def _run(args: argparse.Namespace, gateway: DataGateway) -> str:
    rng = random.Random(args.seed) if args.seed is not None else None
    try:
        if args.command == "pick":
            picks = await pick(gateway, args.scene_id, sample_size=args.sample_size, rng=rng)
            return json.dumps(picks, indent=2)
        return await preview(gateway, args.scene_id, mobile=args.mobile, rng=rng)
    finally:
        await gateway.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="similar-scenes", description="Tag-overlap scene recommendations for Stash")
    sub = parser.add_subparsers(dest="command", required=True)

    pick_cmd = sub.add_parser("pick", help="Print a random sample of similar scenes as JSON")
    pick_cmd.add_argument("scene_id")
    pick_cmd.add_argument("--sample-size", type=int, default=SAMPLE_SIZE)
    pick_cmd.add_argument("--seed", type=int, default=None)

    preview_cmd = sub.add_parser("preview", help="Render the panel into a skeleton scene page")
    preview_cmd.add_argument("scene_id")
    preview_cmd.add_argument("--mobile", action="store_true", help="Render the tab variant")
    preview_cmd.add_argument("--seed", type=int, default=None)
    preview_cmd.add_argument("--output", "-o", default=None, help="Write HTML here instead of stdout")
    return parser


def main(argv: Sequence[str] | None = None, *, gateway: DataGateway | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level)
    gateway = gateway or build_gateway(settings)
    try:
        output = asyncio.run(_run(args, gateway))
    except GatewayError as exc:
        _log.error("could not read from Stash at %s: %s", settings.stash_url, exc)
        return 1
    if getattr(args, "output", None):
        with open(args.output, "w", encoding="utf-8") as fh:
            fh.write(output)
        _log.info("wrote %s", args.output)
    else:
        sys.stdout.write(output + "\n")
    return 0


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main())
