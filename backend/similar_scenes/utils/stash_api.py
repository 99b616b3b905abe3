from __future__ import annotations

import logging
from typing import Any, List

from pydantic import ValidationError

from similar_scenes.core.config import Settings
from similar_scenes.schemas.scene import CatalogFilter, Item
from similar_scenes.utils.graphql import (
    GraphQLTransport,
    HTTPGraphQLTransport,
    ItemNotFound,
    ProtocolError,
    StashInterfaceTransport,
    construct_stash_interface,
)
from similar_scenes.utils.url_helpers import dockerize_localhost

_log = logging.getLogger(__name__)

GET_SCENE_QUERY = """
query FindScene($id: ID!) {
    findScene(id: $id) {
        id
        title
        tags { id name }
    }
}
"""

FIND_SCENES_QUERY = """
query FindScenes($filter: FindFilterType) {
    findScenes(filter: $filter) {
        count
        scenes {
            id
            title
            files { basename }
            paths { screenshot preview }
            tags { id name }
        }
    }
}
"""


def _parse_item(payload: Any) -> Item:
    if not isinstance(payload, dict):
        raise ProtocolError("scene payload is not an object")
    try:
        return Item.from_payload(payload)
    except ValidationError as exc:
        raise ProtocolError(f"malformed scene payload: {exc.error_count()} error(s)") from exc


class DataGateway:
    """Read-only access to the current scene and the full scene catalog.

    Both reads are idempotent and safe to retry. Nothing is cached here; the
    caller keeps the catalog snapshot for the lifetime of one page visit.
    """

    def __init__(self, transport: GraphQLTransport) -> None:
        self.transport = transport

    async def fetch_item(self, item_id: str | int) -> Item:
        data = await self.transport.execute(GET_SCENE_QUERY, {"id": str(item_id)})
        scene = data.get("findScene")
        if scene is None:
            raise ItemNotFound(str(item_id))
        return _parse_item(scene)

    async def fetch_catalog(self, filter: CatalogFilter | None = None) -> List[Item]:
        find_filter = filter or CatalogFilter()
        data = await self.transport.execute(FIND_SCENES_QUERY, {"filter": find_filter.to_variables()})
        block = data.get("findScenes")
        if not isinstance(block, dict):
            raise ProtocolError("findScenes missing from response")
        scenes = block.get("scenes") or []
        items = [_parse_item(scene) for scene in scenes]
        count = block.get("count")
        if isinstance(count, int) and count != len(items) and find_filter.per_page < 0:
            _log.warning("catalog returned %d scenes but reported count=%d", len(items), count)
        _log.debug("fetched catalog of %d scenes", len(items))
        return items

    async def close(self) -> None:
        await self.transport.close()


def build_transport(cfg: Settings) -> GraphQLTransport:
    url = dockerize_localhost(cfg.stash_url, enabled=cfg.docker_mode) or cfg.stash_url
    if url != cfg.stash_url:
        _log.info("Stash client configured host=%s (effective=%s)", cfg.stash_url, url)
    if cfg.transport == "stashapi":
        return StashInterfaceTransport(construct_stash_interface(url, cfg.stash_api_key))
    return HTTPGraphQLTransport(url, api_key=cfg.stash_api_key, timeout=cfg.request_timeout)


def build_gateway(cfg: Settings) -> DataGateway:
    return DataGateway(build_transport(cfg))
