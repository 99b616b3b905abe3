import asyncio
import pathlib
import sys
from typing import Any, Dict, Iterable, List

import pytest

# Ensure backend root (containing 'similar_scenes') is on sys.path
BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from similar_scenes.entrypoint import scene_page
from similar_scenes.utils.graphql import GraphQLTransport, TransportError
from similar_scenes.utils.stash_api import DataGateway


def scene_payload(
    scene_id: int,
    tag_ids: Iterable[int],
    *,
    title: str | None = None,
    basename: str | None = None,
    preview: bool = True,
) -> Dict[str, Any]:
    return {
        "id": str(scene_id),
        "title": title if title is not None else f"Scene {scene_id}",
        "files": [{"basename": basename or f"scene_{scene_id}.mp4"}],
        "paths": {
            "screenshot": f"/scene/{scene_id}/screenshot",
            "preview": f"/scene/{scene_id}/preview" if preview else None,
        },
        "tags": [{"id": str(t), "name": f"tag{t}"} for t in tag_ids],
    }


# Scene 1 is the usual "current" scene with tags {1, 2, 3}.
DEFAULT_CATALOG: List[Dict[str, Any]] = [
    scene_payload(1, [1, 2, 3]),
    scene_payload(2, [1, 2, 9]),
    scene_payload(3, [1]),
    scene_payload(4, [1, 2, 3, 8]),
    scene_payload(5, [2, 3]),
    scene_payload(6, [3, 1, 7]),
    scene_payload(7, []),
    scene_payload(8, [10, 11]),
]


class FakeTransport(GraphQLTransport):
    """In-memory Stash: answers FindScene / FindScenes from a payload list."""

    def __init__(self, scenes: Iterable[Dict[str, Any]] | None = None) -> None:
        self.scenes = {s["id"]: s for s in (scenes if scenes is not None else DEFAULT_CATALOG)}
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self.failures = 0
        self.gate: asyncio.Event | None = None
        self.closed = False

    async def execute(self, query, variables=None):
        variables = dict(variables or {})
        op = "findScene" if "findScene(" in query else "findScenes"
        self.calls.append((op, variables))
        if self.failures:
            self.failures -= 1
            raise TransportError("network-error: connection refused")
        if self.gate is not None:
            await self.gate.wait()
        if op == "findScene":
            return {"findScene": self.scenes.get(str(variables["id"]))}
        scenes = list(self.scenes.values())
        return {"findScenes": {"count": len(scenes), "scenes": scenes}}

    async def close(self):
        self.closed = True

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def gateway(transport):
    return DataGateway(transport)


@pytest.fixture
def desktop_page():
    return scene_page(1)


@pytest.fixture
def mobile_page():
    return scene_page(1, mobile=True)
