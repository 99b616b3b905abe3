from __future__ import annotations

import logging
import random
from typing import List, Sequence

from similar_scenes.core.constants import MAX_MATCH, MIN_MATCH, SAMPLE_SIZE
from similar_scenes.schemas.scene import Item, ScoredCandidate, SelectionResult

_log = logging.getLogger(__name__)


def score_candidates(
    current: Item,
    catalog: Sequence[Item],
    *,
    min_match: int = MIN_MATCH,
    max_match: int = MAX_MATCH,
) -> List[ScoredCandidate]:
    """Return every catalog item whose tag overlap with ``current`` is in bounds.

    The current scene is excluded by id. Matching tags keep the candidate's
    own tag order. Catalog order is preserved in the result.
    """
    current_ids = current.tag_ids
    scored: List[ScoredCandidate] = []
    for candidate in catalog:
        if candidate.id == current.id:
            continue
        matching = tuple(tag for tag in candidate.tags if tag.id in current_ids)
        if min_match <= len(matching) <= max_match:
            scored.append(ScoredCandidate(item=candidate, matching_tags=matching))
    return scored


def select_similar(
    current: Item,
    catalog: Sequence[Item],
    sample_size: int = SAMPLE_SIZE,
    *,
    rng: random.Random | None = None,
    min_match: int = MIN_MATCH,
    max_match: int = MAX_MATCH,
) -> SelectionResult:
    """Draw a uniform random sample of qualifying candidates.

    The sample is taken without replacement and has length
    ``min(sample_size, qualifying)``. Passing a seeded ``rng`` makes the draw
    reproducible; the module-level generator is used otherwise.
    """
    pool = score_candidates(current, catalog, min_match=min_match, max_match=max_match)
    k = min(max(sample_size, 0), len(pool))
    source = rng if rng is not None else random
    picked = source.sample(pool, k)
    _log.debug(
        "selected %d of %d qualifying candidates for scene=%s (catalog=%d)",
        len(picked),
        len(pool),
        current.id,
        len(catalog),
    )
    return tuple(picked)
