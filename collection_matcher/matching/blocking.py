"""
Blocking index over the right collection.

Restricts fuzzy comparison to records sharing a cheap block key, so comparing two
collections does not cost |left| x |right| similarity computations.

Blocking is a heuristic: two matching records whose block keys differ (e.g. a typo in
the very first letter of the title) are never compared.
"""

import math
from collections import defaultdict
from typing import Mapping, Sequence, Tuple

import attrs
from aletk.utils import get_logger

from collection_matcher.matching.comparator import ResolvedRecord
from collection_matcher.matching.models import BlockingStrategy, FieldSpec, MatchConfig
from collection_matcher.matching.normalization import first_character_block_key, is_blank


logger = get_logger(__name__)


type BlockKey = str | int

# Records without a usable blocking value; visited by every lookup
EMPTY_BLOCK_KEY: BlockKey = ""


def block_key(record: ResolvedRecord, spec: FieldSpec | None, strategy: BlockingStrategy) -> BlockKey:
    if spec is None:
        return EMPTY_BLOCK_KEY

    value = record.get(spec.name)
    if value is None or is_blank(value):
        return EMPTY_BLOCK_KEY

    if strategy == BlockingStrategy.NUMERIC_WINDOW:
        if isinstance(value, str) or not math.isfinite(value):
            return EMPTY_BLOCK_KEY
        return math.floor(value / spec.tolerance)

    return first_character_block_key(str(value))


@attrs.define(frozen=True, slots=True)
class RecordBlockIndex:
    """
    Right-collection records grouped by block key.

    Args:
        all_items: every indexed record, in input order
        blocks: block key -> records sharing it, in input order
        spec: field the keys are computed from (None: everything shares the empty block)
        strategy: how keys are computed
        cap: maximum number of candidates returned by ``lookup``
    """

    all_items: Tuple[ResolvedRecord, ...]
    blocks: Mapping[BlockKey, Tuple[ResolvedRecord, ...]]
    spec: FieldSpec | None
    strategy: BlockingStrategy
    cap: int

    def key_for(self, record: ResolvedRecord) -> BlockKey:
        return block_key(record, self.spec, self.strategy)

    def _neighbour_keys(self, key: BlockKey) -> Tuple[BlockKey, ...]:
        if self.strategy == BlockingStrategy.NUMERIC_WINDOW and isinstance(key, int):
            return (key - 1, key, key + 1)
        return (key,)

    def lookup(self, record: ResolvedRecord) -> list[ResolvedRecord]:
        """
        Candidates for ``record``: same-block records plus the empty block, in input order,
        capped at ``cap``. A record with an empty key is compared against every block.
        """
        key = self.key_for(record)
        if key == EMPTY_BLOCK_KEY:
            return list(self.all_items[: self.cap])

        candidates: list[ResolvedRecord] = []
        for neighbour in self._neighbour_keys(key):
            candidates.extend(self.blocks.get(neighbour, ()))
        candidates.extend(self.blocks.get(EMPTY_BLOCK_KEY, ()))
        candidates.sort(key=lambda item: item.position)
        return candidates[: self.cap]


def build_block_index(records: Sequence[ResolvedRecord], config: MatchConfig) -> RecordBlockIndex:
    """Build a RecordBlockIndex over ``records`` using the blocking field and strategy of ``config``."""
    spec = config.blocking_spec
    grouped: defaultdict[BlockKey, list[ResolvedRecord]] = defaultdict(list)
    for record in records:
        grouped[block_key(record, spec, config.blocking_strategy)].append(record)

    blocks = {key: tuple(items) for key, items in grouped.items()}
    logger.debug(
        f"Built block index: {len(records)} records in {len(blocks)} blocks "
        f"({len(blocks.get(EMPTY_BLOCK_KEY, ()))} in the empty block)"
    )

    return RecordBlockIndex(
        all_items=tuple(records),
        blocks=blocks,
        spec=spec,
        strategy=config.blocking_strategy,
        cap=config.blocking_candidate_cap,
    )
