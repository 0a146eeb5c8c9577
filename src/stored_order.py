"""
NIP Editor - Stored Order
Manual re-ordering of tabs, facets and rules, persisted as key lists.
"""

import logging
from typing import Callable, List, Optional, Sequence

from kv_store import KeyValueStore, load_json, save_json

logger = logging.getLogger(__name__)


class OrderMismatchError(ValueError):
    """A dragged id order doesn't line up with the loaded collection."""


def apply_stored_order(candidates: Sequence, order: Optional[Sequence],
                       key: Optional[Callable] = None) -> List:
    """Stable-sort `candidates` by their position in `order`.

    Candidates missing from `order` keep their natural relative order and
    come after every known one.
    """
    if not order:
        return list(candidates)
    key = key or (lambda item: item)
    positions = {}
    for index, value in enumerate(order):
        positions.setdefault(value, index)
    unknown = len(positions)
    return sorted(candidates, key=lambda item: positions.get(key(item), unknown))


def merge_subset_order(all_ids: Sequence[str], ordered_ids: Sequence[str]) -> List[str]:
    """Fold a dragged subset back into the full id order.

    A full-length drag is taken as is. For a subset, the dragged ids fill the
    slots their subset occupied in `all_ids`; every other id keeps its place.
    """
    if len(ordered_ids) == len(all_ids):
        if set(ordered_ids) != set(all_ids):
            raise OrderMismatchError("reordered ids don't match the loaded rules")
        return list(ordered_ids)

    dragged = set(ordered_ids)
    slots = [i for i, rule_id in enumerate(all_ids) if rule_id in dragged]
    if len(slots) != len(ordered_ids):
        raise OrderMismatchError("selection mismatch")

    merged = list(all_ids)
    for slot, rule_id in zip(slots, ordered_ids):
        merged[slot] = rule_id
    return merged


class OrderStore:
    """Persisted key lists (quality tab order, type facet order per quality)."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    def load(self, key: str) -> Optional[List[str]]:
        return load_json(self._store, key, list)

    def save(self, key: str, order: Sequence[str]):
        order = [k for k in order if k]
        save_json(self._store, key, order)
        logger.debug(f"Saved order {key}: {order}")
