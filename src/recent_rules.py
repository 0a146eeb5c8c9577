"""
NIP Editor - Recent Rules & Favorites
Bounded most-recently-touched tracker and the favorites set.

Both stores are loaded once at construction and persisted on every change.
"""

import logging
import time
from typing import Callable, Dict, Iterable, List, Optional

from config import FAVORITES_STORAGE_KEY, RECENT_RULES_LIMIT, RECENT_STORAGE_KEY
from kv_store import KeyValueStore, load_json, save_json

logger = logging.getLogger(__name__)


class RecentRules:
    """rule_id → last-touched timestamp, capped at `capacity` entries."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time,
                 capacity: int = RECENT_RULES_LIMIT, key: str = RECENT_STORAGE_KEY):
        self._store = store
        self._clock = clock
        self._key = key
        self.capacity = capacity
        self._touched: Dict[str, float] = self._load()

    def _load(self) -> Dict[str, float]:
        parsed = load_json(self._store, self._key, dict) or {}
        touched = {}
        for rule_id, ts in parsed.items():
            try:
                touched[str(rule_id)] = float(ts)
            except (TypeError, ValueError):
                touched[str(rule_id)] = 0.0
        return touched

    def _save(self):
        save_json(self._store, self._key, self._touched)

    def __len__(self):
        return len(self._touched)

    def __contains__(self, rule_id) -> bool:
        return rule_id in self._touched

    def timestamp(self, rule_id: str) -> float:
        return self._touched.get(rule_id, 0.0)

    def touch(self, rule_id: str):
        """Record now for rule_id; evict the oldest entries beyond capacity."""
        if not rule_id:
            return
        self._touched[rule_id] = self._clock()
        if len(self._touched) > self.capacity:
            newest = sorted(self._touched.items(), key=lambda kv: kv[1], reverse=True)
            evicted = len(newest) - self.capacity
            self._touched = dict(newest[:self.capacity])
            logger.debug(f"Recent rules: evicted {evicted} oldest entries")
        self._save()

    def forget(self, rule_id: str):
        if self._touched.pop(rule_id, None) is not None:
            self._save()

    def recent(self, rules: Iterable, limit: Optional[int] = None) -> List:
        """Rules with a recorded touch, newest first, truncated to `limit`."""
        entries = [(rule, self.timestamp(rule.id)) for rule in rules]
        entries = [e for e in entries if e[1] > 0]
        entries.sort(key=lambda e: e[1], reverse=True)
        if limit is not None:
            entries = entries[:limit]
        return [rule for rule, _ in entries]


class Favorites:
    """Unordered set of favorite rule ids."""

    def __init__(self, store: KeyValueStore, key: str = FAVORITES_STORAGE_KEY):
        self._store = store
        self._key = key
        self._ids = {str(v) for v in (load_json(store, key, list) or [])}

    def _save(self):
        save_json(self._store, self._key, sorted(self._ids))

    def __contains__(self, rule_id) -> bool:
        return rule_id in self._ids

    def __len__(self):
        return len(self._ids)

    def add(self, rule_id: str):
        self._ids.add(rule_id)
        self._save()

    def remove(self, rule_id: str):
        self._ids.discard(rule_id)
        self._save()

    def toggle(self, rule_id: str) -> bool:
        """Flip membership; returns True when the rule is now a favorite."""
        if rule_id in self._ids:
            self.remove(rule_id)
            return False
        self.add(rule_id)
        return True
