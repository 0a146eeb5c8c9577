"""
NIP Editor - Item Mappings
Lookup tables the classifier uses to turn item/base names into display names
and types.

Four backend endpoints feed the tables:
  /api/pickit/items            item taxonomy  → item_type_by_name, unique bases
  /api/pickit/item-types       alternate types → item_type_by_name (limited override)
  /api/pickit/set-mappings     setItems/baseItems → set_item_by_name/_by_base
  /api/pickit/unique-mappings  baseItems → unique_name_by_base

Each request may fail on its own; the tables are built from whatever arrived.
Loading is single-flight: the first caller starts the fetch, concurrent
callers await the same task, and the tables populate once until reset().
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from core.taxonomy import Taxonomy, normalize_item_key

logger = logging.getLogger(__name__)

# Existing entries of these types may be replaced by the alternate type mapping
_OVERRIDABLE_TYPES = ("unique", "set")


@dataclass
class SetItem:
    item_name: str     # "Telling of Beads"
    set_name: str      # "The Disciple"


@dataclass
class ItemMappings:
    """Normalized-key lookup tables (see normalize_item_key)."""
    item_type_by_name: Dict[str, str] = field(default_factory=dict)
    unique_name_by_base: Dict[str, str] = field(default_factory=dict)
    set_item_by_name: Dict[str, SetItem] = field(default_factory=dict)
    set_item_by_base: Dict[str, SetItem] = field(default_factory=dict)

    def add_item_type(self, value: str, item_type: str, allow_override: bool = False):
        """Map a name to a type; first write wins unless overriding unique/set entries."""
        if not value or not item_type:
            return
        key = normalize_item_key(value)
        existing = self.item_type_by_name.get(key)
        if existing is not None:
            if not allow_override or existing not in _OVERRIDABLE_TYPES:
                return
        self.item_type_by_name[key] = item_type

    def set_item_for(self, name: str) -> Optional[SetItem]:
        key = normalize_item_key(name)
        return self.set_item_by_name.get(key) or self.set_item_by_base.get(key)

    def __len__(self):
        return (len(self.item_type_by_name) + len(self.unique_name_by_base)
                + len(self.set_item_by_name) + len(self.set_item_by_base))


# ─── Table builders ─────────────────────────────

def _dict_or_empty(payload, label: str) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        logger.warning(f"ItemMappings: ignoring {label} payload of type {type(payload).__name__}")
        return {}
    return payload


def build_item_mappings(items=None, item_types=None, set_mapping=None,
                        unique_mapping=None, taxonomy: Optional[Taxonomy] = None) -> ItemMappings:
    """Build ItemMappings from the four backend payloads (any may be None)."""
    mappings = ItemMappings()
    unique_candidates: Dict[str, set] = {}

    if items is not None and not isinstance(items, list):
        logger.warning(f"ItemMappings: ignoring items payload of type {type(items).__name__}")
        items = None

    for item in items or []:
        if not isinstance(item, dict):
            continue
        item_type = item.get("type") or ""
        if not item_type:
            continue
        mappings.add_item_type(item.get("nipName"), item_type)
        mappings.add_item_type(item.get("internalName"), item_type)
        mappings.add_item_type(item.get("name"), item_type)
        base_item = item.get("baseItem")
        if item_type not in _OVERRIDABLE_TYPES:
            mappings.add_item_type(base_item, item_type)
        if item_type == "unique" and base_item and item.get("name"):
            unique_candidates.setdefault(normalize_item_key(base_item), set()).add(item["name"])

    for key, value in _dict_or_empty(item_types, "item-types").items():
        if not isinstance(value, str):
            continue
        mappings.add_item_type(key, value, allow_override=True)

    set_mapping = _dict_or_empty(set_mapping, "set-mappings")
    for source, target in (("setItems", mappings.set_item_by_name),
                           ("baseItems", mappings.set_item_by_base)):
        for key, value in _dict_or_empty(set_mapping.get(source), f"set-mappings {source}").items():
            if isinstance(value, dict) and value.get("setName") and value.get("itemName"):
                target[normalize_item_key(key)] = SetItem(
                    item_name=value["itemName"], set_name=value["setName"],
                )

    unique_mapping = _dict_or_empty(unique_mapping, "unique-mappings")
    for key, value in _dict_or_empty(unique_mapping.get("baseItems"), "unique-mappings baseItems").items():
        if isinstance(value, dict) and value.get("itemName"):
            mappings.unique_name_by_base[normalize_item_key(key)] = value["itemName"]

    # A base with exactly one known unique names that unique
    for base_key, names in unique_candidates.items():
        if len(names) == 1 and base_key not in mappings.unique_name_by_base:
            mappings.unique_name_by_base[base_key] = next(iter(names))

    if taxonomy is not None:
        for alias, source in taxonomy.name_aliases.items():
            source_key = normalize_item_key(source)
            if source_key in mappings.item_type_by_name:
                mappings.item_type_by_name[normalize_item_key(alias)] = \
                    mappings.item_type_by_name[source_key]

    return mappings


# ─── Single-flight loader ───────────────────────

class ItemMappingsLoader:
    """
    Lazily fetches and builds ItemMappings exactly once.

    Usage:
        loader = ItemMappingsLoader(client, taxonomy)
        mappings = await loader.load()   # concurrent callers share one fetch
    """

    def __init__(self, client, taxonomy: Taxonomy):
        self._client = client
        self._taxonomy = taxonomy
        self._task: Optional[asyncio.Future] = None
        self.mappings = ItemMappings()

    @property
    def loaded(self) -> bool:
        return self._task is not None and self._task.done()

    async def load(self) -> ItemMappings:
        if self._task is None:
            self._task = asyncio.ensure_future(self._populate())
        task = self._task
        try:
            return await task
        except Exception:
            # A failed build is not cached; the next load() fetches again
            if self._task is task:
                self._task = None
            raise

    def reset(self):
        """Forget the loaded tables; the next load() fetches again."""
        self._task = None
        self.mappings = ItemMappings()

    async def _fetch(self, label: str, fn):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except Exception as e:
            logger.warning(f"ItemMappings: {label} request failed: {e}")
            return None

    async def _populate(self) -> ItemMappings:
        items, item_types, set_mapping, unique_mapping = await asyncio.gather(
            self._fetch("items", self._client.load_items),
            self._fetch("item-types", self._client.load_item_types),
            self._fetch("set-mappings", self._client.load_set_mappings),
            self._fetch("unique-mappings", self._client.load_unique_mappings),
        )
        self.mappings = build_item_mappings(
            items, item_types, set_mapping, unique_mapping, taxonomy=self._taxonomy,
        )
        logger.info(
            f"ItemMappings: {len(self.mappings.item_type_by_name)} item types, "
            f"{len(self.mappings.unique_name_by_base)} unique bases, "
            f"{len(self.mappings.set_item_by_name)} set items"
        )
        return self.mappings
