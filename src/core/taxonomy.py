"""
Taxonomy — game-specific item tables used by the rule classifier.

Every game-specific value the classifier and the facet pipeline need is a
field here. Consumers create a Taxonomy (via a game factory like
create_d2r_taxonomy) and pass it to RuleClassifier and FilterPipeline.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

OTHER_TYPE = "Other"
ALL_QUALITY = "all"

_ITEM_KEY_STRIP = re.compile(r"[\s'\-]")


def normalize_item_key(value) -> str:
    """Case-fold and drop spaces, apostrophes and hyphens: "Gheed's Fortune" → "gheedsfortune"."""
    if value is None:
        return ""
    return _ITEM_KEY_STRIP.sub("", str(value).lower())


@dataclass(frozen=True)
class StatNameRule:
    """Stat-presence rule: all `required_stats` present ⇒ `item_name`."""
    required_stats: Tuple[str, ...]
    item_name: str


@dataclass(frozen=True)
class SetAccessoryRule:
    type: str                     # "ring" or "amulet"
    required_stats: Tuple[str, ...]
    item_name: str
    set_name: str


@dataclass(frozen=True)
class CharmRule:
    stat: str                     # "lightresist"
    name: str                     # "The Crack of the Heavens"
    type: str                     # "sunder"


@dataclass
class Taxonomy:
    """Complete item tables for one game's pickit rules."""

    # ── Identity ────────────────────────────────────────────
    game_id: str                          # e.g. "d2r"

    # ── Quality ─────────────────────────────────────────────
    quality_labels: Dict[str, str] = field(default_factory=dict)
    quality_groups: Dict[str, str] = field(default_factory=dict)   # normal/superior → base
    quality_order: Tuple[str, ...] = ()                            # canonical tab order
    pinned_qualities: FrozenSet[str] = field(default_factory=frozenset)

    # ── Types ───────────────────────────────────────────────
    type_groups: Dict[str, str] = field(default_factory=dict)      # bow → amazonweapon
    type_labels: Dict[str, str] = field(default_factory=dict)
    misc_types: FrozenSet[str] = field(default_factory=frozenset)
    charm_types: FrozenSet[str] = field(default_factory=frozenset)
    unique_charm_group_types: FrozenSet[str] = field(default_factory=frozenset)

    # ── Name-driven type inference ──────────────────────────
    charm_base_types: Dict[str, str] = field(default_factory=dict)         # grandcharm → grandcharm
    unique_charm_base_types: Dict[str, str] = field(default_factory=dict)  # smallcharm → annihilus
    unique_charm_name_types: Dict[str, str] = field(default_factory=dict)  # gheedsfortune → gheeds
    name_type_preferences: Dict[str, str] = field(default_factory=dict)    # gold → misc
    name_aliases: Dict[str, str] = field(default_factory=dict)             # alias → source name

    # ── Stat-signature heuristics ───────────────────────────
    set_accessory_rules: List[SetAccessoryRule] = field(default_factory=list)
    unique_ring_rules: List[StatNameRule] = field(default_factory=list)
    unique_amulet_rules: List[StatNameRule] = field(default_factory=list)
    charm_inference_types: FrozenSet[str] = field(default_factory=frozenset)
    elemental_resists: Tuple[str, ...] = ()
    multi_resist_charm: Optional[CharmRule] = None
    resist_charm_rules: List[CharmRule] = field(default_factory=list)   # priority order
    magic_find_charm: Optional[CharmRule] = None

    # ── Normalizers ─────────────────────────────────────────

    def normalize_type_group(self, type_name: str) -> str:
        if not type_name:
            return ""
        if type_name == OTHER_TYPE:
            return OTHER_TYPE
        normalized = type_name.lower()
        return self.type_groups.get(normalized, normalized)

    def normalize_quality_group(self, quality_name: str) -> str:
        if not quality_name:
            return ""
        normalized = quality_name.lower()
        return self.quality_groups.get(normalized, normalized)

    def is_charm_base(self, name_key: str) -> bool:
        return name_key in self.charm_base_types

    def format_type_label(self, type_name: str) -> str:
        """Display label for a type key: overrides first, else capitalised."""
        trimmed = str(type_name or "").strip()
        if not trimmed:
            return ""
        override = self.type_labels.get(trimmed.lower())
        if override:
            return override
        if "a" <= trimmed[0] <= "z":
            return trimmed[0].upper() + trimmed[1:]
        return trimmed

    def quality_label(self, quality: str) -> str:
        if quality == "All":
            return "All"
        return self.quality_labels.get(quality) or self.format_type_label(quality)
