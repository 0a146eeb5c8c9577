"""
NIP Editor - Rule Classifier
Derives a canonical item descriptor (quality, type, name, set name) for a NIP line.

Explicit conditions ([quality]/[type]/[name] == X) are used when present.
Rules that only describe an item through its stat requirements are matched
against the taxonomy's ordered decision lists, first match wins:

    [quality] == unique && [type] == ring # [dexterity] >= 1 && [tohit] >= 1
        → unique / ring / "Raven Frost"

The result is a pure function of the line and the lookup tables, so it is
recomputed whenever a rule's line changes and never edited by hand.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from core.taxonomy import ALL_QUALITY, OTHER_TYPE, Taxonomy, normalize_item_key
from item_mappings import ItemMappings
from nip_parser import (
    StatRequirement,
    condition_values,
    has_all_stats,
    has_stat,
    parse_conditions,
    stat_signature_of,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleMeta:
    quality: str = ALL_QUALITY
    type: str = OTHER_TYPE
    name: str = ""
    set_name: str = ""
    raw_type: str = ""

    def display_key(self) -> str:
        """Sort key: name, falling back to raw type then normalized type."""
        return (self.name or self.raw_type or self.type or "").lower()

    def to_dict(self) -> dict:
        return {
            "quality": self.quality,
            "type": self.type,
            "name": self.name,
            "setName": self.set_name,
            "rawType": self.raw_type,
        }


class RuleClassifier:
    """
    Classifies NIP lines against a Taxonomy and the loaded ItemMappings.

    Usage:
        classifier = RuleClassifier(create_d2r_taxonomy())
        classifier.mappings = await loader.load()
        meta = classifier.classify("[name] == ring && [quality] == unique")
    """

    def __init__(self, taxonomy: Taxonomy, mappings: Optional[ItemMappings] = None):
        self.taxonomy = taxonomy
        self.mappings = mappings or ItemMappings()

    def classify(self, nip_line: str) -> RuleMeta:
        tx = self.taxonomy
        conditions = parse_conditions(nip_line)
        stats: Optional[List[StatRequirement]] = None

        def signature() -> List[StatRequirement]:
            nonlocal stats
            if stats is None:
                stats = stat_signature_of(nip_line)
            return stats

        names = condition_values(conditions, "name")
        types = condition_values(conditions, "type")
        qualities = condition_values(conditions, "quality")

        # 1. Quality: first '==' wins, else the last '<=' bound
        quality = ""
        if qualities:
            quality = tx.normalize_quality_group(qualities[0])
        else:
            for upper in condition_values(conditions, "quality", "<="):
                quality = tx.normalize_quality_group(upper)

        # 2. Type: several '==' values must collapse to one group
        item_type = ""
        raw_type = ""
        if types:
            groups = {tx.normalize_type_group(t) for t in types} - {""}
            item_type = groups.pop() if len(groups) == 1 else OTHER_TYPE
            raw_type = types[-1]

        # 3. Name
        name = names[0] if names else ""
        set_name = ""

        # 4. Charm bases force their charm sub-type
        name_key = normalize_item_key(name)
        if name and tx.is_charm_base(name_key):
            if quality == "unique" and name_key in tx.unique_charm_base_types:
                item_type = tx.unique_charm_base_types[name_key]
            else:
                item_type = tx.charm_base_types[name_key]

        # 5. Unique base → unique display name
        if quality == "unique" and name and not tx.is_charm_base(name_key):
            unique_name = self.mappings.unique_name_by_base.get(name_key)
            if unique_name:
                name = unique_name

        # 6. Set item / set base → set item + set name
        if quality == "set" and name:
            set_item = self.mappings.set_item_for(name)
            if set_item:
                name = set_item.item_name
                set_name = set_item.set_name

        # 7. Set ring/amulet from stats
        if quality == "set" and item_type in ("ring", "amulet") and (not name or not set_name):
            for rule in tx.set_accessory_rules:
                if rule.type == item_type and has_all_stats(signature(), rule.required_stats):
                    name = rule.item_name
                    set_name = rule.set_name
                    break

        # 8. Unique ring/amulet from stats
        if quality == "unique" and not name:
            if item_type == "ring":
                name = self._first_stat_match(tx.unique_ring_rules, signature())
            elif item_type == "amulet":
                name = self._first_stat_match(tx.unique_amulet_rules, signature())

        # 9. Unique charm from stats
        if quality == "unique" and item_type in tx.charm_inference_types:
            key = normalize_item_key(name)
            if not key or tx.is_charm_base(key):
                charm = self._detect_unique_charm(signature())
                if charm:
                    name = charm.name
                    item_type = charm.type or item_type

        # 10. Named unique charms carry their own type
        if quality == "unique" and name:
            mapped = tx.unique_charm_name_types.get(normalize_item_key(name))
            if mapped:
                item_type = mapped

        # 11. No explicit type: infer from the names
        if not item_type and names:
            mapped_types = set()
            for value in names:
                preferred = (tx.name_type_preferences.get(value.lower())
                             or self.mappings.item_type_by_name.get(normalize_item_key(value)))
                if preferred:
                    mapped_types.add(tx.normalize_type_group(preferred))
            item_type = mapped_types.pop() if len(mapped_types) == 1 else OTHER_TYPE

        return RuleMeta(
            quality=tx.normalize_quality_group(quality) or ALL_QUALITY,
            type=tx.normalize_type_group(item_type) or OTHER_TYPE,
            name=name or "",
            set_name=set_name or "",
            raw_type=raw_type or "",
        )

    @staticmethod
    def _first_stat_match(rules, stats: List[StatRequirement]) -> str:
        for rule in rules:
            if has_all_stats(stats, rule.required_stats):
                return rule.item_name
        return ""

    def _detect_unique_charm(self, stats: List[StatRequirement]):
        tx = self.taxonomy
        elemental = sum(1 for stat in tx.elemental_resists if has_stat(stats, stat))
        if elemental > 1:
            return tx.multi_resist_charm

        for rule in tx.resist_charm_rules:
            if has_stat(stats, rule.stat):
                return rule

        if tx.magic_find_charm and has_stat(stats, tx.magic_find_charm.stat):
            return tx.magic_find_charm
        return None
