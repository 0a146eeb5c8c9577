"""
NIP Editor - Facet Index & Filter Pipeline
Computes quality tabs, type facets and the visible rule list.

Inputs are the annotated rule collection and one FilterEngineState. The
selection scope (quality tab + type facet) and the filter chips are
evaluated independently and AND-ed together, except:
  - an active search ignores the scope (search is global) but still
    honours the chips;
  - the unidentified chip never excludes anything in the misc/base scopes.

Facet counts come from the scope alone (not the chips), so they describe
scope membership rather than the filtered output.

Nothing here mutates a Rule; build_view() only resets a vanished type facet
on the state it is given.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from config import QUALITY_ORDER_KEY, RECENT_FACET_LIMIT, TYPE_ORDER_KEY_PREFIX
from core.taxonomy import OTHER_TYPE, Taxonomy
from pickit_rules import (
    ETHEREAL_OFF,
    ETHEREAL_ON,
    Rule,
    ethereal_state,
    is_unidentified,
)
from stored_order import OrderStore, apply_stored_order

logger = logging.getLogger(__name__)

ALL = "All"
RECENT = "Recent"
FAVORITES = "favorites"

# Status chip: 0 all, 1 enabled only, 2 disabled only
STATUS_LABELS = ("All", "Enabled", "Disabled")
# Ethereal chip: 0 don't care, 1 required ethereal, 2 required non-ethereal
ETHEREAL_LABELS = ("Any", "Ethereal", "Non-ethereal")
# Unidentified chip: 0 don't care, 1 unidentified only, 2 identified only
UNIDENTIFIED_LABELS = ("Any", "Unidentified", "Identified")
# Rule sort: 0 file order (enabled first), 1 A→Z, 2 Z→A
RULE_SORT_LABELS = ("All", "A→Z", "Z→A")
# Type facet sort: 0 A→Z, 1 Z→A, 2 most rules, 3 fewest rules
TYPE_SORT_LABELS = ("A→Z", "Z→A", "Most", "Least")


@dataclass
class FilterEngineState:
    active_quality: str = ALL
    active_type: str = ALL
    favorites_mode: bool = False
    search_term: str = ""
    status_mode: int = 0
    ethereal_mode: int = 0
    unidentified_mode: int = 0
    favorites_only: bool = False
    show_comments: bool = True
    rule_sort_mode: int = 0
    type_sort_mode: int = 0

    def to_dict(self) -> dict:
        return {
            "activeQuality": self.active_quality,
            "activeType": self.active_type,
            "favoritesMode": self.favorites_mode,
            "searchTerm": self.search_term,
            "statusMode": self.status_mode,
            "statusLabel": STATUS_LABELS[self.status_mode],
            "etherealMode": self.ethereal_mode,
            "etherealLabel": ETHEREAL_LABELS[self.ethereal_mode],
            "unidentifiedMode": self.unidentified_mode,
            "unidentifiedLabel": UNIDENTIFIED_LABELS[self.unidentified_mode],
            "favoritesOnly": self.favorites_only,
            "showComments": self.show_comments,
            "ruleSortMode": self.rule_sort_mode,
            "ruleSortLabel": RULE_SORT_LABELS[self.rule_sort_mode],
            "typeSortMode": self.type_sort_mode,
            "typeSortLabel": TYPE_SORT_LABELS[self.type_sort_mode],
        }


# ─── State transitions ──────────────────────────

def cycle_status(state: FilterEngineState) -> int:
    state.status_mode = (state.status_mode + 1) % len(STATUS_LABELS)
    return state.status_mode


def cycle_ethereal(state: FilterEngineState) -> int:
    state.ethereal_mode = (state.ethereal_mode + 1) % len(ETHEREAL_LABELS)
    return state.ethereal_mode


def cycle_unidentified(state: FilterEngineState) -> int:
    state.unidentified_mode = (state.unidentified_mode + 1) % len(UNIDENTIFIED_LABELS)
    return state.unidentified_mode


def cycle_rule_sort(state: FilterEngineState) -> int:
    state.rule_sort_mode = (state.rule_sort_mode + 1) % len(RULE_SORT_LABELS)
    return state.rule_sort_mode


def cycle_type_sort(state: FilterEngineState) -> int:
    state.type_sort_mode = (state.type_sort_mode + 1) % len(TYPE_SORT_LABELS)
    return state.type_sort_mode


def reset_toggles(state: FilterEngineState):
    state.status_mode = 0
    state.ethereal_mode = 0
    state.unidentified_mode = 0
    state.favorites_only = False
    state.show_comments = True


def clear_search(state: FilterEngineState):
    state.search_term = ""


# ─── View model ─────────────────────────────────

@dataclass
class FacetEntry:
    key: str
    count: int
    label: str = ""
    active: bool = False
    recent: bool = False

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "count": self.count,
            "label": self.label,
            "active": self.active,
            "recent": self.recent,
        }


@dataclass
class FacetView:
    quality_tabs: List[FacetEntry] = field(default_factory=list)
    type_facets: List[FacetEntry] = field(default_factory=list)
    visible: List[Rule] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=dict)
    selection_label: str = ALL
    can_reorder: bool = False


def type_order_key(quality: str) -> str:
    return f"{TYPE_ORDER_KEY_PREFIX}{quality}"


class FilterPipeline:
    """
    Facet index + filter/sort pipeline over an annotated rule collection.

    Usage:
        pipeline = FilterPipeline(taxonomy, recent, favorites, OrderStore(store))
        view = pipeline.build_view(rules, state)
    """

    def __init__(self, taxonomy: Taxonomy, recent, favorites, order: OrderStore,
                 recent_limit: int = RECENT_FACET_LIMIT):
        self.taxonomy = taxonomy
        self.recent = recent
        self.favorites = favorites
        self.order = order
        self.recent_limit = recent_limit

    # ── Scope ────────────────────────────────────────────────

    def scope_contains(self, rule: Rule, quality: str) -> bool:
        """Quality-tab membership (the precursor collection for type facets)."""
        if quality == "misc":
            return rule.meta.type in self.taxonomy.misc_types
        if quality == "charm":
            return rule.meta.type in self.taxonomy.charm_types
        if quality in (ALL, FAVORITES):
            return True
        return rule.meta.quality == quality

    def facet_key(self, rule: Rule, quality: str) -> str:
        if quality == "set":
            return rule.meta.set_name or OTHER_TYPE
        key = rule.meta.type or OTHER_TYPE
        if quality == "unique" and key in self.taxonomy.unique_charm_group_types:
            return "charm"
        return key

    def recent_rules(self, rules: Sequence[Rule]) -> List[Rule]:
        return self.recent.recent(rules, self.recent_limit)

    def matches_selection(self, rule: Rule, state: FilterEngineState) -> bool:
        if state.search_term:
            return True
        quality = state.active_quality
        if state.active_type == RECENT:
            return rule.id in self.recent and self.scope_contains(rule, quality)
        if quality in ("misc", "charm"):
            if state.active_type != ALL:
                return rule.meta.type == state.active_type
            return self.scope_contains(rule, quality)
        if quality == "set":
            if rule.meta.quality != "set":
                return False
            return state.active_type == ALL or self.facet_key(rule, quality) == state.active_type
        if not self.scope_contains(rule, quality):
            return False
        if quality == "unique" and state.active_type == "charm":
            return rule.meta.type in self.taxonomy.unique_charm_group_types
        if state.active_type != ALL and rule.meta.type != state.active_type:
            return False
        return True

    # ── Chips ────────────────────────────────────────────────

    def matches_filters(self, rule: Rule, state: FilterEngineState) -> bool:
        if not self.matches_selection(rule, state):
            return False
        if state.status_mode == 1 and not rule.enabled:
            return False
        if state.status_mode == 2 and rule.enabled:
            return False
        if state.ethereal_mode:
            wanted = ETHEREAL_ON if state.ethereal_mode == 1 else ETHEREAL_OFF
            if ethereal_state(rule.nip_line) != wanted:
                return False
        if state.unidentified_mode and state.active_quality not in ("misc", "base"):
            unidentified = is_unidentified(rule.nip_line)
            if state.unidentified_mode == 1 and not unidentified:
                return False
            if state.unidentified_mode == 2 and unidentified:
                return False
        if state.favorites_only and rule.id not in self.favorites:
            return False
        if state.search_term and state.search_term.lower() not in rule.nip_line.lower():
            return False
        return True

    # ── Facets ───────────────────────────────────────────────

    def quality_tabs(self, rules: Sequence[Rule], state: FilterEngineState) -> List[FacetEntry]:
        tx = self.taxonomy
        present = {r.meta.quality for r in rules}
        keys = [q for q in tx.quality_order if q in tx.pinned_qualities or q in present]
        keys = apply_stored_order(keys, self.order.load(QUALITY_ORDER_KEY))

        tabs = []
        for key in keys:
            if key == FAVORITES:
                active = state.favorites_mode
                count = sum(1 for r in rules if r.id in self.favorites)
                label = "★"
            else:
                active = not state.favorites_mode and key == state.active_quality
                count = sum(1 for r in rules if self.scope_contains(r, key))
                label = tx.quality_label(key)
            tabs.append(FacetEntry(key=key, count=count, label=label, active=active))
        return tabs

    def type_facets(self, rules: Sequence[Rule], state: FilterEngineState) -> List[FacetEntry]:
        quality = state.active_quality
        source = [r for r in rules if self.scope_contains(r, quality)]
        if quality == "set":
            source = [r for r in source if r.meta.quality == "set"]

        counts: Dict[str, int] = {}
        for rule in source:
            key = self.facet_key(rule, quality)
            counts[key] = counts.get(key, 0) + 1

        mode = state.type_sort_mode
        if mode == 1:
            ordered = sorted(counts.items(), key=lambda kv: kv[0].lower(), reverse=True)
        elif mode == 2:
            ordered = sorted(counts.items(), key=lambda kv: -kv[1])
        elif mode == 3:
            ordered = sorted(counts.items(), key=lambda kv: kv[1])
        else:
            ordered = sorted(counts.items(), key=lambda kv: kv[0].lower())

        entries = [(ALL, len(source))] + ordered
        if mode == 0:
            entries = apply_stored_order(entries, self.order.load(type_order_key(quality)),
                                         key=lambda entry: entry[0])

        recent = [r for r in self.recent_rules(rules)
                  if (not state.favorites_mode or r.id in self.favorites)
                  and self.scope_contains(r, quality)]
        entries = [(RECENT, len(recent))] + entries

        facets = []
        for key, count in entries:
            facets.append(FacetEntry(
                key=key,
                count=count,
                label=self._facet_label(key, quality),
                active=key == state.active_type,
                recent=key == RECENT,
            ))
        return facets

    def _facet_label(self, key: str, quality: str) -> str:
        if key in (ALL, RECENT):
            return key
        if quality == "set":
            return key
        if quality == "charm" and key == "charm":
            return OTHER_TYPE
        return self.taxonomy.format_type_label(key)

    # ── Visible list ─────────────────────────────────────────

    def visible_rules(self, rules: Sequence[Rule], state: FilterEngineState) -> List[Rule]:
        if state.active_type == RECENT and not state.search_term:
            source = self.recent_rules(rules)
        else:
            source = list(rules)
        visible = [r for r in source if self.matches_filters(r, state)]

        if state.rule_sort_mode == 0 and state.status_mode == 0 and not state.search_term:
            index = {r.id: i for i, r in enumerate(rules)}
            visible.sort(key=lambda r: (not r.enabled, index.get(r.id, 0)))
        elif state.rule_sort_mode == 1:
            visible.sort(key=lambda r: r.meta.display_key())
        elif state.rule_sort_mode == 2:
            visible.sort(key=lambda r: r.meta.display_key(), reverse=True)
        return visible

    def summary(self, rules: Sequence[Rule], visible: Sequence[Rule],
                state: FilterEngineState) -> Dict[str, int]:
        """All / enabled / disabled counts over the current selection."""
        if state.search_term:
            selection = list(visible)
        elif state.active_type == RECENT:
            selection = [r for r in self.recent_rules(rules) if self.matches_selection(r, state)]
        else:
            selection = [r for r in rules if self.matches_selection(r, state)]
        if not state.search_term and state.favorites_only:
            selection = [r for r in selection if r.id in self.favorites]
        enabled = sum(1 for r in selection if r.enabled)
        return {"all": len(selection), "enabled": enabled, "disabled": len(selection) - enabled}

    def selection_label(self, state: FilterEngineState) -> str:
        tx = self.taxonomy
        quality_label = tx.quality_label(state.active_quality)
        if state.active_type in (ALL, RECENT):
            type_label = state.active_type
        elif state.active_quality == "charm" and state.active_type == "charm":
            type_label = OTHER_TYPE
        else:
            type_label = tx.format_type_label(state.active_type)

        if state.favorites_mode:
            return "Favorites" if type_label == ALL else f"Favorites > {type_label}"
        if quality_label == ALL and type_label == ALL:
            return ALL
        return f"{quality_label} > {type_label}"

    def can_reorder(self, rules: Sequence[Rule], visible: Sequence[Rule],
                    state: FilterEngineState) -> bool:
        if state.search_term or state.ethereal_mode or state.unidentified_mode:
            return False
        if state.favorites_mode or state.favorites_only:
            return len(visible) > 0
        return len(visible) > 0 and len(visible) == len(rules)

    def build_view(self, rules: Sequence[Rule], state: FilterEngineState) -> FacetView:
        """Recompute tabs, facets and the visible list in one pass."""
        quality_tabs = self.quality_tabs(rules, state)
        type_facets = self.type_facets(rules, state)
        if state.active_type not in {f.key for f in type_facets}:
            logger.debug(f"Type facet {state.active_type!r} gone, resetting to All")
            state.active_type = ALL
            for facet in type_facets:
                facet.active = facet.key == ALL

        visible = self.visible_rules(rules, state)
        return FacetView(
            quality_tabs=quality_tabs,
            type_facets=type_facets,
            visible=visible,
            summary=self.summary(rules, visible, state),
            selection_label=self.selection_label(state),
            can_reorder=self.can_reorder(rules, visible, state),
        )
