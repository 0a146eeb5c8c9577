"""Tests for filter_engine.py — quality tabs, type facets, filter chips and sorting."""

import pytest

from config import QUALITY_ORDER_KEY
from filter_engine import (
    FilterEngineState,
    cycle_ethereal,
    cycle_rule_sort,
    cycle_status,
    cycle_type_sort,
    cycle_unidentified,
    reset_toggles,
    type_order_key,
)


def _ids(rules):
    return [r.id for r in rules]


def _facets(pipeline, rules, **state):
    return {f.key: f.count for f in pipeline.type_facets(rules, FilterEngineState(**state))}


# ── State transitions ────────────────────────────────────

def test_status_cycles_back_to_all():
    state = FilterEngineState()
    assert [cycle_status(state) for _ in range(3)] == [1, 2, 0]


def test_other_cycles():
    state = FilterEngineState()
    assert [cycle_ethereal(state) for _ in range(3)] == [1, 2, 0]
    assert [cycle_unidentified(state) for _ in range(3)] == [1, 2, 0]
    assert [cycle_rule_sort(state) for _ in range(3)] == [1, 2, 0]
    assert [cycle_type_sort(state) for _ in range(4)] == [1, 2, 3, 0]


def test_reset_toggles():
    state = FilterEngineState(status_mode=2, ethereal_mode=1, unidentified_mode=1,
                              favorites_only=True, show_comments=False, search_term="x")
    reset_toggles(state)
    assert (state.status_mode, state.ethereal_mode, state.unidentified_mode) == (0, 0, 0)
    assert state.favorites_only is False
    assert state.show_comments is True
    assert state.search_term == "x"


# ── Quality tabs ─────────────────────────────────────────

def test_quality_tabs_canonical_order(pipeline, sample_rules):
    tabs = pipeline.quality_tabs(sample_rules, FilterEngineState())
    assert [t.key for t in tabs] == [
        "All", "magic", "rare", "set", "unique", "charm", "misc", "favorites",
    ]
    counts = {t.key: t.count for t in tabs}
    assert counts == {
        "All": 8, "magic": 2, "rare": 2, "set": 1, "unique": 2,
        "charm": 2, "misc": 1, "favorites": 0,
    }
    assert [t.key for t in tabs if t.active] == ["All"]


def test_quality_tabs_stored_order(pipeline, order_store, sample_rules):
    order_store.save(QUALITY_ORDER_KEY, ["misc", "All"])
    tabs = pipeline.quality_tabs(sample_rules, FilterEngineState())
    assert [t.key for t in tabs][:3] == ["misc", "All", "magic"]


def test_quality_tabs_favorites_mode(pipeline, favorites, sample_rules):
    favorites.add("r2")
    tabs = pipeline.quality_tabs(sample_rules, FilterEngineState(favorites_mode=True))
    active = [t for t in tabs if t.active]
    assert [t.key for t in active] == ["favorites"]
    assert active[0].count == 1


# ── Type facets ──────────────────────────────────────────

def test_type_facets_all_scope(pipeline, sample_rules):
    facets = pipeline.type_facets(sample_rules, FilterEngineState())
    assert [f.key for f in facets] == [
        "Recent", "All", "amazonweapon", "amulet", "grandcharm", "ring", "rune", "sunder",
    ]
    assert facets[0].recent is True
    assert {f.key: f.count for f in facets}["ring"] == 3


@pytest.mark.parametrize("quality", ["All", "magic", "rare", "set", "unique", "charm", "misc"])
def test_facet_count_invariant(pipeline, sample_rules, quality):
    counts = _facets(pipeline, sample_rules, active_quality=quality)
    scope_size = sum(1 for r in sample_rules if pipeline.scope_contains(r, quality))
    assert counts["All"] == scope_size
    assert sum(v for k, v in counts.items() if k not in ("All", "Recent")) == scope_size


def test_unique_scope_folds_charms(pipeline, sample_rules):
    counts = _facets(pipeline, sample_rules, active_quality="unique")
    assert counts == {"Recent": 0, "All": 2, "charm": 1, "ring": 1}


def test_set_scope_groups_by_set_name(pipeline, sample_rules):
    counts = _facets(pipeline, sample_rules, active_quality="set")
    assert counts == {"Recent": 0, "All": 1, "The Disciple": 1}


def test_type_sort_modes(pipeline, sample_rules):
    keys = lambda mode: [f.key for f in pipeline.type_facets(
        sample_rules, FilterEngineState(type_sort_mode=mode))]
    assert keys(1)[:3] == ["Recent", "All", "sunder"]
    assert keys(2)[:3] == ["Recent", "All", "ring"]
    assert keys(3)[-1] == "ring"


def test_type_facets_stored_order_only_in_a_to_z(pipeline, order_store, sample_rules):
    order_store.save(type_order_key("All"), ["rune", "All"])
    keys = [f.key for f in pipeline.type_facets(sample_rules, FilterEngineState())]
    assert keys[:4] == ["Recent", "rune", "All", "amazonweapon"]
    keys = [f.key for f in pipeline.type_facets(sample_rules, FilterEngineState(type_sort_mode=1))]
    assert keys[:3] == ["Recent", "All", "sunder"]


def test_recent_facet_respects_scope(pipeline, recent, sample_rules):
    recent.touch("r1")
    assert _facets(pipeline, sample_rules, active_quality="unique")["Recent"] == 1
    assert _facets(pipeline, sample_rules, active_quality="set")["Recent"] == 0


def test_facet_labels(pipeline, sample_rules):
    facets = pipeline.type_facets(sample_rules, FilterEngineState(active_quality="charm"))
    labels = {f.key: f.label for f in facets}
    assert labels["sunder"] == "Sunder"
    assert labels["grandcharm"] == "Grand Charm"


# ── Filter chips ─────────────────────────────────────────

def test_status_filter(pipeline, sample_rules):
    enabled = pipeline.visible_rules(sample_rules, FilterEngineState(status_mode=1))
    assert "r6" not in _ids(enabled)
    assert len(enabled) == 7
    disabled = pipeline.visible_rules(sample_rules, FilterEngineState(status_mode=2))
    assert _ids(disabled) == ["r6"]


def test_search_is_global(pipeline, sample_rules):
    state = FilterEngineState(active_quality="set", search_term="tohit")
    assert _ids(pipeline.visible_rules(sample_rules, state)) == ["r1"]

    expected = None
    for quality in ("All", "magic", "rare", "set", "unique", "charm", "misc"):
        state = FilterEngineState(active_quality=quality, search_term="RING")
        found = set(_ids(pipeline.visible_rules(sample_rules, state)))
        expected = expected or found
        assert found == expected == {"r1", "r6", "r8"}


def test_search_honours_chips(pipeline, sample_rules):
    state = FilterEngineState(search_term="ring", status_mode=2)
    assert _ids(pipeline.visible_rules(sample_rules, state)) == ["r6"]


def test_ethereal_filter(pipeline, sample_rules):
    assert _ids(pipeline.visible_rules(sample_rules, FilterEngineState(ethereal_mode=1))) == ["r5"]
    assert pipeline.visible_rules(sample_rules, FilterEngineState(ethereal_mode=2)) == []


def test_unidentified_filter(pipeline, sample_rules):
    state = FilterEngineState(unidentified_mode=1)
    assert _ids(pipeline.visible_rules(sample_rules, state)) == ["r4", "r8"]
    state = FilterEngineState(unidentified_mode=2)
    assert "r8" not in _ids(pipeline.visible_rules(sample_rules, state))


def test_unidentified_filter_suppressed_in_misc(pipeline, sample_rules):
    state = FilterEngineState(active_quality="misc", unidentified_mode=2)
    assert _ids(pipeline.visible_rules(sample_rules, state)) == ["r4"]


def test_unidentified_filter_suppressed_in_base(pipeline, make_rule):
    rules = [
        make_rule("b1", "[name] == monarch && [quality] == normal # [sockets] == 4"),
        make_rule("b2", "[name] == monarch && [quality] == superior"),
        make_rule("b3", "[type] == ring && [quality] == rare"),
    ]
    for mode in (1, 2):
        state = FilterEngineState(active_quality="base", unidentified_mode=mode)
        assert _ids(pipeline.visible_rules(rules, state)) == ["b1", "b2"]


def test_favorites_only(pipeline, favorites, sample_rules):
    favorites.add("r2")
    state = FilterEngineState(favorites_only=True)
    assert _ids(pipeline.visible_rules(sample_rules, state)) == ["r2"]


def test_type_selection(pipeline, sample_rules):
    state = FilterEngineState(active_quality="unique", active_type="charm")
    assert _ids(pipeline.visible_rules(sample_rules, state)) == ["r3"]
    state = FilterEngineState(active_quality="charm", active_type="grandcharm")
    assert _ids(pipeline.visible_rules(sample_rules, state)) == ["r7"]
    state = FilterEngineState(active_quality="set", active_type="The Disciple")
    assert _ids(pipeline.visible_rules(sample_rules, state)) == ["r2"]


def test_recent_selection(pipeline, recent, sample_rules):
    recent.touch("r8")
    recent.touch("r1")
    state = FilterEngineState(active_type="Recent")
    assert set(_ids(pipeline.visible_rules(sample_rules, state))) == {"r1", "r8"}
    state = FilterEngineState(active_quality="unique", active_type="Recent")
    assert _ids(pipeline.visible_rules(sample_rules, state)) == ["r1"]


# ── Sorting ──────────────────────────────────────────────

def test_original_order_puts_enabled_first(pipeline, sample_rules):
    visible = pipeline.visible_rules(sample_rules, FilterEngineState())
    assert _ids(visible) == ["r1", "r2", "r3", "r4", "r5", "r7", "r8", "r6"]


def test_name_sort(pipeline, sample_rules):
    visible = pipeline.visible_rules(sample_rules, FilterEngineState(rule_sort_mode=1))
    assert _ids(visible) == ["r5", "r7", "r1", "r6", "r8", "r4", "r3", "r2"]
    visible = pipeline.visible_rules(sample_rules, FilterEngineState(rule_sort_mode=2))
    assert _ids(visible)[0] == "r2"


# ── Summary, label, reorder, view ────────────────────────

def test_summary(pipeline, sample_rules):
    state = FilterEngineState()
    visible = pipeline.visible_rules(sample_rules, state)
    assert pipeline.summary(sample_rules, visible, state) == {"all": 8, "enabled": 7, "disabled": 1}

    state = FilterEngineState(active_quality="magic", status_mode=1)
    visible = pipeline.visible_rules(sample_rules, state)
    assert _ids(visible) == ["r7"]
    assert pipeline.summary(sample_rules, visible, state) == {"all": 2, "enabled": 1, "disabled": 1}


@pytest.mark.parametrize("state,label", [
    (FilterEngineState(), "All"),
    (FilterEngineState(active_quality="unique", active_type="ring"), "Unique > Ring"),
    (FilterEngineState(active_quality="charm", active_type="charm"), "Charm > Other"),
    (FilterEngineState(favorites_mode=True), "Favorites"),
    (FilterEngineState(favorites_mode=True, active_type="charm"), "Favorites > Charm"),
    (FilterEngineState(active_type="Recent"), "All > Recent"),
])
def test_selection_label(pipeline, state, label):
    assert pipeline.selection_label(state) == label


def test_can_reorder(pipeline, favorites, sample_rules):
    def can(**kwargs):
        state = FilterEngineState(**kwargs)
        visible = pipeline.visible_rules(sample_rules, state)
        return pipeline.can_reorder(sample_rules, visible, state)

    assert can() is True
    assert can(search_term="ring") is False
    assert can(active_quality="unique") is False
    assert can(ethereal_mode=1) is False
    assert can(favorites_only=True) is False
    favorites.add("r2")
    assert can(favorites_only=True) is True


def test_build_view_resets_vanished_facet(pipeline, sample_rules):
    state = FilterEngineState(active_quality="set", active_type="ring")
    view = pipeline.build_view(sample_rules, state)
    assert state.active_type == "All"
    assert [f.key for f in view.type_facets if f.active] == ["All"]
    assert _ids(view.visible) == ["r2"]
    assert view.selection_label == "Set > All"


def test_build_view_does_not_mutate_rules(pipeline, sample_rules):
    before = [(r.nip_line, r.enabled, r.meta) for r in sample_rules]
    pipeline.build_view(sample_rules, FilterEngineState(rule_sort_mode=2, search_term="ring"))
    assert [(r.nip_line, r.enabled, r.meta) for r in sample_rules] == before
