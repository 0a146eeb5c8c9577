"""
pickit_editor.py — One editing session over a pickit folder.

PickitEditor owns the loaded rule collection, the FilterEngineState, the
facet pipeline and the local side stores (recency, favorites, tab order).
Every user action mutates state synchronously, then rebuilds the view;
backend calls run in the default executor and are awaited by the caller.

Rule edits are optimistic: the line changes in memory first, is written to
the backend, and is restored (meta re-classified) if the write fails.
"""

import asyncio
import functools
import logging
import time
from collections import deque
from typing import Callable, Dict, List, Optional, Sequence

from config import PICKIT_FILE_EXTENSION, PICKIT_PATH_KEY, QUALITY_ORDER_KEY
from core.editor_config import EditorConfig
from core.taxonomy import Taxonomy
from filter_engine import (
    ALL,
    FAVORITES,
    FacetView,
    FilterEngineState,
    FilterPipeline,
    cycle_ethereal,
    cycle_rule_sort,
    cycle_status,
    cycle_type_sort,
    cycle_unidentified,
    reset_toggles,
    type_order_key,
)
from item_mappings import ItemMappingsLoader
from kv_store import JsonFileStore, KeyValueStore
from nip_parser import COMMENT_MARKER, strip_leading_comment
from pickit_client import PickitClient, PickitClientError
from pickit_rules import (
    Rule,
    clean_comment,
    display_line,
    encode_line,
    ethereal_state,
    is_unidentified,
    normalize_rule,
    replace_value,
    rule_comment,
    toggle_ethereal_in_line,
    tokenize_numbers,
    with_comment,
)
from recent_rules import Favorites, RecentRules
from rule_classifier import RuleClassifier
from stored_order import OrderMismatchError, OrderStore, merge_subset_order

logger = logging.getLogger(__name__)


class EditorError(ValueError):
    """Invalid user input for an editor action."""


class RuleNotFoundError(EditorError):
    pass


class PickitEditor:
    """
    Usage:
        editor = PickitEditor.from_config(EditorConfig(), create_d2r_taxonomy())
        await editor.set_folder("C:/bot/config/pickit")
        await editor.toggle_rule(rule_id)
        view = editor.snapshot()
    """

    def __init__(self, client: PickitClient, taxonomy: Taxonomy, store: KeyValueStore,
                 clock: Callable[[], float] = time.time,
                 recent_limit: int = 200, recent_facet_limit: int = 50,
                 notice_buffer_size: int = 50, default_folder: str = ""):
        self.client = client
        self.taxonomy = taxonomy
        self.store = store
        self.classifier = RuleClassifier(taxonomy)
        self.loader = ItemMappingsLoader(client, taxonomy)
        self.recent = RecentRules(store, clock=clock, capacity=recent_limit)
        self.favorites = Favorites(store)
        self.order = OrderStore(store)
        self.pipeline = FilterPipeline(taxonomy, self.recent, self.favorites, self.order,
                                       recent_limit=recent_facet_limit)
        self.state = FilterEngineState()

        self.rules: List[Rule] = []
        self._by_id: Dict[str, Rule] = {}
        self.folder = store.get(PICKIT_PATH_KEY) or default_folder
        self.files: List[str] = []
        self.current_file = ""
        self.notices = deque(maxlen=notice_buffer_size)
        self.view = FacetView()

    @classmethod
    def from_config(cls, cfg: EditorConfig, taxonomy: Taxonomy) -> "PickitEditor":
        client = PickitClient(cfg.backend_url, timeout=cfg.http_timeout)
        return cls(
            client, taxonomy, JsonFileStore(cfg.state_file),
            recent_limit=cfg.recent_limit,
            recent_facet_limit=cfg.recent_facet_limit,
            notice_buffer_size=cfg.notice_buffer_size,
            default_folder=cfg.default_folder,
        )

    # ─── Plumbing ───────────────────────────────────────────

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args))

    def notify(self, message: str, level: int = logging.INFO):
        self.notices.append({"time": time.time(), "message": message})
        logger.log(level, message)

    def refresh(self) -> FacetView:
        self.view = self.pipeline.build_view(self.rules, self.state)
        return self.view

    def _rule(self, rule_id: str) -> Rule:
        rule = self._by_id.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(f"Unknown rule: {rule_id}")
        return rule

    def _set_line(self, rule: Rule, nip_line: str, enabled: bool, comment: str):
        rule.nip_line = nip_line
        rule.enabled = enabled
        rule.comment = comment
        rule.meta = self.classifier.classify(nip_line)

    def _require_file(self):
        if not self.folder:
            raise EditorError("Please select a Pickit folder first.")
        if not self.current_file:
            raise EditorError("Please load a Pickit file first.")

    # ─── Files ──────────────────────────────────────────────

    async def set_folder(self, path: str) -> List[str]:
        """Switch folders once the backend has listed the new one."""
        path = (path or "").strip()
        if not path:
            raise EditorError("Please enter a Pickit path.")
        names = await self._list_files(path)
        if names is None:
            return self.files

        self.folder = path
        self.store.set(PICKIT_PATH_KEY, path)
        self.current_file = ""
        self.files = []
        self.rules = []
        self._by_id = {}
        self.refresh()
        return await self._use_file_list(names, auto_load=True)

    async def _list_files(self, path: str) -> Optional[List[str]]:
        try:
            return await self._run(self.client.list_files, path)
        except PickitClientError as e:
            self.notify(f"Failed to load file list: {e}", logging.WARNING)
            return None

    async def load_file_list(self, auto_load: bool = True) -> List[str]:
        """Refresh the file list; loads the first file when none is loaded."""
        if not self.folder:
            raise EditorError("Please select a Pickit folder first.")
        names = await self._list_files(self.folder)
        if names is None:
            return self.files
        return await self._use_file_list(names, auto_load)

    async def _use_file_list(self, names: List[str], auto_load: bool) -> List[str]:
        # Files created locally stay listed until the backend has them
        pending = [n for n in self.files if n not in names and n == self.current_file]
        self.files = list(names) + pending
        if not self.files:
            self.notify(f"No {PICKIT_FILE_EXTENSION} files found.")
        elif auto_load and not self.current_file:
            await self.load_file(self.files[0])
        return self.files

    def create_file(self, name: str) -> str:
        """Register a new file name; the backend creates it on first save."""
        if not self.folder:
            raise EditorError("Please select a Pickit folder first.")
        name = (name or "").strip()
        if not name.lower().endswith(PICKIT_FILE_EXTENSION):
            raise EditorError(f"File name must end with {PICKIT_FILE_EXTENSION}.")
        if name not in self.files:
            self.files.append(name)
        self.current_file = name
        self.rules = []
        self._by_id = {}
        self.refresh()
        self.notify(f"{name} added. It will be created when you save rules.")
        return name

    async def load_file(self, name: str, keep_scope: bool = False) -> bool:
        name = (name or "").strip()
        if not name:
            raise EditorError("Please select a file.")
        if not self.folder:
            raise EditorError("Please select a Pickit folder first.")

        self.classifier.mappings = await self.loader.load()
        try:
            raw_rules = await self._run(self.client.load_rules, self.folder, name)
        except PickitClientError as e:
            self.notify(f"Load failed: {e}", logging.WARNING)
            return False

        rules = [normalize_rule(raw, self.classifier, name)
                 for raw in raw_rules if isinstance(raw, dict)]
        self.rules = [r for r in rules if r.nip_line]
        self._by_id = {r.id: r for r in self.rules}
        self.current_file = name
        if not keep_scope:
            self.state.active_quality = ALL
            self.state.active_type = ALL
            self.state.favorites_mode = False
        self.refresh()
        self.notify(f"Loaded {len(self.rules)} rules from {name}.")
        return True

    async def reload(self) -> bool:
        if not self.current_file:
            return False
        return await self.load_file(self.current_file, keep_scope=True)

    # ─── Rule edits ─────────────────────────────────────────

    async def _apply(self, rule: Rule, nip_line: str, enabled: bool,
                     comment: Optional[str] = None) -> bool:
        self._require_file()
        previous = (rule.nip_line, rule.enabled, rule.comment)
        self._set_line(rule, nip_line, enabled, rule.comment if comment is None else comment)
        self.refresh()
        try:
            await self._run(self.client.update_rule, self.folder, self.current_file,
                            rule.id, encode_line(rule))
        except PickitClientError as e:
            self._set_line(rule, *previous)
            self.refresh()
            self.notify(f"Save failed: {e}", logging.WARNING)
            return False
        self.recent.touch(rule.id)
        self.refresh()
        self.notify("Saved.")
        return True

    async def toggle_rule(self, rule_id: str) -> bool:
        rule = self._rule(rule_id)
        return await self._apply(rule, rule.nip_line, not rule.enabled)

    async def toggle_ethereal(self, rule_id: str) -> bool:
        rule = self._rule(rule_id)
        return await self._apply(rule, toggle_ethereal_in_line(rule.nip_line), rule.enabled)

    async def edit_rule_line(self, rule_id: str, line: str) -> bool:
        """Replace the whole line; a leading '//' disables the rule."""
        rule = self._rule(rule_id)
        text = (line or "").strip()
        enabled = rule.enabled
        if text.startswith(COMMENT_MARKER):
            enabled = False
            text = strip_leading_comment(text)
        if not text:
            raise EditorError("Rule line cannot be empty.")
        return await self._apply(rule, text, enabled)

    async def edit_comment(self, rule_id: str, comment: str) -> bool:
        rule = self._rule(rule_id)
        comment = clean_comment(comment)
        return await self._apply(rule, with_comment(rule.nip_line, comment), rule.enabled,
                                 comment=comment)

    async def edit_value(self, rule_id: str, start: int, end: int, value: str) -> bool:
        """Edit one number of the line in place. An empty value is a no-op."""
        rule = self._rule(rule_id)
        if not (value or "").strip():
            return False
        new_line = replace_value(rule.nip_line, start, end, value)
        if new_line is None:
            raise EditorError(f"Invalid value {value!r} for [{start}:{end}]")
        return await self._apply(rule, new_line, rule.enabled)

    async def delete_rule(self, rule_id: str) -> bool:
        rule = self._rule(rule_id)
        self._require_file()
        try:
            await self._run(self.client.delete_rule, self.folder, self.current_file, rule.id)
        except PickitClientError as e:
            self.notify(f"Delete failed: {e}", logging.WARNING)
            return False
        self.recent.forget(rule.id)
        self.notify("Deleted.")
        await self.reload()
        return True

    def toggle_favorite(self, rule_id: str) -> bool:
        rule = self._rule(rule_id)
        favorite = self.favorites.toggle(rule.id)
        self.refresh()
        return favorite

    # ─── Ordering ───────────────────────────────────────────

    async def reorder_rules(self, ordered_ids: Sequence[str]) -> bool:
        """Persist a drag result: the full list, or a favorites subset."""
        self._require_file()
        view = self.refresh()
        if not view.can_reorder:
            raise EditorError("Reorder is only available in All or Favorites view.")

        all_ids = [r.id for r in self.rules]
        ordered_ids = [i for i in ordered_ids if i]
        if len(ordered_ids) != len(all_ids) and not (
                self.state.favorites_mode or self.state.favorites_only):
            raise EditorError("Reorder is only available in All or Favorites view.")
        try:
            merged = merge_subset_order(all_ids, ordered_ids)
        except OrderMismatchError as e:
            self.notify(f"Reorder failed: {e}.", logging.WARNING)
            raise

        try:
            await self._run(self.client.reorder_rules, self.folder, self.current_file, merged)
        except PickitClientError as e:
            self.notify(f"Reorder failed: {e}", logging.WARNING)
            return False
        self.notify("Order saved.")
        await self.reload()
        return True

    def reorder_quality_tabs(self, order: Sequence[str]):
        self.order.save(QUALITY_ORDER_KEY, order)
        self.refresh()

    def reorder_type_facets(self, order: Sequence[str]):
        """Stored per quality scope; only honoured in A→Z facet sort."""
        self.order.save(type_order_key(self.state.active_quality), order)
        self.refresh()

    # ─── Selection & chips ──────────────────────────────────

    def select_quality(self, quality: str):
        """Tab click: new scope, cleared search and toggles."""
        state = self.state
        state.search_term = ""
        reset_toggles(state)
        state.active_type = ALL
        if quality == FAVORITES:
            state.favorites_mode = True
            state.favorites_only = True
            state.active_quality = ALL
        else:
            state.favorites_mode = False
            state.active_quality = quality or ALL
        self.refresh()

    def select_type(self, facet: str):
        """Facet click: cleared search and toggles; the favorites tab stays favorites-only."""
        state = self.state
        state.search_term = ""
        reset_toggles(state)
        state.favorites_only = state.favorites_mode
        state.active_type = facet or ALL
        self.refresh()

    def set_search(self, term: str):
        self.state.search_term = (term or "").strip()
        self.refresh()

    def clear_search(self):
        self.state.search_term = ""
        self.refresh()

    def _chip(self, change):
        self.state.search_term = ""
        change(self.state)
        self.refresh()

    def cycle_status_filter(self):
        self._chip(cycle_status)

    def cycle_ethereal_filter(self):
        self._chip(cycle_ethereal)

    def cycle_unidentified_filter(self):
        self._chip(cycle_unidentified)

    def toggle_favorites_filter(self):
        def flip(state):
            state.favorites_only = not state.favorites_only
        self._chip(flip)

    def toggle_comments(self):
        def flip(state):
            state.show_comments = not state.show_comments
        self._chip(flip)

    def cycle_rule_sort(self):
        self._chip(cycle_rule_sort)

    def cycle_type_sort(self):
        self._chip(cycle_type_sort)

    CHIPS = {
        "status": "cycle_status_filter",
        "ethereal": "cycle_ethereal_filter",
        "unidentified": "cycle_unidentified_filter",
        "favorites": "toggle_favorites_filter",
        "comments": "toggle_comments",
        "rule-sort": "cycle_rule_sort",
        "type-sort": "cycle_type_sort",
    }

    def click_chip(self, chip: str):
        action = self.CHIPS.get(chip)
        if action is None:
            raise EditorError(f"Unknown filter chip: {chip}")
        getattr(self, action)()

    # ─── Snapshot ───────────────────────────────────────────

    def _rule_dict(self, rule: Rule) -> dict:
        data = rule.to_dict()
        data.update({
            "displayLine": display_line(rule),
            "displayComment": rule_comment(rule) if self.state.show_comments else "",
            "favorite": rule.id in self.favorites,
            "ethereal": ethereal_state(rule.nip_line),
            "unidentified": is_unidentified(rule.nip_line),
            "tokens": [
                {"text": t.text, "isNumber": t.is_number, "start": t.start, "end": t.end}
                for t in tokenize_numbers(display_line(rule))
            ],
        })
        return data

    def snapshot(self) -> dict:
        view = self.view
        return {
            "folder": self.folder,
            "files": list(self.files),
            "currentFile": self.current_file,
            "ruleCount": len(self.rules),
            "rules": [self._rule_dict(r) for r in view.visible],
            "qualityTabs": [t.to_dict() for t in view.quality_tabs],
            "typeFacets": [f.to_dict() for f in view.type_facets],
            "summary": dict(view.summary),
            "selectionLabel": view.selection_label,
            "canReorder": view.can_reorder,
            "state": self.state.to_dict(),
            "notices": list(self.notices),
        }
