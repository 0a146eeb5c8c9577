"""Shared fixtures for the NIP editor test suite."""

import sys
import logging
from pathlib import Path

import pytest

# Ensure src/ is importable
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from games.d2r import create_d2r_taxonomy
from kv_store import MemoryStore
from pickit_client import PickitClientError
from pickit_rules import normalize_rule
from recent_rules import Favorites, RecentRules
from rule_classifier import RuleClassifier
from stored_order import OrderStore
from filter_engine import FilterPipeline

logger = logging.getLogger(__name__)


# ── Sample rule file ─────────────────────────────────────

SAMPLE_LINES = [
    ("r1", "[type] == ring && [quality] == unique # [dexterity] >= 15 && [tohit] >= 150", True),
    ("r2", "[type] == amulet && [quality] == set # [itemallskills] >= 1 && [coldresist] >= 18", True),
    ("r3", "[name] == grandcharm && [quality] == unique # [fireresist] >= 1 && [coldresist] >= 1", True),
    ("r4", "[type] == rune", True),
    ("r5", "[type] == bow && [quality] == rare && [flag] == ethereal # [enhanceddamage] >= 200", True),
    ("r6", "[type] == ring && [quality] == magic # [fcr] >= 10", False),
    ("r7", "[name] == grandcharm && [quality] == magic # [maxhp] >= 20", True),
    ("r8", "[type] == ring && [quality] == rare", True),
]


def raw_records(lines=SAMPLE_LINES):
    """Backend-shaped records; disabled rules carry the leading '//'."""
    return [
        {"id": rule_id, "fileName": "test.nip",
         "generatedNip": line if enabled else f"// {line}"}
        for rule_id, line, enabled in lines
    ]


class FakeClient:
    """In-memory stand-in for PickitClient.

    Add a method name to `fail` to make that call raise PickitClientError.
    """

    def __init__(self, files=None):
        self.files = files if files is not None else {"test.nip": raw_records()}
        self.fail = set()
        self.calls = []
        self.updates = []
        self.items = [{"nipName": "shako", "name": "Harlequin Crest", "baseItem": "shako",
                       "type": "unique"}]
        self.item_types = {"shako": "helm"}
        self.set_mappings = {}
        self.unique_mappings = {}

    def _call(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise PickitClientError(f"{name} failed", 500)

    def list_files(self, path):
        self._call("list_files")
        return list(self.files)

    def load_rules(self, path, file_name):
        self._call("load_rules")
        return [dict(r) for r in self.files.get(file_name, [])]

    def load_items(self):
        self._call("load_items")
        return self.items

    def load_item_types(self):
        self._call("load_item_types")
        return self.item_types

    def load_set_mappings(self):
        self._call("load_set_mappings")
        return self.set_mappings

    def load_unique_mappings(self):
        self._call("load_unique_mappings")
        return self.unique_mappings

    def update_rule(self, path, file_name, rule_id, line):
        self._call("update_rule")
        self.updates.append((rule_id, line))
        for record in self.files.get(file_name, []):
            if record["id"] == rule_id:
                record["generatedNip"] = line

    def reorder_rules(self, path, file_name, ordered_ids):
        self._call("reorder_rules")
        by_id = {r["id"]: r for r in self.files.get(file_name, [])}
        self.files[file_name] = [by_id[i] for i in ordered_ids]

    def delete_rule(self, path, file_name, rule_id):
        self._call("delete_rule")
        self.files[file_name] = [r for r in self.files.get(file_name, []) if r["id"] != rule_id]


class TickClock:
    """Monotonic fake clock: every call advances one second."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        self.now += 1.0
        return self.now


# ── Fixtures ─────────────────────────────────────────────

@pytest.fixture(scope="session")
def taxonomy():
    return create_d2r_taxonomy()


@pytest.fixture
def classifier(taxonomy):
    return RuleClassifier(taxonomy)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def make_rule(classifier):
    """Factory: make_rule("r1", "[type] == ring", enabled=True) → Rule."""
    def _make(rule_id, line, enabled=True):
        raw = {"id": rule_id, "generatedNip": line, "enabled": enabled}
        return normalize_rule(raw, classifier, "test.nip")
    return _make


@pytest.fixture
def sample_rules(make_rule):
    return [make_rule(rule_id, line, enabled) for rule_id, line, enabled in SAMPLE_LINES]


@pytest.fixture
def recent(store, clock):
    return RecentRules(store, clock=clock)


@pytest.fixture
def favorites(store):
    return Favorites(store)


@pytest.fixture
def order_store(store):
    return OrderStore(store)


@pytest.fixture
def pipeline(taxonomy, recent, favorites, order_store):
    return FilterPipeline(taxonomy, recent, favorites, order_store)
