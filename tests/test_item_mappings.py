"""Tests for item_mappings.py — table building and the single-flight loader."""

import asyncio

import pytest

import item_mappings
from item_mappings import ItemMappingsLoader, SetItem, build_item_mappings


def test_item_types_first_write_wins():
    mappings = build_item_mappings(items=[
        {"nipName": "shako", "type": "helm"},
        {"nipName": "shako", "type": "circlet"},
        {"nipName": "", "type": "ring"},
        {"nipName": "nothing"},
        "not a record",
    ])
    assert mappings.item_type_by_name == {"shako": "helm"}


def test_names_are_normalized():
    mappings = build_item_mappings(items=[
        {"name": "Gheed's Fortune", "internalName": "Grand-Charm", "type": "grandcharm"},
    ])
    assert mappings.item_type_by_name["gheedsfortune"] == "grandcharm"
    assert mappings.item_type_by_name["grandcharm"] == "grandcharm"


def test_alternate_types_only_override_unique_or_set():
    mappings = build_item_mappings(
        items=[
            {"name": "Harlequin Crest", "baseItem": "Shako", "type": "unique"},
            {"nipName": "ring", "type": "ring"},
        ],
        item_types={"harlequincrest": "helm", "ring": "amulet", "jewel": "jewel"},
    )
    assert mappings.item_type_by_name["harlequincrest"] == "helm"
    assert mappings.item_type_by_name["ring"] == "ring"
    assert mappings.item_type_by_name["jewel"] == "jewel"
    # unique records never map their base item
    assert "shako" not in mappings.item_type_by_name


def test_single_known_unique_fills_base():
    mappings = build_item_mappings(items=[
        {"name": "Harlequin Crest", "baseItem": "shako", "type": "unique"},
        {"name": "Stormshield", "baseItem": "monarch", "type": "unique"},
        {"name": "Stormshield", "baseItem": "monarch", "type": "unique"},
        {"name": "Wraith Flight", "baseItem": "ghostglaive", "type": "unique"},
        {"name": "Rune Master", "baseItem": "ghostglaive", "type": "unique"},
    ])
    assert mappings.unique_name_by_base["shako"] == "Harlequin Crest"
    assert mappings.unique_name_by_base["monarch"] == "Stormshield"
    assert "ghostglaive" not in mappings.unique_name_by_base


def test_unique_mapping_takes_precedence_over_candidates():
    mappings = build_item_mappings(
        items=[{"name": "Harlequin Crest", "baseItem": "shako", "type": "unique"}],
        unique_mapping={"baseItems": {"Shako": {"itemName": "Peasant Crown"}, "bad": {}}},
    )
    assert mappings.unique_name_by_base == {"shako": "Peasant Crown"}


def test_set_tables():
    mappings = build_item_mappings(set_mapping={
        "setItems": {"Telling of Beads": {"itemName": "Telling of Beads", "setName": "The Disciple"}},
        "baseItems": {"amulet": {"itemName": "Telling of Beads", "setName": ""}},
    })
    assert mappings.set_item_by_name == {
        "tellingofbeads": SetItem("Telling of Beads", "The Disciple"),
    }
    assert mappings.set_item_by_base == {}
    assert mappings.set_item_for("Telling Of Beads").set_name == "The Disciple"


def test_name_aliases(taxonomy):
    mappings = build_item_mappings(items=[{"nipName": "saber", "type": "sword"}], taxonomy=taxonomy)
    assert mappings.item_type_by_name["sabre"] == "sword"


def test_all_sources_missing():
    mappings = build_item_mappings()
    assert len(mappings) == 0


def test_malformed_payloads_are_skipped():
    mappings = build_item_mappings(
        items={"nipName": "shako", "type": "helm"},
        item_types=["not", "a", "dict"],
        set_mapping={"setItems": [], "baseItems": "oops"},
        unique_mapping=["baseItems"],
    )
    assert len(mappings) == 0


def test_malformed_payload_keeps_other_sources():
    mappings = build_item_mappings(
        items=[{"nipName": "shako", "type": "helm"}],
        item_types={"shako": ["circlet"], "ring": "ring"},
        set_mapping={"setItems": [], "baseItems": {
            "Ring": {"itemName": "Telling of Beads", "setName": "The Disciple"}}},
    )
    assert mappings.item_type_by_name == {"shako": "helm", "ring": "ring"}
    assert mappings.set_item_by_base["ring"].set_name == "The Disciple"


# ── Loader ───────────────────────────────────────────────

def test_loader_is_single_flight(fake_client, taxonomy):
    loader = ItemMappingsLoader(fake_client, taxonomy)

    async def load_twice():
        return await asyncio.gather(loader.load(), loader.load())

    first, second = asyncio.run(load_twice())
    assert first is second
    assert fake_client.calls.count("load_items") == 1
    assert fake_client.calls.count("load_unique_mappings") == 1
    assert loader.loaded
    assert first.item_type_by_name["shako"] == "helm"


def test_loader_tolerates_failed_requests(fake_client, taxonomy):
    fake_client.fail.add("load_item_types")
    loader = ItemMappingsLoader(fake_client, taxonomy)
    mappings = asyncio.run(loader.load())
    assert loader.loaded
    # items still arrived; the override table did not
    assert mappings.item_type_by_name["harlequincrest"] == "unique"
    assert mappings.unique_name_by_base["shako"] == "Harlequin Crest"


def test_loader_reset_fetches_again(fake_client, taxonomy):
    loader = ItemMappingsLoader(fake_client, taxonomy)
    asyncio.run(loader.load())
    loader.reset()
    assert not loader.loaded
    asyncio.run(loader.load())
    assert fake_client.calls.count("load_items") == 2


def test_loader_tolerates_list_shaped_payload(fake_client, taxonomy):
    fake_client.item_types = ["not", "a", "dict"]
    fake_client.set_mappings = {"setItems": []}
    loader = ItemMappingsLoader(fake_client, taxonomy)
    mappings = asyncio.run(loader.load())
    assert loader.loaded
    assert mappings.item_type_by_name["harlequincrest"] == "unique"


def test_loader_does_not_cache_a_failed_build(fake_client, taxonomy, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("bad tables")

    monkeypatch.setattr(item_mappings, "build_item_mappings", broken)
    loader = ItemMappingsLoader(fake_client, taxonomy)
    with pytest.raises(RuntimeError):
        asyncio.run(loader.load())
    assert not loader.loaded

    monkeypatch.undo()
    mappings = asyncio.run(loader.load())
    assert loader.loaded
    assert mappings.item_type_by_name["shako"] == "helm"
    assert fake_client.calls.count("load_items") == 2
