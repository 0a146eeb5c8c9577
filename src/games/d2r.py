"""
Diablo II: Resurrected taxonomy factory.

Creates a Taxonomy populated with the D2R item tables the NIP classifier
relies on: quality/type synonym groups, display labels, and the ordered
stat-signature decision lists used to name uniques and set accessories
that rules only describe by their stats.
"""

from core.taxonomy import CharmRule, SetAccessoryRule, StatNameRule, Taxonomy


QUALITY_LABELS = {
    "base": "Base",
    "normal": "Normal",
    "magic": "Magic",
    "rare": "Rare",
    "crafted": "Crafted",
    "set": "Set",
    "unique": "Unique",
    "superior": "Superior",
    "misc": "Misc",
    "charm": "Charm",
    "favorites": "Favorites",
}

QUALITY_GROUPS = {
    "normal": "base",
    "superior": "base",
    "base": "base",
}

QUALITY_ORDER = (
    "All", "crafted", "base", "magic", "rare", "set", "unique", "charm", "misc", "favorites",
)

TYPE_GROUPS = {
    "assassinclaw": "claw",
    "claw": "claw",
    "jewel": "jewel",
    "throwing": "throwing",
    "throwingweapon": "throwing",
    "thrownweapon": "throwing",
    "voodoohead": "shield",
    "voodooheads": "shield",
    "necrohelm": "shield",
    "necrohead": "shield",
    "necroheads": "shield",
    "necroshield": "shield",
    "head": "shield",
    "auricshield": "shield",
    "auricshields": "shield",
    "shield": "shield",
    "crossbow": "amazonweapon",
    "bow": "amazonweapon",
    "amazonbow": "amazonweapon",
    "amazonjavelin": "amazonweapon",
    "javelin": "amazonweapon",
    "amazonspear": "amazonweapon",
    "polearm": "spear",
    "spear": "spear",
    "dagger": "dagger",
    "knife": "dagger",
    "hammer": "mace",
    "mace": "mace",
    "scepter": "mace",
    "sorcorb": "staff",
    "orb": "staff",
    "staff": "staff",
    "wand": "staff",
    "helm": "helm",
    "primalhelm": "helm",
    "barbhelm": "helm",
    "druidhelm": "helm",
    "druidpelt": "helm",
    "pelt": "helm",
}

TYPE_LABELS = {
    "grandcharm": "Grand Charm",
    "smallcharm": "Small Charm",
    "annihilus": "Annihilus Charm",
    "sunder": "Sunder",
    "torch": "Torch",
    "gheeds": "Gheed's Fortune",
    "spear": "Spear & Polearm",
    "mace": "Mace & Scepter",
    "charm": "Charm",
}

UNIQUE_CHARM_NAME_TYPES = {
    "gheedsfortune": "gheeds",
    "thecrackoftheheavens": "sunder",
    "thecoldrupture": "sunder",
    "theflamerift": "sunder",
    "theblackcleft": "sunder",
    "thebonebreak": "sunder",
    "therottingfissure": "sunder",
}

# Ordered: the first entry whose stats are all present wins
SET_ACCESSORY_RULES = [
    SetAccessoryRule("ring", ("lifeleech", "normaldamagereduction"), "Cathan's Seal", "Cathan's Traps"),
    SetAccessoryRule("ring", ("maxhp",), "Angelic Halo", "Angelical Raiment"),
    SetAccessoryRule("amulet", ("itemallskills", "coldresist"), "Telling of Beads", "The Disciple"),
    SetAccessoryRule("amulet", ("coldresist", "maxmana"), "Vidala's Snare", "Vidala's Rig"),
    SetAccessoryRule("amulet", ("manarecovery", "hpregen"), "Civerb's Icon", "Civerb's Vestments"),
    SetAccessoryRule("amulet", ("fhr", "lightmaxdam"), "Cathan's Sigil", "Cathan's Traps"),
    SetAccessoryRule("amulet", ("itemlightradius", "itemdamagetomana"), "Angelic Wings", "Angelical Raiment"),
    SetAccessoryRule("amulet", ("poisonresist", "poisonlength"), "Iratha's Collar", "Iratha's Finery"),
    SetAccessoryRule("amulet", ("magicdamagereduction", "normaldamagereduction"), "Tancred's Weird", "Tancred's Battlegear"),
    SetAccessoryRule("amulet", ("sorceressskills",), "Tal Rasha's Adjudication", "Tal Rasha's Wrappings"),
    SetAccessoryRule("amulet", ("maxmana",), "Arcanna's Sign", "Arcanna's Tricks"),
]

UNIQUE_RING_RULES = [
    StatNameRule(("itemmagicbonus",), "Nagelring"),
    StatNameRule(("hpregen", "manaleech"), "Manald Heal"),
    StatNameRule(("itemmaxmanapercent",), "Stone of Jordan"),
    StatNameRule(("maxhp", "magicdamagereduction"), "Dwarf Star"),
    StatNameRule(("dexterity", "tohit"), "Raven Frost"),
    StatNameRule(("lifeleech", "itemallskills"), "Bul-Kathos' Wedding Band"),
    StatNameRule(("poisonresist", "normaldamagereduction"), "Nature's Peace"),
    StatNameRule(("itemabsorblightpercent",), "Wisp Projector"),
]

UNIQUE_AMULET_RULES = [
    StatNameRule(("itemallskills",), "Mara's Kaleidoscope"),
    StatNameRule(("defensiveaurasskilltab",), "Seraph's Hymn"),
    StatNameRule(("coldresist", "plusdefense"), "Metalgrid"),
    StatNameRule(("lightresist",), "Highlord's Wrath"),
    StatNameRule(("dexterity",), "The Cat's Eye"),
    StatNameRule(("strength", "fireresist"), "Saracen's Chance"),
    StatNameRule(("fireresist",), "Nokozan Relic"),
]

# Single-resist Sunder charms, highest priority first
RESIST_CHARM_RULES = [
    CharmRule("lightresist", "The Crack of the Heavens", "sunder"),
    CharmRule("coldresist", "The Cold Rupture", "sunder"),
    CharmRule("fireresist", "The Flame Rift", "sunder"),
    CharmRule("magicresist", "The Black Cleft", "sunder"),
    CharmRule("physicalresist", "The Bone Break", "sunder"),
    CharmRule("poisonresist", "The Rotting Fissure", "sunder"),
]


def create_d2r_taxonomy() -> Taxonomy:
    """Create a Taxonomy for Diablo II: Resurrected NIP files."""
    return Taxonomy(
        game_id="d2r",

        # Quality
        quality_labels=dict(QUALITY_LABELS),
        quality_groups=dict(QUALITY_GROUPS),
        quality_order=QUALITY_ORDER,
        pinned_qualities=frozenset({"All", "charm", "misc", "favorites"}),

        # Types
        type_groups=dict(TYPE_GROUPS),
        type_labels=dict(TYPE_LABELS),
        misc_types=frozenset({"gem", "rune", "misc"}),
        charm_types=frozenset({
            "grandcharm", "smallcharm", "sunder", "annihilus", "torch", "gheeds", "charm",
        }),
        unique_charm_group_types=frozenset({"gheeds", "sunder", "annihilus", "torch"}),

        # Name-driven inference
        charm_base_types={
            "grandcharm": "grandcharm",
            "smallcharm": "smallcharm",
            "largecharm": "torch",
        },
        unique_charm_base_types={"smallcharm": "annihilus"},
        unique_charm_name_types=dict(UNIQUE_CHARM_NAME_TYPES),
        name_type_preferences={
            "jewel": "jewel",
            "gold": "misc",
            "grandcharm": "grandcharm",
            "smallcharm": "smallcharm",
            "largecharm": "torch",
        },
        name_aliases={"sabre": "saber"},

        # Stat-signature heuristics
        set_accessory_rules=list(SET_ACCESSORY_RULES),
        unique_ring_rules=list(UNIQUE_RING_RULES),
        unique_amulet_rules=list(UNIQUE_AMULET_RULES),
        charm_inference_types=frozenset({"grandcharm", "sunder", "charm"}),
        elemental_resists=("fireresist", "coldresist", "lightresist"),
        multi_resist_charm=CharmRule("", "Sunder", "sunder"),
        resist_charm_rules=list(RESIST_CHARM_RULES),
        magic_find_charm=CharmRule("itemmagicbonus", "Gheed's Fortune", "gheeds"),
    )
