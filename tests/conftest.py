"""Shared fixtures for the Keystone Stats test suite."""

import sys
from pathlib import Path

import pytest

# Ensure src/ is importable
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))


# ── Helper factories ─────────────────────────────────────

def make_item(slot=0, item_id=1001, usage=10, name=None, ilvl=480.0,
              key_level=15.0, **kwargs):
    """Shorthand to create an item usage row (decoded JSON shape)."""
    row = {
        "item_slot": slot,
        "item_id": item_id,
        "usage_count": usage,
        "item_name": name if name is not None else f"Item {item_id}",
        "item_icon": f"inv_{item_id}",
        "item_quality": 4,
        "item_level": ilvl,
        "avg_keystone_level": key_level,
    }
    row.update(kwargs)
    return row


def make_enchant(slot=4, enchant_id=7001, usage=10, name=None, key_level=15.0,
                 ilvl=480.0, max_key=20, **kwargs):
    """Shorthand to create an enchant usage row."""
    row = {
        "item_slot": slot,
        "permanent_enchant_id": enchant_id,
        "permanent_enchant_name": name if name is not None else f"Enchant {enchant_id}",
        "usage_count": usage,
        "avg_keystone_level": key_level,
        "avg_item_level": ilvl,
        "max_keystone_level": max_key,
    }
    row.update(kwargs)
    return row


def make_gem(gem_ids=(213743,), slot=1, usage=10, gems_count=None, key_level=15.0,
             ilvl=480.0, **kwargs):
    """Shorthand to create a gem combination row."""
    gem_ids = list(gem_ids)
    row = {
        "item_slot": slot,
        "gem_ids": gem_ids,
        "gems_count": len(gem_ids) if gems_count is None else gems_count,
        "gem_icons": [f"gem_{g}" for g in gem_ids],
        "usage_count": usage,
        "avg_keystone_level": key_level,
        "avg_item_level": ilvl,
    }
    row.update(kwargs)
    return row


def make_build(talent_import="CwQAAAAA", usage=10, encounter_id=12660,
               usage_pct=25.0, key_level=15.0, **kwargs):
    """Shorthand to create a talent build row."""
    row = {
        "talent_import": talent_import,
        "total_usage": usage,
        "avg_usage_percentage": usage_pct,
        "avg_keystone_level": key_level,
        "encounter_id": encounter_id,
        "dungeon_name": f"Dungeon {encounter_id}",
        "class": "Mage",
        "spec": "Frost",
    }
    row.update(kwargs)
    return row


def make_stat(name, rank, category="secondary", avg=1000.0, **kwargs):
    """Shorthand to create a stat priority row."""
    row = {
        "stat_name": name,
        "stat_category": category,
        "priority_rank": rank,
        "avg_value": avg,
    }
    row.update(kwargs)
    return row


DEFAULT_TANK = ("Warrior", "Protection")
DEFAULT_HEALER = ("Priest", "Discipline")
DEFAULT_DPS = (("Mage", "Frost"), ("Rogue", "Outlaw"), ("Hunter", "Beast Mastery"))


def make_run(dungeon="ara-kara", level=15, score=300.0, tank=DEFAULT_TANK,
             healer=DEFAULT_HEALER, dps=DEFAULT_DPS, region="eu", **kwargs):
    """Shorthand to create a run row in the flat backend shape."""
    row = {
        "dungeon_slug": dungeon,
        "dungeon_name": dungeon.replace("-", " ").title() if dungeon else "",
        "mythic_level": level,
        "score": score,
        "region": region,
        "tank_class": tank[0],
        "tank_spec": tank[1],
        "healer_class": healer[0],
        "healer_spec": healer[1],
    }
    for i, (cls, spec) in enumerate(dps, start=1):
        row[f"dps{i}_class"] = cls
        row[f"dps{i}_spec"] = spec
    row.update(kwargs)
    return row


# ── Sample datasets ──────────────────────────────────────

@pytest.fixture
def sample_items():
    """Two slots, head has three items split over two dungeons."""
    return [
        make_item(slot=0, item_id=1, usage=10, ilvl=480.0, encounter_id=1),
        make_item(slot=0, item_id=2, usage=30, ilvl=490.0, encounter_id=1),
        make_item(slot=0, item_id=1, usage=20, ilvl=483.0, encounter_id=2),
        make_item(slot=0, item_id=3, usage=5, ilvl=470.0, encounter_id=2),
        make_item(slot=1, item_id=50, usage=8, ilvl=486.0),
    ]


@pytest.fixture
def sample_runs():
    """Six runs over two dungeons, two compositions (one with shuffled DPS)."""
    other_tank = ("Paladin", "Protection")
    shuffled = (DEFAULT_DPS[2], DEFAULT_DPS[0], DEFAULT_DPS[1])
    return [
        make_run(dungeon="ara-kara", level=20, score=400.0, region="eu"),
        make_run(dungeon="ara-kara", level=18, score=350.0, dps=shuffled, region="us"),
        make_run(dungeon="ara-kara", level=16, score=300.0, tank=other_tank, region="eu"),
        make_run(dungeon="city-of-threads", level=20, score=410.0, region="eu"),
        make_run(dungeon="city-of-threads", level=12, score=200.0, tank=other_tank, region="us"),
        make_run(dungeon="city-of-threads", level=20, score=390.0, tank=other_tank, region="kr"),
    ]
