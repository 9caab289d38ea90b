"""Tests for gear, gem, talent and stat priority views."""

import sys
from pathlib import Path

import pytest

# Ensure src/ is importable
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

import builds_stats
from builds_stats import (
    OptimalBuild,
    best_enchants_by_slot,
    best_items_by_slot,
    enchants_by_slot,
    gem_combination_overview,
    gem_key,
    gems_by_slot,
    items_by_slot,
    optimal_build,
    slot_name,
    stat_priorities,
    stat_priority_string,
    talent_builds_by_dungeon,
    top_talent_builds,
)
from records import GemUsage
from statcore.errors import InvalidRecord, InvalidWeight
from statcore.view_config import ViewConfig
from conftest import make_build, make_enchant, make_gem, make_item, make_stat


@pytest.fixture
def sample_gems():
    return [
        make_gem(gem_ids=[2, 1], slot=1, usage=10, key_level=14.0),
        make_gem(gem_ids=[1, 2], slot=10, usage=5, key_level=20.0),
        make_gem(gem_ids=[3], slot=1, usage=20),
        make_gem(gem_ids=[1, 2], gems_count=3, slot=1, usage=1),
    ]


@pytest.fixture
def sample_builds():
    return [
        make_build("A", usage=10, encounter_id=1, usage_pct=40.0, key_level=15.0),
        make_build("B", usage=20, encounter_id=1, usage_pct=30.0),
        make_build("A", usage=30, encounter_id=2, usage_pct=60.0, key_level=17.0),
        make_build("C", usage=5, encounter_id=2, usage_pct=10.0),
    ]


@pytest.fixture
def sample_stats():
    return [
        make_stat("Mastery", 2),
        make_stat("Haste", 1),
        make_stat("Versatility", 4),
        make_stat("Critical Strike", 3),
        make_stat("Leech", 1, category="minor"),
    ]


class TestSlotNames:
    """Slot labels."""

    def test_known_and_unknown(self):
        assert slot_name(0) == "Head"
        assert slot_name(14) == "Back"
        assert slot_name(99) == "Slot 99"


class TestItemsBySlot:
    """Per-slot item tables."""

    def test_merges_dungeons_and_ranks(self, sample_items):
        entries = items_by_slot(sample_items)
        head = [e for e in entries if e.scope == 0]
        assert [e.identity["item_id"] for e in head] == [1, 2, 3]
        assert [e.rank for e in head] == [1, 2, 3]
        assert head[0].total_usage == 30
        assert head[0].metric("avg_item_level") == pytest.approx(482.0)

    def test_tie_keeps_first_appearance(self, sample_items):
        head = [e for e in items_by_slot(sample_items) if e.scope == 0]
        assert head[0].total_usage == head[1].total_usage == 30
        assert head[0].identity["item_id"] == 1

    def test_percentage_of_slot(self, sample_items):
        entries = items_by_slot(sample_items)
        head = [e for e in entries if e.scope == 0]
        assert head[0].percentage == pytest.approx(100 * 30 / 65)
        assert sum(e.percentage for e in head) == pytest.approx(100.0)
        neck = [e for e in entries if e.scope == 1]
        assert neck[0].percentage == pytest.approx(100.0)

    def test_slot_order(self, sample_items):
        assert [e.scope for e in items_by_slot(sample_items)] == [0, 0, 0, 1]

    def test_top_n_per_slot(self, sample_items):
        entries = items_by_slot(sample_items, ViewConfig(top_n=2))
        assert [(e.scope, e.rank) for e in entries] == [(0, 1), (0, 2), (1, 1)]

    def test_min_usage_changes_denominator(self, sample_items):
        entries = items_by_slot(sample_items, ViewConfig(min_usage=10))
        assert [e.identity["item_id"] for e in entries] == [1, 2]
        assert entries[0].percentage == pytest.approx(50.0)

    def test_zero_usage_dropped(self):
        entries = items_by_slot([make_item(item_id=1, usage=0), make_item(item_id=2, usage=4)])
        assert [e.identity["item_id"] for e in entries] == [2]

    def test_negative_usage_raises(self):
        with pytest.raises(InvalidWeight):
            items_by_slot([make_item(usage=-1)])

    def test_missing_field_raises(self):
        row = make_item()
        del row["item_id"]
        with pytest.raises(InvalidRecord):
            items_by_slot([row])

    def test_empty(self):
        assert items_by_slot([]) == []
        assert items_by_slot(None) == []

    def test_input_not_mutated(self, sample_items):
        before = [dict(r) for r in sample_items]
        items_by_slot(sample_items)
        assert sample_items == before

    def test_best_items(self, sample_items):
        best = best_items_by_slot(sample_items)
        assert [(e.scope, e.identity["item_id"], e.rank) for e in best] == [(0, 1, 1), (1, 50, 1)]
        assert best[0].percentage == pytest.approx(100 * 30 / 65)


class TestEnchants:
    """Enchant tables."""

    def test_slot_display_order(self):
        rows = [
            make_enchant(slot=3, enchant_id=1),
            make_enchant(slot=15, enchant_id=2),
            make_enchant(slot=4, enchant_id=3),
        ]
        assert [e.scope for e in enchants_by_slot(rows)] == [4, 15, 3]

    def test_max_keystone_level(self):
        rows = [make_enchant(enchant_id=1, max_key=18), make_enchant(enchant_id=1, max_key=22)]
        entries = enchants_by_slot(rows)
        assert len(entries) == 1
        assert entries[0].extra["max_keystone_level"] == 22
        assert entries[0].to_dict()["max_keystone_level"] == 22

    def test_best_enchants(self):
        rows = [
            make_enchant(slot=4, enchant_id=1, usage=3),
            make_enchant(slot=4, enchant_id=2, usage=9),
            make_enchant(slot=7, enchant_id=3, usage=1),
        ]
        best = best_enchants_by_slot(rows)
        assert [e.identity["permanent_enchant_id"] for e in best] == [2, 3]
        assert best[0].percentage == pytest.approx(75.0)


class TestGems:
    """Gem combinations."""

    def test_gem_key_order_independent(self):
        a = GemUsage.from_dict(make_gem(gem_ids=[3, 1, 2]))
        b = GemUsage.from_dict(make_gem(gem_ids=[2, 3, 1]))
        assert gem_key(a) == gem_key(b) == "1-2-3:3"

    def test_overview_across_slots(self, sample_gems):
        entries = gem_combination_overview(sample_gems)
        assert [e.identity["combination_key"] for e in entries] == ["3:1", "1-2:2", "1-2:3"]
        pair = entries[1]
        assert pair.total_usage == 15
        assert pair.extra["slots"] == [1, 10]
        assert pair.extra["slot_count"] == 2
        assert pair.metric("avg_keystone_level") == pytest.approx(16.0)
        assert pair.identity["gem_ids"] == [1, 2]
        assert pair.identity["gem_icons"] == ["gem_1", "gem_2"]
        assert sum(e.percentage for e in entries) == pytest.approx(100.0)

    def test_overview_default_top_8(self):
        rows = [make_gem(gem_ids=[i], usage=i) for i in range(1, 11)]
        entries = gem_combination_overview(rows)
        assert len(entries) == 8
        assert entries[0].identity["gem_ids"] == [10]
        assert entries[-1].rank == 8

    def test_overview_percentage_uses_all_groups(self):
        rows = [make_gem(gem_ids=[i], usage=10) for i in range(1, 11)]
        entries = gem_combination_overview(rows)
        assert entries[0].percentage == pytest.approx(10.0)

    def test_by_slot_unbounded(self, sample_gems):
        entries = gems_by_slot(sample_gems)
        assert [(e.scope, e.identity["combination_key"]) for e in entries] == [
            (1, "3:1"), (1, "1-2:2"), (1, "1-2:3"), (10, "1-2:2"),
        ]
        assert entries[-1].percentage == pytest.approx(100.0)

    def test_empty(self):
        assert gem_combination_overview([]) == []
        assert gems_by_slot([]) == []


class TestTalentBuilds:
    """Talent build popularity."""

    def test_top_builds(self, sample_builds):
        entries = top_talent_builds(sample_builds)
        assert [e.identity["talent_import"] for e in entries] == ["A", "B", "C"]
        a = entries[0]
        assert a.total_usage == 40
        assert a.metric("avg_usage_percentage") == pytest.approx(55.0)
        assert a.metric("avg_keystone_level") == pytest.approx(16.5)
        assert a.extra["dungeons_count"] == 2
        assert a.percentage == pytest.approx(100 * 40 / 65)

    def test_by_dungeon_ranked_by_usage_percentage(self, sample_builds):
        entries = talent_builds_by_dungeon(sample_builds)
        assert [(e.scope, e.identity["talent_import"], e.rank) for e in entries] == [
            (1, "A", 1), (1, "B", 2), (2, "A", 1), (2, "C", 2),
        ]
        assert entries[0].percentage == pytest.approx(100 * 10 / 30)

    def test_by_dungeon_single_encounter(self, sample_builds):
        entries = talent_builds_by_dungeon(sample_builds, encounter_id=2)
        assert [e.identity["talent_import"] for e in entries] == ["A", "C"]

    def test_by_dungeon_default_top_3(self):
        rows = [make_build(f"T{i}", usage=i, usage_pct=float(i)) for i in range(1, 6)]
        entries = talent_builds_by_dungeon(rows)
        assert [e.identity["talent_import"] for e in entries] == ["T5", "T4", "T3"]


class TestStatPriorities:
    """Stat priority lists."""

    def test_split_and_sorted(self, sample_stats):
        out = stat_priorities(sample_stats)
        assert [s.stat_name for s in out["secondary"]] == [
            "Haste", "Mastery", "Critical Strike", "Versatility",
        ]
        assert [s.stat_name for s in out["minor"]] == ["Leech"]

    def test_categories_always_present(self):
        assert stat_priorities([]) == {"secondary": [], "minor": []}

    def test_priority_string(self, sample_stats):
        assert stat_priority_string(sample_stats) == "Haste > Mastery > Critical Strike > Versatility"
        assert stat_priority_string(sample_stats, "minor") == "Leech"
        assert stat_priority_string([]) == ""


class TestOptimalBuild:
    """Optimal build card."""

    def test_assembled(self, sample_items, sample_builds, sample_stats):
        build = optimal_build(sample_items, sample_builds, sample_stats)
        assert build.top_talent_import == "A"
        assert build.stat_priority.startswith("Haste > Mastery")
        assert sorted(build.top_items) == [0, 1]
        assert build.top_items[0].identity["item_id"] == 1

    def test_to_dict(self, sample_items):
        data = optimal_build(items=sample_items).to_dict()
        assert data["top_talent_import"] == ""
        assert data["top_items"]["1"]["item_id"] == 50

    def test_no_data(self):
        assert optimal_build() == OptimalBuild()


class TestViewDefaults:
    """Default configs registered per view."""

    def test_defaults(self):
        assert builds_stats.VIEW_DEFAULTS["gem_combination_overview"].top_n == 8
        assert builds_stats.VIEW_DEFAULTS["talent_builds_by_dungeon"].top_n == 3
        assert builds_stats.VIEW_DEFAULTS["gems_by_slot"].top_n == 0
