"""Tests for record parsing."""

import sys
from pathlib import Path

import pytest

# Ensure src/ is importable
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from records import (
    EnchantUsage,
    GemUsage,
    ItemUsage,
    Role,
    RunRecord,
    SpecRef,
    StatPriority,
    TalentBuild,
    parse_records,
)
from statcore.errors import InvalidRecord
from conftest import make_build, make_enchant, make_gem, make_item, make_run, make_stat


class TestRole:
    """Role parsing."""

    def test_parse_case_insensitive(self):
        assert Role.parse("DPS") is Role.DPS
        assert Role.parse(" healer ") is Role.HEALER
        assert Role.parse(Role.TANK) is Role.TANK

    def test_unknown_role(self):
        with pytest.raises(InvalidRecord):
            Role.parse("support")


class TestItemUsage:
    """Item rows."""

    def test_from_dict(self):
        item = ItemUsage.from_dict(make_item(slot=0, item_id=5, usage=7, ilvl=489.0))
        assert item.item_slot == 0
        assert item.item_id == 5
        assert item.usage_count == 7
        assert item.item_level == 489.0

    def test_optional_fields_default(self):
        item = ItemUsage.from_dict({"item_slot": 1, "item_id": 2, "usage_count": 3})
        assert item.item_name == ""
        assert item.avg_keystone_level == 0.0

    def test_missing_usage_count(self):
        row = make_item()
        del row["usage_count"]
        with pytest.raises(InvalidRecord, match="usage_count"):
            ItemUsage.from_dict(row)

    def test_non_numeric_usage(self):
        with pytest.raises(InvalidRecord):
            ItemUsage.from_dict(make_item(usage="ten"))

    def test_boolean_rejected(self):
        with pytest.raises(InvalidRecord):
            ItemUsage.from_dict(make_item(usage=True))

    def test_integral_float_accepted(self):
        assert ItemUsage.from_dict(make_item(usage=4.0)).usage_count == 4

    def test_not_a_mapping(self):
        with pytest.raises(InvalidRecord):
            ItemUsage.from_dict(["item_slot", 1])


class TestOtherRecords:
    """Enchant, gem, talent and stat rows."""

    def test_enchant(self):
        enchant = EnchantUsage.from_dict(make_enchant(enchant_id=9, max_key=22))
        assert enchant.permanent_enchant_id == 9
        assert enchant.max_keystone_level == 22

    def test_gem_ids_alias_and_count_default(self):
        gem = GemUsage.from_dict({"item_slot": 1, "gem_ids_array": [3, 1], "usage_count": 2})
        assert gem.gem_ids == (3, 1)
        assert gem.gems_count == 2

    def test_gem_ids_must_be_integers(self):
        with pytest.raises(InvalidRecord):
            GemUsage.from_dict(make_gem(gem_ids=["a"]))

    def test_talent_usage_alias(self):
        build = TalentBuild.from_dict({"talent_import": "ABC", "usage_count": 4})
        assert build.total_usage == 4
        assert build.usage_count == 4

    def test_talent_class_field(self):
        build = TalentBuild.from_dict(make_build())
        assert build.class_name == "Mage"

    def test_empty_talent_import(self):
        with pytest.raises(InvalidRecord):
            TalentBuild.from_dict(make_build(talent_import="  "))

    def test_stat_category_lowercased(self):
        stat = StatPriority.from_dict(make_stat("Haste", 1, category="Secondary"))
        assert stat.stat_category == "secondary"


class TestRunRecord:
    """Run rows in backend and display shapes."""

    def test_flat_shape(self):
        run = RunRecord.from_dict(make_run(level=18, score=321.5))
        assert run.tank == SpecRef("Warrior", "Protection")
        assert run.dps[2] == SpecRef("Hunter", "Beast Mastery")
        assert run.mythic_level == 18
        assert run.score == 321.5
        assert run.usage_count == 1

    def test_display_shape(self):
        run = RunRecord.from_dict({
            "tank": "Druid - Guardian",
            "healer": "Shaman - Restoration",
            "dps1": "Mage - Fire",
            "dps2": "Mage - Fire",
            "dps3": "Evoker - Devastation",
            "usage_count": 12,
            "avg_score": 280.0,
        })
        assert run.tank.display == "Druid - Guardian"
        assert run.usage_count == 12
        assert run.score == 280.0
        assert run.mythic_level is None
        assert run.dungeon_slug == ""

    def test_bad_display_string(self):
        row = make_run()
        del row["tank_class"], row["tank_spec"]
        row["tank"] = "Druid Guardian"
        with pytest.raises(InvalidRecord):
            RunRecord.from_dict(row)

    def test_missing_member(self):
        row = make_run()
        del row["dps3_spec"]
        with pytest.raises(InvalidRecord, match="dps3_spec"):
            RunRecord.from_dict(row)

    def test_members(self):
        run = RunRecord.from_dict(make_run())
        assert run.members(Role.TANK) == (run.tank,)
        assert run.members("dps") == run.dps


class TestParseRecords:
    """Bulk conversion."""

    def test_none_is_empty(self):
        assert parse_records(ItemUsage, None) == []

    def test_instances_pass_through(self):
        item = ItemUsage.from_dict(make_item())
        out = parse_records(ItemUsage, [item, make_item(item_id=2)])
        assert out[0] is item
        assert out[1].item_id == 2
