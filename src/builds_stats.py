"""
builds_stats.py — gear, enchant, gem and talent popularity views.

Input is the per-spec usage data from the builds analysis API (already
decoded JSON rows or record instances). Every view returns a flat list of
AggregateEntry in final display order:

    *_by_slot views       ordered by slot display order, then rank in slot
    overview views        ordered by rank

Percentage scopes:
    items_by_slot / enchants_by_slot / gems_by_slot / best_*_by_slot
        -> share of the usage of that slot
    gem_combination_overview / top_talent_builds
        -> share of all usage passed in
    talent_builds_by_dungeon
        -> share of the usage in that dungeon
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config import (
    DUNGEON_TALENT_BUILDS_TOP_N,
    GEM_OVERVIEW_TOP_N,
    ITEM_SLOT_DISPLAY_ORDER,
    ITEM_SLOT_NAMES,
    STAT_CATEGORIES,
)
from records import (
    EnchantUsage,
    GemUsage,
    ItemUsage,
    StatPriority,
    TalentBuild,
    parse_records,
)
from statcore.aggregation import (
    AggregateEntry,
    aggregate,
    combination_key,
    drop_zero_weight,
    filter_min_usage,
    group_by_key,
    rank_entries,
    rank_within_scopes,
    with_percentage,
    with_scoped_percentage,
)
from statcore.view_config import ViewConfig

VIEW_DEFAULTS = {
    "items_by_slot": ViewConfig(),
    "best_items_by_slot": ViewConfig(),
    "enchants_by_slot": ViewConfig(),
    "best_enchants_by_slot": ViewConfig(),
    "gems_by_slot": ViewConfig(),
    "gem_combination_overview": ViewConfig(top_n=GEM_OVERVIEW_TOP_N),
    "top_talent_builds": ViewConfig(),
    "talent_builds_by_dungeon": ViewConfig(top_n=DUNGEON_TALENT_BUILDS_TOP_N),
}


def _usage(record) -> int:
    return record.usage_count


def slot_name(slot: int) -> str:
    return ITEM_SLOT_NAMES.get(slot, f"Slot {slot}")


def _slot_position(slot: int) -> int:
    """Sort key for slots: display order first, unknown slots after."""
    try:
        return ITEM_SLOT_DISPLAY_ORDER.index(slot)
    except ValueError:
        return len(ITEM_SLOT_DISPLAY_ORDER)


def _slot_table(records, id_fn, identity_fn, metric_fns, config: ViewConfig,
                extra_fn=None) -> List[AggregateEntry]:
    """Shared per-slot pipeline: group (slot, id) -> fold -> % of slot -> rank in slot."""
    records = drop_zero_weight(records, _usage)
    groups = group_by_key(records, lambda r: (r.item_slot, id_fn(r)))
    entries = aggregate(
        groups,
        identity_fn=identity_fn,
        weight_fn=_usage,
        metric_fns=metric_fns,
        scope_fn=lambda key, rs: key[0],
        extra_fn=extra_fn,
    )
    entries = filter_min_usage(entries, config.min_usage)
    entries = with_scoped_percentage(entries)
    return rank_within_scopes(entries, "total_usage", config.top_n,
                              scope_order=_slot_position)


# ── Items ───────────────────────────────────────────────────

def _item_identity(key, records) -> dict:
    first = records[0]
    return {
        "item_slot": first.item_slot,
        "slot_name": slot_name(first.item_slot),
        "item_id": first.item_id,
        "item_name": first.item_name,
        "item_icon": first.item_icon,
        "item_quality": first.item_quality,
    }


_ITEM_METRICS = {
    "avg_keystone_level": lambda r: r.avg_keystone_level,
    "avg_item_level": lambda r: r.item_level,
}


def items_by_slot(items, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """Popular items per slot, merged across dungeons.

    Rows for the same item in the same slot (one per dungeon upstream) are
    folded together; averages are weighted by usage_count.
    """
    config = config or VIEW_DEFAULTS["items_by_slot"]
    items = parse_records(ItemUsage, items)
    return _slot_table(items, lambda r: r.item_id, _item_identity, _ITEM_METRICS, config)


def best_items_by_slot(items, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """The rank-1 item of every slot, with its share of the slot's usage."""
    config = config or VIEW_DEFAULTS["best_items_by_slot"]
    return items_by_slot(items, config.with_overrides(top_n=1))


# ── Enchants ────────────────────────────────────────────────

def _enchant_identity(key, records) -> dict:
    first = records[0]
    return {
        "item_slot": first.item_slot,
        "slot_name": slot_name(first.item_slot),
        "permanent_enchant_id": first.permanent_enchant_id,
        "permanent_enchant_name": first.permanent_enchant_name,
    }


def _enchant_extra(key, records) -> dict:
    return {"max_keystone_level": max(r.max_keystone_level for r in records)}


_ENCHANT_METRICS = {
    "avg_keystone_level": lambda r: r.avg_keystone_level,
    "avg_item_level": lambda r: r.avg_item_level,
}


def enchants_by_slot(enchants, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """Enchant usage table, ranked within each slot."""
    config = config or VIEW_DEFAULTS["enchants_by_slot"]
    enchants = parse_records(EnchantUsage, enchants)
    return _slot_table(enchants, lambda r: r.permanent_enchant_id, _enchant_identity,
                       _ENCHANT_METRICS, config, extra_fn=_enchant_extra)


def best_enchants_by_slot(enchants, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """The most used enchant of every slot (the overview cards)."""
    config = config or VIEW_DEFAULTS["best_enchants_by_slot"]
    return enchants_by_slot(enchants, config.with_overrides(top_n=1))


# ── Gems ────────────────────────────────────────────────────

def gem_key(gem: GemUsage) -> str:
    """Same gems in any socket order, with the same socket count, share a key."""
    return combination_key(gem.gem_ids, gem.gems_count)


def _gem_identity(key, records) -> dict:
    first = records[0]
    if len(first.gem_icons) == len(first.gem_ids):
        pairs = sorted(zip(first.gem_ids, first.gem_icons), key=lambda p: p[0])
        icons = [icon for _id, icon in pairs]
    else:
        icons = list(first.gem_icons)
    return {
        "combination_key": gem_key(first),
        "gem_ids": sorted(first.gem_ids),
        "gem_icons": icons,
        "gems_count": first.gems_count,
    }


_GEM_METRICS = {
    "avg_keystone_level": lambda r: r.avg_keystone_level,
    "avg_item_level": lambda r: r.avg_item_level,
}


def gems_by_slot(gems, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """Gem combinations ranked inside each slot (the "by slot" table)."""
    config = config or VIEW_DEFAULTS["gems_by_slot"]
    gems = parse_records(GemUsage, gems)

    def identity(key, records):
        out = _gem_identity(key, records)
        out["item_slot"] = records[0].item_slot
        out["slot_name"] = slot_name(records[0].item_slot)
        return out

    return _slot_table(gems, gem_key, identity, _GEM_METRICS, config)


def gem_combination_overview(gems, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """Most used gem combinations across every slot at once.

    Defaults to the top 8 (overview cards). Each entry lists the slots the
    combination was seen in, in order of first appearance.
    """
    config = config or VIEW_DEFAULTS["gem_combination_overview"]
    gems = drop_zero_weight(parse_records(GemUsage, gems), _usage)
    groups = group_by_key(gems, gem_key)

    def extra(key, records):
        slots = list(dict.fromkeys(r.item_slot for r in records))
        return {"slots": slots, "slot_count": len(slots)}

    entries = aggregate(groups, _gem_identity, _usage, _GEM_METRICS, extra_fn=extra)
    entries = filter_min_usage(entries, config.min_usage)
    entries = with_percentage(entries)   # scope: every slot together
    return rank_entries(entries, "total_usage", config.top_n)


# ── Talents ─────────────────────────────────────────────────

_TALENT_METRICS = {
    "avg_keystone_level": lambda b: b.avg_keystone_level,
    "avg_usage_percentage": lambda b: b.avg_usage_percentage,
}


def top_talent_builds(builds, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """Talent loadouts across all dungeons, most played first."""
    config = config or VIEW_DEFAULTS["top_talent_builds"]
    builds = drop_zero_weight(parse_records(TalentBuild, builds), _usage)
    groups = group_by_key(builds, lambda b: b.talent_import)

    def identity(key, records):
        first = records[0]
        return {"talent_import": key, "class": first.class_name, "spec": first.spec}

    def extra(key, records):
        return {"dungeons_count": len({r.encounter_id for r in records})}

    entries = aggregate(groups, identity, _usage, _TALENT_METRICS, extra_fn=extra)
    entries = filter_min_usage(entries, config.min_usage)
    entries = with_percentage(entries)   # scope: all builds passed in
    return rank_entries(entries, "total_usage", config.top_n)


def talent_builds_by_dungeon(builds, config: Optional[ViewConfig] = None,
                             encounter_id: Optional[int] = None) -> List[AggregateEntry]:
    """Best talent builds per dungeon, ranked by their usage percentage there.

    Pass encounter_id to keep a single dungeon.
    """
    config = config or VIEW_DEFAULTS["talent_builds_by_dungeon"]
    builds = drop_zero_weight(parse_records(TalentBuild, builds), _usage)
    if encounter_id is not None:
        builds = [b for b in builds if b.encounter_id == encounter_id]
    groups = group_by_key(builds, lambda b: (b.encounter_id, b.talent_import))

    def identity(key, records):
        first = records[0]
        return {
            "encounter_id": first.encounter_id,
            "dungeon_name": first.dungeon_name,
            "talent_import": first.talent_import,
            "class": first.class_name,
            "spec": first.spec,
        }

    entries = aggregate(groups, identity, _usage, _TALENT_METRICS,
                        scope_fn=lambda key, rs: key[0])
    entries = filter_min_usage(entries, config.min_usage)
    entries = with_scoped_percentage(entries)   # scope: dungeon
    return rank_within_scopes(entries, "avg_usage_percentage", config.top_n,
                              scope_order=lambda encounter: encounter)


# ── Stat priorities ─────────────────────────────────────────

def stat_priorities(stats) -> Dict[str, List[StatPriority]]:
    """Split stats into secondary / minor, each ordered by priority_rank.

    Known categories are always present (possibly empty); any other
    category follows in order of first appearance.
    """
    stats = parse_records(StatPriority, stats)
    out: Dict[str, List[StatPriority]] = {c: [] for c in STAT_CATEGORIES}
    for category, members in group_by_key(stats, lambda s: s.stat_category).items():
        out[category] = sorted(members, key=lambda s: s.priority_rank)
    return out


def stat_priority_string(stats, category: str = "secondary") -> str:
    """e.g. "Haste > Mastery > Critical Strike > Versatility"."""
    return " > ".join(s.stat_name for s in stat_priorities(stats).get(category, []))


# ── Optimal build ───────────────────────────────────────────

@dataclass
class OptimalBuild:
    """Most played talents, stat order and item per slot for a spec."""
    top_talent_import: str = ""
    stat_priority: str = ""
    top_items: Dict[int, AggregateEntry] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "top_talent_import": self.top_talent_import,
            "stat_priority": self.stat_priority,
            "top_items": {str(slot): e.to_dict() for slot, e in self.top_items.items()},
        }


def optimal_build(items=None, builds=None, stats=None) -> OptimalBuild:
    """Assemble the "optimal build" card from the three usage datasets."""
    talents = top_talent_builds(builds, ViewConfig(top_n=1))
    best = best_items_by_slot(items)
    return OptimalBuild(
        top_talent_import=talents[0].identity["talent_import"] if talents else "",
        stat_priority=stat_priority_string(stats),
        top_items={e.scope: e for e in best},
    )
