"""
Keystone Stats - Run Analytics
Mythic+ compositions, key levels and spec meta.

Input rows are completed runs (one per run, usage_count 1) or pre-aggregated
composition rows that carry their own usage_count and average score. Both go
through RunRecord, and every average below is weighted by usage_count.

Percentage scopes:
    team_compositions(scope=GLOBAL)     all compositions passed in
    team_compositions(scope=DUNGEON)    compositions of that dungeon
    key_level_distribution              the full dataset, before min_usage
    spec_usage_by_role                  every member of that role
    spec_usage_by_dungeon_and_role      members of that role in that dungeon
    specs_by_dungeon                    per dungeon, per role
    meta_by_key_level                   per role and key-level bracket
    specs_by_region                     per role and region
    dungeon_distribution / region_distribution   all runs
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import List, Optional

from config import (
    COMPOSITION_MIN_USAGE,
    COMPOSITION_TOP_N,
    DUNGEON_SPECS_TOP_N,
    KEY_LEVEL_BRACKET_OTHER,
    KEY_LEVEL_BRACKETS,
    KEY_LEVEL_DISTRIBUTION_TOP_N,
    KEY_LEVEL_META_MIN_USAGE,
)
from records import Role, RunRecord, SpecRef, parse_records
from statcore.aggregation import (
    AggregateEntry,
    aggregate,
    drop_zero_weight,
    filter_min_usage,
    fold_group,
    group_by_key,
    rank_entries,
    rank_within_scopes,
    with_percentage,
    with_scoped_percentage,
)
from statcore.errors import InvalidRecord
from statcore.view_config import ViewConfig

VIEW_DEFAULTS = {
    "team_compositions": ViewConfig(top_n=COMPOSITION_TOP_N, min_usage=COMPOSITION_MIN_USAGE),
    "key_level_distribution": ViewConfig(top_n=KEY_LEVEL_DISTRIBUTION_TOP_N),
    "spec_usage_by_role": ViewConfig(),
    "spec_usage_by_dungeon_and_role": ViewConfig(),
    "meta_by_key_level": ViewConfig(min_usage=KEY_LEVEL_META_MIN_USAGE),
    "specs_by_region": ViewConfig(),
    "dungeon_distribution": ViewConfig(),
    "region_distribution": ViewConfig(),
}

_ROLE_ORDER = [Role.TANK, Role.HEALER, Role.DPS]
_BRACKET_ORDER = [label for _level, label in KEY_LEVEL_BRACKETS] + [KEY_LEVEL_BRACKET_OTHER]


class Scope(str, Enum):
    """Denominator used for composition percentages."""
    GLOBAL = "global"
    DUNGEON = "dungeon"


def _usage(run: RunRecord) -> int:
    return run.usage_count


def _score(run: RunRecord) -> float:
    return run.score


def _load_runs(runs) -> List[RunRecord]:
    return drop_zero_weight(parse_records(RunRecord, runs), _usage)


def _require_dungeon(run: RunRecord) -> str:
    if not run.dungeon_slug:
        raise InvalidRecord("RunRecord: missing required field 'dungeon_slug'")
    return run.dungeon_slug


def _require_level(run: RunRecord) -> int:
    if run.mythic_level is None:
        raise InvalidRecord("RunRecord: missing required field 'mythic_level'")
    return run.mythic_level


def key_level_bracket(mythic_level: int) -> str:
    for minimum, label in KEY_LEVEL_BRACKETS:
        if mythic_level >= minimum:
            return label
    return KEY_LEVEL_BRACKET_OTHER


def _score_range(records) -> dict:
    scores = [_score(r) for r in records]
    return {"min_score": min(scores), "max_score": max(scores)}


# ── Team compositions ───────────────────────────────────────

def composition_key(run: RunRecord) -> tuple:
    """(tank, healer, dps trio) with the trio sorted, so DPS order never matters."""
    dps = tuple(sorted((m.class_name, m.spec) for m in run.dps))
    return (
        (run.tank.class_name, run.tank.spec),
        (run.healer.class_name, run.healer.spec),
        dps,
    )


def _composition_identity(comp) -> dict:
    tank, healer, dps = comp
    out = {
        "tank": SpecRef(*tank).display,
        "healer": SpecRef(*healer).display,
    }
    for i, member in enumerate(dps, start=1):
        out[f"dps{i}"] = SpecRef(*member).display
    return out


def team_compositions(runs, config: Optional[ViewConfig] = None,
                      scope: Scope = Scope.GLOBAL) -> List[AggregateEntry]:
    """Most played 5-man compositions with their weighted average score.

    With Scope.DUNGEON every dungeon is ranked on its own (top_n applies per
    dungeon) and the output is ordered by dungeon slug, then rank.
    """
    config = config or VIEW_DEFAULTS["team_compositions"]
    scope = Scope(scope)
    runs = _load_runs(runs)

    if scope is Scope.DUNGEON:
        groups = group_by_key(runs, lambda r: (_require_dungeon(r), composition_key(r)))
    else:
        groups = group_by_key(runs, lambda r: (None, composition_key(r)))

    def identity(key, records):
        out = _composition_identity(key[1])
        if scope is Scope.DUNGEON:
            out["dungeon_slug"] = key[0]
            out["dungeon_name"] = records[0].dungeon_name
        return out

    entries = aggregate(groups, identity, _usage, {"avg_score": _score},
                        scope_fn=lambda key, rs: key[0])
    entries = filter_min_usage(entries, config.min_usage)
    entries = with_scoped_percentage(entries)
    return rank_within_scopes(entries, "total_usage", config.top_n,
                              scope_order=(lambda slug: slug) if scope is Scope.DUNGEON else None)


# ── Key levels ──────────────────────────────────────────────

def key_level_distribution(runs, config: Optional[ViewConfig] = None,
                           by_level: bool = False) -> List[AggregateEntry]:
    """Run count per keystone level with average/min/max score.

    Percentages are taken against every run passed in, before min_usage
    drops sparse levels. Output is in rank order (most played level first);
    by_level=True re-orders the kept entries by ascending level for charts.
    """
    config = config or VIEW_DEFAULTS["key_level_distribution"]
    runs = _load_runs(runs)
    groups = group_by_key(runs, _require_level)

    entries = aggregate(groups, lambda key, rs: {"mythic_level": key}, _usage,
                        {"avg_score": _score}, extra_fn=lambda key, rs: _score_range(rs))
    entries = with_percentage(entries)   # scope: full dataset
    entries = filter_min_usage(entries, config.min_usage)
    ranked = rank_entries(entries, "total_usage", config.top_n)
    if by_level:
        ranked.sort(key=lambda e: e.identity["mythic_level"])
    return ranked


# ── Spec usage ──────────────────────────────────────────────

def _role_members(runs: List[RunRecord], roles) -> list:
    """Explode runs into (role, spec, run) triples, one per player."""
    out = []
    for run in runs:
        for role in roles:
            for member in run.members(role):
                out.append((role, member, run))
    return out


def _member_usage(triple) -> int:
    return triple[2].usage_count


def _member_score(triple) -> float:
    return triple[2].score


def _spec_identity(role: Role, spec: SpecRef) -> dict:
    return {
        "role": role.value,
        "class": spec.class_name,
        "spec": spec.spec,
        "display": spec.display,
    }


def _spec_usage(triples, scope_fn, config: ViewConfig, scope_order=None,
                extra_identity=None) -> List[AggregateEntry]:
    """Group (scope, role, spec) -> fold -> % within scope -> rank within scope."""
    groups = group_by_key(triples, lambda t: (scope_fn(t), t[0], t[1]))

    def identity(key, records):
        out = _spec_identity(key[1], key[2])
        if extra_identity:
            out.update(extra_identity(key, records))
        return out

    entries = aggregate(groups, identity, _member_usage, {"avg_score": _member_score},
                        scope_fn=lambda key, rs: key[0])
    entries = filter_min_usage(entries, config.min_usage)
    entries = with_scoped_percentage(entries)
    return rank_within_scopes(entries, "total_usage", config.top_n, scope_order=scope_order)


def spec_usage_by_role(runs, role, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """How often each class/spec filled a role; DPS counts all three slots."""
    config = config or VIEW_DEFAULTS["spec_usage_by_role"]
    role = Role.parse(role)
    triples = _role_members(_load_runs(runs), [role])
    return _spec_usage(triples, lambda t: role, config)


def spec_usage_by_dungeon_and_role(runs, dungeon_slug: str, role,
                                   config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """spec_usage_by_role restricted to one dungeon."""
    config = config or VIEW_DEFAULTS["spec_usage_by_dungeon_and_role"]
    role = Role.parse(role)
    runs = [r for r in _load_runs(runs) if _require_dungeon(r) == dungeon_slug]

    def dungeon_identity(key, records):
        return {"dungeon_slug": dungeon_slug, "dungeon_name": records[0][2].dungeon_name}

    triples = _role_members(runs, [role])
    return _spec_usage(triples, lambda t: role, config, extra_identity=dungeon_identity)


def specs_by_dungeon(runs, role, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """Spec usage for a role in every dungeon, ranked per dungeon.

    Defaults to the top 3 tanks/healers or top 5 DPS of each dungeon.
    """
    role = Role.parse(role)
    config = config or ViewConfig(top_n=DUNGEON_SPECS_TOP_N[role.value])
    triples = _role_members(_load_runs(runs), [role])

    def dungeon_identity(key, records):
        return {"dungeon_slug": key[0], "dungeon_name": records[0][2].dungeon_name}

    return _spec_usage(triples, lambda t: _require_dungeon(t[2]), config,
                       scope_order=lambda slug: slug, extra_identity=dungeon_identity)


def _roles(role) -> list:
    return _ROLE_ORDER if role is None else [Role.parse(role)]


def meta_by_key_level(runs, role=None, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """Spec usage per role inside each key-level bracket (20+, 18-19, 16-17, <16).

    role=None covers every role. Output is ordered by role, bracket, rank.
    """
    config = config or VIEW_DEFAULTS["meta_by_key_level"]
    triples = _role_members(_load_runs(runs), _roles(role))

    def bracket_of(triple):
        return (triple[0], key_level_bracket(_require_level(triple[2])))

    def order(scope):
        role_, bracket = scope
        return (_ROLE_ORDER.index(role_), _BRACKET_ORDER.index(bracket))

    def bracket_identity(key, records):
        return {"key_level_bracket": key[0][1]}

    return _spec_usage(triples, bracket_of, config, scope_order=order,
                       extra_identity=bracket_identity)


def specs_by_region(runs, role=None, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """Spec usage per role and region, ordered by role, region, rank."""
    config = config or VIEW_DEFAULTS["specs_by_region"]
    triples = _role_members(_load_runs(runs), _roles(role))

    def region_of(triple):
        return (triple[0], triple[2].region)

    def order(scope):
        return (_ROLE_ORDER.index(scope[0]), scope[1])

    return _spec_usage(triples, region_of, config, scope_order=order,
                       extra_identity=lambda key, rs: {"region": key[0][1]})


# ── Distributions ───────────────────────────────────────────

def dungeon_distribution(runs, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """Runs per dungeon with average score/key level and score range."""
    config = config or VIEW_DEFAULTS["dungeon_distribution"]
    runs = _load_runs(runs)
    groups = group_by_key(runs, _require_dungeon)

    def identity(key, records):
        return {"dungeon_slug": key, "dungeon_name": records[0].dungeon_name}

    entries = aggregate(groups, identity, _usage,
                        {"avg_score": _score, "avg_key_level": _require_level},
                        extra_fn=lambda key, rs: _score_range(rs))
    entries = filter_min_usage(entries, config.min_usage)
    entries = with_percentage(entries)   # scope: all runs kept
    return rank_entries(entries, "total_usage", config.top_n)


def region_distribution(runs, config: Optional[ViewConfig] = None) -> List[AggregateEntry]:
    """Runs per region with average score and key level."""
    config = config or VIEW_DEFAULTS["region_distribution"]
    runs = _load_runs(runs)
    groups = group_by_key(runs, lambda r: r.region)

    entries = aggregate(groups, lambda key, rs: {"region": key}, _usage,
                        {"avg_score": _score, "avg_key_level": _require_level})
    entries = filter_min_usage(entries, config.min_usage)
    entries = with_percentage(entries)   # scope: all runs kept
    return rank_entries(entries, "total_usage", config.top_n)


# ── Overall ─────────────────────────────────────────────────

@dataclass
class OverallStats:
    """Headline numbers for the statistics page."""
    total_runs: int = 0
    runs_with_score: int = 0
    unique_compositions: int = 0
    unique_dungeons: int = 0
    unique_regions: int = 0
    oldest_run: str = ""
    newest_run: str = ""
    avg_score: float = 0.0
    avg_key_level: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def overall_stats(runs) -> OverallStats:
    """Dataset summary. No runs gives an all-zero summary, not an error."""
    runs = _load_runs(runs)
    if not runs:
        return OverallStats()

    total, means = fold_group(runs, {"avg_score": _score}, _usage)
    levelled = [r for r in runs if r.mythic_level is not None]
    _levels_total, level_means = fold_group(
        levelled, {"avg_key_level": lambda r: r.mythic_level}, _usage)
    dates = sorted(r.completed_at for r in runs if r.completed_at)

    return OverallStats(
        total_runs=total,
        runs_with_score=sum(r.usage_count for r in runs if r.score > 0),
        unique_compositions=len({composition_key(r) for r in runs}),
        unique_dungeons=len({r.dungeon_slug for r in runs if r.dungeon_slug}),
        unique_regions=len({r.region for r in runs if r.region}),
        oldest_run=dates[0] if dates else "",
        newest_run=dates[-1] if dates else "",
        avg_score=means["avg_score"],
        avg_key_level=level_means.get("avg_key_level", 0.0),
    )
