"""
Keystone Stats Core — game-agnostic usage aggregation.

Usage:
    from statcore import StatsEngine, ViewConfig

    engine = StatsEngine(ViewConfig(top_n=10))
    entries = engine.view("enchants_by_slot", enchant_rows)
    rows = [e.to_dict() for e in entries]
"""

from statcore.aggregation import (
    AggregateEntry,
    accumulate_weighted,
    aggregate,
    combination_key,
    filter_min_usage,
    fold_group,
    group_by_key,
    rank_entries,
    rank_within_scopes,
    with_percentage,
    with_scoped_percentage,
)
from statcore.errors import InvalidRecord, InvalidWeight, StatsError
from statcore.stats_engine import StatsEngine
from statcore.view_config import ViewConfig

__all__ = [
    "AggregateEntry",
    "InvalidRecord",
    "InvalidWeight",
    "StatsEngine",
    "StatsError",
    "ViewConfig",
    "accumulate_weighted",
    "aggregate",
    "combination_key",
    "filter_min_usage",
    "fold_group",
    "group_by_key",
    "rank_entries",
    "rank_within_scopes",
    "with_percentage",
    "with_scoped_percentage",
]
