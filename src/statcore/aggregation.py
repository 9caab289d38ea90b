"""
Aggregation primitives shared by every statistics view.

The pipeline for a view is always the same shape:

    group_by_key -> aggregate (weighted fold) -> filter_min_usage
        -> with_percentage / with_scoped_percentage -> rank_entries

Determinism rules:
    - groups iterate in order of first appearance of their key
    - weighted sums are accumulated left to right in group order
    - ranking uses a stable sort, so ties keep their input order

None of these functions mutate their inputs. Entries are frozen and every
step that changes one returns a copy with its own identity/metrics/extra
dicts, so editing a result never reaches the entry it was made from.
"""

import math
from dataclasses import dataclass, field, replace
from typing import (Any, Callable, Dict, Hashable, Iterable, List, Mapping,
                    Optional, Sequence, Tuple)

from statcore.errors import InvalidRecord, InvalidWeight

# Joins the sorted IDs of a combination; the auxiliary discriminator gets its
# own separator so "1-2-3" (three gems) never collides with "1-2" + count 3.
COMBINATION_SEPARATOR = "-"
AUXILIARY_SEPARATOR = ":"

# Sort keys that map to AggregateEntry attributes rather than metrics
_ENTRY_SORT_FIELDS = {
    "total_usage": "total_usage",
    "usage": "total_usage",
    "usage_count": "total_usage",
    "percentage": "percentage",
}


@dataclass(frozen=True)
class AggregateEntry:
    """All usage records sharing one group key, folded together."""
    key: Hashable
    identity: Dict[str, Any]
    total_usage: float
    metrics: Dict[str, float] = field(default_factory=dict)
    percentage: float = 0.0
    rank: int = 0
    scope: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __hash__(self):
        return hash((self.key, self.scope, self.rank))

    def copy_with(self, **changes) -> "AggregateEntry":
        """replace() that also copies the mutable dicts."""
        changes.setdefault("identity", dict(self.identity))
        changes.setdefault("metrics", dict(self.metrics))
        changes.setdefault("extra", dict(self.extra))
        return replace(self, **changes)

    def metric(self, name: str) -> float:
        try:
            return self.metrics[name]
        except KeyError:
            raise ValueError(f"Entry {self.key!r} has no metric '{name}'") from None

    def to_dict(self) -> dict:
        """Flatten into the JSON shape handed to the presentation layer."""
        out = dict(self.identity)
        out["total_usage"] = self.total_usage
        out.update(self.metrics)
        out.update(self.extra)
        out["percentage"] = self.percentage
        out["rank"] = self.rank
        return out


# ── Grouping ────────────────────────────────────────────────

def group_by_key(records: Iterable, key_fn: Callable[[Any], Hashable]) -> Dict[Hashable, list]:
    """Partition records into buckets keyed by key_fn(record).

    Bucket order is the order each key first appears in the input, and
    records keep their relative order inside a bucket.
    """
    groups: Dict[Hashable, list] = {}
    for record in records:
        groups.setdefault(key_fn(record), []).append(record)
    return groups


def combination_key(ids: Iterable[int], auxiliary: Any = None) -> str:
    """Order-independent identity for a set of discrete IDs.

    IDs are sorted numerically before joining, so any permutation of the
    same multiset gives the same key. An empty ID list gives "" (or
    ":<auxiliary>" when a discriminator is passed).

    >>> combination_key([3, 1, 2], 3)
    '1-2-3:3'
    """
    ids = list(ids)
    for value in ids:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidRecord(f"Combination IDs must be integers, got {value!r}")
    body = COMBINATION_SEPARATOR.join(str(i) for i in sorted(ids))
    if auxiliary is None:
        return body
    return f"{body}{AUXILIARY_SEPARATOR}{auxiliary}"


# ── Weighted accumulation ───────────────────────────────────

def _checked_number(value, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRecord(f"{what} must be numeric, got {value!r}")
    if math.isnan(value) or math.isinf(value):
        raise InvalidRecord(f"{what} must be finite, got {value!r}")
    return value


def _read(fn: Callable[[Any], Any], record, what: str):
    """Call an accessor; a record lacking the field is malformed."""
    try:
        return fn(record)
    except (KeyError, AttributeError, IndexError, TypeError) as e:
        raise InvalidRecord(f"{what} missing from record {record!r}: {e!r}") from e


def _checked_weight(value) -> float:
    weight = _checked_number(value, "Weight")
    if weight <= 0:
        raise InvalidWeight(f"Weight must be positive, got {weight!r}")
    return weight


def drop_zero_weight(records: Iterable, weight_fn: Callable[[Any], float]) -> list:
    """Remove records whose weight is exactly 0; they cannot be averaged.

    A negative weight is a contract violation and raises InvalidWeight,
    a missing or non-numeric one raises InvalidRecord.
    """
    out = []
    for record in records:
        weight = _checked_number(_read(weight_fn, record, "Weight"), "Weight")
        if weight < 0:
            raise InvalidWeight(f"Weight must not be negative, got {weight!r}")
        if weight:
            out.append(record)
    return out


def fold_group(records: Sequence, metric_fns: Mapping[str, Callable[[Any], float]],
               weight_fn: Callable[[Any], float]) -> Tuple[float, Dict[str, float]]:
    """Fold one group into (total weight, {metric: weighted mean}).

    Two passes: sums are accumulated in record order, then divided once.
    An empty group returns (0, {}) and callers drop it.
    """
    total = 0
    sums = {name: 0.0 for name in metric_fns}
    for record in records:
        weight = _checked_weight(_read(weight_fn, record, "Weight"))
        total += weight
        for name, metric_fn in metric_fns.items():
            sums[name] += _checked_number(_read(metric_fn, record, f"Metric '{name}'"),
                                         f"Metric '{name}'") * weight

    if not total:
        return 0, {}
    return total, {name: s / total for name, s in sums.items()}


def accumulate_weighted(groups: Mapping[Hashable, Sequence],
                        metric_fn: Callable[[Any], float],
                        weight_fn: Callable[[Any], float]) -> Dict[Hashable, float]:
    """Weighted mean of metric_fn per group, weights from weight_fn.

    Raises InvalidWeight on a non-positive weight and InvalidRecord on a
    missing or non-numeric weight/metric.
    """
    out: Dict[Hashable, float] = {}
    for key, records in groups.items():
        total, means = fold_group(records, {"value": metric_fn}, weight_fn)
        if total:
            out[key] = means["value"]
    return out


def aggregate(groups: Mapping[Hashable, Sequence],
              identity_fn: Callable[[Hashable, Sequence], Dict[str, Any]],
              weight_fn: Callable[[Any], float],
              metric_fns: Optional[Mapping[str, Callable[[Any], float]]] = None,
              scope_fn: Optional[Callable[[Hashable, Sequence], Any]] = None,
              extra_fn: Optional[Callable[[Hashable, Sequence], Dict[str, Any]]] = None,
              ) -> List[AggregateEntry]:
    """Turn grouped records into AggregateEntry objects, in group order.

    identity_fn / scope_fn / extra_fn receive (key, records) and build the
    descriptive parts of the entry. Groups with zero total weight are left
    out instead of producing an undefined mean.
    """
    metric_fns = metric_fns or {}
    entries = []
    for key, records in groups.items():
        total, means = fold_group(records, metric_fns, weight_fn)
        if not total:
            continue
        entries.append(AggregateEntry(
            key=key,
            identity=identity_fn(key, records),
            total_usage=total,
            metrics=means,
            scope=scope_fn(key, records) if scope_fn else None,
            extra=extra_fn(key, records) if extra_fn else {},
        ))
    return entries


def filter_min_usage(entries: Iterable[AggregateEntry], min_usage: int) -> List[AggregateEntry]:
    """Drop entries whose total usage is below min_usage (0 keeps all)."""
    return [e for e in entries if e.total_usage >= min_usage]


# ── Ranking ─────────────────────────────────────────────────

def _sort_value_fn(sort_key) -> Callable[[AggregateEntry], float]:
    if callable(sort_key):
        return sort_key
    attr = _ENTRY_SORT_FIELDS.get(sort_key)
    if attr is not None:
        return lambda e: getattr(e, attr)
    if not isinstance(sort_key, str) or not sort_key:
        raise ValueError(f"Invalid sort key: {sort_key!r}")
    return lambda e: e.metric(sort_key)


def rank_entries(entries: Iterable[AggregateEntry], sort_key="total_usage",
                 top_n: int = 0) -> List[AggregateEntry]:
    """Sort descending by sort_key, assign rank 1..N, then truncate.

    Ties keep their input order. Ranks are assigned over the full sorted
    sequence, so truncating with top_n never renumbers anything.
    top_n == 0 returns every entry.
    """
    if top_n < 0:
        raise ValueError(f"top_n must be >= 0, got {top_n}")
    value_fn = _sort_value_fn(sort_key)
    ordered = sorted(entries, key=value_fn, reverse=True)
    ranked = [e.copy_with(rank=i) for i, e in enumerate(ordered, start=1)]
    return ranked[:top_n] if top_n else ranked


def rank_within_scopes(entries: Iterable[AggregateEntry], sort_key="total_usage",
                       top_n: int = 0,
                       scope_fn: Optional[Callable[[AggregateEntry], Hashable]] = None,
                       scope_order: Optional[Callable[[Hashable], Any]] = None,
                       ) -> List[AggregateEntry]:
    """Rank each scope independently and concatenate the results.

    Scopes come out in first-appearance order unless scope_order is given,
    in which case it is used as a sort key over the scope values.
    """
    scope_fn = scope_fn or (lambda e: e.scope)
    by_scope = group_by_key(entries, scope_fn)
    scopes = list(by_scope)
    if scope_order is not None:
        scopes.sort(key=scope_order)

    out: List[AggregateEntry] = []
    for scope in scopes:
        out.extend(rank_entries(by_scope[scope], sort_key, top_n))
    return out


# ── Percentages ─────────────────────────────────────────────

def total_usage(entries: Iterable[AggregateEntry]) -> float:
    """Default percentage denominator: summed usage of the entries themselves."""
    return sum(e.total_usage for e in entries)


def with_percentage(entries: Sequence[AggregateEntry],
                    total_fn: Callable[[Sequence[AggregateEntry]], float] = total_usage,
                    value_fn: Callable[[AggregateEntry], float] = lambda e: e.total_usage,
                    ) -> List[AggregateEntry]:
    """Annotate every entry with 100 * value / total for a single scope.

    The denominator is computed once. A zero total makes every percentage 0.
    """
    entries = list(entries)
    total = total_fn(entries)
    if not total:
        return [e.copy_with(percentage=0.0) for e in entries]
    return [e.copy_with(percentage=100.0 * value_fn(e) / total) for e in entries]


def with_scoped_percentage(entries: Sequence[AggregateEntry],
                           scope_fn: Optional[Callable[[AggregateEntry], Hashable]] = None,
                           ) -> List[AggregateEntry]:
    """Like with_percentage, but each scope (slot, dungeon, ...) has its own total.

    Entries keep their input order.
    """
    scope_fn = scope_fn or (lambda e: e.scope)
    totals: Dict[Hashable, float] = {}
    for e in entries:
        scope = scope_fn(e)
        totals[scope] = totals.get(scope, 0) + e.total_usage

    out = []
    for e in entries:
        total = totals[scope_fn(e)]
        pct = 100.0 * e.total_usage / total if total else 0.0
        out.append(e.copy_with(percentage=pct))
    return out
