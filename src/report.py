"""
Keystone Stats - command line report.

Loads a JSON dump of backend rows and prints one statistics view, either
as a fixed-width text table or as the JSON view-model.

The dump is either a plain list of rows for the chosen view, or an object
keyed by dataset:

    {"items": [...], "enchants": [...], "gems": [...], "builds": [...],
     "stats": [...], "runs": [...]}

Usage:
    keystone-report runs.json --view team_compositions --scope dungeon --top-n 5
    keystone-report dump.json --view specs_by_dungeon --role dps --json
    keystone-report dump.json --view optimal_build
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from config import DEFAULT_MIN_USAGE, DEFAULT_TOP_N, LOG_FORMAT, LOG_LEVEL
from statcore import AggregateEntry, StatsEngine, StatsError

logger = logging.getLogger(__name__)

OPTIMAL_BUILD = "optimal_build"

# Extra view arguments the CLI forwards: view -> (option, required)
_VIEW_OPTIONS = {
    "team_compositions": [("scope", False)],
    "key_level_distribution": [("by_level", False)],
    "spec_usage_by_role": [("role", True)],
    "spec_usage_by_dungeon_and_role": [("role", True), ("dungeon_slug", True)],
    "specs_by_dungeon": [("role", True)],
    "meta_by_key_level": [("role", False)],
    "specs_by_region": [("role", False)],
    "talent_builds_by_dungeon": [("encounter_id", False)],
}

# identity fields tried in order for the "name" column
_LABEL_FIELDS = (
    "display", "item_name", "permanent_enchant_name", "combination_key",
    "talent_import", "mythic_level", "dungeon_name", "dungeon_slug", "region",
)
_COMPOSITION_FIELDS = ("tank", "healer", "dps1", "dps2", "dps3")


# ─── Loading ─────────────────────────────────────────

def load_dataset(path: Path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def select_rows(data, dataset: str) -> list:
    """Rows for one dataset kind out of a list or a keyed dump."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get(dataset) or []
    raise ValueError(f"Dataset must be a JSON list or object, got {type(data).__name__}")


# ─── Rendering ───────────────────────────────────────

def entry_label(entry: AggregateEntry) -> str:
    identity = entry.identity
    if "tank" in identity:
        return " | ".join(identity[f] for f in _COMPOSITION_FIELDS if f in identity)
    for name in _LABEL_FIELDS:
        value = identity.get(name)
        if value not in (None, ""):
            return str(value)
    return str(entry.key)


def _fmt(value) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def render_entries(entries: list) -> str:
    if not entries:
        return "No data."
    metric_names = list(dict.fromkeys(m for e in entries for m in e.metrics))
    scoped = any(e.scope is not None for e in entries)

    header = (["Scope"] if scoped else []) + ["Rank", "Name", "Usage", "%"] + metric_names
    rows = []
    for e in entries:
        scope = e.scope
        if isinstance(scope, tuple):
            scope = " / ".join(getattr(s, "value", str(s)) for s in scope)
        elif scope is not None:
            scope = getattr(scope, "value", scope)
        row = ([_fmt(scope)] if scoped else []) + [
            str(e.rank), entry_label(e), _fmt(e.total_usage), f"{e.percentage:.2f}",
        ]
        row += [_fmt(e.metrics[m]) if m in e.metrics else "" for m in metric_names]
        rows.append(row)

    widths = [max(len(r[i]) for r in [header] + rows) for i in range(len(header))]
    lines = ["  ".join(cell.ljust(w) for cell, w in zip(header, widths)).rstrip()]
    lines.append("  ".join("-" * w for w in widths))
    for row in rows:
        lines.append("  ".join(cell.ljust(w) for cell, w in zip(row, widths)).rstrip())
    return "\n".join(lines)


def render_text(result) -> str:
    """Human-readable rendering of any view result."""
    if isinstance(result, list):
        return render_entries(result)
    if isinstance(result, dict):    # stat priorities
        return "\n".join(
            f"{category}: {' > '.join(s.stat_name for s in stats) or '-'}"
            for category, stats in result.items()
        )
    data = result.to_dict()
    lines = []
    for name, value in data.items():
        if name == "top_items":
            for slot, item in value.items():
                label = item.get("item_name") or item.get("item_id", "")
                lines.append(f"  {item.get('slot_name', slot)}: {label}")
        else:
            lines.append(f"{name}: {_fmt(value)}")
    return "\n".join(lines)


def to_jsonable(result):
    if isinstance(result, list):
        return [e.to_dict() for e in result]
    if isinstance(result, dict):
        return {category: [asdict(s) for s in stats] for category, stats in result.items()}
    return result.to_dict()


# ─── CLI Entry Point ─────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print Mythic+ usage statistics from a JSON dump")
    parser.add_argument("dataset", type=Path,
                        help="JSON file: a list of rows or an object keyed by dataset")
    parser.add_argument("--view", required=True,
                        choices=StatsEngine.available_views() + [OPTIMAL_BUILD],
                        help="Statistics view to compute")
    parser.add_argument("--top-n", type=int, default=DEFAULT_TOP_N or None,
                        help="Entries kept per scope (0 = all; default: view default)")
    parser.add_argument("--min-usage", type=int, default=DEFAULT_MIN_USAGE or None,
                        help="Drop groups used fewer times (default: view default)")
    parser.add_argument("--role", choices=["tank", "healer", "dps"],
                        help="Role for spec usage views")
    parser.add_argument("--dungeon", dest="dungeon_slug",
                        help="Dungeon slug for spec_usage_by_dungeon_and_role")
    parser.add_argument("--scope", choices=["global", "dungeon"],
                        help="Percentage scope for team_compositions (default: global)")
    parser.add_argument("--by-level", action="store_true",
                        help="Order key_level_distribution by level instead of rank")
    parser.add_argument("--encounter-id", type=int,
                        help="Single dungeon for talent_builds_by_dungeon")
    parser.add_argument("--json", action="store_true",
                        help="Print the view-model as JSON")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    return parser


def view_kwargs(parser: argparse.ArgumentParser, args) -> dict:
    kwargs = {}
    for option, required in _VIEW_OPTIONS.get(args.view, []):
        value = getattr(args, option)
        if value is None or value is False:
            if required:
                flag = "--dungeon" if option == "dungeon_slug" else f"--{option.replace('_', '-')}"
                parser.error(f"--view {args.view} requires {flag}")
            continue
        kwargs[option] = value
    return kwargs


def run_view(engine: StatsEngine, data, args, kwargs):
    if args.view == OPTIMAL_BUILD:
        return engine.optimal_build(
            select_rows(data, "items"), select_rows(data, "builds"), select_rows(data, "stats"))
    rows = select_rows(data, StatsEngine.dataset_for(args.view))
    configurable = args.view not in ("stat_priorities", "overall_stats")
    if configurable:
        return engine.view(args.view, rows, top_n=args.top_n, min_usage=args.min_usage, **kwargs)
    return engine.view(args.view, rows, **kwargs)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else getattr(logging, LOG_LEVEL, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    kwargs = view_kwargs(parser, args)

    try:
        data = load_dataset(args.dataset)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not load {args.dataset}: {e}")
        return 1

    try:
        result = run_view(StatsEngine(), data, args, kwargs)
    except (StatsError, ValueError) as e:
        logger.error(f"View '{args.view}' failed: {e}")
        return 1

    if args.json:
        print(json.dumps(to_jsonable(result), indent=2))
    else:
        print(render_text(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
