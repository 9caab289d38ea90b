"""
StatsEngine — single entry point for every statistics view.

Wraps builds_stats and runs_stats and resolves the ViewConfig each view
runs with, so consumers never assemble configs themselves.

Usage:
    from statcore import StatsEngine

    engine = StatsEngine()
    slots  = engine.view("best_items_by_slot", item_rows)
    comps  = engine.view("team_compositions", run_rows, scope="dungeon", top_n=5)
    card   = engine.optimal_build(item_rows, build_rows, stat_rows)

Config resolution, per call:
    1. the view's own default (e.g. compositions: top 20, min usage 10)
    2. replaced entirely by the engine's ViewConfig, when one was given
    3. top_n / min_usage passed to view() override single fields
"""

import importlib
import logging
from typing import Any, Dict, List, Optional

from statcore.view_config import ViewConfig

logger = logging.getLogger(__name__)

# view name -> (module, dataset kind, takes a ViewConfig)
_VIEWS = {
    "items_by_slot": ("builds_stats", "items", True),
    "best_items_by_slot": ("builds_stats", "items", True),
    "enchants_by_slot": ("builds_stats", "enchants", True),
    "best_enchants_by_slot": ("builds_stats", "enchants", True),
    "gems_by_slot": ("builds_stats", "gems", True),
    "gem_combination_overview": ("builds_stats", "gems", True),
    "top_talent_builds": ("builds_stats", "builds", True),
    "talent_builds_by_dungeon": ("builds_stats", "builds", True),
    "stat_priorities": ("builds_stats", "stats", False),
    "team_compositions": ("runs_stats", "runs", True),
    "key_level_distribution": ("runs_stats", "runs", True),
    "spec_usage_by_role": ("runs_stats", "runs", True),
    "spec_usage_by_dungeon_and_role": ("runs_stats", "runs", True),
    "specs_by_dungeon": ("runs_stats", "runs", True),
    "meta_by_key_level": ("runs_stats", "runs", True),
    "specs_by_region": ("runs_stats", "runs", True),
    "dungeon_distribution": ("runs_stats", "runs", True),
    "region_distribution": ("runs_stats", "runs", True),
    "overall_stats": ("runs_stats", "runs", False),
}


def _size(result) -> int:
    try:
        return len(result)
    except TypeError:
        return 1


class StatsEngine:
    """Facade over the build and run statistics views.

    Holds no data between calls; every view is recomputed from the records
    it is handed.
    """

    def __init__(self, config: Optional[ViewConfig] = None):
        self.config = config
        self._modules: Dict[str, Any] = {}
        logger.info(f"StatsEngine initialized (config={config}, views={len(_VIEWS)})")

    @classmethod
    def from_config(cls) -> "StatsEngine":
        """Engine whose views all use the config.py / environment defaults."""
        return cls(ViewConfig.from_config())

    # ── Public API ──────────────────────────────────────────

    @staticmethod
    def available_views() -> List[str]:
        return sorted(_VIEWS)

    @staticmethod
    def dataset_for(name: str) -> str:
        """Which dataset ("items", "runs", ...) a view consumes."""
        return _resolve(name)[1]

    def view_config(self, name: str, top_n: Optional[int] = None,
                    min_usage: Optional[int] = None, role=None) -> Optional[ViewConfig]:
        """The ViewConfig a view would run with.

        None means "let the view pick its own default", which only happens
        when neither the engine nor the call overrides anything.
        """
        module_name, _kind, configurable = _resolve(name)
        if not configurable:
            return None
        if self.config is None and top_n is None and min_usage is None:
            return None
        base = self.config or self._default_config(module_name, name, role)
        return base.with_overrides(top_n=top_n, min_usage=min_usage)

    def view(self, name: str, records, top_n: Optional[int] = None,
             min_usage: Optional[int] = None, **kwargs):
        """Run one view over records (decoded JSON rows or record objects).

        Extra keyword arguments go to the view itself (role, dungeon_slug,
        scope, by_level, encounter_id).
        """
        module_name, _kind, configurable = _resolve(name)
        fn = getattr(self._module(module_name), name)
        records = list(records) if records is not None else []

        if configurable:
            kwargs["config"] = self.view_config(name, top_n, min_usage, kwargs.get("role"))
        elif top_n is not None or min_usage is not None:
            raise ValueError(f"View '{name}' does not take top_n / min_usage")

        result = fn(records, **kwargs)
        logger.debug(f"{name}: {len(records)} records -> {_size(result)} entries")
        return result

    def optimal_build(self, items=None, builds=None, stats=None):
        """Top talent import, stat priority string and best item per slot."""
        builds_stats = self._module("builds_stats")
        build = builds_stats.optimal_build(items, builds, stats)
        logger.debug(f"optimal_build: {len(build.top_items)} slots, "
                     f"talents={'yes' if build.top_talent_import else 'no'}")
        return build

    # ── Internals ───────────────────────────────────────────

    def _module(self, module_name: str):
        module = self._modules.get(module_name)
        if module is None:
            module = importlib.import_module(module_name)
            self._modules[module_name] = module
        return module

    def _default_config(self, module_name: str, name: str, role) -> ViewConfig:
        module = self._module(module_name)
        if name == "specs_by_dungeon":
            from config import DUNGEON_SPECS_TOP_N
            from records import Role
            return ViewConfig(top_n=DUNGEON_SPECS_TOP_N[Role.parse(role).value])
        return module.VIEW_DEFAULTS.get(name, ViewConfig())


def _resolve(name: str):
    try:
        return _VIEWS[name]
    except KeyError:
        raise ValueError(
            f"Unknown view '{name}' (available: {', '.join(sorted(_VIEWS))})"
        ) from None
