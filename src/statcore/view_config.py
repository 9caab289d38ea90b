"""
ViewConfig — per-call configuration for statistics views.

Every composite view accepts one. Consumers usually build it with
ViewConfig.from_config() and override a field with with_overrides().
"""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class ViewConfig:
    """Truncation and sample-size filter applied by a view."""

    top_n: int = 0          # 0 = every entry, still ranked
    min_usage: int = 0      # groups below this usage are dropped before ranking

    def __post_init__(self):
        for name in ("top_n", "min_usage"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")

    def with_overrides(self, top_n: Optional[int] = None,
                       min_usage: Optional[int] = None) -> "ViewConfig":
        """Copy with the given fields replaced (None keeps the current value)."""
        return replace(
            self,
            top_n=self.top_n if top_n is None else top_n,
            min_usage=self.min_usage if min_usage is None else min_usage,
        )

    @classmethod
    def from_config(cls) -> "ViewConfig":
        """Defaults from config.py (environment overrides included)."""
        from config import DEFAULT_TOP_N, DEFAULT_MIN_USAGE
        return cls(top_n=DEFAULT_TOP_N, min_usage=DEFAULT_MIN_USAGE)
