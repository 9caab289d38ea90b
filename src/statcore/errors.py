"""
Error types raised by the aggregation core.

Nothing in the core catches these. A view either returns a complete,
valid result or raises, and the caller decides what to show.
"""


class StatsError(Exception):
    """Base class for aggregation errors."""


class InvalidRecord(StatsError):
    """A required identity or numeric field is missing or malformed."""


class InvalidWeight(StatsError):
    """A usage weight is zero or negative where a positive weight is required."""
