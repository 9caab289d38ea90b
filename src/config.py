"""
Keystone Stats - Configuration
All tunable constants in one place.
"""

import os

from dotenv import load_dotenv
load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read a non-negative integer override from the environment."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


# ─────────────────────────────────────────────
# View Defaults
# ─────────────────────────────────────────────
# 0 = return every entry (still ranked)
DEFAULT_TOP_N = _env_int("KEYSTONE_TOP_N", 0)

# Groups used fewer times than this are dropped before ranking
DEFAULT_MIN_USAGE = _env_int("KEYSTONE_MIN_USAGE", 0)

# ─────────────────────────────────────────────
# Team Compositions
# ─────────────────────────────────────────────
COMPOSITION_TOP_N = _env_int("KEYSTONE_COMPOSITION_TOP_N", 20)
COMPOSITION_MIN_USAGE = _env_int("KEYSTONE_COMPOSITION_MIN_USAGE", 10)

# "Top specs per dungeon" defaults, per role
DUNGEON_SPECS_TOP_N = {
    "tank": 3,
    "healer": 3,
    "dps": 5,       # more distinct DPS specs show up per dungeon
}

# ─────────────────────────────────────────────
# Gear / Enchants / Gems / Talents
# ─────────────────────────────────────────────
GEM_OVERVIEW_TOP_N = 8          # cards in the gem overview
DUNGEON_TALENT_BUILDS_TOP_N = 3  # talent builds shown per dungeon
KEY_LEVEL_DISTRIBUTION_TOP_N = 15  # bars in the key-level chart

# Equipment slot IDs (Warcraft Logs inventory slots)
ITEM_SLOT_NAMES = {
    0: "Head",
    1: "Neck",
    2: "Shoulders",
    3: "Shirt",
    4: "Chest",
    5: "Waist",
    6: "Legs",
    7: "Feet",
    8: "Wrists",
    9: "Hands",
    10: "Ring 1",
    11: "Ring 2",
    12: "Trinket 1",
    13: "Trinket 2",
    14: "Back",
    15: "Main Hand",
    16: "Off Hand",
    17: "Tabard",
}

# Slot display order (Shirt and Tabard have no performance impact, left out)
ITEM_SLOT_DISPLAY_ORDER = [0, 1, 2, 14, 4, 8, 9, 5, 6, 7, 10, 11, 12, 13, 15, 16]

STAT_CATEGORIES = ("secondary", "minor")

# ─────────────────────────────────────────────
# Key Level Brackets
# ─────────────────────────────────────────────
# (minimum mythic level, label), highest first
KEY_LEVEL_BRACKETS = [
    (20, "Very High Keys (20+)"),
    (18, "High Keys (18-19)"),
    (16, "Mid Keys (16-17)"),
]
KEY_LEVEL_BRACKET_OTHER = "Other Keys (<16)"

# Specs seen fewer times than this in a bracket are left out of the meta view
KEY_LEVEL_META_MIN_USAGE = _env_int("KEYSTONE_META_MIN_USAGE", 5)

# ─────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────
LOG_LEVEL = os.environ.get("KEYSTONE_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
