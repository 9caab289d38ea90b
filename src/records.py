"""
records.py — typed usage records consumed by the statistics views.

The backend hands over JSON rows (already decoded into dicts). Each record
type has a from_dict() that validates the identity and weight fields and
raises InvalidRecord instead of guessing. Optional descriptive fields
(names, icons, averages) fall back to neutral defaults.

Records are frozen: views never modify what they are given.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from statcore.errors import InvalidRecord

_MISSING = object()


class Role(str, Enum):
    TANK = "tank"
    HEALER = "healer"
    DPS = "dps"

    @classmethod
    def parse(cls, value) -> "Role":
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidRecord(
                f"Unknown role {value!r} (must be 'tank', 'healer' or 'dps')"
            ) from None


# ── Field helpers ───────────────────────────────────────────

def _check_row(row, type_name: str) -> Dict[str, Any]:
    if not isinstance(row, dict):
        raise InvalidRecord(f"{type_name}: expected a mapping, got {type(row).__name__}")
    return row


def _field(row: dict, type_name: str, *names: str, default=_MISSING):
    """First present, non-None value among names (aliases)."""
    for name in names:
        value = row.get(name)
        if value is not None:
            return value
    if default is _MISSING:
        raise InvalidRecord(f"{type_name}: missing required field '{names[0]}'")
    return default


def _int(row: dict, type_name: str, *names: str, default=_MISSING) -> int:
    value = _field(row, type_name, *names, default=default)
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRecord(f"{type_name}: field '{names[0]}' must be an integer, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise InvalidRecord(f"{type_name}: field '{names[0]}' must be an integer, got {value!r}")
    return value


def _float(row: dict, type_name: str, *names: str, default=_MISSING) -> float:
    value = _field(row, type_name, *names, default=default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRecord(f"{type_name}: field '{names[0]}' must be numeric, got {value!r}")
    return float(value)


def _str(row: dict, type_name: str, *names: str, default=_MISSING) -> str:
    value = _field(row, type_name, *names, default=default)
    if not isinstance(value, str):
        raise InvalidRecord(f"{type_name}: field '{names[0]}' must be a string, got {value!r}")
    if default is _MISSING and not value.strip():
        raise InvalidRecord(f"{type_name}: field '{names[0]}' is empty")
    return value


def _int_tuple(row: dict, type_name: str, *names: str) -> Tuple[int, ...]:
    values = _field(row, type_name, *names)
    if not isinstance(values, (list, tuple)):
        raise InvalidRecord(f"{type_name}: field '{names[0]}' must be a list, got {values!r}")
    out = []
    for v in values:
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        if isinstance(v, bool) or not isinstance(v, int):
            raise InvalidRecord(f"{type_name}: field '{names[0]}' holds non-integer {v!r}")
        out.append(v)
    return tuple(out)


# ── Gear records ────────────────────────────────────────────

@dataclass(frozen=True)
class ItemUsage:
    """How often an item was equipped in a slot, for one dungeon."""
    item_slot: int
    item_id: int
    usage_count: int
    item_name: str = ""
    item_icon: str = ""
    item_quality: int = 0           # 2: uncommon, 3: rare, 4: epic
    item_level: float = 0.0
    avg_keystone_level: float = 0.0
    encounter_id: int = 0

    @classmethod
    def from_dict(cls, row: dict) -> "ItemUsage":
        t = cls.__name__
        row = _check_row(row, t)
        return cls(
            item_slot=_int(row, t, "item_slot"),
            item_id=_int(row, t, "item_id"),
            usage_count=_int(row, t, "usage_count"),
            item_name=_str(row, t, "item_name", default=""),
            item_icon=_str(row, t, "item_icon", default=""),
            item_quality=_int(row, t, "item_quality", default=0),
            item_level=_float(row, t, "item_level", default=0.0),
            avg_keystone_level=_float(row, t, "avg_keystone_level", default=0.0),
            encounter_id=_int(row, t, "encounter_id", default=0),
        )


@dataclass(frozen=True)
class EnchantUsage:
    """How often a permanent enchant was used on a slot."""
    item_slot: int
    permanent_enchant_id: int
    usage_count: int
    permanent_enchant_name: str = ""
    avg_keystone_level: float = 0.0
    avg_item_level: float = 0.0
    max_keystone_level: int = 0

    @classmethod
    def from_dict(cls, row: dict) -> "EnchantUsage":
        t = cls.__name__
        row = _check_row(row, t)
        return cls(
            item_slot=_int(row, t, "item_slot"),
            permanent_enchant_id=_int(row, t, "permanent_enchant_id"),
            usage_count=_int(row, t, "usage_count"),
            permanent_enchant_name=_str(row, t, "permanent_enchant_name", default=""),
            avg_keystone_level=_float(row, t, "avg_keystone_level", default=0.0),
            avg_item_level=_float(row, t, "avg_item_level", default=0.0),
            max_keystone_level=_int(row, t, "max_keystone_level", default=0),
        )


@dataclass(frozen=True)
class GemUsage:
    """A socketed gem combination seen on a slot."""
    item_slot: int
    gem_ids: Tuple[int, ...]
    gems_count: int
    usage_count: int
    gem_icons: Tuple[str, ...] = ()
    gem_levels: Tuple[float, ...] = ()
    avg_keystone_level: float = 0.0
    avg_item_level: float = 0.0

    @classmethod
    def from_dict(cls, row: dict) -> "GemUsage":
        t = cls.__name__
        row = _check_row(row, t)
        gem_ids = _int_tuple(row, t, "gem_ids_array", "gem_ids")
        return cls(
            item_slot=_int(row, t, "item_slot"),
            gem_ids=gem_ids,
            gems_count=_int(row, t, "gems_count", default=len(gem_ids)),
            usage_count=_int(row, t, "usage_count"),
            gem_icons=tuple(_field(row, t, "gem_icons_array", "gem_icons", default=())),
            gem_levels=tuple(_field(row, t, "gem_levels_array", "gem_levels", default=())),
            avg_keystone_level=_float(row, t, "avg_keystone_level", default=0.0),
            avg_item_level=_float(row, t, "avg_item_level", default=0.0),
        )


# ── Talents & stats ─────────────────────────────────────────

@dataclass(frozen=True)
class TalentBuild:
    """A talent loadout (import string) and how often it was played."""
    talent_import: str
    total_usage: int
    avg_usage_percentage: float = 0.0
    avg_keystone_level: float = 0.0
    encounter_id: int = 0
    dungeon_name: str = ""
    class_name: str = ""
    spec: str = ""

    @property
    def usage_count(self) -> int:
        return self.total_usage

    @classmethod
    def from_dict(cls, row: dict) -> "TalentBuild":
        t = cls.__name__
        row = _check_row(row, t)
        return cls(
            talent_import=_str(row, t, "talent_import"),
            total_usage=_int(row, t, "total_usage", "usage_count"),
            avg_usage_percentage=_float(row, t, "avg_usage_percentage", default=0.0),
            avg_keystone_level=_float(row, t, "avg_keystone_level", default=0.0),
            encounter_id=_int(row, t, "encounter_id", default=0),
            dungeon_name=_str(row, t, "dungeon_name", default=""),
            class_name=_str(row, t, "class", "class_name", default=""),
            spec=_str(row, t, "spec", default=""),
        )


@dataclass(frozen=True)
class StatPriority:
    """Average value of one secondary/minor stat across top players."""
    stat_name: str
    stat_category: str
    priority_rank: int
    avg_value: float = 0.0
    min_value: float = 0.0
    max_value: float = 0.0
    total_samples: int = 0
    avg_keystone_level: float = 0.0

    @classmethod
    def from_dict(cls, row: dict) -> "StatPriority":
        t = cls.__name__
        row = _check_row(row, t)
        return cls(
            stat_name=_str(row, t, "stat_name"),
            stat_category=_str(row, t, "stat_category").lower(),
            priority_rank=_int(row, t, "priority_rank"),
            avg_value=_float(row, t, "avg_value", default=0.0),
            min_value=_float(row, t, "min_value", default=0.0),
            max_value=_float(row, t, "max_value", default=0.0),
            total_samples=_int(row, t, "total_samples", default=0),
            avg_keystone_level=_float(row, t, "avg_keystone_level", default=0.0),
        )


# ── Mythic+ runs ────────────────────────────────────────────

@dataclass(frozen=True)
class SpecRef:
    """A class/specialization pair, e.g. ("Warrior", "Protection")."""
    class_name: str
    spec: str

    @property
    def display(self) -> str:
        return f"{self.class_name} - {self.spec}"

    @classmethod
    def parse(cls, row: dict, type_name: str, role_field: str) -> "SpecRef":
        """Read "<role>_class"/"<role>_spec", or a "<role>": "Class - Spec" string."""
        combined = row.get(role_field)
        if combined is not None and row.get(f"{role_field}_class") is None:
            if isinstance(combined, dict):
                return cls(
                    class_name=_str(combined, type_name, "class", "class_name"),
                    spec=_str(combined, type_name, "spec"),
                )
            if not isinstance(combined, str) or " - " not in combined:
                raise InvalidRecord(
                    f"{type_name}: field '{role_field}' must look like 'Class - Spec', got {combined!r}"
                )
            class_name, spec = (part.strip() for part in combined.split(" - ", 1))
            if not class_name or not spec:
                raise InvalidRecord(f"{type_name}: field '{role_field}' is incomplete: {combined!r}")
            return cls(class_name=class_name, spec=spec)
        return cls(
            class_name=_str(row, type_name, f"{role_field}_class"),
            spec=_str(row, type_name, f"{role_field}_spec"),
        )


@dataclass(frozen=True)
class RunRecord:
    """One completed keystone run, or a pre-aggregated composition row.

    usage_count defaults to 1 (a single run); backend composition rows carry
    their own count and an average score for those runs.
    """
    tank: SpecRef
    healer: SpecRef
    dps: Tuple[SpecRef, SpecRef, SpecRef]
    dungeon_slug: str = ""
    mythic_level: Optional[int] = None
    score: float = 0.0
    dungeon_name: str = ""
    region: str = ""
    completed_at: str = ""
    usage_count: int = 1

    def members(self, role: Role) -> Tuple[SpecRef, ...]:
        role = Role.parse(role)
        if role is Role.TANK:
            return (self.tank,)
        if role is Role.HEALER:
            return (self.healer,)
        return self.dps

    @classmethod
    def from_dict(cls, row: dict) -> "RunRecord":
        t = cls.__name__
        row = _check_row(row, t)
        return cls(
            dungeon_slug=_str(row, t, "dungeon_slug", default=""),
            mythic_level=_int(row, t, "mythic_level", default=None),
            tank=SpecRef.parse(row, t, "tank"),
            healer=SpecRef.parse(row, t, "healer"),
            dps=(
                SpecRef.parse(row, t, "dps1"),
                SpecRef.parse(row, t, "dps2"),
                SpecRef.parse(row, t, "dps3"),
            ),
            score=_float(row, t, "score", "avg_score", default=0.0),
            dungeon_name=_str(row, t, "dungeon_name", default=""),
            region=_str(row, t, "region", default=""),
            completed_at=_str(row, t, "completed_at", default=""),
            usage_count=_int(row, t, "usage_count", default=1),
        )


def parse_records(record_type, rows) -> List[Any]:
    """Convert decoded JSON rows into record_type instances.

    Rows that already are record_type pass through untouched; None means
    "no data" and gives an empty list.
    """
    if rows is None:
        return []
    out = []
    for row in rows:
        if isinstance(row, record_type):
            out.append(row)
        else:
            out.append(record_type.from_dict(row))
    return out
