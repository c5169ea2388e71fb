"""Canonical timeslot keys and their display-facing period ids.

Internally every schedulable slot is addressed as ``{TERM}-{DAY}-{PERIOD}``
(``FY-ALL-3``, ``FY-A-3``, ``S2-ALL-3``, ``T1-ALL-WIN`` ...). The UI only knows
bare period ids for the traditional day and ``A-3`` / ``S1-3`` / ``T2-3`` style
ids for the multi-term topologies.
"""

from __future__ import annotations

from dataclasses import dataclass

RESERVATION_TAGS = frozenset({"LUNCH", "PLC", "PLAN", "BLOCKED"})
PASSTHROUGH_IDS = frozenset({"WIN", "LUNCH", "PLC", "BLOCKED"})

# (term, day) buckets that make up one topology, in placement order.
SCHEDULE_LAYOUTS: dict[str, tuple[tuple[str, str], ...]] = {
    "traditional": (("FY", "ALL"),),
    "ab_block": (("FY", "A"), ("FY", "B")),
    "4x4_block": (("S1", "ALL"), ("S2", "ALL")),
    "trimester": (("T1", "ALL"), ("T2", "ALL"), ("T3", "ALL")),
}
DEFAULT_SCHEDULE_TYPE = "traditional"

_DAY_PREFIXES = frozenset({"A", "B"})
_TERM_PREFIXES = frozenset({"S1", "S2", "T1", "T2", "T3"})
_CANONICAL_TERMS = frozenset({"FY"}) | _TERM_PREFIXES
_CANONICAL_DAYS = frozenset({"ALL"}) | _DAY_PREFIXES


def layout_for(schedule_type: str) -> tuple[tuple[str, str], ...]:
    return SCHEDULE_LAYOUTS.get(schedule_type, SCHEDULE_LAYOUTS[DEFAULT_SCHEDULE_TYPE])


def _period_value(raw: str) -> int | str:
    return int(raw) if raw.isdigit() else raw


@dataclass(frozen=True)
class Timeslot:
    term: str
    day: str
    period: int | str

    @property
    def key(self) -> str:
        return f"{self.term}-{self.day}-{self.period}"

    @property
    def load_term(self) -> str:
        """Term whose load counter a placement in this slot increments."""
        return self.day if self.day in _DAY_PREFIXES else self.term

    @classmethod
    def parse(cls, key: str) -> "Timeslot | None":
        parts = key.split("-", 2)
        if len(parts) != 3:
            return None
        term, day, period = parts
        if term not in _CANONICAL_TERMS or day not in _CANONICAL_DAYS or not period:
            return None
        return cls(term=term, day=day, period=_period_value(period))


class TimeslotCodec:
    def __init__(self, schedule_type: str) -> None:
        self.schedule_type = schedule_type if schedule_type in SCHEDULE_LAYOUTS else DEFAULT_SCHEDULE_TYPE
        self.layout = layout_for(schedule_type)

    def slots_for_period(self, period_id: int | str) -> list[Timeslot]:
        return [Timeslot(term, day, period_id) for term, day in self.layout]

    def keys_for_period(self, period_id: int | str) -> list[str]:
        return [slot.key for slot in self.slots_for_period(period_id)]

    def to_display(self, key: str | None) -> int | str | None:
        if key is None:
            return None
        if key in PASSTHROUGH_IDS:
            return key
        slot = Timeslot.parse(key)
        if slot is None:
            return key
        if slot.day != "ALL":
            return f"{slot.day}-{slot.period}"
        if slot.term == "FY":
            return slot.period
        return f"{slot.term}-{slot.period}"

    def to_canonical(self, value: int | str | None) -> str | None:
        """Inverse of :meth:`to_display`; canonical keys are returned as-is."""
        if value is None:
            return None
        if isinstance(value, str):
            if value in RESERVATION_TAGS or Timeslot.parse(value) is not None:
                return value
            prefix, sep, rest = value.partition("-")
            if sep and rest:
                if prefix in _DAY_PREFIXES:
                    return Timeslot("FY", prefix, _period_value(rest)).key
                if prefix in _TERM_PREFIXES:
                    return Timeslot(prefix, "ALL", _period_value(rest)).key
            value = _period_value(value.strip())
        term, day = self.layout[0]
        return Timeslot(term, day, value).key

    def translate_occupancy(self, schedule: dict[str, dict[str, str]]) -> dict[str, dict[str, str]]:
        translated: dict[str, dict[str, str]] = {}
        for owner_id, slots in schedule.items():
            translated[owner_id] = {str(self.to_display(key)): occupant for key, occupant in slots.items()}
        return translated
