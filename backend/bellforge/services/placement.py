"""Greedy placement of sections into canonical timeslots.

One scan loop serves every calendar topology. The variants only declare
their slot layout, how the overload reason reads and whether sections of a
course should be spread across terms.
"""

from __future__ import annotations

from collections import Counter
import logging
import math
import random

from bellforge.schemas.config import PlacementWeights, RoomPayload
from bellforge.schemas.schedule import CandidateEvaluation, Conflict, Period, Section
from bellforge.services.resource_tracker import ResourceTracker
from bellforge.services.run_log import RunLog
from bellforge.services.timeslot_codec import SCHEDULE_LAYOUTS, Timeslot

logger = logging.getLogger(__name__)


class PlacementStrategy:
    layout: tuple[tuple[str, str], ...] = SCHEDULE_LAYOUTS["traditional"]
    balance_terms: bool = False
    gridlock_reason = "Scheduling Gridlock"
    slot_label = "period"

    def __init__(
        self,
        *,
        tracker: ResourceTracker,
        weights: PlacementWeights,
        rng: random.Random,
        log: RunLog,
    ) -> None:
        self.tracker = tracker
        self.weights = weights
        self.random = rng
        self.log = log
        self.conflicts: list[Conflict] = []
        self.secs_in_slot: Counter[str] = Counter()
        self.course_slot_counts: Counter[tuple[str, str]] = Counter()
        self.course_term_counts: Counter[tuple[str, str]] = Counter()

    @property
    def load_terms(self) -> tuple[str, ...]:
        return tuple(Timeslot(term, day, 0).load_term for term, day in self.layout)

    def candidate_slots(self, periods: list[Period]) -> list[Timeslot]:
        return [
            Timeslot(term, day, period.id)
            for period in periods
            if period.role != "win"
            for term, day in self.layout
        ]

    def overload_reason(self, term: str) -> str:
        return "Exceeds target load"

    @staticmethod
    def _course_key(section: Section) -> str:
        return section.course_id or section.id

    def _record_course_slot(self, section: Section, slot: Timeslot) -> None:
        course = self._course_key(section)
        self.course_slot_counts[(course, slot.key)] += 1
        self.course_term_counts[(course, slot.load_term)] += 1

    def _term_imbalanced(self, section: Section, term: str) -> bool:
        terms = self.load_terms
        if not self.balance_terms or len(terms) < 2:
            return False
        course = self._course_key(section)
        own = self.course_term_counts[(course, term)]
        others = [self.course_term_counts[(course, other)] for other in terms if other != term]
        return own > sum(others) / len(others)

    def evaluate(self, section: Section, slot: Timeslot) -> tuple[float, CandidateEvaluation]:
        key = slot.key
        fails: list[str] = []
        if not self.tracker.is_teacher_available(section.teacher, key):
            fails.append("Teacher booked")
        if section.co_teacher and not self.tracker.is_teacher_available(section.co_teacher, key):
            fails.append("Co-Teacher booked")
        if fails:
            return math.inf, CandidateEvaluation(period=key, rejected=True, reasons=fails)

        weights = self.weights
        term = slot.load_term
        cost = 0.0
        soft_fails: list[str] = []
        if self.tracker.get_teacher_load(section.teacher, term) >= self.tracker.max_load:
            cost += weights.overload
            soft_fails.append(self.overload_reason(term))
        if section.room and not self.tracker.is_room_available(section.room, key):
            cost += weights.room_conflict
            soft_fails.append("Preferred room occupied")
        if not section.is_core and self.course_slot_counts[(self._course_key(section), key)] > 0:
            cost += weights.elective_overlap
            soft_fails.append("Elective overlap")
        if self._term_imbalanced(section, term):
            cost += weights.term_imbalance
            soft_fails.append(f"{term} already holds more sections of this course")
        cost += self.secs_in_slot[key] * weights.slot_density
        return cost, CandidateEvaluation(period=key, cost=cost, reasons=soft_fails)

    def resolve_room(self, section: Section, key: str, rooms: list[RoomPayload]) -> str | None:
        if section.room and self.tracker.is_room_available(section.room, key):
            return section.room
        available = [
            room for room in rooms if room.type == section.room_type and self.tracker.is_room_available(room.id, key)
        ]
        # Floaters land in rooms nobody calls home before borrowing someone else's.
        available.sort(key=lambda room: room.id in self.tracker.room_owners)
        if available:
            return available[0].id
        self.log.warn(f"No free {section.room_type} room for {section.label} at {key}")
        return None

    def place(self, section: Section, slots: list[Timeslot], rooms: list[RoomPayload]) -> bool:
        best_slot: Timeslot | None = None
        best_cost = math.inf
        evaluations: list[CandidateEvaluation] = []

        shuffled = list(slots)
        self.random.shuffle(shuffled)
        for slot in shuffled:
            cost, evaluation = self.evaluate(section, slot)
            evaluations.append(evaluation)
            if cost < best_cost:
                best_cost = cost
                best_slot = slot

        if best_slot is None:
            section.has_conflict = True
            section.conflict_reason = self.gridlock_reason
            self.conflicts.append(
                Conflict(
                    type="unscheduled",
                    message=f"{section.label}: No valid {self.slot_label} found",
                    section_id=section.id,
                )
            )
            self.log.log_failure(section, evaluations)
            return False

        key = best_slot.key
        room_id = self.resolve_room(section, key, rooms)
        section.room = room_id
        section.room_name = next((room.name for room in rooms if room.id == room_id), None)
        self.tracker.assign_placement(
            section, key, section.teacher, section.co_teacher, room_id, best_slot.load_term
        )
        self.secs_in_slot[key] += 1
        self._record_course_slot(section, best_slot)
        self.log.log_placement(section, key, best_cost, evaluations)
        return True

    def execute(self, sections: list[Section], periods: list[Period], rooms: list[RoomPayload]) -> list[Conflict]:
        slots = self.candidate_slots(periods)
        for section in sections:
            if section.locked and isinstance(section.period, str):
                slot = Timeslot.parse(section.period)
                if slot is not None:
                    self._record_course_slot(section, slot)

        pending = [section for section in sections if not section.locked and not section.has_conflict]
        # Stable sort keeps the derived order inside the core and elective groups.
        pending.sort(key=lambda section: not section.is_core)
        logger.debug("Placing %d sections over %d candidate slots", len(pending), len(slots))
        for section in pending:
            self.place(section, slots, rooms)
        return self.conflicts


class StandardStrategy(PlacementStrategy):
    pass


class ABStrategy(PlacementStrategy):
    layout = SCHEDULE_LAYOUTS["ab_block"]
    balance_terms = True
    gridlock_reason = "A/B Scheduling Gridlock"
    slot_label = "A/B slot"

    def overload_reason(self, term: str) -> str:
        return "Exceeds A/B target load"


class Block4x4Strategy(PlacementStrategy):
    layout = SCHEDULE_LAYOUTS["4x4_block"]
    balance_terms = True
    gridlock_reason = "Semester Block Gridlock"
    slot_label = "S1/S2 slot"

    def overload_reason(self, term: str) -> str:
        return f"Exceeds {term} target load"


class TrimesterStrategy(Block4x4Strategy):
    layout = SCHEDULE_LAYOUTS["trimester"]
    gridlock_reason = "Trimester Gridlock"
    slot_label = "Trimester slot"


STRATEGIES: dict[str, type[PlacementStrategy]] = {
    "traditional": StandardStrategy,
    "ab_block": ABStrategy,
    "4x4_block": Block4x4Strategy,
    "trimester": TrimesterStrategy,
}


def strategy_for(
    schedule_type: str,
    *,
    tracker: ResourceTracker,
    weights: PlacementWeights,
    rng: random.Random,
    log: RunLog,
) -> PlacementStrategy:
    strategy_cls = STRATEGIES.get(schedule_type, StandardStrategy)
    return strategy_cls(tracker=tracker, weights=weights, rng=rng, log=log)
