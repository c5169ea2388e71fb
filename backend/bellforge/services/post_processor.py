"""Reservations applied before placement and analytics computed after it."""

from __future__ import annotations

from collections import defaultdict
import logging
import math

from bellforge.schemas.config import ScheduleConfig, TeacherPayload
from bellforge.schemas.schedule import Conflict, PeriodCoverage, PlcGroup, Section
from bellforge.services.resource_tracker import ResourceTracker, is_reservation
from bellforge.services.run_log import RunLog
from bellforge.services.timeline import Timeline
from bellforge.services.timeslot_codec import Timeslot, TimeslotCodec
from bellforge.services.workload import non_teaching_allotment

logger = logging.getLogger(__name__)

COVERAGE_GAP_THRESHOLD = 50


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class PostProcessor:
    def __init__(
        self,
        config: ScheduleConfig,
        timeline: Timeline,
        tracker: ResourceTracker,
        codec: TimeslotCodec,
        log: RunLog,
    ) -> None:
        self.config = config
        self.timeline = timeline
        self.tracker = tracker
        self.codec = codec
        self.log = log

    def _block(self, teacher_id: str, period_id: int | str, tag: str) -> int:
        blocked = 0
        for key in self.codec.keys_for_period(period_id):
            if self.tracker.block_teacher(teacher_id, key, tag):
                blocked += 1
        return blocked

    def _departments(self) -> dict[str, list[TeacherPayload]]:
        grouped: dict[str, list[TeacherPayload]] = {}
        for teacher in self.config.teachers:
            grouped.setdefault(teacher.primary_department, []).append(teacher)
        return grouped

    # Reservations

    def apply_lunch_reservations(self) -> None:
        timeline = self.timeline
        teachers = self.config.teachers
        if timeline.lunch_style == "unit":
            lunch_id = timeline.lunch_period_id
            if lunch_id is None or timeline.period(lunch_id) is None:
                self.log.warn(f"Unit lunch period {lunch_id} is not part of the day; no lunch reserved")
                return
            for teacher in teachers:
                self._block(teacher.id, lunch_id, "LUNCH")
            self.log.info(f"Reserved period {lunch_id} as unit lunch for {len(teachers)} teachers")
        elif timeline.lunch_style == "multi_period":
            lunch_ids = timeline.multi_lunch_ids
            if not lunch_ids:
                self.log.warn("Multi-period lunch selected without any valid lunch periods")
                return
            for dept_teachers in self._departments().values():
                for index, teacher in enumerate(dept_teachers):
                    self._block(teacher.id, lunch_ids[index % len(lunch_ids)], "LUNCH")
            self.log.info(
                "Distributed teachers across multiple lunch periods",
                {"lunch_periods": list(lunch_ids)},
            )

    def apply_plc_groups(self) -> list[PlcGroup]:
        if not self.config.plc_enabled:
            return []

        groups: list[PlcGroup] = []
        if any(group.teacher_ids for group in self.config.plc_groups):
            groups = [
                PlcGroup(id=group.id, name=group.name, period=group.period, teacher_ids=list(group.teacher_ids))
                for group in self.config.plc_groups
            ]
            self.log.info(f"Applying {len(groups)} user-defined PLC groups")
        else:
            candidates = self.timeline.ids_with_role("class", "split_lunch")
            if not candidates:
                self.log.warn("No class period available for departmental PLC")
                return []
            for index, (dept, dept_teachers) in enumerate(self._departments().items()):
                period_id = candidates[index % len(candidates)]
                groups.append(
                    PlcGroup(
                        id=f"plc-{dept}-{index}",
                        name=f"{dept} PLC",
                        period=period_id,
                        teacher_ids=[teacher.id for teacher in dept_teachers],
                    )
                )
                self.log.info(
                    f"Assigned period {period_id} as common PLC for {dept} ({len(dept_teachers)} teachers)"
                )

        for group in groups:
            for teacher_id in group.teacher_ids:
                self._block(teacher_id, group.period, "PLC")
        return groups

    def apply_availability(self) -> None:
        blocked: list[tuple[str, int | str]] = []
        for availability in self.config.teacher_availability:
            blocked.extend((availability.teacher_id, pid) for pid in availability.blocked_periods)
        for constraint in self.config.constraints:
            if constraint.type == "teacher_unavailable" and constraint.teacher_id and constraint.period is not None:
                blocked.append((constraint.teacher_id, constraint.period))

        applied = 0
        for teacher_id, period_id in blocked:
            if self.timeline.period(period_id) is None:
                self.log.warn(f"Availability block ignored: period {period_id} does not exist")
                continue
            applied += self._block(teacher_id, period_id, "BLOCKED")
        if blocked:
            self.log.info(f"Applied {applied} availability blocks", {"requested": len(blocked)})

    # Analytics

    def _sections_in_period(self, sections: list[Section], period_id: int | str) -> list[Section]:
        found = []
        for section in sections:
            if section.has_conflict or not isinstance(section.period, str):
                continue
            slot = Timeslot.parse(section.period)
            if slot is not None and slot.period == period_id:
                found.append(section)
        return found

    def assign_lunch_waves(self, sections: list[Section]) -> None:
        timeline = self.timeline
        if timeline.lunch_style != "split" or timeline.lunch_period_id is None:
            return
        lunch_sections = self._sections_in_period(sections, timeline.lunch_period_id)
        by_department: dict[str, list[Section]] = defaultdict(list)
        for section in lunch_sections:
            by_department[section.department].append(section)

        wave_totals = [0] * self.config.lunch_config.num_waves
        ordered = sorted(by_department.items(), key=lambda item: len(item[1]), reverse=True)
        for dept, dept_sections in ordered:
            wave = min(range(len(wave_totals)), key=lambda index: wave_totals[index])
            wave_totals[wave] += sum(section.enrollment for section in dept_sections)
            for section in dept_sections:
                section.lunch_wave = wave + 1
            logger.debug("Department %s takes lunch wave %d", dept, wave + 1)
        if ordered:
            self.log.info("Balanced lunch waves", {"wave_students": wave_totals})

    def period_coverage(self, sections: list[Section]) -> tuple[dict[str, PeriodCoverage], list[Conflict]]:
        config = self.config
        student_count = config.student_count
        buckets = self.codec.layout
        coverage: dict[str, PeriodCoverage] = {}
        conflicts: list[Conflict] = []

        for period in self.timeline.periods:
            placed = self._sections_in_period(sections, period.id)
            bucket_seats = []
            for slot in self.codec.slots_for_period(period.id):
                bucket_seats.append(sum(section.enrollment for section in placed if section.period == slot.key))
            seats = _round_half_up(sum(bucket_seats) / len(buckets))

            at_lunch: int | str = 0
            if period.role == "unit_lunch":
                at_lunch = student_count
            elif period.role == "multi_lunch":
                at_lunch = student_count // len(self.timeline.multi_lunch_ids)
            elif period.role == "split_lunch":
                at_lunch = "Waves"

            if period.role in ("unit_lunch", "win"):
                unaccounted = 0
            else:
                lunch_seats = at_lunch if isinstance(at_lunch, int) else 0
                unaccounted = max(0, student_count - seats - lunch_seats)

            coverage[str(period.id)] = PeriodCoverage(
                seats_in_class=seats,
                unaccounted=unaccounted,
                at_lunch=at_lunch,
                section_count=len(placed),
            )
            if unaccounted > COVERAGE_GAP_THRESHOLD and period.role not in ("unit_lunch", "win"):
                conflicts.append(
                    Conflict(
                        type="coverage",
                        message=f"Period {period.id}: {unaccounted} students unaccounted for on average.",
                        period_id=period.id,
                    )
                )
        return coverage, conflicts

    def plan_violations(self, effective_slots: int) -> list[Conflict]:
        expected = non_teaching_allotment(self.config.plan_periods_per_day, self.config.plc_enabled)
        multi_bucket = len(self.codec.layout) > 1
        conflicts: list[Conflict] = []
        for teacher in self.config.teachers:
            schedule = self.tracker.teacher_schedule.get(teacher.id, {})
            teaching: dict[tuple[str, str], int] = defaultdict(int)
            for key, occupant in schedule.items():
                slot = Timeslot.parse(key)
                if slot is None or is_reservation(occupant):
                    continue
                teaching[(slot.term, slot.day)] += 1
            for term, day in self.codec.layout:
                free = effective_slots - teaching[(term, day)]
                if free >= expected:
                    continue
                where = f" in {day if day != 'ALL' else term}" if multi_bucket else ""
                conflicts.append(
                    Conflict(
                        type="plan_violation",
                        message=f"{teacher.name} has {free} free periods{where} (needs {expected} for Plan/PLC)",
                        teacher_id=teacher.id,
                    )
                )
        return conflicts
