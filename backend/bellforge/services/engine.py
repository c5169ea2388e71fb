from __future__ import annotations

import logging
import random
from time import perf_counter

from bellforge.core.exceptions import PlacementConflictError
from bellforge.schemas.config import ScheduleConfig
from bellforge.schemas.schedule import Conflict, ScheduleResponse, ScheduleStats, Section
from bellforge.services.conflict_service import ConflictService
from bellforge.services.placement import strategy_for
from bellforge.services.post_processor import PostProcessor
from bellforge.services.resource_tracker import ResourceTracker
from bellforge.services.run_log import RunLog
from bellforge.services.section_factory import SectionFactory
from bellforge.services.timeline import TimelineBuilder
from bellforge.services.timeslot_codec import Timeslot, TimeslotCodec
from bellforge.services.workload import effective_teaching_slots, per_term_max_load

logger = logging.getLogger(__name__)


class ScheduleEngine:
    """One scheduling run: build the day, reserve, derive, place, report.

    Each engine owns its tracker and random source, so an instance must not
    be reused for a second run.
    """

    def __init__(self, config: ScheduleConfig, *, rng: random.Random | None = None) -> None:
        self.config = config
        self.random = rng or random.Random(config.random_seed)
        self.log = RunLog()
        self.codec = TimeslotCodec(config.schedule_type)

    def run(self) -> ScheduleResponse:
        start = perf_counter()
        config = self.config
        log = self.log
        codec = self.codec
        if codec.schedule_type != config.schedule_type:
            log.warn(f"Schedule type {config.schedule_type} runs on the traditional layout")

        timeline = TimelineBuilder(config, log).build()
        effective_slots = effective_teaching_slots(timeline)
        max_load = per_term_max_load(effective_slots, config.plan_periods_per_day, config.plc_enabled)
        log.info(
            f"Calculated max load: {max_load}",
            {
                "effective_slots": effective_slots,
                "plan_periods": config.plan_periods_per_day,
                "plc_enabled": config.plc_enabled,
            },
        )

        tracker = ResourceTracker(config.teachers, config.rooms, max_load)
        factory = SectionFactory(config, tracker, codec, self.random, log)
        post = PostProcessor(config, timeline, tracker, codec, log)

        factory.assign_home_rooms()
        post.apply_lunch_reservations()
        plc_groups = post.apply_plc_groups()
        post.apply_availability()

        conflicts: list[Conflict] = list(timeline.conflicts)
        sections = factory.build_sections(effective_slots)
        factory.apply_seed_sections(sections)
        factory.apply_lock_constraints(sections)
        conflicts.extend(factory.assign_teachers(sections))
        conflicts.extend(self._commit_locked(sections, tracker))

        strategy = strategy_for(
            codec.schedule_type,
            tracker=tracker,
            weights=config.weights,
            rng=self.random,
            log=log,
        )
        conflicts.extend(strategy.execute(sections, timeline.periods, config.rooms))

        post.assign_lunch_waves(sections)
        coverage, coverage_conflicts = post.period_coverage(sections)
        conflicts.extend(coverage_conflicts)
        conflicts.extend(post.plan_violations(effective_slots))
        conflicts.extend(
            ConflictService(
                sections,
                {teacher.id: teacher.name for teacher in config.teachers},
                {room.id: room.name for room in config.rooms},
            ).detect_conflicts()
        )

        scheduled = sum(1 for section in sections if section.period is not None and not section.has_conflict)
        for section in sections:
            if isinstance(section.period, str):
                section.period = codec.to_display(section.period)

        runtime_ms = int((perf_counter() - start) * 1000)
        log.info(
            f"Schedule complete: {scheduled}/{len(sections)} sections placed",
            {"conflicts": len(conflicts), "runtime_ms": runtime_ms},
        )
        return ScheduleResponse(
            schedule_type=codec.schedule_type,
            sections=sections,
            period_list=timeline.periods,
            teacher_schedule=codec.translate_occupancy(tracker.teacher_schedule),
            room_schedule=codec.translate_occupancy(tracker.room_schedule),
            plc_groups=plc_groups,
            conflicts=conflicts,
            logs=log.entries,
            placement_history=log.placement_history,
            period_student_data=coverage,
            stats=ScheduleStats(
                total_sections=len(sections),
                scheduled_count=scheduled,
                conflict_count=len(conflicts),
                teacher_count=len(config.teachers),
                room_count=len(config.rooms),
                total_students=config.student_count,
            ),
            runtime_ms=runtime_ms,
        )

    def _commit_locked(self, sections: list[Section], tracker: ResourceTracker) -> list[Conflict]:
        conflicts: list[Conflict] = []
        for section in sections:
            if not section.locked or section.has_conflict or not isinstance(section.period, str):
                continue
            timeslot = section.period
            slot = Timeslot.parse(timeslot)
            term = slot.load_term if slot else "FY"
            try:
                tracker.assign_placement(
                    section,
                    timeslot,
                    section.teacher,
                    section.co_teacher,
                    section.room,
                    term,
                    override_reservations=True,
                )
            except PlacementConflictError as exc:
                section.has_conflict = True
                section.conflict_reason = "Locked slot unavailable"
                section.period = None
                message = f"{section.label}: locked slot {self.codec.to_display(timeslot)} unavailable ({exc.message})"
                conflicts.append(Conflict(type="unscheduled", message=message, section_id=section.id))
                self.log.error(message, exc.details)
                continue
            self.log.info(f"Pinned locked section {section.label} at {timeslot}")
        return conflicts


def generate_schedule(config: ScheduleConfig) -> ScheduleResponse:
    logger.info(
        "Generating %s schedule for %d courses and %d teachers",
        config.schedule_type,
        len(config.courses),
        len(config.teachers),
    )
    return ScheduleEngine(config).run()
