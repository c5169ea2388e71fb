from __future__ import annotations

import math
import random

from bellforge.schemas.config import CoursePayload, ScheduleConfig, TeacherPayload
from bellforge.schemas.schedule import Conflict, Section
from bellforge.services.resource_tracker import ResourceTracker
from bellforge.services.run_log import RunLog
from bellforge.services.timeslot_codec import TimeslotCodec

PE_ELECTIVE_SIZE = 50


def _is_science(departments: list[str]) -> bool:
    return any("science" in dept.lower() for dept in departments)


def _is_pe(department: str) -> bool:
    return "pe" in department.lower()


class SectionFactory:
    def __init__(
        self,
        config: ScheduleConfig,
        tracker: ResourceTracker,
        codec: TimeslotCodec,
        rng: random.Random,
        log: RunLog,
    ) -> None:
        self.config = config
        self.tracker = tracker
        self.codec = codec
        self.random = rng
        self.log = log
        self.teachers = {teacher.id: teacher for teacher in config.teachers}
        self.room_names = {room.id: room.name for room in config.rooms}
        # Locked seeds that arrived without staff (assemblies, advisory) are placed teacherless.
        self.teacherless_seed_ids: set[str] = set()

    def assign_home_rooms(self) -> None:
        """Give every non-floater a home room; lab rooms go to science first."""
        rooms = self.config.rooms
        regular = [room for room in rooms if room.type == "regular"]
        labs = [room for room in rooms if room.type == "lab"]
        gyms = [room for room in rooms if room.type == "gym"]
        regular_index = 0
        lab_index = 0

        ordered = sorted(self.config.teachers, key=lambda teacher: not _is_science(teacher.departments))
        for teacher in ordered:
            if teacher.is_floater:
                continue
            room_id = None
            if _is_science(teacher.departments) and labs:
                room_id = labs[lab_index % len(labs)].id
                lab_index += 1
            elif any(_is_pe(dept) for dept in teacher.departments) and gyms:
                room_id = gyms[0].id
            elif regular_index < len(regular):
                room_id = regular[regular_index].id
                regular_index += 1
            if room_id:
                self.tracker.set_room_owner(room_id, teacher.id)

    def _new_section(self, course: CoursePayload, index: int, *, enrollment: int, size: int, is_core: bool) -> Section:
        return Section(
            id=f"{course.id}-S{index}",
            course_id=course.id,
            course_name=course.name,
            section_num=index,
            max_size=size,
            enrollment=min(enrollment, size),
            department=course.department,
            room_type=course.room_type,
            is_core=is_core,
            co_teacher=course.co_teacher_id,
        )

    def build_sections(self, effective_slots: int) -> list[Section]:
        config = self.config
        student_count = config.student_count
        required = [course for course in config.courses if course.required]
        electives = [course for course in config.courses if not course.required]
        sections: list[Section] = []

        for course in required:
            size = course.max_size or config.max_class_size
            count = course.sections or math.ceil(student_count / size)
            if count <= 0:
                continue
            enrollment = math.ceil(student_count / count)
            for index in range(1, count + 1):
                sections.append(self._new_section(course, index, enrollment=enrollment, size=size, is_core=True))

        declared_elective_sections = sum(course.sections or 0 for course in electives)
        elective_demand = student_count * max(0, effective_slots - len(required))
        for course in electives:
            size = PE_ELECTIVE_SIZE if _is_pe(course.department) else (course.max_size or config.max_class_size)
            count = course.sections
            if not count:
                share = 1 / len(electives)
                count = max(1, math.ceil(elective_demand * share / size))
            enrollment = math.ceil(elective_demand / (declared_elective_sections or count * len(electives)))
            for index in range(1, count + 1):
                sections.append(self._new_section(course, index, enrollment=enrollment, size=size, is_core=False))

        self.log.info(
            f"Derived {len(sections)} sections from {len(config.courses)} courses",
            {"required_courses": len(required), "elective_courses": len(electives), "elective_demand": elective_demand},
        )
        return sections

    def assign_teachers(self, sections: list[Section]) -> list[Conflict]:
        """Spread sections over department teachers by running intended load."""
        conflicts: list[Conflict] = []
        teachers = self.config.teachers
        intended_load = {teacher.id: 0 for teacher in teachers}
        for section in sections:
            if section.teacher in intended_load:
                intended_load[section.teacher] += 1

        pinned = {
            (section.teacher, section.period)
            for section in sections
            if section.locked and section.teacher and isinstance(section.period, str)
        }
        shuffled = [
            section
            for section in sections
            if not section.teacher and section.id not in self.teacherless_seed_ids
        ]
        self.random.shuffle(shuffled)
        for section in shuffled:
            pool = [teacher for teacher in teachers if section.department in teacher.departments] or teachers
            if section.locked and isinstance(section.period, str):
                slot = section.period
                pool = [
                    teacher
                    for teacher in pool
                    if self.tracker.is_teacher_available(teacher.id, slot) and (teacher.id, slot) not in pinned
                ] or pool
            if not pool:
                section.has_conflict = True
                section.conflict_reason = "No Teacher"
                conflicts.append(
                    Conflict(
                        type="unscheduled",
                        message=f"{section.label}: No teacher available",
                        section_id=section.id,
                    )
                )
                continue
            teacher = min(pool, key=lambda item: intended_load[item.id])
            intended_load[teacher.id] += 1
            self._attach_teacher(section, teacher)
            if section.locked and isinstance(section.period, str):
                pinned.add((teacher.id, section.period))

        for section in sections:
            section.teacher_name = self._teacher_name(section.teacher) or section.teacher_name
            section.co_teacher_name = self._teacher_name(section.co_teacher) or section.co_teacher_name
            if not section.room and section.teacher:
                section.room = self.tracker.home_room_for(section.teacher)
            if section.room:
                section.room_name = self.room_names.get(section.room, section.room_name)
        return conflicts

    def _attach_teacher(self, section: Section, teacher: TeacherPayload) -> None:
        section.teacher = teacher.id
        section.teacher_name = teacher.name

    def apply_seed_sections(self, sections: list[Section]) -> list[Section]:
        """Merge sections carried over from a previous run (locked or hand-placed)."""
        by_id = {section.id: section for section in sections}
        seeds = [*self.config.locked_sections, *self.config.manual_sections]
        for seed in seeds:
            seed_period = self.codec.to_canonical(seed.period) if seed.locked else None
            target = by_id.get(seed.id)
            if target is None:
                target = seed.model_copy(deep=True)
                target.is_manual = True
                target.period = None
                target.term = None
                target.has_conflict = False
                target.conflict_reason = None
                sections.append(target)
                by_id[target.id] = target
                if seed.locked and not seed.teacher:
                    self.teacherless_seed_ids.add(target.id)
            else:
                for name in ("teacher", "co_teacher", "room", "enrollment"):
                    value = getattr(seed, name)
                    if value:
                        setattr(target, name, value)
                target.is_manual = target.is_manual or seed.is_manual
            if seed.locked and seed_period:
                target.locked = True
                target.period = seed_period
        if seeds:
            self.log.info(f"Merged {len(seeds)} seed sections from a previous run")
        return sections

    def apply_lock_constraints(self, sections: list[Section]) -> None:
        by_id = {section.id: section for section in sections}
        for constraint in self.config.constraints:
            if constraint.type != "lock_period" or not constraint.section_id or constraint.period is None:
                continue
            section = by_id.get(constraint.section_id)
            if section is None:
                self.log.warn(f"lock_period ignored: unknown section {constraint.section_id}")
                continue
            section.period = self.codec.to_canonical(constraint.period)
            section.locked = True

    def _teacher_name(self, teacher_id: str | None) -> str | None:
        teacher = self.teachers.get(teacher_id) if teacher_id else None
        return teacher.name if teacher else None
