import random

import pytest

from bellforge.schemas.config import ScheduleConfig
from bellforge.services.resource_tracker import ResourceTracker
from bellforge.services.run_log import RunLog
from bellforge.services.section_factory import SectionFactory
from bellforge.services.timeslot_codec import TimeslotCodec


def make_factory(config: ScheduleConfig, seed: int = 3) -> SectionFactory:
    tracker = ResourceTracker(config.teachers, config.rooms, max_load=5)
    return SectionFactory(config, tracker, TimeslotCodec(config.schedule_type), random.Random(seed), RunLog())


def test_required_course_without_count_splits_the_student_body():
    config = ScheduleConfig.model_validate(
        {"studentCount": 800, "maxClassSize": 30, "courses": [{"id": "ENG", "name": "English", "required": True}]}
    )
    sections = make_factory(config).build_sections(effective_slots=6)

    assert len(sections) == 27
    assert {section.enrollment for section in sections} == {30}
    assert sections[0].id == "ENG-S1"
    assert sections[-1].id == "ENG-S27"
    assert all(section.is_core for section in sections)


def test_zero_declared_sections_falls_back_to_derived_count():
    config = ScheduleConfig.model_validate(
        {"studentCount": 60, "courses": [{"id": "ENG", "required": True, "sections": 0, "maxSize": 20}]}
    )
    sections = make_factory(config).build_sections(effective_slots=6)
    assert len(sections) == 3
    assert {section.max_size for section in sections} == {20}


def test_electives_share_remaining_demand():
    config = ScheduleConfig.model_validate(
        {
            "studentCount": 100,
            "maxClassSize": 25,
            "courses": [
                {"id": "ENG", "required": True, "sections": 4},
                {"id": "ART", "department": "Art"},
                {"id": "GYM", "department": "PE"},
            ],
        }
    )
    sections = make_factory(config).build_sections(effective_slots=3)
    # demand = 100 students * (3 slots - 1 required) = 200, half of it per elective
    art = [section for section in sections if section.course_id == "ART"]
    gym = [section for section in sections if section.course_id == "GYM"]
    assert len(art) == 4
    assert len(gym) == 2
    assert {section.max_size for section in gym} == {50}
    assert not any(section.is_core for section in art + gym)
    # ceil(200 / (4 * 2)) = 25, capped by the section size
    assert {section.enrollment for section in art} == {25}


def test_home_rooms_prefer_labs_for_science_and_skip_floaters():
    config = ScheduleConfig.model_validate(
        {
            "teachers": [
                {"id": "t1", "departments": ["English"]},
                {"id": "t2", "departments": ["Earth Science"]},
                {"id": "t3", "departments": ["PE"]},
                {"id": "t4", "departments": ["Math"], "isFloater": True},
            ],
            "rooms": [
                {"id": "r1"},
                {"id": "lab1", "type": "lab"},
                {"id": "gym1", "type": "gym"},
            ],
        }
    )
    factory = make_factory(config)
    factory.assign_home_rooms()
    assert factory.tracker.room_owners == {"lab1": "t2", "r1": "t1", "gym1": "t3"}
    assert factory.tracker.home_room_for("t4") is None


def test_assign_teachers_balances_department_load(make_config):
    config = make_config()
    factory = make_factory(config)
    factory.assign_home_rooms()
    sections = factory.build_sections(effective_slots=6)
    conflicts = factory.assign_teachers(sections)

    assert conflicts == []
    math = [section for section in sections if section.course_id == "MATH"]
    assert sorted(section.teacher for section in math) == ["t1", "t1", "t2", "t2"]
    bio = [section for section in sections if section.course_id == "BIO"]
    assert {section.teacher for section in bio} == {"t4"}
    # Preferred room is the teacher's home room.
    assert {section.room for section in bio} == {"lab1"}
    assert {section.room_name for section in bio} == {"Lab A"}
    assert {section.teacher_name for section in bio} == {"Dmitri"}


def test_department_without_teacher_uses_whole_staff(make_config):
    config = make_config(courses=[{"id": "LAT", "name": "Latin", "department": "Classics", "required": True, "sections": 1}])
    factory = make_factory(config)
    sections = factory.build_sections(effective_slots=6)
    factory.assign_teachers(sections)
    assert sections[0].teacher in {"t1", "t2", "t3", "t4", "t5"}


def test_no_teachers_flags_every_section():
    config = ScheduleConfig.model_validate({"courses": [{"id": "ENG", "name": "English", "required": True, "sections": 2}]})
    factory = make_factory(config)
    sections = factory.build_sections(effective_slots=6)
    conflicts = factory.assign_teachers(sections)

    assert all(section.has_conflict and section.conflict_reason == "No Teacher" for section in sections)
    assert sorted(conflict.message for conflict in conflicts) == [
        "English S1: No teacher available",
        "English S2: No teacher available",
    ]
    assert {conflict.type for conflict in conflicts} == {"unscheduled"}


def test_seed_sections_override_and_extend(make_config):
    config = make_config(
        lockedSections=[{"id": "MATH-S1", "teacher": "t2", "room": "r4", "period": 3, "locked": True}],
        manualSections=[
            {"id": "ASSEMBLY", "courseName": "Assembly", "teacher": "t5", "period": "2", "hasConflict": True},
        ],
    )
    factory = make_factory(config)
    sections = factory.build_sections(effective_slots=6)
    factory.apply_seed_sections(sections)

    by_id = {section.id: section for section in sections}
    locked = by_id["MATH-S1"]
    assert locked.locked
    assert locked.period == "FY-ALL-3"
    assert (locked.teacher, locked.room) == ("t2", "r4")

    extra = by_id["ASSEMBLY"]
    assert extra.is_manual
    assert extra.period is None
    assert not extra.has_conflict
    assert not extra.locked


def test_locked_seed_accepts_display_ids_for_ab_days(make_config):
    config = make_config(
        scheduleType="ab_block",
        lockedSections=[{"id": "ENG-S2", "period": "B-5", "locked": True}],
    )
    factory = make_factory(config)
    sections = factory.apply_seed_sections(factory.build_sections(effective_slots=6))
    assert next(section for section in sections if section.id == "ENG-S2").period == "FY-B-5"


def test_lock_period_constraint_pins_first_bucket(make_config):
    config = make_config(
        scheduleType="4x4_block",
        constraints=[
            {"type": "lock_period", "sectionId": "ENG-S1", "period": "6"},
            {"type": "lock_period", "sectionId": "NOPE-S1", "period": 2},
        ],
    )
    factory = make_factory(config)
    sections = factory.build_sections(effective_slots=6)
    factory.apply_lock_constraints(sections)

    pinned = next(section for section in sections if section.id == "ENG-S1")
    assert pinned.locked
    assert pinned.period == "S1-ALL-6"
    assert any("NOPE-S1" in entry.message for entry in factory.log.entries)


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_seeded_teacher_counts_toward_intended_load(make_config, seed):
    config = make_config(lockedSections=[{"id": "MATH-S1", "teacher": "t1", "period": 1, "locked": True}])
    factory = make_factory(config, seed=seed)
    sections = factory.apply_seed_sections(factory.build_sections(effective_slots=6))
    factory.assign_teachers(sections)
    math = [section for section in sections if section.course_id == "MATH"]
    assert sorted(section.teacher for section in math) == ["t1", "t1", "t2", "t2"]


@pytest.mark.parametrize("seed", [1, 2, 3, 4])
def test_sections_locked_to_one_slot_get_different_teachers(make_config, seed):
    config = make_config(
        constraints=[
            {"type": "lock_period", "sectionId": "MATH-S1", "period": 3},
            {"type": "lock_period", "sectionId": "MATH-S2", "period": 3},
        ]
    )
    factory = make_factory(config, seed=seed)
    sections = factory.build_sections(effective_slots=6)
    factory.apply_lock_constraints(sections)
    factory.assign_teachers(sections)

    by_id = {section.id: section for section in sections}
    assert {by_id["MATH-S1"].teacher, by_id["MATH-S2"].teacher} == {"t1", "t2"}


def test_locked_seed_without_teacher_stays_teacherless(make_config):
    config = make_config(lockedSections=[{"id": "ADVISORY", "courseName": "Advisory", "period": 1, "locked": True}])
    factory = make_factory(config)
    sections = factory.apply_seed_sections(factory.build_sections(effective_slots=6))
    conflicts = factory.assign_teachers(sections)

    advisory = next(section for section in sections if section.id == "ADVISORY")
    assert advisory.teacher is None
    assert advisory.room is None
    assert not advisory.has_conflict
    assert conflicts == []
