import pytest

from bellforge.core.exceptions import PlacementConflictError
from bellforge.schemas.config import RoomPayload, TeacherPayload
from bellforge.schemas.schedule import Section
from bellforge.services.resource_tracker import ResourceTracker, is_reservation


@pytest.fixture
def tracker():
    return ResourceTracker(
        [TeacherPayload(id="t1", name="Ada"), TeacherPayload(id="t2", name="Blaise")],
        [RoomPayload(id="r1"), RoomPayload(id="r2")],
        max_load=5,
    )


def section(section_id="MATH-S1"):
    return Section(id=section_id, course_id="MATH", course_name="Math")


def test_assign_placement_marks_resources_and_load(tracker):
    placed = section()
    tracker.assign_placement(placed, "FY-A-2", "t1", "t2", "r1", "A")

    assert placed.period == "FY-A-2"
    assert placed.term == "A"
    assert tracker.teacher_schedule["t1"]["FY-A-2"] == "MATH-S1"
    assert tracker.teacher_schedule["t2"]["FY-A-2"] == "MATH-S1"
    assert tracker.room_schedule["r1"]["FY-A-2"] == "MATH-S1"
    assert tracker.get_teacher_load("t1", "A") == 1
    assert tracker.get_teacher_load("t2", "A") == 1
    assert tracker.get_teacher_load("t1", "B") == 0
    assert not tracker.is_teacher_available("t1", "FY-A-2")
    assert tracker.is_teacher_available("t1", "FY-B-2")


def test_reassigning_same_section_does_not_double_count(tracker):
    placed = section()
    tracker.assign_placement(placed, "FY-ALL-1", "t1", None, "r1")
    tracker.assign_placement(placed, "FY-ALL-1", "t1", None, "r1")
    assert tracker.get_teacher_load("t1") == 1


def test_double_booking_raises_and_leaves_tracker_untouched(tracker):
    tracker.assign_placement(section("MATH-S1"), "FY-ALL-1", "t1", None, "r1")

    with pytest.raises(PlacementConflictError) as exc_info:
        tracker.assign_placement(section("MATH-S2"), "FY-ALL-1", "t2", None, "r1")

    assert exc_info.value.status_code == 409
    assert exc_info.value.occupant == "MATH-S1"
    assert exc_info.value.details["resource_type"] == "room"
    # Teacher t2 was checked first and is still free.
    assert tracker.is_teacher_available("t2", "FY-ALL-1")
    assert tracker.get_teacher_load("t2") == 0


def test_unknown_resources_are_rejected(tracker):
    with pytest.raises(PlacementConflictError, match="Unknown teacher ghost"):
        tracker.assign_placement(section(), "FY-ALL-1", "ghost", None, None)
    assert not tracker.is_teacher_available("ghost", "FY-ALL-1")
    assert not tracker.is_room_available(None, "FY-ALL-1")
    assert tracker.get_teacher_load("ghost") == 0


def test_reservations_block_until_overridden(tracker):
    assert tracker.block_teacher("t1", "FY-ALL-4", "LUNCH")
    assert not tracker.is_teacher_available("t1", "FY-ALL-4")

    with pytest.raises(PlacementConflictError):
        tracker.assign_placement(section(), "FY-ALL-4", "t1", None, None)

    tracker.assign_placement(section(), "FY-ALL-4", "t1", None, None, override_reservations=True)
    assert tracker.teacher_schedule["t1"]["FY-ALL-4"] == "MATH-S1"


def test_block_teacher_never_overwrites_a_section(tracker):
    tracker.assign_placement(section(), "FY-ALL-2", "t1", None, None)
    assert not tracker.block_teacher("t1", "FY-ALL-2", "PLC")
    assert tracker.teacher_schedule["t1"]["FY-ALL-2"] == "MATH-S1"
    assert not tracker.block_teacher("ghost", "FY-ALL-2")


def test_home_rooms(tracker):
    tracker.set_room_owner("r2", "t2")
    assert tracker.home_room_for("t2") == "r2"
    assert tracker.home_room_for("t1") is None


def test_is_reservation():
    assert is_reservation("PLC")
    assert not is_reservation("MATH-S1")
    assert not is_reservation(None)
