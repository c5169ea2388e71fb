from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from bellforge.core.exceptions import PlacementConflictError
from bellforge.schemas.config import RoomPayload, TeacherPayload
from bellforge.schemas.schedule import Section
from bellforge.services.timeslot_codec import RESERVATION_TAGS

TERMS = ("FY", "S1", "S2", "T1", "T2", "T3", "A", "B")


def is_reservation(occupant: str | None) -> bool:
    return occupant in RESERVATION_TAGS


class ResourceTracker:
    """Occupancy ledger for one scheduling run.

    ``teacher_schedule`` and ``room_schedule`` map an owner id to
    ``{canonical timeslot: section id or reservation tag}``. A tracker belongs
    to exactly one run and is thrown away afterwards.
    """

    def __init__(self, teachers: Iterable[TeacherPayload], rooms: Iterable[RoomPayload], max_load: int) -> None:
        self.teacher_schedule: dict[str, dict[str, str]] = {}
        self.room_schedule: dict[str, dict[str, str]] = {}
        self.teacher_load: dict[str, Counter[str]] = {}
        self.room_owners: dict[str, str] = {}
        # Per term; A/B days count separately as well.
        self.max_load = max_load

        for teacher in teachers:
            self.teacher_schedule[teacher.id] = {}
            self.teacher_load[teacher.id] = Counter({term: 0 for term in TERMS})
        for room in rooms:
            self.room_schedule[room.id] = {}

    def set_room_owner(self, room_id: str, teacher_id: str) -> None:
        self.room_owners[room_id] = teacher_id

    def home_room_for(self, teacher_id: str) -> str | None:
        for room_id, owner_id in self.room_owners.items():
            if owner_id == teacher_id:
                return room_id
        return None

    def block_teacher(self, teacher_id: str, timeslot: str, tag: str = "BLOCKED") -> bool:
        schedule = self.teacher_schedule.get(teacher_id)
        if schedule is None:
            return False
        current = schedule.get(timeslot)
        if current is not None and not is_reservation(current):
            return False
        schedule[timeslot] = tag
        return True

    def is_teacher_available(self, teacher_id: str | None, timeslot: str) -> bool:
        schedule = self.teacher_schedule.get(teacher_id) if teacher_id else None
        if schedule is None:
            return False
        return timeslot not in schedule

    def is_room_available(self, room_id: str | None, timeslot: str) -> bool:
        schedule = self.room_schedule.get(room_id) if room_id else None
        if schedule is None:
            return False
        return timeslot not in schedule

    def get_teacher_load(self, teacher_id: str | None, term: str = "FY") -> int:
        load = self.teacher_load.get(teacher_id) if teacher_id else None
        if load is None:
            return 0
        return load[term]

    def _check_free(
        self,
        schedule: dict[str, dict[str, str]],
        resource_type: str,
        resource_id: str,
        timeslot: str,
        section_id: str,
        override_reservations: bool,
    ) -> None:
        slots = schedule.get(resource_id)
        if slots is None:
            raise PlacementConflictError(timeslot, resource_type, resource_id)
        occupant = slots.get(timeslot)
        if occupant is None or occupant == section_id:
            return
        if override_reservations and is_reservation(occupant):
            return
        raise PlacementConflictError(timeslot, resource_type, resource_id, occupant)

    def assign_placement(
        self,
        section: Section,
        timeslot: str,
        teacher_id: str | None,
        co_teacher_id: str | None,
        room_id: str | None,
        term: str = "FY",
        *,
        override_reservations: bool = False,
    ) -> None:
        """Commit a section to a timeslot.

        Every resource is checked before anything is written, so a rejected
        placement leaves the tracker untouched. ``override_reservations`` lets
        caller-locked sections displace LUNCH/PLC/BLOCKED tags.
        """
        teacher_ids = [tid for tid in (teacher_id, co_teacher_id) if tid]
        for tid in teacher_ids:
            self._check_free(self.teacher_schedule, "teacher", tid, timeslot, section.id, override_reservations)
        if room_id:
            self._check_free(self.room_schedule, "room", room_id, timeslot, section.id, override_reservations)

        for tid in teacher_ids:
            if self.teacher_schedule[tid].get(timeslot) != section.id:
                self.teacher_load[tid][term] += 1
            self.teacher_schedule[tid][timeslot] = section.id
        if room_id:
            self.room_schedule[room_id][timeslot] = section.id
        section.period = timeslot
        section.term = term
