from collections import defaultdict
from typing import Dict, List, Tuple

from bellforge.schemas.schedule import Conflict, Section


class ConflictService:
    """Audits a finished run for teacher or room double bookings.

    The tracker already refuses to double-book, so this is an invariant
    check on the output record: any finding here means the record and the
    occupancy ledger disagree.
    """

    def __init__(self, sections: List[Section], teacher_names: Dict[str, str], room_names: Dict[str, str]):
        self.sections = sections
        self.teacher_names = teacher_names
        self.room_names = room_names

    def detect_conflicts(self) -> List[Conflict]:
        conflicts: List[Conflict] = []

        # Bucket by timeslot, then by resource
        teacher_slots: Dict[Tuple[str, str], List[Section]] = defaultdict(list)
        room_slots: Dict[Tuple[str, str], List[Section]] = defaultdict(list)
        for section in self.sections:
            if section.has_conflict or not isinstance(section.period, str):
                continue
            for teacher_id in dict.fromkeys((section.teacher, section.co_teacher)):
                if teacher_id:
                    teacher_slots[(teacher_id, section.period)].append(section)
            if section.room:
                room_slots[(section.room, section.period)].append(section)

        for (teacher_id, timeslot), booked in teacher_slots.items():
            if len(booked) < 2:
                continue
            name = self.teacher_names.get(teacher_id, teacher_id)
            labels = " and ".join(section.label for section in booked)
            conflicts.append(Conflict(
                type="unscheduled",
                message=f"Teacher overlap for {name} at {timeslot}: {labels}",
                section_id=booked[1].id,
                teacher_id=teacher_id,
            ))

        for (room_id, timeslot), booked in room_slots.items():
            if len(booked) < 2:
                continue
            name = self.room_names.get(room_id, room_id)
            labels = " and ".join(section.label for section in booked)
            conflicts.append(Conflict(
                type="unscheduled",
                message=f"Room overlap in {name} at {timeslot}: {labels}",
                section_id=booked[1].id,
            ))

        return conflicts
