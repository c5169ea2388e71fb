from __future__ import annotations

from bellforge.services.timeline import Timeline


def effective_teaching_slots(timeline: Timeline) -> int:
    """Class periods a teacher can actually teach in one day.

    Split lunch happens inside a class period, every other lunch style costs
    the teacher a whole period.
    """
    teaching = len(timeline.teaching_periods)
    if timeline.lunch_style == "split":
        return teaching
    return max(0, teaching - 1)


def non_teaching_allotment(plan_periods_per_day: int, plc_enabled: bool) -> int:
    return plan_periods_per_day + (1 if plc_enabled else 0)


def per_term_max_load(effective_slots: int, plan_periods_per_day: int, plc_enabled: bool) -> int:
    return max(1, effective_slots - non_teaching_allotment(plan_periods_per_day, plc_enabled))
