from __future__ import annotations

from dataclasses import dataclass, field

from bellforge.schemas.config import ScheduleConfig, parse_time_to_minutes
from bellforge.schemas.schedule import Conflict, Period, PeriodRole
from bellforge.services.run_log import RunLog


WIN_PERIOD_ID = "WIN"
# Split lunch periods may run this many minutes short before we complain.
SPLIT_LUNCH_TOLERANCE_MINUTES = 2


def minutes_to_time(value: int) -> str:
    hours = (value // 60) % 24
    minutes = value % 60
    return f"{hours:02d}:{minutes:02d}"


@dataclass
class _PeriodDraft:
    id: int | str
    label: str
    start: int
    duration: int
    role: PeriodRole = "class"

    @property
    def end(self) -> int:
        return self.start + self.duration


@dataclass
class Timeline:
    periods: list[Period]
    lunch_style: str
    lunch_period_id: int | str | None
    multi_lunch_ids: list[int | str] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)

    def period(self, period_id: int | str) -> Period | None:
        for period in self.periods:
            if period.id == period_id:
                return period
        return None

    @property
    def teaching_periods(self) -> list[Period]:
        return [period for period in self.periods if period.role != "win"]

    def ids_with_role(self, *roles: str) -> list[int | str]:
        return [period.id for period in self.periods if period.role in roles]


class TimelineBuilder:
    def __init__(self, config: ScheduleConfig, log: RunLog) -> None:
        self.config = config
        self.log = log

    def build(self) -> Timeline:
        drafts = self._custom_periods() if self.config.periods else self._generated_periods()
        win = self.config.win_config
        if win.enabled and win.model == "separate":
            drafts = self._splice_win_block(drafts)

        conflicts: list[Conflict] = []
        periods = [self._classify(draft, conflicts) for draft in drafts]
        lunch = self.config.lunch_config
        timeline = Timeline(
            periods=periods,
            lunch_style=lunch.style,
            lunch_period_id=lunch.lunch_period,
            multi_lunch_ids=[pid for pid in lunch.lunch_periods if any(p.id == pid for p in periods)],
            conflicts=conflicts,
        )
        self.log.info(
            f"Built timeline with {len(periods)} periods",
            {"teaching_periods": len(timeline.teaching_periods), "lunch_style": lunch.style},
        )
        return timeline

    def _period_length(self, count: int) -> int:
        config = self.config
        if config.schedule_mode != "time_frame":
            return config.period_length
        total = parse_time_to_minutes(config.school_end) - parse_time_to_minutes(config.school_start)
        available = max(0, total - (count - 1) * config.passing_time)
        return available // count

    def _generated_periods(self) -> list[_PeriodDraft]:
        count = self.config.periods_count
        length = self._period_length(count)
        current = parse_time_to_minutes(self.config.school_start)
        drafts: list[_PeriodDraft] = []
        for index in range(1, count + 1):
            drafts.append(_PeriodDraft(id=index, label=f"Period {index}", start=current, duration=length))
            current += length + self.config.passing_time
        return drafts

    def _custom_periods(self) -> list[_PeriodDraft]:
        drafts: list[_PeriodDraft] = []
        for item in self.config.periods:
            start = parse_time_to_minutes(item.start_time)
            end = parse_time_to_minutes(item.end_time)
            drafts.append(
                _PeriodDraft(
                    id=item.id,
                    label=item.label or f"Period {item.id}",
                    start=start,
                    duration=max(0, end - start),
                )
            )
        return drafts

    def _splice_win_block(self, drafts: list[_PeriodDraft]) -> list[_PeriodDraft]:
        win = self.config.win_config
        passing = self.config.passing_time
        index = next((i for i, draft in enumerate(drafts) if draft.id == win.after_period), None)
        if index is None:
            self.log.warn(f"WIN block not inserted: period {win.after_period} does not exist")
            return drafts

        win_draft = _PeriodDraft(
            id=WIN_PERIOD_ID,
            label="WIN",
            start=drafts[index].end + passing,
            duration=win.win_duration,
            role="win",
        )
        current = win_draft.end + passing
        for draft in drafts[index + 1 :]:
            draft.start = current
            current += draft.duration + passing
        return [*drafts[: index + 1], win_draft, *drafts[index + 1 :]]

    def _classify(self, draft: _PeriodDraft, conflicts: list[Conflict]) -> Period:
        lunch = self.config.lunch_config
        win = self.config.win_config
        role = draft.role
        if role != "win":
            if lunch.style == "split" and draft.id == lunch.lunch_period:
                role = "split_lunch"
                self._check_split_lunch(draft, conflicts)
            elif lunch.style == "unit" and draft.id == lunch.lunch_period:
                role = "unit_lunch"
            elif lunch.style == "multi_period" and draft.id in lunch.lunch_periods:
                role = "multi_lunch"
            elif win.enabled and win.model == "uses_period" and draft.id == win.win_period:
                role = "win"
        return Period(
            id=draft.id,
            label=draft.label,
            role=role,
            start_min=draft.start,
            end_min=draft.end,
            start_time=minutes_to_time(draft.start),
            end_time=minutes_to_time(draft.end),
            duration=draft.duration,
        )

    def _check_split_lunch(self, draft: _PeriodDraft, conflicts: list[Conflict]) -> None:
        lunch = self.config.lunch_config
        cafeteria_minutes = lunch.lunch_duration * lunch.num_waves
        instruction_minutes = lunch.min_class_time + lunch.lunch_duration
        required = max(cafeteria_minutes, instruction_minutes)
        if draft.duration < required - SPLIT_LUNCH_TOLERANCE_MINUTES:
            message = (
                f"CRITICAL: Period {draft.id} is {draft.duration}m. "
                f"Needs {required}m to satisfy cafeteria & learning constraints."
            )
            conflicts.append(Conflict(type="coverage", message=message, period_id=draft.id))
            self.log.warn(message, {"period": draft.id, "required": required, "duration": draft.duration})
