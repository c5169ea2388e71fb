from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

PeriodRole = Literal["class", "unit_lunch", "split_lunch", "multi_lunch", "win"]
ConflictType = Literal["unscheduled", "coverage", "plan_violation"]
LogLevel = Literal["INFO", "WARN", "ERROR"]
PlacementStatus = Literal["SUCCESS", "FAILED"]


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire (the UI speaks camelCase)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Period(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int | str
    label: str
    role: PeriodRole = "class"
    start_min: int
    end_min: int
    start_time: str
    end_time: str
    duration: int


class Section(CamelModel):
    id: str
    course_id: str | None = None
    course_name: str = ""
    section_num: int = 1
    enrollment: int = 0
    max_size: int = 0
    department: str = "General"
    room_type: str = "regular"
    is_core: bool = False
    teacher: str | None = None
    teacher_name: str | None = None
    co_teacher: str | None = None
    co_teacher_name: str | None = None
    room: str | None = None
    room_name: str | None = None
    period: int | str | None = None
    term: str | None = None
    locked: bool = False
    is_manual: bool = False
    has_conflict: bool = False
    conflict_reason: str | None = None
    lunch_wave: int | None = None

    @model_validator(mode="before")
    @classmethod
    def drop_null_fields(cls, data: Any) -> Any:
        # Seeds come back from the grid with explicit nulls for unset fields.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @property
    def label(self) -> str:
        return f"{self.course_name or self.course_id or self.id} S{self.section_num}"


class Conflict(CamelModel):
    type: ConflictType
    message: str
    section_id: str | None = None
    teacher_id: str | None = None
    period_id: int | str | None = None


class PlcGroup(CamelModel):
    # Caller-defined groups are echoed back as sent, so id and name may be missing.
    id: str | None = None
    name: str | None = None
    period: int | str
    teacher_ids: list[str] = Field(default_factory=list)


class LogEntry(CamelModel):
    timestamp: datetime
    level: LogLevel
    message: str
    data: dict[str, Any] | None = None


class CandidateEvaluation(CamelModel):
    period: str
    # None when the slot was rejected outright by a hard constraint.
    cost: float | None = None
    rejected: bool = False
    reasons: list[str] = Field(default_factory=list)


class PlacementRecord(CamelModel):
    section_id: str
    course: str
    assigned_period: str | None = None
    cost_score: float | None = None
    evaluations: list[CandidateEvaluation] = Field(default_factory=list)
    status: PlacementStatus


class PeriodCoverage(CamelModel):
    seats_in_class: int
    unaccounted: int
    at_lunch: int | str
    section_count: int


class ScheduleStats(CamelModel):
    total_sections: int
    scheduled_count: int
    conflict_count: int
    teacher_count: int
    room_count: int
    total_students: int


class ScheduleResponse(CamelModel):
    schedule_type: str
    sections: list[Section]
    period_list: list[Period]
    teacher_schedule: dict[str, dict[str, str]]
    room_schedule: dict[str, dict[str, str]]
    plc_groups: list[PlcGroup] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)
    logs: list[LogEntry] = Field(default_factory=list)
    placement_history: list[PlacementRecord] = Field(default_factory=list)
    period_student_data: dict[str, PeriodCoverage] = Field(default_factory=dict)
    stats: ScheduleStats
    runtime_ms: int = 0
