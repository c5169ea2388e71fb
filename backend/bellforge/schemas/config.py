from __future__ import annotations

import math
import re
from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, Field, field_validator, model_validator

from bellforge.schemas.schedule import CamelModel, Section

TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")

ScheduleMode = Literal["period_length", "time_frame"]
LunchStyle = Literal["unit", "split", "multi_period"]
WinModel = Literal["uses_period", "separate"]
RoomType = Literal["regular", "lab", "gym"]


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def coerce_period_id(value: Any) -> Any:
    # The wizard posts period ids from <select> elements, so "4" and 4 must agree.
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return int(stripped)
        return stripped
    return value


PeriodId = Annotated[int | str, BeforeValidator(coerce_period_id)]


class ConfigModel(CamelModel):
    @model_validator(mode="before")
    @classmethod
    def drop_null_fields(cls, data: Any) -> Any:
        # Absent and null mean the same thing: fall back to the field default.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class PlacementWeights(ConfigModel):
    overload: int = Field(default=500, ge=1, le=100_000)
    room_conflict: int = Field(default=100, ge=0, le=100_000)
    elective_overlap: int = Field(default=200, ge=0, le=100_000)
    term_imbalance: int = Field(default=150, ge=0, le=100_000)
    slot_density: int = Field(default=10, ge=0, le=10_000)

    @model_validator(mode="after")
    def validate_ordering(self) -> "PlacementWeights":
        others = (self.room_conflict, self.elective_overlap, self.term_imbalance)
        if any(self.overload <= value for value in others):
            raise ValueError("overload must outweigh every other placement penalty")
        if any(self.slot_density >= value for value in others):
            raise ValueError("slot_density must stay below every other placement penalty")
        return self


class LunchConfig(ConfigModel):
    style: LunchStyle = "unit"
    lunch_period: PeriodId | None = None
    lunch_periods: list[PeriodId] = Field(default_factory=list)
    lunch_duration: int = Field(default=30, ge=1, le=240)
    num_waves: int = Field(default=1, ge=1, le=10)
    min_class_time: int = Field(default=45, ge=0, le=240)


class WinConfig(ConfigModel):
    enabled: bool = False
    win_period: PeriodId | None = None
    model: WinModel = "uses_period"
    after_period: PeriodId = 1
    win_duration: int = Field(default=30, ge=1, le=240)


class PeriodInput(ConfigModel):
    id: PeriodId
    label: str | None = None
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value


class TeacherPayload(ConfigModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = ""
    departments: list[str] = Field(default_factory=list)
    is_floater: bool = False

    @property
    def primary_department(self) -> str:
        return self.departments[0] if self.departments else "General"


class RoomPayload(ConfigModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = ""
    type: RoomType = "regular"


class CoursePayload(ConfigModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = ""
    department: str = "General"
    required: bool = False
    room_type: RoomType = "regular"
    sections: int | None = Field(default=None, ge=0, le=500)
    max_size: int | None = Field(default=None, ge=0, le=1000)
    co_teacher_id: str | None = None

    @field_validator("sections", "max_size")
    @classmethod
    def zero_means_unset(cls, value: int | None) -> int | None:
        return value or None


class PlcGroupInput(ConfigModel):
    id: str | None = None
    name: str | None = None
    period: PeriodId
    teacher_ids: list[str] = Field(default_factory=list)


class TeacherAvailability(ConfigModel):
    teacher_id: str
    blocked_periods: list[PeriodId] = Field(default_factory=list)


class LegacyConstraint(ConfigModel):
    type: str
    teacher_id: str | None = None
    section_id: str | None = None
    period: PeriodId | None = None


class ScheduleConfig(ConfigModel):
    """Everything one scheduling run needs, normalized once at entry."""

    school_start: str = "08:00"
    school_end: str = "15:00"
    periods_count: int = Field(default=7, ge=1, le=20)
    period_length: int = Field(default=50, ge=1, le=300)
    passing_time: int = Field(default=5, ge=0, le=60)
    schedule_mode: ScheduleMode = "period_length"
    # Wizard-only variants (ms_team, rotating_drop, ...) run on the traditional layout.
    schedule_type: str = "traditional"
    periods: list[PeriodInput] = Field(default_factory=list)

    lunch_config: LunchConfig = Field(default_factory=LunchConfig)
    win_config: WinConfig = Field(default_factory=WinConfig)
    plan_periods_per_day: int = Field(default=1, ge=0, le=10)
    plc_enabled: bool = False
    plc_groups: list[PlcGroupInput] = Field(default_factory=list)
    teacher_availability: list[TeacherAvailability] = Field(default_factory=list)

    teachers: list[TeacherPayload] = Field(default_factory=list)
    courses: list[CoursePayload] = Field(default_factory=list)
    rooms: list[RoomPayload] = Field(default_factory=list)
    constraints: list[LegacyConstraint] = Field(default_factory=list)
    locked_sections: list[Section] = Field(default_factory=list)
    manual_sections: list[Section] = Field(default_factory=list)

    student_count: int = Field(default=800, ge=0, le=100_000)
    max_class_size: int = Field(default=30, ge=1, le=1000)
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)
    weights: PlacementWeights = Field(default_factory=PlacementWeights)

    @field_validator("school_start", "school_end")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def fill_derived_defaults(self) -> "ScheduleConfig":
        if self.lunch_config.lunch_period is None:
            self.lunch_config.lunch_period = math.ceil(self.periods_count / 2)
        for teacher in self.teachers:
            if not teacher.name:
                teacher.name = teacher.id
        for room in self.rooms:
            if not room.name:
                room.name = room.id
        for course in self.courses:
            if not course.name:
                course.name = course.id
        return self
