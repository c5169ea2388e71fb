from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from bellforge.schemas.schedule import CandidateEvaluation, LogEntry, PlacementRecord, Section

logger = logging.getLogger(__name__)

_LEVELS = {"INFO": logging.INFO, "WARN": logging.WARNING, "ERROR": logging.ERROR}


class RunLog:
    """Structured log for a single scheduling run.

    Entries end up in the schedule record so the UI can show why a section
    landed where it did; every entry is mirrored to the module logger too.
    """

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []
        self.placement_history: list[PlacementRecord] = []

    def _append(self, level: str, message: str, data: dict[str, Any] | None) -> None:
        self.entries.append(
            LogEntry(timestamp=datetime.now(timezone.utc), level=level, message=message, data=data)
        )
        logger.log(_LEVELS[level], message)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._append("INFO", message, data)

    def warn(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._append("WARN", message, data)

    def error(self, message: str, data: dict[str, Any] | None = None) -> None:
        self._append("ERROR", message, data)

    def log_placement(
        self,
        section: Section,
        timeslot: str,
        cost: float,
        evaluations: list[CandidateEvaluation],
    ) -> None:
        self.placement_history.append(
            PlacementRecord(
                section_id=section.id,
                course=section.course_name,
                assigned_period=timeslot,
                cost_score=cost,
                evaluations=evaluations,
                status="SUCCESS",
            )
        )

    def log_failure(self, section: Section, evaluations: list[CandidateEvaluation]) -> None:
        self.placement_history.append(
            PlacementRecord(
                section_id=section.id,
                course=section.course_name,
                evaluations=evaluations,
                status="FAILED",
            )
        )
        self.error(f"Gridlock: Failed to place {section.label}")
