import logging

from fastapi import APIRouter

from bellforge.core.config import get_settings
from bellforge.schemas.config import ScheduleConfig
from bellforge.schemas.schedule import ScheduleResponse
from bellforge.services.engine import generate_schedule

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/schedule/generate", response_model=ScheduleResponse, response_model_by_alias=True)
def generate(payload: ScheduleConfig) -> ScheduleResponse:
    settings = get_settings()
    if payload.random_seed is None and settings.default_random_seed is not None:
        payload = payload.model_copy(update={"random_seed": settings.default_random_seed})

    result = generate_schedule(payload)
    logger.info(
        "Generated %s schedule: %d/%d sections placed, %d conflicts in %dms",
        result.schedule_type,
        result.stats.scheduled_count,
        result.stats.total_sections,
        result.stats.conflict_count,
        result.runtime_ms,
    )
    return result
