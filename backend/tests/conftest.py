import copy

import pytest
from fastapi.testclient import TestClient

from bellforge.main import app
from bellforge.schemas.config import ScheduleConfig


SCHOOL_PAYLOAD = {
    "studentCount": 120,
    "maxClassSize": 30,
    "randomSeed": 7,
    "teachers": [
        {"id": "t1", "name": "Ada", "departments": ["Math"]},
        {"id": "t2", "name": "Blaise", "departments": ["Math"]},
        {"id": "t3", "name": "Charlotte", "departments": ["English"]},
        {"id": "t4", "name": "Dmitri", "departments": ["Science"]},
        {"id": "t5", "name": "Edith", "departments": ["Art"]},
    ],
    "rooms": [
        {"id": "r1", "name": "Room 101"},
        {"id": "r2", "name": "Room 102"},
        {"id": "r3", "name": "Room 103"},
        {"id": "r4", "name": "Room 104"},
        {"id": "lab1", "name": "Lab A", "type": "lab"},
    ],
    "courses": [
        {"id": "MATH", "name": "Math", "department": "Math", "required": True, "sections": 4},
        {"id": "ENG", "name": "English", "department": "English", "required": True, "sections": 3},
        {"id": "BIO", "name": "Biology", "department": "Science", "required": True, "sections": 2, "roomType": "lab"},
        {"id": "ART", "name": "Art", "department": "Art", "required": False, "sections": 2},
    ],
}


@pytest.fixture() #test client
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def school_payload():
    return copy.deepcopy(SCHOOL_PAYLOAD)


@pytest.fixture()
def make_config():
    """Builds a ScheduleConfig from camelCase overrides on top of the sample school."""
    def _make(**overrides):
        payload = copy.deepcopy(SCHOOL_PAYLOAD)
        payload.update(overrides)
        return ScheduleConfig.model_validate(payload)
    return _make
