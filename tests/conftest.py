import json
import os
import tempfile
from pathlib import Path

import pytest

# Keep tests offline and away from any developer data directory.
TEST_ROOT = Path(tempfile.mkdtemp(prefix="fleet_ai_tests_"))
os.environ["FLEET_LISTING_FILE"] = str(TEST_ROOT / "missing_flights.json")
os.environ["FLEET_RECORDS_DIR"] = str(TEST_ROOT / "missing_flights")
os.environ["PROMPTS_FILE"] = str(TEST_ROOT / "missing_prompts.json")
os.environ["LOGS_DIR"] = str(TEST_ROOT / "logs")
os.environ["LOG_JSON"] = "false"
for name in (
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_KEY",
    "AZURE_OPENAI_DEPLOYMENT",
    "NEURO_SAN_API_URL",
    "NEURO_SAN_PROJECT_NAME",
    "NEURO_SAN_SUMMARY_PROJECT_NAME",
):
    os.environ[name] = ""

from fleet_ai_api.fleet.store import FleetStore  # noqa: E402
from fleet_ai_api.observability import EventLog  # noqa: E402

FLEET_LISTING = {
    "flights": [
        {
            "id": "FL-001",
            "displayName": "Falcon One",
            "status": "ready",
            "components": [{"id": "c1", "componentName": "Engine", "status": "Good"}],
        },
        {
            "id": "FL-002",
            "displayName": "Falcon Two",
            "components": [
                {
                    "id": "c2",
                    "componentName": "Aileron Actuator",
                    "status": "Warning",
                    "faultCode": "AIL-22",
                    "maintenanceDue": "2026-11-01",
                }
            ],
        },
        {
            "id": "FL-003",
            "displayName": "Falcon Three",
            "components": [
                {
                    "id": "c3",
                    "componentName": "Hydraulic Pump",
                    "status": "Critical",
                    "faultCode": "HYD-7",
                    "maintenanceDue": "2026-10-20",
                    "priorityLevel": "CRITICAL",
                    "descriptionText": "Pressure loss on the primary circuit",
                },
                {"id": "c4", "componentName": "Radio", "status": "Good", "priorityLevel": "LOW"},
            ],
        },
    ]
}


def write_fleet(root: Path, listing=None, records: dict | None = None) -> FleetStore:
    listing_path = root / "flights.json"
    records_dir = root / "flights"
    listing_path.write_text(json.dumps(FLEET_LISTING if listing is None else listing), encoding="utf-8")
    records_dir.mkdir(exist_ok=True)
    for entity_id, record in (records or {}).items():
        (records_dir / f"{entity_id}.json").write_text(json.dumps(record), encoding="utf-8")
    return FleetStore(listing_path, records_dir)


@pytest.fixture
def fleet_store(tmp_path: Path) -> FleetStore:
    return write_fleet(tmp_path)


@pytest.fixture
def event_log(tmp_path: Path):
    log = EventLog(tmp_path / "logs" / "events.log", backend="test")
    yield log
    log.close()


def read_events(log: EventLog) -> list[dict]:
    log.close()
    if not log.path.exists():
        return []
    return [json.loads(line) for line in log.path.read_text(encoding="utf-8").splitlines() if line]
