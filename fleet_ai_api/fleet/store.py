import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import Any

from fleet_ai_api.config import Settings, settings

logger = logging.getLogger("fleet_ai.fleet")

LISTING_KEYS = ("flights", "vehicles", "cars", "entities")


@dataclass
class FleetDataset:
    entities: list[dict[str, Any]] = field(default_factory=list)
    records: dict[str, dict[str, Any]] = field(default_factory=dict)
    loaded_at: float = 0.0

    def find(self, entity_id: str | None) -> dict[str, Any] | None:
        if not entity_id:
            return None
        for entity in self.entities:
            if entity.get("id") == entity_id:
                return entity
        return None

    def detail(self, entity_id: str | None) -> dict[str, Any] | None:
        if not entity_id:
            return None
        record = self.records.get(entity_id)
        if record is not None:
            return record
        return self.find(entity_id)

    def is_empty(self) -> bool:
        return not self.entities and not self.records


class FleetStore:
    """Read-only access to the fleet listing and per-entity override records.

    The first ``load()`` reads everything from disk and keeps the snapshot in
    memory. Nothing expires it on its own: edits made to the files afterwards
    are only picked up once ``invalidate()`` is called.
    """

    def __init__(self, listing_path: str | Path, records_dir: str | Path) -> None:
        self._listing_path = Path(listing_path)
        self._records_dir = Path(records_dir)
        self._cache: FleetDataset | None = None
        self._lock = Lock()

    @classmethod
    def from_settings(cls, config: Settings) -> "FleetStore":
        return cls(config.fleet_listing_file, config.fleet_records_dir)

    def load(self) -> FleetDataset:
        with self._lock:
            if self._cache is None:
                self._cache = self._read_dataset()
            return self._cache

    def invalidate(self) -> None:
        with self._lock:
            self._cache = None

    def _read_dataset(self) -> FleetDataset:
        entities = _extract_entities(_read_json(self._listing_path))
        records: dict[str, dict[str, Any]] = {}
        if self._records_dir.is_dir():
            for path in sorted(self._records_dir.glob("*.json")):
                record = _read_json(path)
                if isinstance(record, dict):
                    records[path.stem] = record

        logger.info(
            "fleet_dataset_loaded",
            extra={"entities": len(entities), "records": len(records)},
        )
        return FleetDataset(entities=entities, records=records, loaded_at=time.time())


def _read_json(path: Path) -> Any:
    if not path.is_file():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("fleet_file_unreadable path=%s error=%s", path, exc)
        return None


def _extract_entities(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, dict):
        for key in LISTING_KEYS:
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
        else:
            return []
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


fleet_store = FleetStore.from_settings(settings)
