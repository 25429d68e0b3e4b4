import re
from typing import Any

from fleet_ai_api.fleet.store import FleetDataset

DEFAULT_MAX_CHARS = 3000
TRUNCATION_MARKER = "..."
MAX_SCALAR_STRING = 400
MAX_INLINE_ARRAY = 12
MAX_COMPONENT_LINES = 25
MAX_CRITICAL_FOCUS = 5
MAX_FLEET_ENTRIES = 10
PRIORITY_ORDER = {"CRITICAL": 0, "HIGH": 1, "MEDIUM": 2, "LOW": 3, "INFO": 4}
UNRANKED_PRIORITY = len(PRIORITY_ORDER)

_CRITICAL_STATUS = re.compile(r"critical", re.IGNORECASE)
_URGENT_PRIORITY = re.compile(r"HIGH|CRITICAL", re.IGNORECASE)


def build_context(
    dataset: FleetDataset,
    entity_id: str | None = None,
    fleet_wide: bool = False,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> str:
    details = dataset.detail(entity_id)
    if details is not None:
        lines = _entity_lines(str(entity_id), details)
    elif fleet_wide:
        lines = _fleet_lines(dataset)
    else:
        lines = []

    if not lines:
        return ""
    return truncate("\n".join(lines), max_chars)


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    keep = max(0, max_chars - len(TRUNCATION_MARKER))
    return text[:keep] + TRUNCATION_MARKER


def normalize_component(component: dict[str, Any]) -> dict[str, str]:
    return {
        "name": str(
            component.get("displayName") or component.get("componentName") or component.get("id")
        ),
        "status": str(component.get("status") or "Unknown"),
        "due": str(component.get("maintenanceDue") or "n/a"),
        "priority": str(component.get("priorityLevel") or "MEDIUM"),
        "fault": str(component.get("faultCode") or "-"),
        "desc": str(component.get("descriptionText") or "")[:120],
    }


def _entity_lines(entity_id: str, details: dict[str, Any]) -> list[str]:
    lines = [f"Selected Vehicle: {entity_id}"]
    for key, value in details.items():
        if value is None:
            continue
        if isinstance(value, str):
            if len(value) < MAX_SCALAR_STRING:
                lines.append(f"{key}: {value}")
        elif isinstance(value, (bool, int, float)):
            lines.append(f"{key}: {_format_value(value)}")
        elif isinstance(value, list) and 0 < len(value) < MAX_INLINE_ARRAY:
            if all(not isinstance(item, (dict, list)) for item in value):
                lines.append(f"{key}: [{', '.join(_format_value(item) for item in value)}]")

    components = details.get("components")
    if isinstance(components, list) and components:
        lines.extend(_component_lines(components))
    return lines


def _component_lines(components: list[Any]) -> list[str]:
    normalized = [normalize_component(item) for item in components if isinstance(item, dict)]
    normalized.sort(key=lambda item: PRIORITY_ORDER.get(item["priority"].upper(), UNRANKED_PRIORITY))

    lines = ["Components Summary (name | status | due | priority | fault):"]
    for item in normalized[:MAX_COMPONENT_LINES]:
        lines.append(
            f" * {item['name']} | {item['status']} | {item['due']} | {item['priority']} | {item['fault']}"
        )

    focus = [
        item
        for item in normalized
        if _CRITICAL_STATUS.search(item["status"]) or _URGENT_PRIORITY.search(item["priority"])
    ][:MAX_CRITICAL_FOCUS]
    if focus:
        lines.append("Critical Focus:")
        lines.extend(f" - {item['name']}: {item['status']}; {item['desc']}" for item in focus)
    return lines


def _fleet_lines(dataset: FleetDataset) -> list[str]:
    entries = dataset.entities[:MAX_FLEET_ENTRIES]
    if not entries:
        return []
    lines = [f"Fleet Summary (first {MAX_FLEET_ENTRIES} entries):"]
    for entity in entries:
        if entity.get("id"):
            status = entity.get("status") or entity.get("health") or entity.get("state") or "unknown"
            lines.append(f" - {entity['id']}: {status}")
    return lines


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)
