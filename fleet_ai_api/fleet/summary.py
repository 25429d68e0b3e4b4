import math
from collections.abc import Iterable
from typing import Any

from fleet_ai_api.fleet.store import FleetDataset
from fleet_ai_api.schemas import EntityStatus, EntitySummary, FleetSummary

STATUS_RANK = {"good": 0, "warning": 1, "critical": 2}
STATUS_LABELS = ("Good", "Warning", "Critical")
UNKNOWN_STATUS_RANK = 1
CRITICAL_RANK = 2


def status_rank(status: Any) -> int:
    return STATUS_RANK.get(str(status or "").strip().lower(), UNKNOWN_STATUS_RANK)


def worst_status_rank(entity: dict[str, Any] | None) -> int:
    components = entity_components(entity)
    return max((status_rank(component.get("status")) for component in components), default=0)


def worst_status(entity: dict[str, Any] | None) -> str:
    return STATUS_LABELS[worst_status_rank(entity)]


def percentage(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(math.floor(part / total * 100 + 0.5))


def compute_fleet_summary(dataset: FleetDataset | Iterable[dict[str, Any]]) -> FleetSummary:
    entities = dataset.entities if isinstance(dataset, FleetDataset) else list(dataset)
    summary = FleetSummary(total=len(entities))

    for entity in entities:
        rank = worst_status_rank(entity)
        if rank == CRITICAL_RANK:
            summary.count_critical += 1
            summary.critical_ids.append(str(entity.get("id")))
        elif rank == 1:
            summary.count_warning += 1
        else:
            summary.count_good += 1
        if rank < CRITICAL_RANK:
            summary.operational_count += 1

    summary.out_of_service_count = summary.total - summary.operational_count
    summary.operational_pct = percentage(summary.operational_count, summary.total)
    return summary


def compute_entity_summary(entity: dict[str, Any] | None) -> EntitySummary:
    components = entity_components(entity)
    critical = _first_with_status(components, "critical")
    if critical is not None:
        return EntitySummary(worst_status="Critical", key_issue=_describe_issue(critical, "Critical"))
    warning = _first_with_status(components, "warning")
    if warning is not None:
        return EntitySummary(worst_status="Warning", key_issue=_describe_issue(warning, "Warning"))
    return EntitySummary()


def entity_statuses(dataset: FleetDataset) -> list[EntityStatus]:
    return [
        EntityStatus(
            id=str(entity.get("id")),
            display_name=entity.get("displayName"),
            worst_status=worst_status(entity),
        )
        for entity in dataset.entities
    ]


def component_name(component: dict[str, Any]) -> str:
    return str(
        component.get("componentName")
        or component.get("displayName")
        or component.get("id")
        or "unknown component"
    )


def entity_components(entity: dict[str, Any] | None) -> list[dict[str, Any]]:
    if not isinstance(entity, dict):
        return []
    components = entity.get("components")
    if not isinstance(components, list):
        return []
    return [component for component in components if isinstance(component, dict)]


def _first_with_status(components: list[dict[str, Any]], status: str) -> dict[str, Any] | None:
    for component in components:
        if str(component.get("status") or "").strip().lower() == status:
            return component
    return None


def _describe_issue(component: dict[str, Any], label: str) -> str:
    fault = component.get("faultCode") or "N/A"
    due = component.get("maintenanceDue") or "unknown"
    return f"{component_name(component)} ({fault}) = {label} (maintenanceDue: {due})"
