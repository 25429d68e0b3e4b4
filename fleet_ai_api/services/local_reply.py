import json
from typing import Any

from fleet_ai_api.fleet.summary import compute_entity_summary, percentage
from fleet_ai_api.schemas import FleetSummary

GREETING_REPLY = "Hello! I am your AI for BI assistant. How can I help you today?"


def render_fleet_reply(fleet: FleetSummary) -> str:
    lines = [
        "Fleet summary (from local data):",
        f"- Total vehicles: {fleet.total}",
        f"- Vehicles all good: {fleet.count_good}",
        f"- Vehicles with warnings: {fleet.count_warning}",
        f"- Vehicles with critical issues: {fleet.count_critical}",
        f"- Operational: {fleet.operational_count} ({fleet.operational_pct}%)",
        f"- Out-of-service/maintenance planned: {fleet.out_of_service_count}",
    ]
    if fleet.critical_ids:
        lines.append(f"- Out-of-service IDs: {json.dumps(fleet.critical_ids)}")
    lines.append("")
    lines.append(
        "If you want details for a specific vehicle, mention its id (for example: BMW-X5M-003)."
    )
    return "\n".join(lines)


def render_entity_reply(fleet: FleetSummary, entity: dict[str, Any]) -> str:
    entity_id = entity.get("id") or "selected vehicle"
    name = entity.get("displayName") or entity_id
    summary = compute_entity_summary(entity)
    critical_pct = percentage(fleet.count_critical, fleet.total)
    state = "out-of-service" if summary.worst_status == "Critical" else "operational"

    return "\n".join(
        [
            f"Context: {entity_id}",
            "",
            f"I’m currently scoped to {name}. Do you want:",
            "- A: a short summary for this selected vehicle, or",
            "- B: a fleet-level summary (aggregate across all vehicles)?",
            "",
            "If you want the fleet summary now, here's the latest from the dataset:",
            f"- Total vehicles: {fleet.total}",
            f"- Operational (no Critical components): {fleet.operational_count} ({fleet.operational_pct}%)",
            f"- Out-of-service (≥ 1 Critical): {fleet.count_critical} ({critical_pct}%) "
            f"IDs: {json.dumps(fleet.critical_ids)}",
            "",
            f"Quick summary for {entity_id}:",
            f"- Worst status: {summary.worst_status}",
            f"- Key issue: {summary.key_issue} (vehicle is {state} until the issue is resolved)",
            "",
            f"Tell me which view you want (A or B), or ask for per-component details for {entity_id}.",
        ]
    )


def render_local_reply(fleet: FleetSummary, entity: dict[str, Any] | None = None) -> str:
    if entity is not None:
        return render_entity_reply(fleet, entity)
    return render_fleet_reply(fleet)
