"""Project analytics data (status split, workload, overall completion). Rendering is left to clients."""
from typing import Any, Iterable

from nexus.core.constants import TASK_STATUSES
from nexus.services.project_service import member_name
from nexus.store.types import Record

UNASSIGNED = "Unassigned"


def _percent(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def status_breakdown(tasks: Iterable[Record]) -> list[dict[str, Any]]:
    """[{name, value}] per status; the three standard statuses always appear, others as seen."""
    counts: dict[str, int] = {s: 0 for s in TASK_STATUSES}
    for t in tasks:
        status = t.get("status")
        counts[status] = counts.get(status, 0) + 1
    return [{"name": k, "value": v} for k, v in counts.items()]


def workload(tasks: Iterable[Record], project: Record) -> list[dict[str, Any]]:
    """[{name, tasks}] per assignee, named from the project's owner/member details."""
    counts: dict[str, int] = {}
    for t in tasks:
        key = t.get("assignedTo") or UNASSIGNED
        counts[key] = counts.get(key, 0) + 1
    return [
        {"name": UNASSIGNED if uid == UNASSIGNED else member_name(project, uid), "tasks": n}
        for uid, n in counts.items()
    ]


def overall_progress(tasks: Iterable[Record]) -> int:
    """Mean percentDone over all tasks, rounded; 0 with no tasks."""
    tasks = list(tasks)
    if not tasks:
        return 0
    # Half rounds up (12.5 -> 13)
    return int(sum(_percent(t.get("percentDone")) for t in tasks) / len(tasks) + 0.5)


def project_analytics(tasks: Iterable[Record], project: Record) -> dict[str, Any]:
    tasks = list(tasks)
    return {
        "status": status_breakdown(tasks),
        "workload": workload(tasks, project),
        "overall_progress": overall_progress(tasks),
        "task_count": len(tasks),
    }
