from __future__ import annotations

from nexus.services.analytics import overall_progress, project_analytics, status_breakdown, workload
from nexus.store.types import Record


def _task(i: int, status: str, pct, assignee: str = "") -> Record:
    return Record(f"projects/p1/tasks/t{i}", {"status": status, "percentDone": pct, "assignedTo": assignee})


PROJECT = Record(
    "projects/p1",
    {
        "ownerId": "alice",
        "ownerName": "Alice",
        "members": ["bob"],
        "memberDetails": [{"uid": "bob", "name": "Bob", "email": "bob@example.com"}],
    },
)


def test_status_breakdown_always_lists_standard_statuses() -> None:
    out = status_breakdown([_task(1, "Completed", 100)])
    assert out == [
        {"name": "Pending", "value": 0},
        {"name": "In Progress", "value": 0},
        {"name": "Completed", "value": 1},
    ]


def test_workload_names_assignees() -> None:
    tasks = [_task(1, "Pending", 0, "bob"), _task(2, "Pending", 0, "bob"), _task(3, "Pending", 0, "alice"), _task(4, "Pending", 0)]
    assert workload(tasks, PROJECT) == [
        {"name": "Bob", "tasks": 2},
        {"name": "Alice", "tasks": 1},
        {"name": "Unassigned", "tasks": 1},
    ]


def test_overall_progress_rounds_half_up_and_tolerates_junk() -> None:
    assert overall_progress([]) == 0
    assert overall_progress([_task(1, "x", 25), _task(2, "x", 0)]) == 13
    assert overall_progress([_task(1, "x", "50"), _task(2, "x", None)]) == 25


def test_project_analytics_bundle() -> None:
    out = project_analytics([_task(1, "Completed", 100), _task(2, "Pending", 0, "bob")], PROJECT)
    assert out["task_count"] == 2
    assert out["overall_progress"] == 50
