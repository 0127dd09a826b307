from __future__ import annotations

from typing import Sequence

from material_tracker.requisitions.models import PRIORITY_VALUES, STATUS_VALUES, MaterialRequest


def summarize_requests(requests: Sequence[MaterialRequest]) -> dict[str, int | dict[str, int]]:
    by_status = {status: 0 for status in STATUS_VALUES}
    by_priority = {priority: 0 for priority in PRIORITY_VALUES}
    for request in requests:
        by_status[request.status] += 1
        by_priority[request.priority] += 1

    return {
        "total": len(requests),
        "pending": by_status["pending"],
        "urgent": by_priority["urgent"],
        "by_status": by_status,
        "by_priority": by_priority,
    }
