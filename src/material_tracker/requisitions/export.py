from __future__ import annotations

import csv
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Mapping, Sequence

import pandas as pd

from material_tracker.errors import EmptyExportError
from material_tracker.requisitions.models import MaterialRequest

EXPORT_COLUMNS = [
    "Material Name",
    "Quantity",
    "Unit",
    "Status",
    "Priority",
    "Project",
    "Requested By",
    "Date",
    "Notes",
]
EMPTY_EXPORT_MESSAGE = "There are no material requests to export."

logger = logging.getLogger("material_tracker.export")


def format_quantity(quantity: float) -> str:
    if float(quantity).is_integer():
        return str(int(quantity))
    return repr(float(quantity))


def format_request_date(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d")


def _export_row(request: MaterialRequest, project_names: Mapping[str, str]) -> list[str]:
    project = project_names.get(request.project_id, "") if request.project_id else ""
    return [
        request.material_name,
        format_quantity(request.quantity),
        request.unit,
        request.status,
        request.priority,
        project,
        request.requested_by_name,
        format_request_date(request.requested_at),
        (request.notes or "").replace(",", ";"),
    ]


def build_export_frame(
    requests: Sequence[MaterialRequest],
    project_names: Mapping[str, str] | None = None,
) -> pd.DataFrame:
    names = project_names or {}
    rows = [_export_row(request, names) for request in requests]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS, dtype=str)


def to_csv(
    requests: Sequence[MaterialRequest],
    project_names: Mapping[str, str] | None = None,
) -> str:
    if not requests:
        raise EmptyExportError(EMPTY_EXPORT_MESSAGE)
    export_df = build_export_frame(requests, project_names)
    return export_df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def export_filename(today: date | None = None) -> str:
    today = today or date.today()
    return f"material-requests-{today.isoformat()}.csv"


def write_export(
    requests: Sequence[MaterialRequest],
    directory: Path | str,
    project_names: Mapping[str, str] | None = None,
    today: date | None = None,
) -> Path:
    csv_data = to_csv(requests, project_names)
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / export_filename(today)
    path.write_bytes(csv_data.encode("utf-8"))
    logger.info("Exported %s material requests to %s", len(requests), path)
    return path
