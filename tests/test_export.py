from __future__ import annotations

from datetime import date

import pytest

from material_tracker.errors import EmptyExportError
from material_tracker.requisitions.export import (
    EXPORT_COLUMNS,
    export_filename,
    format_quantity,
    to_csv,
    write_export,
)
from material_tracker.requisitions.models import MaterialRequest

HEADER = '"Material Name","Quantity","Unit","Status","Priority","Project","Requested By","Date","Notes"'


def _request(make_row, **overrides) -> MaterialRequest:
    return MaterialRequest.model_validate(make_row(**overrides))


@pytest.fixture
def sample_requests(make_row):
    return [
        _request(make_row, material_name="Portland Cement", quantity=500, notes="Needed for foundation work on floors 15-20"),
        _request(make_row, material_name="Steel Rebar #5", quantity=2000, unit="m", status="approved", priority="urgent"),
        _request(make_row, material_name="Plywood Sheets", quantity=150, unit="sheets", status="fulfilled", priority="medium"),
        _request(make_row, material_name="Electrical Wire 12 AWG", quantity=12.5, unit="rolls", status="rejected", priority="low"),
        _request(make_row, material_name="Gravel", quantity=30, unit="kg", notes="Grade A, washed, delivered to gate 2"),
    ]


def test_export_scenario(make_row):
    request = _request(
        make_row,
        material_name="Cement, Type I",
        quantity=500,
        unit="bags",
        status="pending",
        priority="high",
        project_id=None,
        requested_by_name="John Builder",
        requested_at="2024-01-01T00:00:00Z",
        notes="urgent, needed",
    )

    csv_data = to_csv([request])

    assert csv_data == (
        f"{HEADER}\n"
        '"Cement, Type I","500","bags","pending","high","","John Builder","2024-01-01","urgent; needed"\n'
    )


def test_export_is_deterministic(sample_requests):
    first = to_csv(sample_requests)

    assert to_csv(sample_requests) == first
    lines = first.splitlines()
    assert lines[0] == HEADER
    assert len(lines) == 6
    assert lines[4].startswith('"Electrical Wire 12 AWG","12.5","rolls","rejected","low"')
    assert lines[5].endswith('"Grade A; washed; delivered to gate 2"')


def test_empty_export_raises(tmp_path):
    with pytest.raises(EmptyExportError):
        to_csv([])

    with pytest.raises(EmptyExportError):
        write_export([], tmp_path, today=date(2024, 5, 1))

    assert list(tmp_path.iterdir()) == []


def test_project_names_are_resolved(make_row):
    known = _request(make_row, project_id="p-1")
    unknown = _request(make_row, project_id="p-missing")

    lines = to_csv([known, unknown], {"p-1": "Bridge Construction"}).splitlines()

    assert '"Bridge Construction"' in lines[1]
    assert lines[2].split(",")[5] == '""'


def test_embedded_quotes_are_escaped(make_row):
    request = _request(make_row, material_name='Pipe 2" PVC', notes='say "now"')

    row = to_csv([request]).splitlines()[1]

    assert row.startswith('"Pipe 2"" PVC"')
    assert row.endswith('"say ""now"""')


def test_export_date_uses_utc(make_row):
    request = _request(make_row, requested_at="2024-01-01T23:30:00-05:00")

    assert '"2024-01-02"' in to_csv([request])


def test_write_export_creates_named_file(tmp_path, sample_requests):
    path = write_export(sample_requests, tmp_path / "exports", today=date(2024, 5, 1))

    assert path.name == "material-requests-2024-05-01.csv"
    assert path.read_bytes().decode("utf-8") == to_csv(sample_requests)


def test_export_filename_and_columns():
    assert export_filename(date(2024, 1, 9)) == "material-requests-2024-01-09.csv"
    assert len(EXPORT_COLUMNS) == 9


def test_format_quantity():
    assert format_quantity(500.0) == "500"
    assert format_quantity(12.5) == "12.5"
    assert format_quantity(0.01) == "0.01"
