from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping

import pytest
import requests

from material_tracker.auth import Identity
from material_tracker.requisitions.store import RequestStore


class FakeTableClient:
    """In-memory stand-in for the remote table service."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {"material_requests": [], "projects": []}
        self.calls: list[tuple[str, str]] = []
        self.fail_next: Exception | None = None
        self._next_id = 1

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc

    @staticmethod
    def _matches(row: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
        for column, value in (filters or {}).items():
            if value is None:
                if row.get(column) is not None:
                    return False
            elif str(row.get(column)) != str(value):
                return False
        return True

    def calls_of(self, kind: str) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] == kind]

    def select(self, table, filters=None, order=None, columns="*"):
        self.calls.append(("select", table))
        self._maybe_fail()
        rows = [dict(row) for row in self.tables[table] if self._matches(row, filters)]
        if order:
            column, direction = order.split(".")
            rows.sort(key=lambda row: row[column], reverse=direction == "desc")
        return rows

    def insert(self, table, row):
        self.calls.append(("insert", table))
        self._maybe_fail()
        new_row = dict(row)
        new_row.setdefault("id", f"req-{self._next_id}")
        self._next_id += 1
        self.tables[table].append(new_row)
        return [dict(new_row)]

    def update(self, table, filters, changes):
        self.calls.append(("update", table))
        self._maybe_fail()
        updated = []
        for row in self.tables[table]:
            if self._matches(row, filters):
                row.update(changes)
                updated.append(dict(row))
        return updated

    def delete(self, table, filters):
        self.calls.append(("delete", table))
        self._maybe_fail()
        kept, removed = [], []
        for row in self.tables[table]:
            (removed if self._matches(row, filters) else kept).append(row)
        self.tables[table] = kept
        return [dict(row) for row in removed]


class FakeHttp:
    """Records outgoing HTTP calls and replays queued responses."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.responses: list[requests.Response | Exception] = []

    def queue(self, status_code: int = 200, payload: Any = None, body: bytes | None = None) -> None:
        self.responses.append(make_response(status_code, payload, body))

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "params": dict(params or {}),
                "json": json,
                "headers": dict(headers or {}),
                "timeout": timeout,
            }
        )
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_response(status_code: int = 200, payload: Any = None, body: bytes | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    if body is not None:
        response._content = body
    elif payload is None:
        response._content = b""
    else:
        response._content = json.dumps(payload).encode("utf-8")
    return response


@pytest.fixture
def identity() -> Identity:
    return Identity(
        user_id="user-1",
        name="John Builder",
        email="john@construction.co",
        company_id="company-1",
    )


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def table_client() -> FakeTableClient:
    return FakeTableClient()


@pytest.fixture
def fake_http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def store(table_client, identity, fixed_now) -> RequestStore:
    return RequestStore(table_client, lambda: identity, clock=lambda: fixed_now)


@pytest.fixture
def make_row():
    counter = {"n": 0}

    def _make_row(**overrides: Any) -> dict[str, Any]:
        counter["n"] += 1
        row = {
            "id": f"seed-{counter['n']}",
            "project_id": None,
            "material_name": "Portland Cement",
            "quantity": 500,
            "unit": "bags",
            "status": "pending",
            "priority": "high",
            "requested_by": "user-1",
            "requested_by_name": "John Builder",
            "requested_at": "2024-01-01T00:00:00+00:00",
            "notes": None,
            "company_id": "company-1",
        }
        row.update(overrides)
        return row

    return _make_row
