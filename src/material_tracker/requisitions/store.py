from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Hashable, Mapping, Protocol

from pydantic import ValidationError

from material_tracker.auth import Identity
from material_tracker.errors import CollaboratorError, NotFoundError, UnauthenticatedError
from material_tracker.requisitions.models import (
    CreateMaterialRequestInput,
    MaterialRequest,
    Project,
    UpdateMaterialRequestInput,
    validate_create_input,
    validate_status,
    validate_update_input,
)

DEFAULT_REQUESTS_TABLE = "material_requests"
DEFAULT_PROJECTS_TABLE = "projects"
LIST_ORDER = "requested_at.desc"
PROJECT_ORDER = "name.asc"

logger = logging.getLogger("material_tracker.store")

IdentityProvider = Callable[[], "Identity | None"]
InvalidationListener = Callable[[], None]


class TableClient(Protocol):
    def select(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order: str | None = None,
        columns: str = "*",
    ) -> list[dict[str, Any]]: ...

    def insert(self, table: str, row: Mapping[str, Any]) -> list[dict[str, Any]]: ...

    def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> list[dict[str, Any]]: ...

    def delete(self, table: str, filters: Mapping[str, Any]) -> list[dict[str, Any]]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_request(row: Mapping[str, Any]) -> MaterialRequest:
    try:
        return MaterialRequest.model_validate(dict(row))
    except ValidationError as exc:
        raise CollaboratorError(f"API returned an invalid material request: {exc.error_count()} invalid field(s).") from exc


def _parse_project(row: Mapping[str, Any]) -> Project:
    try:
        return Project.model_validate(dict(row))
    except ValidationError as exc:
        raise CollaboratorError("API returned an invalid project.") from exc


class RequestStore:
    """Material request persistence backed by a remote table service.

    Reads are cached per query identity. Every successful create, update or
    delete drops the whole cache and notifies ``on_invalidate`` listeners, so
    the next read always goes back to the service.
    """

    def __init__(
        self,
        client: TableClient,
        identity: IdentityProvider,
        clock: Callable[[], datetime] = _utcnow,
        requests_table: str = DEFAULT_REQUESTS_TABLE,
        projects_table: str = DEFAULT_PROJECTS_TABLE,
    ) -> None:
        self._client = client
        self._identity = identity
        self._clock = clock
        self.requests_table = requests_table
        self.projects_table = projects_table
        self._cache: dict[Hashable, Any] = {}
        self._listeners: list[InvalidationListener] = []

    # cache

    def is_cached(self, key: Hashable) -> bool:
        return key in self._cache

    def invalidate(self) -> None:
        self._cache.clear()
        for listener in list(self._listeners):
            listener()

    def on_invalidate(self, listener: InvalidationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # reads

    def list_requests(self, status: str | None = None) -> list[MaterialRequest]:
        if status is not None:
            validate_status(status)
        key = ("list", status)
        if key not in self._cache:
            filters = {"status": status} if status else None
            rows = self._client.select(self.requests_table, filters=filters, order=LIST_ORDER)
            requests = [_parse_request(row) for row in rows]
            requests.sort(key=lambda item: item.requested_at, reverse=True)
            self._cache[key] = requests
        return list(self._cache[key])

    def get_request(self, request_id: str) -> MaterialRequest:
        key = ("get", str(request_id))
        if key not in self._cache:
            rows = self._client.select(self.requests_table, filters={"id": request_id})
            if not rows:
                raise NotFoundError(f"Material request {request_id} not found.")
            self._cache[key] = _parse_request(rows[0])
        return self._cache[key]

    def list_projects(self) -> list[Project]:
        key = ("projects",)
        if key not in self._cache:
            rows = self._client.select(self.projects_table, columns="id,name,company_id", order=PROJECT_ORDER)
            self._cache[key] = [_parse_project(row) for row in rows]
        return list(self._cache[key])

    def project_names(self) -> dict[str, str]:
        return {project.id: project.name for project in self.list_projects()}

    # writes

    def create_request(self, data: Mapping[str, Any] | CreateMaterialRequestInput) -> MaterialRequest:
        validated = validate_create_input(data)
        identity = self._identity()
        if identity is None or not identity.user_id:
            raise UnauthenticatedError("You must be signed in to create a material request.")

        row = validated.model_dump(exclude_none=True)
        row.update(
            {
                "status": "pending",
                "requested_at": self._clock().isoformat(),
                "requested_by": identity.user_id,
                "requested_by_name": identity.name,
            }
        )
        if identity.company_id:
            row["company_id"] = identity.company_id

        rows = self._client.insert(self.requests_table, row)
        if not rows:
            raise CollaboratorError("API did not return the created material request.")
        created = _parse_request(rows[0])
        logger.info("Created material request %s (%s)", created.id, created.material_name)
        self.invalidate()
        return created

    def update_request(
        self,
        request_id: str,
        changes: Mapping[str, Any] | UpdateMaterialRequestInput,
    ) -> MaterialRequest:
        payload = validate_update_input(changes).changes()
        if not payload:
            return self.get_request(request_id)

        rows = self._client.update(self.requests_table, {"id": request_id}, payload)
        if not rows:
            raise NotFoundError(f"Material request {request_id} not found.")
        updated = _parse_request(rows[0])
        logger.info("Updated material request %s: %s", updated.id, ", ".join(sorted(payload)))
        self.invalidate()
        return updated

    def delete_request(self, request_id: str) -> None:
        rows = self._client.delete(self.requests_table, {"id": request_id})
        if not rows:
            raise NotFoundError(f"Material request {request_id} not found.")
        logger.info("Deleted material request %s", request_id)
        self.invalidate()
