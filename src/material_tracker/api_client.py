from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

import requests

from material_tracker.config import Settings
from material_tracker.errors import CollaboratorError

DEFAULT_TIMEOUT_S = 5
REST_PATH = "/rest/v1"
AUTH_PATH = "/auth/v1"
RETURN_REPRESENTATION = {"Prefer": "return=representation"}

logger = logging.getLogger("material_tracker.api")

TokenProvider = Callable[[], "str | None"]


def _eq_filters(filters: Mapping[str, Any] | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for column, value in (filters or {}).items():
        if value is None:
            params[column] = "is.null"
        else:
            params[column] = f"eq.{value}"
    return params


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("message", "msg", "error_description", "error"):
            value = payload.get(key)
            if value:
                return str(value)
    return f"API request failed with status {response.status_code}."


def _rows(payload: Any) -> list[dict[str, Any]]:
    if payload is None:
        return []
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    raise CollaboratorError("API returned an invalid response.")


class ApiClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        token_provider: TokenProvider | None = None,
        http: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s
        self._token_provider = token_provider
        self._http = http or requests.Session()

    @classmethod
    def from_settings(cls, config: Settings, http: requests.Session | None = None) -> ApiClient:
        return cls(
            config.api_base_url,
            config.required_anon_key,
            timeout_s=config.api_timeout_s,
            http=http,
        )

    def set_token_provider(self, provider: TokenProvider | None) -> None:
        self._token_provider = provider

    def _headers(self, extra: Mapping[str, str] | None = None, token: str | None = None) -> dict[str, str]:
        bearer = token or (self._token_provider() if self._token_provider else None) or self.api_key
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {bearer}",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        token: str | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self._http.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(headers, token),
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            message = "API unavailable. Check SUPABASE_URL and ensure the backend is running."
            raise CollaboratorError(message) from exc

        if not response.ok:
            message = _error_message(response)
            logger.warning("%s %s returned %s: %s", method, path, response.status_code, message)
            raise CollaboratorError(message, status_code=response.status_code)
        return response

    def request_json(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        token: str | None = None,
    ) -> Any:
        response = self.request(method, path, params=params, json=json, headers=headers, token=token)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise CollaboratorError("API returned an invalid response.") from exc

    def select(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        order: str | None = None,
        columns: str = "*",
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"select": columns, **_eq_filters(filters)}
        if order:
            params["order"] = order
        return _rows(self.request_json("GET", f"{REST_PATH}/{table}", params=params))

    def insert(self, table: str, row: Mapping[str, Any]) -> list[dict[str, Any]]:
        payload = self.request_json(
            "POST",
            f"{REST_PATH}/{table}",
            params={"select": "*"},
            json=dict(row),
            headers=RETURN_REPRESENTATION,
        )
        return _rows(payload)

    def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"select": "*", **_eq_filters(filters)}
        payload = self.request_json(
            "PATCH",
            f"{REST_PATH}/{table}",
            params=params,
            json=dict(changes),
            headers=RETURN_REPRESENTATION,
        )
        return _rows(payload)

    def delete(self, table: str, filters: Mapping[str, Any]) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"select": "*", **_eq_filters(filters)}
        payload = self.request_json(
            "DELETE",
            f"{REST_PATH}/{table}",
            params=params,
            headers=RETURN_REPRESENTATION,
        )
        return _rows(payload)
