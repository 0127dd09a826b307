from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from material_tracker.api_client import AUTH_PATH, ApiClient
from material_tracker.errors import CollaboratorError, UnauthenticatedError

logger = logging.getLogger("material_tracker.auth")

SessionListener = Callable[["AuthSession | None"], None]


@dataclass(frozen=True)
class Identity:
    user_id: str
    name: str
    email: str
    company_id: str | None = None


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str | None
    identity: Identity


def identity_from_user(user: dict[str, Any]) -> Identity:
    user_metadata = user.get("user_metadata") or {}
    app_metadata = user.get("app_metadata") or {}
    email = str(user.get("email") or "")
    name = user_metadata.get("name") or user_metadata.get("full_name") or email
    company_id = user_metadata.get("company_id") or app_metadata.get("company_id")
    return Identity(
        user_id=str(user.get("id") or ""),
        name=str(name),
        email=email,
        company_id=str(company_id) if company_id else None,
    )


class AuthClient:
    def __init__(self, api: ApiClient) -> None:
        self._api = api
        self._session: AuthSession | None = None
        self._listeners: list[SessionListener] = []

    @property
    def session(self) -> AuthSession | None:
        return self._session

    @property
    def access_token(self) -> str | None:
        return self._session.access_token if self._session else None

    def current_identity(self) -> Identity | None:
        return self._session.identity if self._session else None

    def on_change(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_session(self, session: AuthSession | None) -> None:
        self._session = session
        for listener in list(self._listeners):
            listener(session)

    def sign_up(self, email: str, password: str) -> Identity | None:
        payload = self._call("/signup", {"email": email, "password": password})
        user = payload.get("user") if "user" in payload else payload
        if not isinstance(user, dict) or not user.get("id"):
            return None
        logger.info("Signed up %s", email)
        if payload.get("access_token"):
            session = self._session_from_payload(payload)
            self._set_session(session)
            return session.identity
        return identity_from_user(user)

    def sign_in(self, email: str, password: str) -> AuthSession:
        payload = self._call(
            "/token",
            {"email": email, "password": password},
            params={"grant_type": "password"},
        )
        session = self._session_from_payload(payload)
        logger.info("Signed in %s", email)
        self._set_session(session)
        return session

    def sign_out(self) -> None:
        if self._session is None:
            return
        token = self._session.access_token
        try:
            self._api.request("POST", f"{AUTH_PATH}/logout", token=token)
        finally:
            self._set_session(None)
        logger.info("Signed out")

    def _call(self, path: str, body: dict[str, Any], params: dict[str, str] | None = None) -> dict[str, Any]:
        try:
            payload = self._api.request_json("POST", f"{AUTH_PATH}{path}", params=params, json=body)
        except CollaboratorError as exc:
            if exc.status_code in {400, 401, 403, 422}:
                raise UnauthenticatedError(str(exc)) from exc
            raise
        if not isinstance(payload, dict):
            raise CollaboratorError("API returned an invalid response.")
        return payload

    @staticmethod
    def _session_from_payload(payload: dict[str, Any]) -> AuthSession:
        access_token = payload.get("access_token")
        user = payload.get("user")
        if not access_token or not isinstance(user, dict):
            raise UnauthenticatedError("Authentication did not return a session.")
        return AuthSession(
            access_token=str(access_token),
            refresh_token=payload.get("refresh_token"),
            identity=identity_from_user(user),
        )
