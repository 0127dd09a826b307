from __future__ import annotations

from dataclasses import dataclass

import requests

from material_tracker.api_client import ApiClient
from material_tracker.auth import AuthClient
from material_tracker.config import Settings
from material_tracker.requisitions.lifecycle import StatusTransition
from material_tracker.requisitions.store import RequestStore


@dataclass(frozen=True)
class TrackerContext:
    api: ApiClient
    auth: AuthClient
    store: RequestStore

    def status_transition(self) -> StatusTransition:
        return StatusTransition(self.store)


def build_context(config: Settings, http: requests.Session | None = None) -> TrackerContext:
    api = ApiClient.from_settings(config, http=http)
    auth = AuthClient(api)
    api.set_token_provider(lambda: auth.access_token)
    store = RequestStore(
        api,
        auth.current_identity,
        requests_table=config.requests_table,
        projects_table=config.projects_table,
    )
    # Cached views belong to the signed-in identity.
    auth.on_change(lambda _session: store.invalidate())
    return TrackerContext(api=api, auth=auth, store=store)
