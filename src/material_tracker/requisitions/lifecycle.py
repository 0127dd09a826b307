from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from material_tracker.errors import NoOpTransitionError, TransitionError
from material_tracker.requisitions.models import STATUS_VALUES, MaterialRequest, validate_status

if TYPE_CHECKING:
    from material_tracker.requisitions.store import RequestStore

logger = logging.getLogger("material_tracker.lifecycle")

# Every status may move to every other status; there is no terminal state.
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    status: frozenset(other for other in STATUS_VALUES if other != status) for status in STATUS_VALUES
}


def allowed_transitions(status: str) -> list[str]:
    validate_status(status)
    return [other for other in STATUS_VALUES if other in STATUS_TRANSITIONS[status]]


def can_transition(current_status: str, new_status: str) -> bool:
    if current_status not in STATUS_TRANSITIONS or new_status not in STATUS_VALUES:
        return False
    return new_status in STATUS_TRANSITIONS[current_status]


@dataclass(frozen=True)
class StatusChangeProposal:
    request_id: str
    current_status: str
    new_status: str
    display_label: str

    def describe(self) -> str:
        return (
            f'Are you sure you want to change the status of "{self.display_label}" '
            f"from {self.current_status} to {self.new_status}?"
        )


class StatusTransition:
    """Two-phase status change: propose, then confirm or cancel.

    A proposal is only recorded for a real change; a rejected proposal
    also discards whatever was pending before. ``confirm`` sends the
    update to the store and clears the proposal on success; on failure the
    proposal stays pending with the error kept on ``last_error`` so the
    caller can retry or cancel.
    """

    def __init__(self, store: RequestStore) -> None:
        self._store = store
        self.pending: StatusChangeProposal | None = None
        self.last_error: Exception | None = None

    def propose(
        self,
        request_id: str,
        current_status: str,
        new_status: str,
        display_label: str,
    ) -> StatusChangeProposal:
        self.pending = None
        self.last_error = None
        validate_status(current_status, field="current_status")
        validate_status(new_status, field="new_status")
        if not can_transition(current_status, new_status):
            raise NoOpTransitionError(f"Request is already {current_status}.")

        proposal = StatusChangeProposal(
            request_id=str(request_id),
            current_status=current_status,
            new_status=new_status,
            display_label=display_label,
        )
        self.pending = proposal
        return proposal

    def propose_for(self, request: MaterialRequest, new_status: str) -> StatusChangeProposal:
        return self.propose(request.id, request.status, new_status, request.material_name)

    def confirm(self) -> MaterialRequest:
        proposal = self.pending
        if proposal is None:
            raise TransitionError("No status change is awaiting confirmation.")

        try:
            updated = self._store.update_request(proposal.request_id, {"status": proposal.new_status})
        except Exception as exc:
            self.last_error = exc
            logger.warning("Status change for %s failed: %s", proposal.request_id, exc)
            raise

        logger.info(
            "Status of %s changed from %s to %s",
            proposal.request_id,
            proposal.current_status,
            proposal.new_status,
        )
        self.pending = None
        self.last_error = None
        return updated

    def cancel(self) -> None:
        self.pending = None
        self.last_error = None
