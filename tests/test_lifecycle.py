from __future__ import annotations

import pytest

from material_tracker.errors import CollaboratorError, NoOpTransitionError, RequestValidationError, TransitionError
from material_tracker.requisitions.lifecycle import StatusTransition, allowed_transitions, can_transition


def _seed(table_client, make_row, **overrides):
    row = make_row(**overrides)
    table_client.tables["material_requests"].append(row)
    return row


def test_status_graph_is_fully_connected():
    assert allowed_transitions("pending") == ["approved", "rejected", "fulfilled"]
    assert allowed_transitions("fulfilled") == ["pending", "approved", "rejected"]
    assert can_transition("fulfilled", "pending")
    assert not can_transition("approved", "approved")
    assert not can_transition("approved", "archived")


def test_noop_transition_is_rejected_before_confirmation(store, table_client, make_row):
    row = _seed(table_client, make_row, status="approved")
    transition = StatusTransition(store)

    with pytest.raises(NoOpTransitionError):
        transition.propose(row["id"], "approved", "approved", row["material_name"])

    assert transition.pending is None
    assert table_client.calls == []


def test_noop_proposal_discards_earlier_pending_change(store, table_client, make_row):
    row = _seed(table_client, make_row)
    transition = StatusTransition(store)
    transition.propose(row["id"], "pending", "approved", row["material_name"])

    with pytest.raises(NoOpTransitionError):
        transition.propose(row["id"], "pending", "pending", row["material_name"])

    assert transition.pending is None
    with pytest.raises(TransitionError):
        transition.confirm()
    assert table_client.calls_of("update") == []


def test_invalid_proposal_discards_earlier_pending_change(store):
    transition = StatusTransition(store)
    transition.propose("req-1", "pending", "approved", "Sand")

    with pytest.raises(RequestValidationError):
        transition.propose("req-1", "pending", "archived", "Sand")

    assert transition.pending is None


def test_unknown_status_cannot_be_proposed(store):
    transition = StatusTransition(store)

    with pytest.raises(RequestValidationError):
        transition.propose("req-1", "pending", "archived", "Sand")

    assert transition.pending is None


def test_propose_then_cancel_leaves_request_untouched(store, table_client, make_row):
    row = _seed(table_client, make_row)
    transition = StatusTransition(store)

    proposal = transition.propose(row["id"], "pending", "approved", row["material_name"])
    assert transition.pending == proposal

    transition.cancel()

    assert transition.pending is None
    assert table_client.calls == []
    assert store.get_request(row["id"]).status == "pending"


def test_propose_then_confirm_applies_new_status(store, table_client, make_row):
    row = _seed(table_client, make_row)
    transition = StatusTransition(store)
    request = store.get_request(row["id"])

    transition.propose_for(request, "fulfilled")
    updated = transition.confirm()

    assert updated.status == "fulfilled"
    assert transition.pending is None
    assert store.get_request(row["id"]).status == "fulfilled"
    assert len(table_client.calls_of("update")) == 1


def test_failed_confirm_keeps_proposal_for_retry(store, table_client, make_row):
    row = _seed(table_client, make_row)
    transition = StatusTransition(store)
    transition.propose(row["id"], "pending", "rejected", row["material_name"])
    table_client.fail_next = CollaboratorError("connection reset")

    with pytest.raises(CollaboratorError):
        transition.confirm()

    assert transition.pending is not None
    assert isinstance(transition.last_error, CollaboratorError)
    assert table_client.tables["material_requests"][0]["status"] == "pending"

    updated = transition.confirm()

    assert updated.status == "rejected"
    assert transition.pending is None
    assert transition.last_error is None


def test_confirm_without_proposal_never_calls_store(store, table_client):
    transition = StatusTransition(store)

    with pytest.raises(TransitionError):
        transition.confirm()

    assert table_client.calls == []


def test_new_proposal_replaces_previous_one(store):
    transition = StatusTransition(store)
    transition.propose("req-1", "pending", "approved", "Sand")
    second = transition.propose("req-1", "pending", "rejected", "Sand")

    assert transition.pending == second


def test_proposal_describes_the_change(store):
    proposal = StatusTransition(store).propose("req-1", "pending", "approved", "Portland Cement")

    assert proposal.describe() == (
        'Are you sure you want to change the status of "Portland Cement" from pending to approved?'
    )
