import itertools

import pytest

from app.exceptions import InvalidStatusTransition
from app.services.status_machine import (
    ALL_STATUSES,
    DISPLAY_STATUSES,
    FSM_STATUSES,
    TRANSITIONS,
    ensure_transition,
    is_fsm_managed,
    validate_transition,
)


def test_every_pair_outside_the_table_is_rejected():
    for current, requested in itertools.product(FSM_STATUSES, repeat=2):
        if current == requested:
            continue
        result = validate_transition(current, requested)
        assert result.allowed == (requested in TRANSITIONS[current])
        assert result.allowed_statuses == list(TRANSITIONS[current])


@pytest.mark.parametrize("status", FSM_STATUSES)
def test_same_status_is_always_allowed(status):
    assert validate_transition(status, status).allowed


def test_terminal_statuses_have_no_exits():
    for terminal in ("Completed", "Cancelled"):
        result = validate_transition(terminal, "Pending")
        assert not result.allowed
        assert result.allowed_statuses == []
        assert "Allowed: none" in result.message


def test_rejection_message_names_legal_next_states():
    result = validate_transition("Pending", "Completed")
    assert result.message == (
        "Cannot transition from Pending to Completed. "
        "Allowed: In Progress, Cancelled, Rescheduled"
    )


def test_ensure_transition_raises_with_allowed_statuses():
    with pytest.raises(InvalidStatusTransition) as exc_info:
        ensure_transition("Rescheduled", "Completed")
    assert exc_info.value.allowed_statuses == ["Pending", "Cancelled"]
    body = exc_info.value.to_dict()
    assert body["code"] == "INVALID_STATUS_TRANSITION"
    assert body["errors"][0]["field"] == "work_order_status"


def test_display_statuses_are_not_fsm_managed():
    assert is_fsm_managed("Pending", "In Progress")
    assert not is_fsm_managed("Pending", "Need Tomorrow")
    assert not is_fsm_managed("No Answer", "Completed")


def test_stored_vocabulary_is_the_union():
    assert set(ALL_STATUSES) == set(FSM_STATUSES) | set(DISPLAY_STATUSES)
    assert len(ALL_STATUSES) == len(set(ALL_STATUSES))
