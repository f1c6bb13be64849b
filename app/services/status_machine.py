"""Work order status vocabularies and the transition state machine.

Two vocabularies coexist. FSM_STATUSES are the canonical lifecycle states
whose changes are constrained by TRANSITIONS. DISPLAY_STATUSES is the longer
free-text list agents use on the spreadsheet view; it is a parallel
enumeration and is not governed by the state machine.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.exceptions import InvalidStatusTransition

FSM_STATUSES = ("Pending", "In Progress", "On Hold", "Rescheduled", "Completed", "Cancelled")

TRANSITIONS: dict[str, tuple[str, ...]] = {
    "Pending": ("In Progress", "Cancelled", "Rescheduled"),
    "In Progress": ("Completed", "On Hold", "Cancelled", "Rescheduled"),
    "On Hold": ("In Progress", "Cancelled", "Rescheduled"),
    "Rescheduled": ("Pending", "Cancelled"),
    "Completed": (),
    "Cancelled": (),
}

DISPLAY_STATUSES = (
    "Completed",
    "Quotation",
    "Need Tomorrow",
    "Need S.V",
    "Under Observ.",
    "Pending",
    "preventive pending",
    "S.N.R / Un Comp.",
    "No Body At Site",
    "Cancel / No Need",
    "No Answer",
    "Will Call Later",
    "Need Other Day",
)

# Anything a stored record may carry.
ALL_STATUSES = tuple(dict.fromkeys(FSM_STATUSES + DISPLAY_STATUSES))

JOB_STATUSES = ("Attend", "Not Attend")

# Statuses that need a non-empty remarks field when entered.
REMARKS_REQUIRED = ("Rescheduled", "On Hold")

DEFAULT_STATUS = "Pending"
DEFAULT_JOB_STATUS = "Not Attend"


@dataclass(frozen=True)
class TransitionResult:
    allowed: bool
    allowed_statuses: list[str]
    message: str


def validate_transition(current: str, requested: str) -> TransitionResult:
    """Check whether ``current -> requested`` is a legal status change.

    Re-submitting the current status is always allowed. Unknown current
    statuses have no outgoing edges.
    """
    allowed_statuses = list(TRANSITIONS.get(current, ()))
    if requested == current:
        return TransitionResult(True, allowed_statuses, "Status unchanged")
    if requested in allowed_statuses:
        return TransitionResult(True, allowed_statuses, "Transition is valid")
    return TransitionResult(
        False,
        allowed_statuses,
        f"Cannot transition from {current} to {requested}. "
        f"Allowed: {', '.join(allowed_statuses) or 'none'}",
    )


def ensure_transition(current: str, requested: str) -> None:
    """Raise InvalidStatusTransition when the FSM forbids the change."""
    result = validate_transition(current, requested)
    if not result.allowed:
        raise InvalidStatusTransition(result.message, result.allowed_statuses)


def is_fsm_managed(current: str, requested: str) -> bool:
    """Full and bulk updates only consult the FSM between canonical states."""
    return current in TRANSITIONS and requested in TRANSITIONS
