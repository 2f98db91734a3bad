"""Conference phase and paper state transition rules.

Every workflow operation that depends on a phase or a state goes through
the helpers below, so the full transition graph is readable here.
"""

from __future__ import annotations

from confsys.models.conference import Conference
from confsys.models.enums import ConferencePhase, Decision, PaperState
from confsys.models.paper import Paper
from confsys.services import StateConflictError

CONFERENCE_PHASE_ORDER: tuple[ConferencePhase, ...] = (
    ConferencePhase.CREATED,
    ConferencePhase.SUBMISSION,
    ConferencePhase.ASSIGNMENT,
    ConferencePhase.REVIEW,
    ConferencePhase.DECISION,
    ConferencePhase.FINAL,
)

PAPER_TRANSITIONS: dict[PaperState, frozenset[PaperState]] = {
    PaperState.CREATED: frozenset({PaperState.SUBMITTED}),
    PaperState.SUBMITTED: frozenset({PaperState.REVIEWED, PaperState.WITHDRAWN}),
    PaperState.REVIEWED: frozenset(
        {PaperState.APPROVED, PaperState.REJECTED, PaperState.WITHDRAWN}
    ),
    PaperState.APPROVED: frozenset(),
    PaperState.REJECTED: frozenset(),
    PaperState.WITHDRAWN: frozenset(),
}

DECISION_OUTCOMES: dict[Decision, PaperState] = {
    Decision.APPROVED: PaperState.APPROVED,
    Decision.REJECTED: PaperState.REJECTED,
}

# human-readable verb phrases used in StateConflictError messages
PHASE_ACTIONS: dict[ConferencePhase, str] = {
    ConferencePhase.SUBMISSION: "start submission",
    ConferencePhase.ASSIGNMENT: "start reviewer assignment",
    ConferencePhase.REVIEW: "start review",
    ConferencePhase.DECISION: "start the decision on the submitted papers",
    ConferencePhase.FINAL: "be finalized",
}


def predecessor(phase: ConferencePhase) -> ConferencePhase:
    """Return the phase a conference must be in to advance to *phase*."""
    index = CONFERENCE_PHASE_ORDER.index(phase)
    if index == 0:
        raise ValueError(f"{phase.value} has no predecessor")
    return CONFERENCE_PHASE_ORDER[index - 1]


def require_phase(conference: Conference, expected: ConferencePhase, action: str) -> None:
    """Raise :class:`StateConflictError` unless the conference is in *expected*."""
    if conference.phase != expected:
        raise StateConflictError(
            f"Conference is in the phase: {conference.phase.value} and {action}"
        )


def advance_phase(conference: Conference, target: ConferencePhase) -> ConferencePhase:
    """Validate the move of *conference* into *target* and return the phase it leaves.

    Only the single forward step from the immediate predecessor is legal.
    """
    current = conference.phase
    if current != predecessor(target):
        raise StateConflictError(
            f"Conference is in the phase: {current.value} and can not {PHASE_ACTIONS[target]}"
        )
    return current


def require_paper_state(paper: Paper, allowed: frozenset[PaperState], action: str) -> None:
    if paper.state not in allowed:
        raise StateConflictError(f"Paper is in the state: {paper.state.value} and {action}")


def transition_paper(paper: Paper, target: PaperState, action: str) -> PaperState:
    """Validate *paper* moving to *target*; return the state it leaves."""
    current = paper.state
    if target not in PAPER_TRANSITIONS[current]:
        raise StateConflictError(f"Paper is in the state: {current.value} and {action}")
    return current
