"""Derived participant state.

Nothing here is cached: every trigger re-derives statuses from the
drive's events and the current time, so a stale status can never outlive
the state it was derived from.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..domain.models import (
    Candidate,
    Decision,
    Drive,
    EventStatus,
    Interviewer,
    NEGATIVE_DECISIONS,
    POSITIVE_DECISIONS,
    ParticipantStatus,
)

logger = logging.getLogger(__name__)

# Share of rounds that must be YES-equivalent for an overall YES.
SELECTION_THRESHOLD = 0.7


def interviewer_status(
    interviewer: Interviewer, drive: Drive, now: datetime
) -> ParticipantStatus:
    if now < interviewer.slot_start:
        return ParticipantStatus.BUSY
    if now > interviewer.slot_end:
        return ParticipantStatus.DONE

    events = drive.events_for_interviewer(interviewer.email)
    completed = sum(1 for e in events if e.status == EventStatus.COMPLETED)
    if completed >= interviewer.max_interviews:
        return ParticipantStatus.DONE

    if all(c.overall_decision != Decision.PENDING for c in drive.candidates):
        return ParticipantStatus.DONE

    if any(e.status == EventStatus.ONGOING for e in events):
        return ParticipantStatus.BUSY
    if interviewer.break_until is not None and now < interviewer.break_until:
        return ParticipantStatus.BUSY
    return ParticipantStatus.WAITING


def candidate_status(
    candidate: Candidate, drive: Drive, now: datetime
) -> ParticipantStatus:
    if candidate.overall_decision != Decision.PENDING:
        return ParticipantStatus.DONE
    if any(
        e.status == EventStatus.ONGOING
        for e in drive.events_for_candidate(candidate.email)
    ):
        return ParticipantStatus.BUSY
    return ParticipantStatus.WAITING


def candidate_overall_decision(candidate: Candidate, drive: Drive) -> Decision:
    """Derive the candidate's outcome from their completed interviews.

    A failed elimination round ends the candidate's drive immediately.
    Otherwise the outcome stays PENDING until every round has a completed
    interview, and is then graded by the share of YES-equivalent rounds.
    """
    completed = [
        e
        for e in drive.events_for_candidate(candidate.email)
        if e.status == EventStatus.COMPLETED
    ]

    for event in completed:
        round_ = drive.find_round(event.round.name) or event.round
        if round_.is_elimination and event.decision in NEGATIVE_DECISIONS:
            return Decision.NO

    covered = {e.round.name for e in completed}
    if any(r.name not in covered for r in drive.rounds):
        return Decision.PENDING

    yes = sum(1 for e in completed if e.decision in POSITIVE_DECISIONS)
    total = len(drive.rounds)
    if yes == total:
        return Decision.STRONG_YES
    if yes >= SELECTION_THRESHOLD * total:
        return Decision.YES
    return Decision.NO


def refresh_candidate(candidate: Candidate, drive: Drive, now: datetime) -> None:
    # overall_decision only ever leaves PENDING once
    if candidate.overall_decision == Decision.PENDING:
        decision = candidate_overall_decision(candidate, drive)
        if decision != Decision.PENDING:
            logger.info(
                "candidate %s decided: %s", candidate.email, decision.value
            )
        candidate.overall_decision = decision
    candidate.current_status = candidate_status(candidate, drive, now)


def refresh_statuses(drive: Drive, now: datetime) -> None:
    """Re-derive every participant's status on ``drive`` in place."""
    for candidate in drive.candidates:
        refresh_candidate(candidate, drive, now)
    # interviewers last: they depend on the candidates' decisions
    for interviewer in drive.interviewers:
        interviewer.current_status = interviewer_status(interviewer, drive, now)
