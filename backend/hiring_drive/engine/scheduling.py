"""Greedy interview scheduling.

Each call walks the candidates in drive order and books at most one new
interview per candidate: the first eligible round for which some
interviewer has a free slot. A candidate with a SCHEDULED or ONGOING
interview is not offered another one, and rounds that already have an
event are never offered again, so repeating a call without any state
change books nothing.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from ..domain.models import (
    Candidate,
    Decision,
    Drive,
    Event,
    EventStatus,
    Interviewer,
    POSITIVE_DECISIONS,
    ParticipantStatus,
    Round,
)

logger = logging.getLogger(__name__)

DEFAULT_BUFFER = timedelta(minutes=15)

# Seniority tiers, low to high. Unknown labels rank below every tier.
LEVEL_HIERARCHY = {
    "3": 1,
    "4": 2,
    "5A": 3,
    "5B": 4,
    "6": 5,
}


def level_tier(level: str) -> int:
    return LEVEL_HIERARCHY.get(level, 0)


def _new_event_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class SlotOffer:
    interviewer: Interviewer
    start: datetime
    utilization: float


def eligible_rounds(candidate: Candidate, drive: Drive) -> List[Round]:
    """Rounds the candidate may be booked for next, in drive order."""
    events = drive.events_for_candidate(candidate.email)

    # a booked but undecided elimination round blocks like a failed one
    eliminations = [e for e in events if e.round.is_elimination]
    if eliminations and eliminations[-1].decision not in POSITIVE_DECISIONS:
        return []

    booked = {e.round.name for e in events}
    pending = [r for r in drive.rounds if r.name not in booked]
    for round_ in pending:
        if round_.is_elimination:
            return [round_]
    return pending


def has_open_event(candidate: Candidate, drive: Drive) -> bool:
    """True while the candidate still has an interview to sit or finish."""
    return any(
        e.status != EventStatus.COMPLETED
        for e in drive.events_for_candidate(candidate.email)
    )


def find_earliest_slot(
    interviewer: Interviewer,
    drive: Drive,
    duration: int,
    now: datetime,
    buffer: timedelta = DEFAULT_BUFFER,
) -> Optional[datetime]:
    """First start time at which ``interviewer`` is free for ``duration`` minutes.

    The slot must sit inside both the interviewer's availability and the
    drive window, begin no earlier than ``now + buffer`` and not overlap
    any event already booked for the interviewer.
    """
    window_start = max(interviewer.slot_start, drive.start_time)
    window_end = min(interviewer.slot_end, drive.end_time)
    start = max(now + buffer, window_start)
    if start >= window_end:
        return None

    length = timedelta(minutes=duration)
    booked = sorted(
        drive.events_for_interviewer(interviewer.email), key=lambda e: e.start_time
    )
    for event in booked:
        if event.overlaps(start, start + length):
            start = max(start, event.end_time)

    if start + length <= window_end:
        return start
    return None


def _can_interview(
    interviewer: Interviewer, candidate: Candidate, round_: Round, drive: Drive
) -> bool:
    if interviewer.current_status != ParticipantStatus.WAITING:
        return False
    if not interviewer.is_eligible_for(round_.name):
        return False
    assigned = drive.events_for_interviewer(interviewer.email)
    if len(assigned) >= interviewer.max_interviews:
        return False
    if level_tier(interviewer.level) < level_tier(candidate.level):
        return False
    if (
        round_.is_job_family_matching_required
        and interviewer.job_family != candidate.job_family
    ):
        return False
    return not any(e.candidate_email == candidate.email for e in assigned)


def find_interviewer(
    candidate: Candidate,
    round_: Round,
    drive: Drive,
    now: datetime,
    buffer: timedelta = DEFAULT_BUFFER,
) -> Optional[SlotOffer]:
    offers: List[SlotOffer] = []
    for interviewer in drive.interviewers:
        if not _can_interview(interviewer, candidate, round_, drive):
            continue
        start = find_earliest_slot(interviewer, drive, round_.duration, now, buffer)
        if start is None:
            continue
        assigned = len(drive.events_for_interviewer(interviewer.email))
        offers.append(
            SlotOffer(
                interviewer=interviewer,
                start=start,
                utilization=assigned / interviewer.max_interviews,
            )
        )

    if not offers:
        return None
    # stable sort keeps drive order among exact ties
    offers.sort(key=lambda o: (o.start, o.utilization))
    return offers[0]


def placeholder_links(
    event_id: str, candidate: Candidate, interviewer: Interviewer, round_: Round
) -> dict:
    """Conferencing, assessment and scorecard links for a new event."""
    return {
        "meeting_link": f"https://zoom.us/j/{event_id}",
        "assessment_link": f"https://hackerrank.com/test/{event_id}",
        "scorecard_link": (
            f"https://scorecard.company.com/{candidate.email}/"
            f"{interviewer.email}/{round_.name.value}"
        ),
    }


def create_event(
    candidate: Candidate,
    interviewer: Interviewer,
    round_: Round,
    drive: Drive,
    start: datetime,
    event_id: str,
) -> Event:
    start = max(start, drive.start_time, interviewer.slot_start)
    return Event(
        id=event_id,
        round=Round(
            name=round_.name,
            duration=round_.duration,
            is_elimination=round_.is_elimination,
            is_job_family_matching_required=round_.is_job_family_matching_required,
        ),
        candidate_email=candidate.email,
        interviewer_email=interviewer.email,
        start_time=start,
        duration=round_.duration,
        status=EventStatus.SCHEDULED,
        decision=Decision.PENDING,
        **placeholder_links(event_id, candidate, interviewer, round_),
    )


def schedule_interviews(
    drive: Drive,
    now: datetime,
    *,
    buffer: timedelta = DEFAULT_BUFFER,
    id_factory: Callable[[], str] = _new_event_id,
) -> List[Event]:
    """Book the next interview for every candidate that can take one.

    New events are appended to ``drive.events`` and also returned, in
    candidate order.
    """
    new_events: List[Event] = []
    for candidate in drive.candidates:
        if candidate.overall_decision != Decision.PENDING:
            continue
        if candidate.current_status == ParticipantStatus.BUSY:
            continue
        if has_open_event(candidate, drive):
            continue

        for round_ in eligible_rounds(candidate, drive):
            offer = find_interviewer(candidate, round_, drive, now, buffer)
            if offer is None:
                continue
            event = create_event(
                candidate, offer.interviewer, round_, drive, offer.start, id_factory()
            )
            drive.events.append(event)
            new_events.append(event)
            logger.info(
                "scheduled %s for %s with %s at %s",
                round_.name.value,
                candidate.email,
                offer.interviewer.email,
                event.start_time.isoformat(),
            )
            break

    return new_events

