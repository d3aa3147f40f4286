"""Core domain entities of a hiring drive.

A :class:`Drive` is the single versioned aggregate the engines work on. It
is loaded, mutated in memory and written back as a whole; the ``version``
field is what the stores compare to detect concurrent writers. The
entities are plain mutable dataclasses and know nothing about
persistence.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional


class RoundName(str, Enum):
    BPS = "BPS"
    CODING1 = "CODING1"
    CODING2 = "CODING2"
    BAR_RAISER = "BAR_RAISER"
    HIRING_MANAGER = "HIRING_MANAGER"


class Decision(str, Enum):
    PENDING = "PENDING"
    STRONG_NO = "STRONG_NO"
    NO = "NO"
    YES = "YES"
    STRONG_YES = "STRONG_YES"


POSITIVE_DECISIONS = frozenset({Decision.YES, Decision.STRONG_YES})
NEGATIVE_DECISIONS = frozenset({Decision.NO, Decision.STRONG_NO})


class EventStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"


EVENT_STATUS_ORDER = {
    EventStatus.SCHEDULED: 0,
    EventStatus.ONGOING: 1,
    EventStatus.COMPLETED: 2,
}


class ParticipantStatus(str, Enum):
    WAITING = "WAITING"
    BUSY = "BUSY"
    DONE = "DONE"


class TaskKind(str, Enum):
    SLOT_START = "SLOT_START"
    BREAK_END = "BREAK_END"
    FEEDBACK_DUE = "FEEDBACK_DUE"


class TaskState(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class Round:
    """A named interview stage.

    Example:
        >>> Round(name=RoundName.CODING1, duration=45, is_elimination=True)
    """

    name: RoundName
    duration: int
    is_elimination: bool = False
    is_job_family_matching_required: bool = False


@dataclass
class Candidate:
    """Candidate taking part in the drive.

    Example:
        >>> Candidate(email="c@example.com", name="Carol", level="4")
    """

    email: str
    name: str
    resume: str = ""
    job_family: str = ""
    level: str = ""
    overall_decision: Decision = Decision.PENDING
    current_status: ParticipantStatus = ParticipantStatus.WAITING


@dataclass
class Interviewer:
    """Interviewer with an availability window and a capacity.

    Example:
        >>> Interviewer(
        ...     email="i@example.com",
        ...     name="Ivan",
        ...     level="5A",
        ...     eligibility={RoundName.CODING1: True},
        ...     max_interviews=4,
        ...     slot_start=datetime(2024, 1, 1, 9, 0, tzinfo=UTC),
        ...     slot_end=datetime(2024, 1, 1, 13, 0, tzinfo=UTC),
        ... )
    """

    email: str
    name: str
    slot_start: datetime
    slot_end: datetime
    job_family: str = ""
    level: str = ""
    eligibility: Dict[RoundName, bool] = field(default_factory=dict)
    max_interviews: int = 1
    current_status: ParticipantStatus = ParticipantStatus.WAITING
    break_until: Optional[datetime] = None

    def is_eligible_for(self, round_name: RoundName) -> bool:
        return bool(self.eligibility.get(round_name, False))


@dataclass
class Event:
    """One scheduled interview binding a candidate, an interviewer and a round."""

    id: str
    round: Round
    candidate_email: str
    interviewer_email: str
    start_time: datetime
    duration: int
    status: EventStatus = EventStatus.SCHEDULED
    decision: Decision = Decision.PENDING
    meeting_link: str = ""
    assessment_link: str = ""
    scorecard_link: str = ""
    question: Optional[str] = None

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start_time < end and start < self.end_time


@dataclass
class Drive:
    """The versioned hiring drive record."""

    id: str
    name: str
    start_time: datetime
    end_time: datetime
    rounds: List[Round] = field(default_factory=list)
    candidates: List[Candidate] = field(default_factory=list)
    interviewers: List[Interviewer] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    version: int = 0
    created_at: Optional[datetime] = None

    def find_round(self, name: RoundName) -> Optional[Round]:
        return next((r for r in self.rounds if r.name == name), None)

    def find_candidate(self, email: str) -> Optional[Candidate]:
        return next((c for c in self.candidates if c.email == email), None)

    def find_interviewer(self, email: str) -> Optional[Interviewer]:
        return next((i for i in self.interviewers if i.email == email), None)

    def find_event(self, event_id: str) -> Optional[Event]:
        return next((e for e in self.events if e.id == event_id), None)

    def events_for_candidate(self, email: str) -> List[Event]:
        return [e for e in self.events if e.candidate_email == email]

    def events_for_interviewer(self, email: str) -> List[Event]:
        return [e for e in self.events if e.interviewer_email == email]


@dataclass
class ScheduledTask:
    """Persisted deferred action, fired by the task runner at ``fire_at``.

    Example:
        >>> ScheduledTask(
        ...     id="task_1",
        ...     drive_id="drive_1",
        ...     kind=TaskKind.BREAK_END,
        ...     fire_at=datetime(2024, 1, 1, 10, 30, tzinfo=UTC),
        ...     payload={"interviewer_email": "i@example.com"},
        ... )
    """

    id: str
    drive_id: str
    kind: TaskKind
    fire_at: datetime
    payload: Dict[str, Any] = field(default_factory=dict)
    state: TaskState = TaskState.PENDING
    error: Optional[str] = None
    # when the current RUNNING claim was taken
    claimed_at: Optional[datetime] = None
