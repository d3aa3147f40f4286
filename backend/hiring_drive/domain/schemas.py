"""Pydantic models used for request and response bodies.

These data transfer objects (DTOs) mirror the domain models but add
validation and serialization helpers for the API layer. Malformed input
is rejected here, before any engine code runs.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from ..core.timeutil import ensure_utc
from . import models
from .models import Decision, EventStatus, ParticipantStatus, RoundName


class Round(BaseModel):
    """Interview round definition.

    Example:
        >>> Round(name="CODING1", duration=45, is_elimination=True)
    """

    name: RoundName
    duration: int = Field(gt=0, le=24 * 60)
    is_elimination: bool = False
    is_job_family_matching_required: bool = False

    class Config:
        frozen = True
        from_attributes = True
        json_schema_extra = {
            "example": {
                "name": "CODING1",
                "duration": 45,
                "is_elimination": True,
                "is_job_family_matching_required": False,
            }
        }

    def to_domain(self) -> models.Round:
        return models.Round(
            name=self.name,
            duration=self.duration,
            is_elimination=self.is_elimination,
            is_job_family_matching_required=self.is_job_family_matching_required,
        )


class CandidateIn(BaseModel):
    """Candidate supplied when a drive is created."""

    email: EmailStr
    name: str
    resume: str = ""
    job_family: str = ""
    level: str = ""

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "email": "c@example.com",
                "name": "Carol",
                "resume": "https://files.example.com/carol.pdf",
                "job_family": "SDE",
                "level": "4",
            }
        }

    def to_domain(self) -> models.Candidate:
        return models.Candidate(
            email=str(self.email),
            name=self.name,
            resume=self.resume,
            job_family=self.job_family,
            level=self.level,
        )


class InterviewerIn(BaseModel):
    """Interviewer supplied when a drive is created."""

    email: EmailStr
    name: str
    job_family: str = ""
    level: str = ""
    eligibility: Dict[RoundName, bool] = Field(default_factory=dict)
    max_interviews: int = Field(ge=1)
    slot_start: datetime
    slot_end: datetime

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "email": "i@example.com",
                "name": "Ivan",
                "job_family": "SDE",
                "level": "5A",
                "eligibility": {"CODING1": True, "BPS": False},
                "max_interviews": 4,
                "slot_start": "2024-01-01T09:00:00Z",
                "slot_end": "2024-01-01T13:00:00Z",
            }
        }

    @field_validator("slot_start", "slot_end")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _slot_order(self) -> "InterviewerIn":
        if self.slot_start >= self.slot_end:
            raise ValueError(f"slot_start must be before slot_end for {self.email}")
        return self

    def to_domain(self) -> models.Interviewer:
        return models.Interviewer(
            email=str(self.email),
            name=self.name,
            job_family=self.job_family,
            level=self.level,
            eligibility=dict(self.eligibility),
            max_interviews=self.max_interviews,
            slot_start=self.slot_start,
            slot_end=self.slot_end,
        )


class CreateDriveRequest(BaseModel):
    """Everything needed to open a hiring drive."""

    name: str = Field(min_length=1)
    start_time: datetime
    end_time: datetime
    rounds: List[Round] = Field(min_length=1)
    candidates: List[CandidateIn] = Field(default_factory=list)
    interviewers: List[InterviewerIn] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _consistent(self) -> "CreateDriveRequest":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        _ensure_unique("round name", [r.name.value for r in self.rounds])
        _ensure_unique("candidate email", [str(c.email) for c in self.candidates])
        _ensure_unique("interviewer email", [str(i.email) for i in self.interviewers])
        return self


def _ensure_unique(label: str, values: List[str]) -> None:
    seen = set()
    for value in values:
        if value in seen:
            raise ValueError(f"duplicate {label}: {value}")
        seen.add(value)


class EventOutcomeRequest(BaseModel):
    """Interviewer feedback or a progress update for one event."""

    event_id: str
    decision: Optional[Decision] = None
    question: Optional[str] = None
    status: Optional[EventStatus] = None
    ready_for_next: Optional[bool] = None
    break_time_minutes: Optional[int] = Field(default=None, ge=0, le=240)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "event_id": "evt_1",
                "decision": "YES",
                "question": "Design an LRU cache",
                "status": "COMPLETED",
                "ready_for_next": False,
                "break_time_minutes": 15,
            }
        }


class ScheduledNotifData(BaseModel):
    is_accepted: bool


class StartNotifData(BaseModel):
    is_started: bool


class CompletedNotifData(BaseModel):
    decision: Decision
    question_asked: Optional[str] = None
    is_ready_for_next_round: bool = True
    break_time: int = Field(default=0, ge=0, le=240)


class NotificationResponseRequest(BaseModel):
    """A participant's reply to one of the gateway's notifications."""

    source: Literal["interviewer", "candidate"]
    email: EmailStr
    event_id: str
    notification_type: Literal["scheduled_notif", "start_notif", "completed_notif"]
    data: Union[CompletedNotifData, StartNotifData, ScheduledNotifData]

    @model_validator(mode="after")
    def _data_matches_type(self) -> "NotificationResponseRequest":
        expected = {
            "scheduled_notif": ScheduledNotifData,
            "start_notif": StartNotifData,
            "completed_notif": CompletedNotifData,
        }[self.notification_type]
        if not isinstance(self.data, expected):
            raise ValueError(
                f"data does not match notification_type {self.notification_type}"
            )
        return self


class Candidate(BaseModel):
    email: str
    name: str
    resume: str
    job_family: str
    level: str
    overall_decision: Decision
    current_status: ParticipantStatus

    class Config:
        from_attributes = True


class Interviewer(BaseModel):
    email: str
    name: str
    job_family: str
    level: str
    eligibility: Dict[RoundName, bool]
    max_interviews: int
    slot_start: datetime
    slot_end: datetime
    current_status: ParticipantStatus
    break_until: Optional[datetime] = None

    class Config:
        from_attributes = True


class Event(BaseModel):
    id: str
    round: Round
    candidate_email: str
    interviewer_email: str
    start_time: datetime
    duration: int
    status: EventStatus
    decision: Decision
    meeting_link: str
    assessment_link: str
    scorecard_link: str
    question: Optional[str] = None

    class Config:
        from_attributes = True


class Drive(BaseModel):
    """Full drive as returned by the API."""

    id: str
    name: str
    start_time: datetime
    end_time: datetime
    rounds: List[Round]
    candidates: List[Candidate]
    interviewers: List[Interviewer]
    events: List[Event]
    version: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ScheduleResult(BaseModel):
    new_event_count: int


class DriveStats(BaseModel):
    """Dashboard aggregates for one drive.

    Example:
        >>> DriveStats(
        ...     total_candidates=10,
        ...     total_interviewers=4,
        ...     ongoing_interviews=2,
        ...     candidates_pending_decision=6,
        ...     percent_completed=40.0,
        ...     percent_selected=20.0,
        ... )
    """

    total_candidates: int
    total_interviewers: int
    ongoing_interviews: int
    candidates_pending_decision: int
    percent_completed: float
    percent_selected: float

    class Config:
        frozen = True
