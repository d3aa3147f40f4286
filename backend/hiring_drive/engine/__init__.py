"""Pure scheduling and status logic over a drive snapshot."""

from .scheduling import schedule_interviews
from .stats import drive_stats
from .status import (
    candidate_overall_decision,
    candidate_status,
    interviewer_status,
    refresh_statuses,
)

__all__ = [
    "candidate_overall_decision",
    "candidate_status",
    "drive_stats",
    "interviewer_status",
    "refresh_statuses",
    "schedule_interviews",
]
