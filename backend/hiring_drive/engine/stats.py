"""Dashboard aggregation over a drive snapshot."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from ..domain.models import Decision, Drive, EventStatus, POSITIVE_DECISIONS
from ..domain.schemas import DriveStats


def _percent(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    # half-up, so 3.125 reads 3.13
    ratio = Decimal(part * 100) / Decimal(whole)
    return float(ratio.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def drive_stats(drive: Drive) -> DriveStats:
    total = len(drive.candidates)
    pending = sum(
        1 for c in drive.candidates if c.overall_decision == Decision.PENDING
    )
    selected = sum(
        1 for c in drive.candidates if c.overall_decision in POSITIVE_DECISIONS
    )
    return DriveStats(
        total_candidates=total,
        total_interviewers=len(drive.interviewers),
        ongoing_interviews=sum(
            1 for e in drive.events if e.status == EventStatus.ONGOING
        ),
        candidates_pending_decision=pending,
        percent_completed=_percent(total - pending, total),
        percent_selected=_percent(selected, total),
    )
