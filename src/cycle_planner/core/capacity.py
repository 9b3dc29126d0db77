"""
Capacity math: velocity, time-off reduction and cycle estimates.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, Iterator, Optional, Sequence, Set

from cycle_planner.models import CapacityEstimate, DateRange, TeamCapacityProfile, TimeOffRecord


DEFAULT_VELOCITY = 20.0
MIN_VELOCITY = 1.0
VELOCITY_WINDOW = 3
PERIODS_PER_CYCLE = 3


@dataclass(frozen=True)
class CapacitySettings:
    """Tunables for capacity estimation, normally read from the planning config."""
    default_velocity: float = DEFAULT_VELOCITY
    min_velocity: float = MIN_VELOCITY
    velocity_window: int = VELOCITY_WINDOW
    periods_per_cycle: int = PERIODS_PER_CYCLE


def velocity_from_history(
    samples: Sequence[float],
    window: int = VELOCITY_WINDOW,
    default: float = DEFAULT_VELOCITY,
    floor: float = MIN_VELOCITY,
) -> float:
    """Average of the most recent ``window`` samples (oldest first), floored.

    Falls back to ``default`` when there is no history.
    """
    recent = [float(s) for s in list(samples)[-window:]] if window > 0 else []
    velocity = sum(recent) / len(recent) if recent else default
    return max(velocity, floor)


def working_dates(start: date, end: date) -> Iterator[date]:
    """Weekdays between start and end, inclusive."""
    day = start
    while day <= end:
        if day.weekday() < 5:
            yield day
        day += timedelta(days=1)


def working_days(start: date, end: date) -> int:
    return sum(1 for _ in working_dates(start, end))


def pto_reduction_factor(
    records: Iterable[TimeOffRecord],
    period: DateRange,
    headcount: Optional[int],
    roster: Sequence[str] = (),
) -> float:
    """Fraction of the team's working days in ``period`` lost to time off.

    Only records of roster members count when a roster is given. Overlapping
    records of the same member are counted once per day. Capped at 1.0.
    """
    if not headcount or headcount <= 0:
        return 0.0
    available = working_days(period.start, period.end)
    if available == 0:
        return 0.0

    members = {name.strip().lower() for name in roster}
    days_off: Dict[str, Set[date]] = {}
    for record in records:
        member = record.member.strip().lower()
        if members and member not in members:
            continue
        start = max(record.start, period.start)
        end = min(record.end, period.end)
        if start > end:
            continue
        days_off.setdefault(member, set()).update(working_dates(start, end))

    lost = sum(len(days) for days in days_off.values())
    return min(lost / (headcount * available), 1.0)


def estimate(
    total_effort: float,
    team: TeamCapacityProfile,
    pto_reduction: float = 0.0,
    settings: Optional[CapacitySettings] = None,
) -> CapacityEstimate:
    """Turn an effort total into periods, person-periods and a capacity buffer.

    A team without a configured headcount gets None for everything that
    depends on headcount, which callers render as "n/a".
    """
    settings = settings or CapacitySettings()
    velocity = velocity_from_history(
        team.velocity_samples,
        window=settings.velocity_window,
        default=settings.default_velocity,
        floor=settings.min_velocity,
    )
    periods_needed = max(total_effort, 0.0) / velocity

    if team.headcount is None:
        return CapacityEstimate(
            velocity=velocity,
            periods_needed=periods_needed,
            person_periods=None,
            target_person_periods=None,
            buffer_percent=None,
            pto_reduction=pto_reduction,
        )

    person_periods = periods_needed * team.headcount
    target = team.headcount * settings.periods_per_cycle * (1 - pto_reduction)
    buffer_percent = (target - person_periods) / target * 100 if target > 0 else 0.0

    return CapacityEstimate(
        velocity=velocity,
        periods_needed=periods_needed,
        person_periods=person_periods,
        target_person_periods=target,
        buffer_percent=buffer_percent,
        pto_reduction=pto_reduction,
    )
