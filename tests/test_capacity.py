"""Tests for capacity estimation."""

from datetime import date

import pytest

from cycle_planner.core.capacity import (
    CapacitySettings,
    estimate,
    pto_reduction_factor,
    velocity_from_history,
    working_days,
)
from cycle_planner.models import DateRange, TeamCapacityProfile, TimeOffRecord

# Monday 5 Jan 2026 to Friday 16 Jan 2026: 10 working days
PERIOD = DateRange(date(2026, 1, 5), date(2026, 1, 16))


class TestVelocity:
    """Test velocity from history."""

    def test_trailing_window(self):
        """Test only the most recent three samples count."""
        assert velocity_from_history([10, 50, 60, 70]) == 60

    def test_short_history(self):
        """Test fewer samples than the window are averaged as they are."""
        assert velocity_from_history([30, 40]) == 35

    def test_default_and_floor(self):
        """Test the default for no history and the floor for tiny velocities."""
        assert velocity_from_history([]) == 20
        assert velocity_from_history([], default=12) == 12
        assert velocity_from_history([0, 0, 0]) == 1


class TestEstimate:
    """Test the estimate numbers."""

    def test_reference_team(self):
        """Test headcount 6, history 50/60/70 and 120 SP."""
        team = TeamCapacityProfile("payments", headcount=6, velocity_samples=(50, 60, 70))
        result = estimate(120, team)
        assert result.velocity == 60
        assert result.periods_needed == 2.0
        assert result.person_periods == 12.0
        assert result.target_person_periods == 18
        assert round(result.buffer_percent) == 33

    def test_target_without_time_off(self):
        """Test the target is headcount times periods per cycle with no time off."""
        team = TeamCapacityProfile("t", headcount=4)
        assert estimate(0, team).target_person_periods == 12

    def test_over_committed_is_negative(self):
        """Test more work than capacity gives a negative buffer."""
        team = TeamCapacityProfile("t", headcount=2, velocity_samples=(10,))
        assert estimate(100, team).buffer_percent < 0

    def test_periods_not_rounded(self):
        """Test periods stay fractional and round up only for display."""
        team = TeamCapacityProfile("t", headcount=1, velocity_samples=(20,))
        result = estimate(30, team)
        assert result.periods_needed == 1.5
        assert result.periods_needed_rounded == 2

    def test_no_headcount_is_not_applicable(self):
        """Test missing headcount yields None rather than zero."""
        result = estimate(40, TeamCapacityProfile("unknown"))
        assert result.periods_needed == 2.0
        assert result.person_periods is None
        assert result.target_person_periods is None
        assert result.buffer_percent is None

    def test_full_time_off_gives_zero_buffer(self):
        """Test a zero target does not divide by zero."""
        team = TeamCapacityProfile("t", headcount=3)
        assert estimate(10, team, pto_reduction=1.0).buffer_percent == 0.0

    def test_settings(self):
        """Test settings override periods per cycle and velocity defaults."""
        team = TeamCapacityProfile("t", headcount=2)
        result = estimate(30, team, settings=CapacitySettings(default_velocity=10, periods_per_cycle=5))
        assert result.velocity == 10
        assert result.target_person_periods == 10


class TestPtoReduction:
    """Test the time-off reduction factor."""

    def test_working_days(self):
        """Test weekends are not working days."""
        assert working_days(PERIOD.start, PERIOD.end) == 10
        assert working_days(date(2026, 1, 10), date(2026, 1, 11)) == 0

    def test_weekend_contributes_nothing(self):
        """Test a Saturday to Sunday absence does not reduce capacity."""
        records = [TimeOffRecord("Alice", date(2026, 1, 10), date(2026, 1, 11))]
        assert pto_reduction_factor(records, PERIOD, headcount=2) == 0

    def test_overlap_clipped_to_period(self):
        """Test only days inside the period count."""
        records = [TimeOffRecord("Alice", date(2026, 1, 1), date(2026, 1, 6))]
        assert pto_reduction_factor(records, PERIOD, headcount=2) == pytest.approx(2 / 20)

    def test_overlapping_records_counted_once(self):
        """Test the same member's overlapping records count each day once."""
        records = [
            TimeOffRecord("Alice", date(2026, 1, 5), date(2026, 1, 9)),
            TimeOffRecord("alice", date(2026, 1, 7), date(2026, 1, 9)),
        ]
        assert pto_reduction_factor(records, PERIOD, headcount=1) == pytest.approx(0.5)

    def test_roster_filter(self):
        """Test people outside the roster are ignored."""
        records = [TimeOffRecord("Mallory", date(2026, 1, 5), date(2026, 1, 16))]
        assert pto_reduction_factor(records, PERIOD, headcount=1, roster=["Alice"]) == 0

    def test_capped_at_one(self):
        """Test more absence than capacity caps at 1."""
        records = [
            TimeOffRecord("Alice", date(2026, 1, 5), date(2026, 1, 16)),
            TimeOffRecord("Bob", date(2026, 1, 5), date(2026, 1, 16)),
        ]
        assert pto_reduction_factor(records, PERIOD, headcount=1) == 1.0

    def test_no_headcount(self):
        """Test no headcount means no reduction."""
        records = [TimeOffRecord("Alice", date(2026, 1, 5), date(2026, 1, 6))]
        assert pto_reduction_factor(records, PERIOD, headcount=None) == 0.0

    def test_reduces_target(self):
        """Test the factor lowers the target person-periods."""
        team = TeamCapacityProfile("t", headcount=6, velocity_samples=(60,))
        assert estimate(120, team, pto_reduction=0.5).target_person_periods == 9
