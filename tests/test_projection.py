"""Tests for origin derivation, sprint bucketing helpers and the projection engine."""

from datetime import date

import pytest

from jira_burnup.dates import DAY_MS, date_to_ms
from jira_burnup.models import NormalizedIssue, SprintSummary
from jira_burnup.origin import derive_origin, working_days_per_sprint
from jira_burnup.projection import (
    avg_stories_last_closed,
    compute_projection,
    project_completion,
    velocity_per_fte_samples,
)
from jira_burnup.sprints import last_closed_index, scope_at_date

SPRINT_MS = 14 * DAY_MS
ORIGIN = date_to_ms(date(2025, 1, 6))


def _ms(y, m, d):
    return date_to_ms(date(y, m, d))


def _sprints(done_per_sprint, closed_count, scope=20):
    """Hand-built sprint history with constant scope."""
    sprints = []
    cum = 0
    for i, done in enumerate(done_per_sprint):
        cum += done
        sprints.append(
            SprintSummary(
                index=i,
                start_ms=ORIGIN + i * SPRINT_MS,
                end_ms=ORIGIN + (i + 1) * SPRINT_MS,
                scope_at_start=0 if i == 0 else scope,
                scope_at_end=scope,
                done_this_sprint=done,
                cum_done_end=cum,
                is_closed=i < closed_count,
            )
        )
    return tuple(sprints)


class TestWorkingDaysPerSprint:
    """Tests for working_days_per_sprint."""

    def test_two_week_sprint(self):
        assert working_days_per_sprint(14) == 10

    def test_rounds_half_up(self):
        assert working_days_per_sprint(7) == 5
        assert working_days_per_sprint(10) == 7

    def test_never_below_one(self):
        assert working_days_per_sprint(1) == 1
        assert working_days_per_sprint(0) == 1


class TestDeriveOrigin:
    """Tests for derive_origin."""

    def test_no_issues_uses_fallback(self):
        assert derive_origin([], 14, _ms(2025, 1, 6), _ms(2025, 3, 3)) == _ms(2025, 1, 6)

    def test_no_issues_without_fallback_uses_today(self):
        assert derive_origin([], 14, None, _ms(2025, 3, 3)) == _ms(2025, 3, 3)

    def test_earliest_done_drives_origin(self):
        issues = [
            NormalizedIssue(_ms(2025, 1, 1), _ms(2025, 2, 3), True, False),
            NormalizedIssue(_ms(2025, 1, 1), _ms(2025, 1, 20), True, False),
            NormalizedIssue(_ms(2024, 6, 1), None, False, False),
        ]
        assert derive_origin(issues, 14, _ms(2024, 1, 1), _ms(2025, 3, 3)) == _ms(2025, 1, 6)

    def test_cancelled_done_ignored(self):
        issues = [
            NormalizedIssue(_ms(2025, 1, 1), _ms(2025, 1, 2), False, True),
            NormalizedIssue(_ms(2025, 1, 3), None, False, False),
        ]
        assert derive_origin(issues, 14, None, _ms(2025, 3, 3)) == _ms(2025, 1, 1)

    def test_earlier_fallback_wins_without_done(self):
        issues = [NormalizedIssue(_ms(2025, 1, 10), None, False, False)]
        assert derive_origin(issues, 14, _ms(2025, 1, 6), _ms(2025, 3, 3)) == _ms(2025, 1, 6)

    def test_one_day_sprint_still_steps_back(self):
        issues = [NormalizedIssue(_ms(2025, 1, 1), _ms(2025, 1, 20), True, False)]
        assert derive_origin(issues, 1, None, _ms(2025, 3, 3)) == _ms(2025, 1, 17)


class TestSprintHelpers:
    """Tests for scope_at_date and last_closed_index."""

    def test_scope_at_date_uses_first_sprint_ending_after(self):
        sprints = _sprints([0, 0, 0], 0)
        assert scope_at_date(sprints, ORIGIN + SPRINT_MS) == 20
        assert scope_at_date((), ORIGIN) == 0

    def test_scope_at_date_beyond_sequence(self):
        sprints = _sprints([0, 0], 0, scope=7)
        assert scope_at_date(sprints, ORIGIN + 100 * SPRINT_MS) == 7

    def test_last_closed_index(self):
        assert last_closed_index(_sprints([1, 2, 3, 0], 3)) == 2
        assert last_closed_index(_sprints([1, 2], 0)) is None


class TestVelocitySignal:
    """Tests for the backward velocity scans."""

    def test_takes_two_most_recent_non_zero(self):
        sprints = _sprints([9, 4, 0, 6], 4)
        assert velocity_per_fte_samples(sprints, 3, 2.0) == [3.0, 2.0]

    def test_lookback_capped_at_eight_closed(self):
        sprints = _sprints([5] + [0] * 8, 9)
        assert velocity_per_fte_samples(sprints, 8, 1.0) == []

    def test_within_lookback(self):
        sprints = _sprints([5] + [0] * 7, 8)
        assert velocity_per_fte_samples(sprints, 7, 1.0) == [5.0]

    def test_recent_average_counts_zeros(self):
        sprints = _sprints([4, 0, 6], 3)
        assert avg_stories_last_closed(sprints, 2, 2) == pytest.approx(3.0)

    def test_recent_average_single_closed(self):
        sprints = _sprints([4, 0], 1)
        assert avg_stories_last_closed(sprints, 0, 2) == pytest.approx(4.0)


class TestProjectCompletion:
    """Tests for project_completion."""

    def test_nothing_remaining(self):
        assert project_completion(1000, 0, 5.0, SPRINT_MS) == (1000, 1000, 1000)

    def test_bands(self):
        central, early, late = project_completion(0, 10, 5.0, SPRINT_MS)
        assert central == pytest.approx(2 * SPRINT_MS)
        assert early < central < late
        assert late == pytest.approx(2.5 * SPRINT_MS)


class TestComputeProjection:
    """Tests for compute_projection."""

    def test_no_sprints(self):
        p = compute_projection((), 14, 1.0, 0, 0, _ms(2025, 6, 1))
        assert p.has_signal is False
        assert p.from_sprint_index is None

    def test_velocity_extrapolation(self):
        sprints = _sprints([4, 0, 6, 0], 3)
        p = compute_projection(sprints, 14, 2.0, 20, 20, _ms(2025, 6, 1))
        assert p.from_sprint_index == 2
        assert p.from_done == 10
        assert p.avg_vel_per_fte == pytest.approx(2.5)
        assert p.projected_done_per_sprint == pytest.approx(5.0)
        assert p.projected_completion_ms == pytest.approx(sprints[2].end_ms + 2 * SPRINT_MS)

    def test_target_before_anchor(self):
        sprints = _sprints([4, 0, 6, 0], 3)
        p = compute_projection(sprints, 14, 2.0, 20, 20, _ms(2025, 1, 1))
        assert p.sprints_remaining_to_target is None
        assert p.required_stories_per_sprint_to_hit_target is None
        assert p.required_fte_to_hit_target is None
        assert p.has_signal is True

    def test_no_target(self):
        sprints = _sprints([4, 0, 6, 0], 3)
        p = compute_projection(sprints, 14, 2.0, 20, 20, None)
        assert p.required_fte_to_hit_target is None
        assert p.suggested_max_fte is None
        assert p.has_signal is True

    def test_zero_completions(self):
        sprints = _sprints([0, 0], 1)
        p = compute_projection(sprints, 14, 1.0, 20, 20, _ms(2025, 6, 1))
        assert p.has_signal is False
        assert p.from_sprint_index == 0
        assert p.from_time_ms == sprints[0].end_ms
        assert p.from_done == 0
        assert p.remaining_stories_from_anchor == 20
        assert p.recent_stories_per_sprint == 0
        assert p.avg_vel_per_fte is None
