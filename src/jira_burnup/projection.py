"""Velocity-based completion forecast for a burn-up."""

import math
from dataclasses import replace

from jira_burnup.dates import DAY_MS
from jira_burnup.models import BurnupProjection
from jira_burnup.sprints import last_closed_index

# Closed sprints scanned backwards when looking for a velocity signal.
LOOKBACK_CLOSED = 8
# Most recent non-zero sprints averaged into the velocity signal.
MAX_VELOCITY_SAMPLES = 2
# Closed sprints averaged into the "recent" burn rate (zeros included).
RECENT_WINDOW = 2
MIN_FTE = 0.1
EARLY_FACTOR = 1.2
LATE_FACTOR = 0.8


def floor_fte(fte: float) -> float:
    """Clamp an FTE value so it can safely be divided by."""
    if fte is None or not math.isfinite(fte):
        fte = 0.0
    return max(MIN_FTE, fte)


def avg_stories_last_closed(sprints, from_index: int, n: int) -> float | None:
    """Average stories done over the last ``n`` closed sprints up to ``from_index``."""
    values = []
    i = from_index
    while i >= 0 and len(values) < n:
        if sprints[i].is_closed:
            values.append(sprints[i].done_this_sprint)
        i -= 1
    if not values:
        return None
    return sum(values) / len(values)


def velocity_per_fte_samples(sprints, from_index: int, fte: float) -> list[float]:
    """Most recent non-zero stories-per-FTE values, newest first.

    Walks backwards over at most LOOKBACK_CLOSED closed sprints and stops as
    soon as MAX_VELOCITY_SAMPLES non-zero sprints have been collected.
    """
    samples: list[float] = []
    taken_closed = 0
    i = from_index
    while i >= 0 and taken_closed < LOOKBACK_CLOSED:
        sprint = sprints[i]
        i -= 1
        if not sprint.is_closed:
            continue
        taken_closed += 1

        if sprint.done_this_sprint > 0:
            samples.append(sprint.done_this_sprint / fte)
            if len(samples) >= MAX_VELOCITY_SAMPLES:
                break
    return samples


def project_completion(
    from_time_ms: int,
    remaining: int,
    done_per_sprint: float,
    sprint_len_ms: int,
) -> tuple[float, float, float]:
    """Central, early and late completion timestamps for a given velocity."""
    if remaining == 0:
        return from_time_ms, from_time_ms, from_time_ms

    central_ms = from_time_ms + (remaining / done_per_sprint) * sprint_len_ms

    fast = done_per_sprint * EARLY_FACTOR
    slow = done_per_sprint * LATE_FACTOR
    early_ms = from_time_ms + (remaining / fast) * sprint_len_ms if fast > 0 else central_ms
    late_ms = from_time_ms + (remaining / slow) * sprint_len_ms if slow > 0 else central_ms
    return central_ms, early_ms, late_ms


def compute_projection(
    sprints,
    sprint_length_days: int,
    sprint_fte: float,
    latest_scope: int,
    target_scope: int,
    target_date_ms: int | None,
) -> BurnupProjection:
    """Forecast completion from the last closed sprint.

    Fields are filled in as far as the data allows: the anchor and the
    remaining/required figures are reported even when no velocity signal
    exists, and required FTE is reported even when the projected velocity
    collapses. ``has_signal`` is only True when a completion date exists.
    """
    if not sprints:
        return BurnupProjection()

    anchor_index = last_closed_index(sprints)
    if anchor_index is None:
        return BurnupProjection()

    sprint_len_ms = sprint_length_days * DAY_MS
    anchor = sprints[anchor_index]
    from_time_ms = anchor.end_ms
    from_done = anchor.cum_done_end

    remaining = max(0, latest_scope - from_done)
    remaining_to_target = max(0, target_scope - from_done)

    sprints_float = None
    sprints_remaining_to_target = None
    required_per_sprint = None
    if target_date_ms is not None and target_date_ms > from_time_ms:
        sprints_float = (target_date_ms - from_time_ms) / sprint_len_ms
        sprints_remaining_to_target = math.ceil(sprints_float)
        required_per_sprint = remaining_to_target / sprints_float if remaining_to_target > 0 else 0

    fte = floor_fte(sprint_fte)
    recent = avg_stories_last_closed(sprints, anchor_index, RECENT_WINDOW)

    partial = BurnupProjection(
        has_signal=False,
        from_sprint_index=anchor_index,
        from_time_ms=from_time_ms,
        from_done=from_done,
        remaining_stories_from_anchor=remaining,
        sprints_remaining_to_target=sprints_remaining_to_target,
        required_stories_per_sprint_to_hit_target=required_per_sprint,
        recent_stories_per_sprint=recent,
    )

    samples = velocity_per_fte_samples(sprints, anchor_index, fte)
    if not samples:
        return partial

    avg_vel_per_fte = sum(samples) / len(samples)

    required_fte = None
    suggested_max_fte = None
    if avg_vel_per_fte > 0 and target_date_ms is not None:
        if remaining_to_target <= 0:
            required_fte = 0
            suggested_max_fte = max(sprint_fte, 0) + 1
        elif sprints_float is not None:
            fte_required = (remaining_to_target / sprints_float) / avg_vel_per_fte
            if math.isfinite(fte_required) and fte_required > 0:
                required_fte = fte_required
                suggested_max_fte = fte_required + 1

    projected_done_per_sprint = avg_vel_per_fte * fte
    if not (math.isfinite(projected_done_per_sprint) and projected_done_per_sprint > 0):
        return replace(
            partial,
            avg_vel_per_fte=avg_vel_per_fte,
            required_fte_to_hit_target=required_fte,
            suggested_max_fte=suggested_max_fte,
        )

    central_ms, early_ms, late_ms = project_completion(
        from_time_ms, remaining, projected_done_per_sprint, sprint_len_ms
    )

    return BurnupProjection(
        has_signal=True,
        from_sprint_index=anchor_index,
        from_time_ms=from_time_ms,
        from_done=from_done,
        projected_done_per_sprint=projected_done_per_sprint,
        avg_vel_per_fte=avg_vel_per_fte,
        projected_completion_ms=central_ms,
        projected_completion_early_ms=early_ms,
        projected_completion_late_ms=late_ms,
        required_fte_to_hit_target=required_fte,
        suggested_max_fte=suggested_max_fte,
        remaining_stories_from_anchor=remaining,
        sprints_remaining_to_target=sprints_remaining_to_target,
        required_stories_per_sprint_to_hit_target=required_per_sprint,
        recent_stories_per_sprint=recent,
    )
