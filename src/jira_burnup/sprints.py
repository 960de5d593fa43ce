"""Sprint bucketing of normalized stories."""

from jira_burnup.dates import DAY_MS
from jira_burnup.models import NormalizedIssue, SprintSummary

# Extra sprints past the last relevant date, leaving room for the forecast cone.
HORIZON_SPRINTS = 6


def compute_horizon_ms(
    issues: list[NormalizedIssue],
    origin_ms: int,
    today_ms: int,
    target_date_ms: int,
    sprint_length_days: int,
) -> int:
    """Last instant the sprint sequence has to cover."""
    last_story_ms = max((i.created_ms for i in issues), default=origin_ms)
    resolved = [i.resolved_ms for i in issues if i.resolved_ms is not None]
    if resolved:
        last_story_ms = max(last_story_ms, max(resolved))

    base_ms = max(today_ms, target_date_ms, last_story_ms)
    return base_ms + HORIZON_SPRINTS * sprint_length_days * DAY_MS


def build_sprints(
    issues: list[NormalizedIssue],
    origin_ms: int,
    horizon_ms: int,
    today_ms: int,
    sprint_length_days: int,
) -> tuple[SprintSummary, ...]:
    """Partition origin..horizon into sprints with scope and done aggregates.

    Cumulative done is clamped to scope so a sprint never reports more
    completed stories than exist, and the per-sprint increment is never
    negative.
    """
    sprint_len_ms = sprint_length_days * DAY_MS
    live = [i for i in issues if not i.is_cancelled]
    done = [i for i in live if i.is_done and i.resolved_ms is not None]

    sprints: list[SprintSummary] = []
    prev_scope_at_end = 0
    prev_cum_done = 0
    index = 0

    while True:
        start_ms = origin_ms + index * sprint_len_ms
        end_ms = start_ms + sprint_len_ms
        if start_ms > horizon_ms:
            break

        scope_at_end = sum(1 for i in live if i.created_ms < end_ms)
        done_by_end_raw = sum(
            1 for i in done if i.resolved_ms < end_ms and i.created_ms < end_ms
        )
        cum_done_end = min(done_by_end_raw, scope_at_end)

        if index == 0:
            scope_at_start = 0
            done_this_sprint = cum_done_end
        else:
            scope_at_start = prev_scope_at_end
            done_this_sprint = max(0, cum_done_end - prev_cum_done)

        sprints.append(
            SprintSummary(
                index=index,
                start_ms=start_ms,
                end_ms=end_ms,
                scope_at_start=scope_at_start,
                scope_at_end=scope_at_end,
                done_this_sprint=done_this_sprint,
                cum_done_end=cum_done_end,
                is_closed=end_ms <= today_ms,
            )
        )

        prev_scope_at_end = scope_at_end
        prev_cum_done = cum_done_end
        index += 1

    return tuple(sprints)


def scope_at_date(sprints, date_ms: int) -> int:
    """Scope of the first sprint ending on or after ``date_ms``.

    Falls back to the final sprint when the date lies beyond the sequence.
    """
    if not sprints:
        return 0
    for sprint in sprints:
        if date_ms <= sprint.end_ms:
            return sprint.scope_at_end
    return sprints[-1].scope_at_end


def last_closed_index(sprints) -> int | None:
    """Index of the most recent closed sprint, or None."""
    for i in range(len(sprints) - 1, -1, -1):
        if sprints[i].is_closed:
            return i
    return None
