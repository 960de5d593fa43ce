"""Derivation of the sprint cadence origin (start of sprint 0)."""

from jira_burnup.dates import epoch_day_floor_ms, round_half_up, subtract_working_days
from jira_burnup.models import NormalizedIssue


def working_days_per_sprint(sprint_length_days: int) -> int:
    """Number of weekdays staffed in a sprint (14 calendar days -> 10)."""
    return max(1, round_half_up(sprint_length_days * 5 / 7))


def derive_origin(
    issues: list[NormalizedIssue],
    sprint_length_days: int,
    fallback_start_ms: int | None,
    today_ms: int,
) -> int:
    """Pick the start of sprint 0 from the story history.

    JIRA sprint boundaries are rarely recorded reliably, so the cadence is
    anchored on the first real completion: the earliest resolution of a done
    story marks the end of the first sprint, and its start lies one sprint's
    worth of working days earlier. Without any completions the cadence starts
    at the earlier of the fallback date and the first story's creation.
    """
    origin_ms: int | None

    if not issues:
        origin_ms = fallback_start_ms if fallback_start_ms is not None else today_ms
    else:
        valid_done = [
            i for i in issues if i.is_done and not i.is_cancelled and i.resolved_ms is not None
        ]

        if valid_done:
            earliest_done_ms = min(i.resolved_ms for i in valid_done)
            origin_ms = subtract_working_days(
                earliest_done_ms, working_days_per_sprint(sprint_length_days)
            )
        else:
            earliest_created_ms = min(i.created_ms for i in issues)
            if fallback_start_ms is not None:
                origin_ms = min(fallback_start_ms, earliest_created_ms)
            else:
                origin_ms = earliest_created_ms

    origin_ms = epoch_day_floor_ms(origin_ms)
    if origin_ms is None:
        origin_ms = today_ms
    return origin_ms
