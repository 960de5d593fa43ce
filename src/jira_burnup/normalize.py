"""Conversion of raw stories into normalized burn-up issues."""

from jira_burnup.dates import parse_jira_date
from jira_burnup.models import BurnupIssue, NormalizedIssue

DONE_CATEGORY = "Done"
_CANCELLED_MARKERS = ("WITHDRAWN", "CANCELLED")


def normalize_issue(issue: BurnupIssue) -> NormalizedIssue | None:
    """Reduce a story to epoch-day timestamps and done/cancelled flags.

    Returns None when the creation date is missing or unparseable so that
    callers can drop the story without aborting the build.

    A story only counts as done when it has a resolution timestamp, is not
    cancelled, and either its status category is "Done" or its status text
    reads DONE. Stories that JIRA reports as done but which lack a resolution
    date are treated as resolved on the day they were created.
    """
    if issue is None or not issue.created:
        return None

    created_ms = parse_jira_date(issue.created)
    if created_ms is None:
        return None

    raw_status = (issue.status or "").strip().upper()
    category_done = issue.status_category == DONE_CATEGORY
    text_done = raw_status == "DONE" or raw_status.startswith("DONE ")

    is_cancelled = any(marker in raw_status for marker in _CANCELLED_MARKERS)

    resolved_ms = parse_jira_date(issue.resolutiondate)
    if resolved_ms is None and (category_done or raw_status == "DONE"):
        resolved_ms = created_ms

    is_done = resolved_ms is not None and not is_cancelled and (category_done or text_done)

    return NormalizedIssue(
        created_ms=created_ms,
        resolved_ms=resolved_ms,
        is_done=is_done,
        is_cancelled=is_cancelled,
    )


def normalize_issues(issues) -> list[NormalizedIssue]:
    """Normalize a batch of stories, silently dropping undated ones."""
    normalized = []
    for issue in issues:
        result = normalize_issue(issue)
        if result is not None:
            normalized.append(result)
    return normalized


def issue_from_jira(raw: dict) -> BurnupIssue:
    """Map a raw JIRA REST issue dict onto a BurnupIssue."""
    fields = raw.get("fields") or {}
    status_field = fields.get("status") or {}
    category = (status_field.get("statusCategory") or {}).get("name")

    return BurnupIssue(
        key=raw.get("key"),
        created=fields.get("created") or "",
        resolutiondate=fields.get("resolutiondate"),
        status_category=category or "To Do",
        status=status_field.get("name") or "Unknown",
    )


def issue_from_dict(data: dict) -> BurnupIssue:
    """Build a BurnupIssue from a flat story dict (camelCase or snake_case keys)."""
    return BurnupIssue(
        key=data.get("key"),
        created=data.get("created") or "",
        resolutiondate=data.get("resolutiondate") or data.get("resolution_date"),
        status_category=data.get("statusCategory", data.get("status_category")),
        status=data.get("status"),
    )
