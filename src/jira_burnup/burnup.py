"""Burn-up model construction and re-parameterization."""

import logging
import math
from dataclasses import replace

from jira_burnup.dates import (
    DAY_MS,
    epoch_day_floor_ms,
    ms_to_iso,
    parse_iso_date,
    round_half_up,
)
from jira_burnup.exceptions import InvalidInputError
from jira_burnup.models import (
    BuildBurnupInput,
    BurnupModel,
    BurnupProjection,
    ScopeSliderConfig,
    SprintSummary,
)
from jira_burnup.normalize import normalize_issues
from jira_burnup.origin import derive_origin
from jira_burnup.projection import compute_projection, floor_fte, project_completion
from jira_burnup.sprints import build_sprints, compute_horizon_ms, last_closed_index, scope_at_date

logger = logging.getLogger(__name__)

DEFAULT_SPRINT_LENGTH_DAYS = 14
DEFAULT_VELOCITY_BOUNDS = (5, 80)


def _resolve_today(today_iso: str | None, now_ms: int | None) -> int:
    today = parse_iso_date(today_iso) if today_iso else None
    if today is None and now_ms is not None:
        today = epoch_day_floor_ms(now_ms)
    if today is None:
        raise InvalidInputError(
            "A reference date is required: pass today_iso or now_ms."
        )
    return today


def _safe_fte(value) -> float:
    try:
        fte = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(fte):
        return 0.0
    return max(0.0, fte)


def _target_health(projection: BurnupProjection, target_date_ms: int | None):
    """Return (is_on_track, days_delta_from_target) for a projection."""
    if (
        not projection.has_signal
        or projection.projected_completion_ms is None
        or target_date_ms is None
    ):
        return None, None
    delta = round_half_up((projection.projected_completion_ms - target_date_ms) / DAY_MS)
    return delta <= 0, delta


def current_sprint_window(origin_ms: int, today_ms: int, sprint_length_days: int):
    """Start and inclusive end date of the sprint containing ``today_ms``."""
    if sprint_length_days <= 0:
        return origin_ms, origin_ms
    sprint_len_ms = sprint_length_days * DAY_MS
    idx = max(0, math.floor((today_ms - origin_ms) / sprint_len_ms))
    start_ms = origin_ms + idx * sprint_len_ms
    return start_ms, start_ms + (sprint_length_days - 1) * DAY_MS


def empty_model(
    sprint_length_days: int,
    origin_ms: int | None,
    target_date_ms: int | None,
    today_ms: int,
) -> BurnupModel:
    """Model with no sprints and no signal, used when the target is unusable."""
    safe_origin = origin_ms if origin_ms is not None else today_ms
    return BurnupModel(
        sprint_length_days=sprint_length_days,
        origin_ms=safe_origin,
        target_date_ms=target_date_ms if target_date_ms is not None else today_ms,
        target_scope=0,
        latest_scope=0,
        today_ms=today_ms,
        current_sprint_start_ms=safe_origin,
        current_sprint_end_ms=safe_origin,
        sprints=(),
        projection=BurnupProjection(),
    )


def build_burnup_model(data: BuildBurnupInput, now_ms: int | None = None) -> BurnupModel:
    """Turn raw stories and sprint parameters into a burn-up model.

    Args:
        data: Stories plus sprint start fallback, target date, FTE and sprint
            length. ``data.today_iso`` pins the reference date.
        now_ms: Current time in epoch milliseconds, used when
            ``data.today_iso`` is not given. The builder never reads the clock.

    Returns:
        A fresh BurnupModel. Malformed stories are dropped and an invalid
        target date yields an empty model; neither raises.

    Raises:
        InvalidInputError: If ``stories`` is not a list, the sprint length
            is below one day, or no reference date is available.
    """
    sprint_length_days = data.sprint_length_days or DEFAULT_SPRINT_LENGTH_DAYS
    if not sprint_length_days >= 1:
        raise InvalidInputError("sprint_length_days must be at least one day")
    if not isinstance(data.stories, (list, tuple)):
        raise InvalidInputError("stories must be a list of BurnupIssue records")

    fallback_origin_ms = parse_iso_date(data.sprint_start_iso)
    target_date_ms = parse_iso_date(data.dev_completion_iso)
    today_ms = _resolve_today(data.today_iso, now_ms)

    if target_date_ms is None:
        logger.debug("Invalid target date %r, returning empty model", data.dev_completion_iso)
        return empty_model(sprint_length_days, fallback_origin_ms, target_date_ms, today_ms)

    sprint_fte = _safe_fte(data.sprint_fte)

    issues = normalize_issues(data.stories)
    dropped = len(data.stories) - len(issues)
    if dropped:
        logger.warning("Dropped %d stories without a parseable creation date", dropped)

    origin_ms = derive_origin(issues, sprint_length_days, fallback_origin_ms, today_ms)
    horizon_ms = compute_horizon_ms(
        issues, origin_ms, today_ms, target_date_ms, sprint_length_days
    )
    sprints = build_sprints(issues, origin_ms, horizon_ms, today_ms, sprint_length_days)

    latest_scope = sprints[-1].scope_at_end if sprints else 0
    target_scope = scope_at_date(sprints, target_date_ms)
    total_done = sprints[-1].cum_done_end if sprints else 0

    projection = compute_projection(
        sprints, sprint_length_days, sprint_fte, latest_scope, target_scope, target_date_ms
    )
    current_start_ms, current_end_ms = current_sprint_window(
        origin_ms, today_ms, sprint_length_days
    )
    is_on_track, days_delta = _target_health(projection, target_date_ms)

    logger.debug(
        "Built burn-up: origin=%s sprints=%d scope=%d done=%d signal=%s",
        ms_to_iso(origin_ms),
        len(sprints),
        latest_scope,
        total_done,
        projection.has_signal,
    )

    return BurnupModel(
        sprint_length_days=sprint_length_days,
        origin_ms=origin_ms,
        target_date_ms=target_date_ms,
        target_scope=target_scope,
        latest_scope=latest_scope,
        today_ms=today_ms,
        current_sprint_start_ms=current_start_ms,
        current_sprint_end_ms=current_end_ms,
        sprints=sprints,
        projection=projection,
        total_done_stories=total_done,
        has_any_done=total_done > 0,
        is_on_track=is_on_track,
        days_delta_from_target=days_delta,
    )


def recompute_projection_with_fte(model: BurnupModel, sprint_fte: float) -> BurnupModel:
    """Re-project a model for a new FTE without rebuilding its sprints.

    The anchor and the historical stories-per-FTE signal stay fixed; only the
    projected velocity, the completion dates and the target health change.
    Models without a usable signal are returned unchanged.
    """
    projection = model.projection
    if (
        not model.sprints
        or not projection.has_signal
        or projection.from_sprint_index is None
        or projection.from_time_ms is None
        or projection.from_done is None
        or projection.avg_vel_per_fte is None
        or projection.avg_vel_per_fte <= 0
    ):
        return model

    fte = floor_fte(_safe_fte(sprint_fte))
    projected_done_per_sprint = projection.avg_vel_per_fte * fte

    if not projected_done_per_sprint > 0:
        return replace(
            model,
            projection=replace(
                projection,
                projected_done_per_sprint=None,
                projected_completion_ms=None,
                projected_completion_early_ms=None,
                projected_completion_late_ms=None,
            ),
            is_on_track=None,
            days_delta_from_target=None,
        )

    remaining = max(0, model.latest_scope - projection.from_done)
    central_ms, early_ms, late_ms = project_completion(
        projection.from_time_ms,
        remaining,
        projected_done_per_sprint,
        model.sprint_length_days * DAY_MS,
    )

    new_projection = replace(
        projection,
        has_signal=True,
        projected_done_per_sprint=projected_done_per_sprint,
        projected_completion_ms=central_ms,
        projected_completion_early_ms=early_ms,
        projected_completion_late_ms=late_ms,
    )
    is_on_track, days_delta = _target_health(new_projection, model.target_date_ms)

    return replace(
        model,
        projection=new_projection,
        is_on_track=is_on_track,
        days_delta_from_target=days_delta,
    )


def recompute_projection_with_velocity(
    model: BurnupModel, stories_per_sprint: float
) -> BurnupModel:
    """Re-project a model so that it burns ``stories_per_sprint`` per sprint."""
    avg = model.projection.avg_vel_per_fte
    if not model.projection.has_signal or avg is None or avg <= 0:
        return model
    return recompute_projection_with_fte(model, _safe_fte(stories_per_sprint) / avg)


def calibrated_velocity(model: BurnupModel, fallback: float) -> float:
    """Velocity a UI should preset: required pace, else recent pace, else fallback."""
    required = model.projection.required_stories_per_sprint_to_hit_target
    recent = model.projection.recent_stories_per_sprint
    if required is not None and required > 0:
        return required
    if recent is not None and recent > 0:
        return recent
    return fallback


def velocity_slider_bounds(model: BurnupModel | None) -> tuple[int, int]:
    """Sensible (min, max) stories-per-sprint range for a velocity slider."""
    default_min, default_max = DEFAULT_VELOCITY_BOUNDS
    if model is None:
        return default_min, default_max

    proj = model.projection
    if not proj.has_signal or proj.from_time_ms is None or proj.from_done is None:
        return default_min, default_max
    if model.sprint_length_days <= 0:
        return default_min, default_max

    remaining_stories = max(0, model.latest_scope - proj.from_done)
    remaining_time_ms = model.target_date_ms - proj.from_time_ms
    if remaining_stories <= 0 or remaining_time_ms <= 0:
        return default_min, default_max

    sprint_len_ms = model.sprint_length_days * DAY_MS
    sprints_remaining = max(1, math.ceil(remaining_time_ms / sprint_len_ms))
    required = remaining_stories / sprints_remaining

    recent = proj.recent_stories_per_sprint
    baseline = recent if recent is not None and recent > 0 else required

    low = max(1, math.floor(baseline * 0.5))
    high = max(math.ceil(required * 1.5), math.ceil(baseline * 2))
    return low, max(low + 5, high)


def scope_slider_config(model: BurnupModel | None) -> ScopeSliderConfig:
    """Range for overriding future scope, centred on the last closed sprint's scope."""
    disabled = ScopeSliderConfig(enabled=False, baseline_scope=0, min=0, max=0)
    if model is None or not model.sprints:
        return disabled

    anchor_index = last_closed_index(model.sprints)
    if anchor_index is None or anchor_index == len(model.sprints) - 1:
        return disabled

    baseline = model.sprints[anchor_index].scope_at_end
    span = max(50, round_half_up(max(baseline, 1) * 0.5))
    return ScopeSliderConfig(
        enabled=True,
        baseline_scope=baseline,
        min=max(0, baseline - span),
        max=baseline + span,
    )


def build_scope_adjusted_model(model: BurnupModel, override_scope: float) -> BurnupModel:
    """Return a copy of ``model`` whose open sprints carry an overridden scope.

    Closed sprints keep their real history. The first open sprint ramps from
    the last closed scope to the override; every later sprint sits at the
    override. The projection is left untouched.
    """
    sprints = model.sprints
    if not sprints:
        return model

    anchor_index = last_closed_index(sprints)
    if anchor_index is None:
        return model

    new_scope = max(0, round_half_up(override_scope))
    next_index = min(anchor_index + 1, len(sprints) - 1)

    adjusted: list[SprintSummary] = []
    for sprint in sprints:
        if sprint.index <= anchor_index:
            adjusted.append(sprint)
        elif sprint.index == next_index:
            adjusted.append(
                replace(
                    sprint,
                    scope_at_start=adjusted[-1].scope_at_end,
                    scope_at_end=new_scope,
                )
            )
        else:
            adjusted.append(replace(sprint, scope_at_start=new_scope, scope_at_end=new_scope))

    new_sprints = tuple(adjusted)
    return replace(
        model,
        sprints=new_sprints,
        latest_scope=new_sprints[-1].scope_at_end,
        target_scope=scope_at_date(new_sprints, model.target_date_ms),
    )


def burnup_model_to_dict(model: BurnupModel) -> dict:
    """Convert a BurnupModel to a JSON-serializable dict for the chart layer."""

    def _sprint_dict(s: SprintSummary) -> dict:
        return {
            "index": s.index,
            "startMs": s.start_ms,
            "endMs": s.end_ms,
            "scopeAtStart": s.scope_at_start,
            "scopeAtEnd": s.scope_at_end,
            "doneThisSprint": s.done_this_sprint,
            "cumDoneEnd": s.cum_done_end,
            "isClosed": s.is_closed,
        }

    p = model.projection
    projection = {
        "hasSignal": p.has_signal,
        "fromSprintIndex": p.from_sprint_index,
        "fromTimeMs": p.from_time_ms,
        "fromDone": p.from_done,
        "projectedDonePerSprint": p.projected_done_per_sprint,
        "avgVelPerFTE": p.avg_vel_per_fte,
        "projectedCompletionMs": p.projected_completion_ms,
        "projectedCompletionEarlyMs": p.projected_completion_early_ms,
        "projectedCompletionLateMs": p.projected_completion_late_ms,
        "requiredFTEToHitTarget": p.required_fte_to_hit_target,
        "suggestedMaxFTE": p.suggested_max_fte,
        "remainingStoriesFromAnchor": p.remaining_stories_from_anchor,
        "sprintsRemainingToTarget": p.sprints_remaining_to_target,
        "requiredStoriesPerSprintToHitTarget": p.required_stories_per_sprint_to_hit_target,
        "recentStoriesPerSprint": p.recent_stories_per_sprint,
        "projectedCompletionDate": ms_to_iso(p.projected_completion_ms),
    }

    return {
        "sprintLengthDays": model.sprint_length_days,
        "originMs": model.origin_ms,
        "originDate": ms_to_iso(model.origin_ms),
        "targetDateMs": model.target_date_ms,
        "targetDate": ms_to_iso(model.target_date_ms),
        "targetScope": model.target_scope,
        "latestScope": model.latest_scope,
        "todayMs": model.today_ms,
        "today": ms_to_iso(model.today_ms),
        "currentSprintStartMs": model.current_sprint_start_ms,
        "currentSprintEndMs": model.current_sprint_end_ms,
        "currentSprintStart": ms_to_iso(model.current_sprint_start_ms),
        "currentSprintEnd": ms_to_iso(model.current_sprint_end_ms),
        "sprints": [_sprint_dict(s) for s in model.sprints],
        "projection": projection,
        "totalDoneStories": model.total_done_stories,
        "hasAnyDone": model.has_any_done,
        "isOnTrack": model.is_on_track,
        "daysDeltaFromTarget": model.days_delta_from_target,
    }
