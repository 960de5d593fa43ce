"""Data models for JIRA Burn-up."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BurnupIssue:
    """A story as delivered by JIRA, reduced to the fields the burn-up reads."""

    created: str
    resolutiondate: str | None = None
    status_category: str | None = None  # "To Do" | "In Progress" | "Done" | other
    status: str | None = None  # free text, used to spot Withdrawn / CANCELLED
    key: str | None = None


@dataclass(frozen=True)
class NormalizedIssue:
    """A story reduced to epoch-day timestamps and done/cancelled flags."""

    created_ms: int
    resolved_ms: int | None
    is_done: bool
    is_cancelled: bool


@dataclass(frozen=True)
class SprintSummary:
    """One fixed-length sprint window on the cadence."""

    index: int
    start_ms: int  # UTC midnight
    end_ms: int  # UTC midnight, exclusive
    scope_at_start: int
    scope_at_end: int  # non-cancelled stories created before end_ms
    done_this_sprint: int
    cum_done_end: int  # clamped to scope_at_end
    is_closed: bool  # end_ms <= today


@dataclass(frozen=True)
class BurnupProjection:
    """Velocity-based forecast anchored at the last closed sprint."""

    has_signal: bool = False
    from_sprint_index: int | None = None
    from_time_ms: int | None = None
    from_done: int | None = None
    projected_done_per_sprint: float | None = None  # stories per sprint at current FTE
    avg_vel_per_fte: float | None = None  # stories per FTE per sprint
    projected_completion_ms: float | None = None
    projected_completion_early_ms: float | None = None  # +20% velocity
    projected_completion_late_ms: float | None = None  # -20% velocity
    required_fte_to_hit_target: float | None = None
    suggested_max_fte: float | None = None
    remaining_stories_from_anchor: int | None = None
    sprints_remaining_to_target: int | None = None
    required_stories_per_sprint_to_hit_target: float | None = None
    recent_stories_per_sprint: float | None = None


@dataclass(frozen=True)
class BurnupModel:
    """Complete burn-up: sprint history, projection and target health."""

    sprint_length_days: int
    origin_ms: int
    target_date_ms: int
    target_scope: int
    latest_scope: int
    today_ms: int
    current_sprint_start_ms: int
    current_sprint_end_ms: int  # inclusive date
    sprints: tuple[SprintSummary, ...]
    projection: BurnupProjection
    total_done_stories: int = 0
    has_any_done: bool = False
    is_on_track: bool | None = None
    days_delta_from_target: int | None = None  # positive = finishes after target


@dataclass(frozen=True)
class BuildBurnupInput:
    """Everything needed to build a burn-up model."""

    stories: list[BurnupIssue] = field(default_factory=list)
    sprint_start_iso: str = ""  # only used when nothing is done yet
    dev_completion_iso: str = ""  # target date
    sprint_fte: float = 0.0
    today_iso: str | None = None
    sprint_length_days: int = 14


@dataclass(frozen=True)
class ScopeSliderConfig:
    """Bounds for overriding the future scope of a model."""

    enabled: bool
    baseline_scope: int
    min: int
    max: int
