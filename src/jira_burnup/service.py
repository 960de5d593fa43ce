"""Fetching stories from JIRA and turning them into a burn-up model."""

import logging

from jira_burnup.burnup import build_burnup_model
from jira_burnup.config import config_exists, load_config
from jira_burnup.dates import today_ms
from jira_burnup.exceptions import (
    ConfigNotFoundError,
    InvalidConfigError,
    InvalidJqlError,
    JiraAuthError,
    JiraConnectionError,
    JiraRateLimitError,
    NoIssuesFoundError,
)
from jira_burnup.jira_client import (
    AuthenticationError,
    JiraClient,
    RateLimitError,
)
from jira_burnup.jira_client import (
    ConnectionError as JiraClientConnectionError,
)
from jira_burnup.models import BuildBurnupInput, BurnupModel
from jira_burnup.normalize import issue_from_jira

logger = logging.getLogger(__name__)


def default_story_jql(project_key: str) -> str:
    """JQL for every live story of a project, oldest first."""
    return (
        f"project = {project_key} AND type = Story "
        "AND status NOT IN (Withdrawn, CANCELLED) ORDER BY created ASC"
    )


def fetch_burnup(
    jql: str | None,
    *,
    sprint_start_iso: str,
    dev_completion_iso: str,
    sprint_fte: float | None = None,
    sprint_length_days: int | None = None,
    today_iso: str | None = None,
    now_ms: int | None = None,
) -> BurnupModel:
    """Fetch stories from JIRA and build their burn-up model.

    Args:
        jql: JQL query for the stories; falls back to ``story_jql`` from config
        sprint_start_iso: Cadence start used when nothing is done yet
        dev_completion_iso: Target completion date
        sprint_fte: Current FTE; falls back to ``default_fte`` from config
        sprint_length_days: Sprint length; falls back to config
        today_iso: Optional pinned reference date
        now_ms: Current time; read from the clock when omitted

    Returns:
        BurnupModel for the matching stories

    Raises:
        ConfigNotFoundError: If config file not found
        InvalidConfigError: If config is invalid
        InvalidJqlError: If no JQL is available or JIRA rejects it
        JiraAuthError: If JIRA authentication fails
        JiraRateLimitError: If rate limited
        JiraConnectionError: If cannot connect
        NoIssuesFoundError: If no stories match query
    """
    if not config_exists():
        raise ConfigNotFoundError(
            "Configuration not found. Create ~/.jira-burnup/config.toml to set up."
        )

    try:
        config = load_config()
    except ValueError as e:
        raise InvalidConfigError(f"Invalid configuration: {e}")

    query = jql or config.story_jql
    if not query:
        raise InvalidJqlError(
            "No JQL query given. Pass one or set story_jql in the [burnup] section "
            "of ~/.jira-burnup/config.toml."
        )

    client = JiraClient(config)

    try:
        raw_stories = client.search_stories(query)
    except AuthenticationError:
        raise JiraAuthError(
            "JIRA authentication failed. Check your credentials in "
            "~/.jira-burnup/config.toml."
        )
    except RateLimitError:
        raise JiraRateLimitError(
            "JIRA rate limit exceeded. Please wait a moment and try again."
        )
    except JiraClientConnectionError as e:
        raise JiraConnectionError(str(e))
    except ValueError as e:
        raise InvalidJqlError(f"Invalid JQL query: {e}. Check your query syntax.")

    if not raw_stories:
        raise NoIssuesFoundError("No stories found matching your query.")

    stories = [issue_from_jira(raw) for raw in raw_stories]
    logger.debug("Building burn-up from %d stories for %r", len(stories), query)

    data = BuildBurnupInput(
        stories=stories,
        sprint_start_iso=sprint_start_iso,
        dev_completion_iso=dev_completion_iso,
        sprint_fte=config.default_fte if sprint_fte is None else sprint_fte,
        today_iso=today_iso,
        sprint_length_days=sprint_length_days or config.sprint_length_days,
    )
    return build_burnup_model(data, now_ms=now_ms if now_ms is not None else today_ms())
