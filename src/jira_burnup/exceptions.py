"""Errors raised while loading settings, querying JIRA and building burn-ups."""


class BurnupError(Exception):
    """Base class; the web layer maps anything unexpected to a 500."""

    pass


class ConfigNotFoundError(BurnupError):
    """~/.jira-burnup/config.toml does not exist."""

    pass


class InvalidConfigError(BurnupError):
    """The config file failed validation (credentials or [burnup] defaults)."""

    pass


class JiraAuthError(BurnupError):
    """JIRA rejected the configured email and API token."""

    pass


class JiraConnectionError(BurnupError):
    """The JIRA server could not be reached."""

    pass


class JiraRateLimitError(BurnupError):
    """JIRA kept answering 429 after the client's retries ran out."""

    pass


class InvalidJqlError(BurnupError):
    """No story query was available, or JIRA refused the one given."""

    pass


class NoIssuesFoundError(BurnupError):
    """The story query matched nothing, so there is no burn-up to draw."""

    pass


class InvalidInputError(BurnupError):
    """Burn-up input has the wrong shape: stories, sprint length or reference date."""

    pass
