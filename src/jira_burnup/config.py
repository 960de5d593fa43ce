"""Configuration management for JIRA Burn-up."""

import tomllib
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import tomli_w

DEFAULT_SPRINT_LENGTH_DAYS = 14
DEFAULT_FTE = 1.0


@dataclass
class Config:
    """Configuration for JIRA connection and burn-up defaults."""

    jira_url: str
    jira_email: str
    jira_api_token: str
    sprint_length_days: int = DEFAULT_SPRINT_LENGTH_DAYS
    default_fte: float = DEFAULT_FTE
    story_jql: str | None = None

    def validate(self) -> list[str]:
        """Validate configuration values. Returns list of error messages."""
        errors: list[str] = []

        if not self.jira_url:
            errors.append("JIRA URL is required")
        else:
            parsed = urlparse(self.jira_url)
            if parsed.scheme not in ("http", "https"):
                errors.append("JIRA URL must start with http:// or https://")
            if not parsed.netloc:
                errors.append("JIRA URL must include a domain")

        if not self.jira_email:
            errors.append("JIRA email is required")
        elif "@" not in self.jira_email:
            errors.append("JIRA email must be a valid email address")

        if not self.jira_api_token:
            errors.append("JIRA API token is required")

        if not isinstance(self.sprint_length_days, int) or self.sprint_length_days < 1:
            errors.append("Sprint length must be a positive number of days")

        if not isinstance(self.default_fte, (int, float)) or self.default_fte < 0:
            errors.append("Default FTE must be zero or greater")

        return errors


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".jira-burnup"


def get_config_path() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def config_exists() -> bool:
    """Check if configuration file exists."""
    return get_config_path().exists()


def load_config() -> Config:
    """Load configuration from TOML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration not found at {config_path}. "
            "Create ~/.jira-burnup/config.toml to set up."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    jira_section = data.get("jira", {})
    burnup_section = data.get("burnup", {})

    config = Config(
        jira_url=jira_section.get("url", ""),
        jira_email=jira_section.get("email", ""),
        jira_api_token=jira_section.get("api_token", ""),
        sprint_length_days=burnup_section.get("sprint_length_days", DEFAULT_SPRINT_LENGTH_DAYS),
        default_fte=burnup_section.get("default_fte", DEFAULT_FTE),
        story_jql=burnup_section.get("story_jql"),
    )

    errors = config.validate()
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    return config


def save_config(config: Config) -> None:
    """Save configuration to TOML file."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    config_path = get_config_path()

    data: dict = {
        "jira": {
            "url": config.jira_url,
            "email": config.jira_email,
            "api_token": config.jira_api_token,
        },
        "burnup": {
            "sprint_length_days": config.sprint_length_days,
            "default_fte": config.default_fte,
        },
    }

    if config.story_jql:
        data["burnup"]["story_jql"] = config.story_jql

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
