"""
Cycle Planner Configuration Loader

Loads config.yaml and .env. Secrets come from the environment only; the YAML
file holds teams, planning periods and Jira field ids, validated with
pydantic models.

Usage:
    from cycle_planner.config import get_config

    config = get_config()
    team = config.team_profile("dsh")
    token = config.require_secret("JIRA_API_TOKEN", "Jira")
"""

import logging
import os
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from cycle_planner.core.capacity import CapacitySettings
from cycle_planner.exceptions import ConfigError, CredentialError, ValidationError
from cycle_planner.models import DateRange, TeamCapacityProfile

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CYCLE_PLANNER_CONFIG"
DEFAULT_CYCLE_LABEL = "{year}'Q{quarter}.C{cycle}"

CYCLE_KEY_PATTERN = re.compile(r"^q([1-4])(\d{2})?c(\d+)$", re.IGNORECASE)


class JiraFields(BaseModel):
    """Custom field ids of the Jira site."""

    story_points: str = "customfield_10124"
    lead_team: str = "customfield_10596"
    committed_in: str = "customfield_10620"
    roadmap_cycle: str = "customfield_10621"
    discovery_ballpark: str = "customfield_11155"
    container: str = Field(
        default="Epic Link",
        description="JQL name of the field pointing from a story to its epic",
    )


class JiraSettings(BaseModel):
    url: Optional[str] = None
    username: Optional[str] = None
    link_type: str = Field(
        default="Polaris work item link",
        description="Only links of this type connect ideas to delivery work",
    )
    idea_type: str = "Idea"
    default_prefix: str = "RD"
    page_size: int = Field(default=100, ge=1, le=1000)
    request_delay: float = Field(default=0.1, ge=0)
    fields: JiraFields = Field(default_factory=JiraFields)


class PlanningSettings(BaseModel):
    periods_per_cycle: int = Field(default=3, ge=1)
    sprint_length_weeks: int = Field(default=2, ge=1)
    default_velocity: float = Field(default=20.0, gt=0)
    velocity_window: int = Field(default=3, ge=1)
    max_depth: int = Field(default=3, ge=0)
    exclude_resolved: bool = True
    include_comments: bool = True
    default_year: Optional[str] = Field(
        default=None,
        description="Two-digit year used when a cycle key has none (defaults to the current year)",
    )
    cycle_label: str = DEFAULT_CYCLE_LABEL
    output_dir: str = "output/cycle-planning"

    def capacity_settings(self) -> CapacitySettings:
        return CapacitySettings(
            default_velocity=self.default_velocity,
            velocity_window=self.velocity_window,
            periods_per_cycle=self.periods_per_cycle,
        )


class TeamSettings(BaseModel):
    aliases: List[str] = Field(default_factory=list)
    project_key: Optional[str] = None
    headcount: Optional[int] = Field(default=None, ge=0)
    board_id: Optional[int] = None
    velocity_history: List[float] = Field(
        default_factory=list,
        description="Completed story points per sprint, oldest first; overrides the board history",
    )
    members: List[str] = Field(default_factory=list)


class PeriodSettings(BaseModel):
    start: date
    end: date

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> Any:
        """Accept DD-MM-YYYY as well as ISO dates."""
        if isinstance(v, str) and re.match(r"^\d{2}-\d{2}-\d{4}$", v.strip()):
            return datetime.strptime(v.strip(), "%d-%m-%Y").date()
        return v

    @model_validator(mode="after")
    def check_order(self) -> "PeriodSettings":
        if self.end < self.start:
            raise ValueError(f"period ends ({self.end}) before it starts ({self.start})")
        return self


class TimeOffSettings(BaseModel):
    subdomain: Optional[str] = None


class GitHubSettings(BaseModel):
    owner: Optional[str] = None
    repo: Optional[str] = None
    api_url: str = "https://api.github.com"


class SummarizerSettings(BaseModel):
    enabled: bool = True
    model: str = "claude-3-5-haiku-20241022"
    max_tokens: int = Field(default=1024, ge=1)


class PlannerConfig(BaseModel):
    """Validated contents of config.yaml."""

    jira: JiraSettings = Field(default_factory=JiraSettings)
    planning: PlanningSettings = Field(default_factory=PlanningSettings)
    teams: Dict[str, TeamSettings] = Field(default_factory=dict)
    periods: Dict[str, PeriodSettings] = Field(default_factory=dict)
    timeoff: TimeOffSettings = Field(default_factory=TimeOffSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    summarizer: SummarizerSettings = Field(default_factory=SummarizerSettings)
    keywords: Dict[str, List[str]] = Field(
        default_factory=lambda: {
            "voice": ["voice"],
            "analytics": ["analytics", "cip", "call-information-processing", "[AN]"],
        }
    )


class ConfigLoader:
    """
    Loads and serves the planner configuration.

    Attributes:
        config_path: Path of the YAML file in use, if any
        config: Raw configuration dictionary
    """

    def __init__(self, config_path: Optional[Path] = None, auto_load: bool = True):
        self.config_path = Path(config_path) if config_path else None
        self.config: Dict[str, Any] = {}
        self._settings: Optional[PlannerConfig] = None

        if auto_load:
            self._load()

    def _find_config_path(self) -> Optional[Path]:
        """
        Resolution order:
        1. CYCLE_PLANNER_CONFIG environment variable
        2. ./config.yaml
        3. ./config/config.yaml
        """
        env_path = os.getenv(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)

        for candidate in (Path.cwd() / "config.yaml", Path.cwd() / "config" / "config.yaml"):
            if candidate.exists():
                return candidate
        return None

    def _load(self) -> None:
        if self.config_path is None:
            self.config_path = self._find_config_path()

        env_candidates = [Path.cwd() / ".env"]
        if self.config_path is not None:
            env_candidates.insert(0, self.config_path.parent / ".env")
        for env_path in env_candidates:
            if env_path.exists():
                load_dotenv(env_path)
                logger.debug("Loaded .env from %s", env_path)
                break

        if self.config_path is None:
            logger.warning("No config.yaml found, using defaults")
            self.config = {}
            return

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                self.config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.config_path}", details=str(e))
        except OSError as e:
            raise ConfigError(
                f"Cannot read {self.config_path}",
                remediation=f"Create the file or point {CONFIG_ENV_VAR} at an existing one",
                details=str(e),
            )

        if not isinstance(self.config, dict):
            raise ConfigError(f"{self.config_path} must contain a mapping at the top level")
        logger.debug("Loaded config from %s", self.config_path)

    @property
    def settings(self) -> PlannerConfig:
        """The validated configuration, parsed on first access."""
        if self._settings is None:
            try:
                self._settings = PlannerConfig.model_validate(self.config)
            except PydanticValidationError as e:
                first = e.errors()[0]
                key = ".".join(str(part) for part in first.get("loc", ()))
                raise ConfigError(
                    f"Invalid configuration: {first.get('msg', 'validation failed')}",
                    config_key=key or None,
                    details=str(e),
                )
        return self._settings

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a raw configuration value using dot notation.

        Args:
            key: Dot-separated key path (e.g., "jira.url")
            default: Value to return if key not found
        """
        value: Any = self.config
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value

    def require(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise ConfigError(f"Required config missing: {key}", config_key=key)
        return value

    def get_secret(self, key: str) -> Optional[str]:
        """Get a secret from the environment (.env is loaded into it)."""
        return os.getenv(key)

    def require_secret(self, key: str, credential_type: Optional[str] = None) -> str:
        value = self.get_secret(key)
        if not value:
            raise CredentialError(
                f"{key} is not set",
                credential_type=credential_type,
                remediation=f"Add {key}=... to your .env file or export it in your shell",
            )
        return value

    def validate(self) -> List[str]:
        """Return a list of problems; empty when the configuration is usable."""
        problems = []
        try:
            settings = self.settings
        except ConfigError as e:
            return [e.message]

        if not (os.getenv("JIRA_URL") or os.getenv("JIRA_BASE_URL") or settings.jira.url):
            problems.append("Jira URL is not configured (jira.url or JIRA_URL)")
        if not settings.teams:
            problems.append("No teams configured")
        for name, team in settings.teams.items():
            if team.headcount is None:
                problems.append(f"Team {name} has no headcount; person-sprints will show n/a")
        return problems

    def resolve_team(self, name: Optional[str]) -> Optional[str]:
        """Canonical team name for a name, alias or project key (case-insensitive)."""
        if not name:
            return None
        wanted = name.strip().lower()
        for canonical, team in self.settings.teams.items():
            names = [canonical, *team.aliases]
            if team.project_key:
                names.append(team.project_key)
            if wanted in (n.lower() for n in names):
                return canonical
        return None

    def team_for_project(self, project_key: str) -> Optional[str]:
        for canonical, team in self.settings.teams.items():
            if team.project_key and team.project_key.upper() == project_key.upper():
                return canonical
        return None

    def team_profile(
        self,
        name: str,
        velocity_samples: Optional[Sequence[float]] = None,
    ) -> TeamCapacityProfile:
        """Build the capacity profile of a team.

        Unknown teams get an empty profile (default velocity, no headcount)
        instead of an error. Configured velocity history wins over samples
        passed in from the board.
        """
        canonical = self.resolve_team(name)
        if canonical is None:
            logger.warning("Team %s is not configured; using default velocity and no headcount", name)
            return TeamCapacityProfile(
                name=name,
                velocity_samples=tuple(velocity_samples or ()),
                periods=self.period_ranges(),
            )

        team = self.settings.teams[canonical]
        samples = team.velocity_history or list(velocity_samples or [])
        return TeamCapacityProfile(
            name=canonical,
            headcount=team.headcount,
            velocity_samples=tuple(float(s) for s in samples),
            roster=tuple(team.members),
            periods=self.period_ranges(),
            project_key=team.project_key,
            board_id=team.board_id,
        )

    def period_ranges(self) -> Dict[str, DateRange]:
        return {
            canonical_cycle_key(key, self.settings.planning.default_year): DateRange(p.start, p.end)
            for key, p in self.settings.periods.items()
        }

    def cycle_label(self, cycle_key: str) -> str:
        planning = self.settings.planning
        return format_cycle_label(cycle_key, planning.cycle_label, planning.default_year)

    def __repr__(self) -> str:
        return f"ConfigLoader(config_path={self.config_path})"


def parse_cycle_key(key: str, default_year: Optional[str] = None) -> Tuple[str, int, int]:
    """Split a cycle key such as ``q126c1`` or ``q4c2`` into (yy, quarter, cycle)."""
    match = CYCLE_KEY_PATTERN.match((key or "").strip())
    if not match:
        raise ValidationError(
            f"Invalid cycle: {key}",
            field="cycle",
            expected_format="q<quarter>[<yy>]c<cycle>, e.g. q126c1 or q4c2",
        )
    quarter, year, cycle = match.groups()
    if year is None:
        year = default_year or f"{date.today().year % 100:02d}"
    return year, int(quarter), int(cycle)


def canonical_cycle_key(key: str, default_year: Optional[str] = None) -> str:
    """Cycle key with the year spelled out: ``q4c2`` -> ``q425c2``."""
    year, quarter, cycle = parse_cycle_key(key, default_year)
    return f"q{quarter}{year}c{cycle}"


def format_cycle_label(
    key: str,
    template: str = DEFAULT_CYCLE_LABEL,
    default_year: Optional[str] = None,
) -> str:
    """Jira field value for a cycle key, e.g. ``q126c1`` -> ``26'Q1.C1``."""
    year, quarter, cycle = parse_cycle_key(key, default_year)
    return template.format(year=year, quarter=quarter, cycle=cycle)


# Singleton instance
_config: Optional[ConfigLoader] = None


def get_config(config_path: Optional[Path] = None, force_reload: bool = False) -> ConfigLoader:
    """
    Get the configuration loader singleton.

    Args:
        config_path: Override config path (optional)
        force_reload: Force reload configuration
    """
    global _config

    if _config is None or force_reload or config_path is not None:
        _config = ConfigLoader(config_path)

    return _config


def reset_config() -> None:
    """Reset the configuration singleton (for testing)."""
    global _config
    _config = None


def get_jira_config() -> dict:
    """
    Get Jira API configuration.

    Returns:
        Dict with 'url', 'username', 'api_token'.
    """
    config = get_config()
    jira = config.settings.jira
    return {
        "url": os.getenv("JIRA_URL") or os.getenv("JIRA_BASE_URL") or jira.url,
        "username": os.getenv("JIRA_EMAIL") or os.getenv("JIRA_USERNAME") or jira.username,
        "api_token": config.get_secret("JIRA_API_TOKEN"),
    }


def get_github_config() -> dict:
    """
    Get GitHub API configuration.

    Returns:
        Dict with 'token', 'owner', 'repo', 'api_url'.
    """
    config = get_config()
    github = config.settings.github
    return {
        "token": config.get_secret("GITHUB_TOKEN"),
        "owner": os.getenv("GITHUB_OWNER") or github.owner,
        "repo": os.getenv("GITHUB_REPO") or github.repo,
        "api_url": github.api_url,
    }


def get_timeoff_config() -> dict:
    """
    Get time-off (BambooHR) configuration.

    Returns:
        Dict with 'subdomain', 'api_key'.
    """
    config = get_config()
    return {
        "subdomain": os.getenv("BAMBOOHR_SUBDOMAIN") or config.settings.timeoff.subdomain,
        "api_key": config.get_secret("BAMBOOHR_API_KEY"),
    }


def get_summarizer_config() -> dict:
    """
    Get summarizer (Anthropic) configuration.

    Returns:
        Dict with 'api_key', 'model', 'max_tokens', 'enabled'.
    """
    config = get_config()
    summarizer = config.settings.summarizer
    return {
        "api_key": config.get_secret("ANTHROPIC_API_KEY"),
        "model": summarizer.model,
        "max_tokens": summarizer.max_tokens,
        "enabled": summarizer.enabled,
    }
