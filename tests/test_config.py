"""Tests for configuration loading."""

import os
from datetime import date

import pytest

from cycle_planner.config import (
    ConfigLoader,
    canonical_cycle_key,
    format_cycle_label,
    get_config,
    get_jira_config,
    parse_cycle_key,
)
from cycle_planner.exceptions import ConfigError, CredentialError, ValidationError
from cycle_planner.models import DateRange

CONFIG_YAML = """
jira:
  url: https://example.atlassian.net
  username: pm@example.com
planning:
  default_year: "26"
teams:
  payments:
    aliases: [Payments Team]
    project_key: PAY
    headcount: 6
    velocity_history: [50, 60, 70]
    members: [Alice]
periods:
  q126c1:
    start: 05-01-2026
    end: 2026-02-13
"""


@pytest.fixture
def config_file(tmp_path):
    (tmp_path / "conf").mkdir()
    path = tmp_path / "conf" / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


class TestConfigLoader:
    """Test ConfigLoader."""

    def test_loads_and_validates(self, config_file):
        """Test settings are parsed into models."""
        config = ConfigLoader(config_file)
        assert config.settings.jira.url == "https://example.atlassian.net"
        assert config.settings.teams["payments"].headcount == 6
        assert config.get("teams.payments.project_key") == "PAY"
        assert config.get("teams.missing.headcount", 3) == 3

    def test_defaults_without_file(self):
        """Test a missing config falls back to defaults."""
        config = ConfigLoader()
        assert config.config_path is None
        assert config.settings.planning.default_velocity == 20
        assert config.settings.jira.link_type == "Polaris work item link"

    def test_env_var_path(self, config_file, monkeypatch):
        """Test CYCLE_PLANNER_CONFIG points at the file."""
        monkeypatch.setenv("CYCLE_PLANNER_CONFIG", str(config_file))
        assert ConfigLoader().config_path == config_file

    def test_invalid_yaml(self, tmp_path):
        """Test broken YAML raises ConfigError."""
        path = tmp_path / "config.yaml"
        path.write_text("teams: [unclosed")
        with pytest.raises(ConfigError):
            ConfigLoader(path)

    def test_invalid_values(self, tmp_path):
        """Test schema violations name the offending key."""
        path = tmp_path / "config.yaml"
        path.write_text("teams:\n  payments:\n    headcount: -1\n")
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader(path).settings
        assert exc_info.value.config_key == "teams.payments.headcount"

    def test_period_order_checked(self, tmp_path):
        """Test a period ending before it starts is rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("periods:\n  q126c1:\n    start: 2026-02-01\n    end: 2026-01-01\n")
        with pytest.raises(ConfigError):
            ConfigLoader(path).settings

    def test_require_secret(self, monkeypatch):
        """Test missing secrets raise CredentialError."""
        config = ConfigLoader()
        with pytest.raises(CredentialError):
            config.require_secret("JIRA_API_TOKEN", "Jira")
        monkeypatch.setenv("JIRA_API_TOKEN", "abc")
        assert config.require_secret("JIRA_API_TOKEN") == "abc"

    def test_dotenv_loaded(self, config_file):
        """Test a .env beside config.yaml is loaded."""
        (config_file.parent / ".env").write_text("CYCLE_PLANNER_DOTENV_CHECK=from-dotenv\n")
        try:
            config = ConfigLoader(config_file)
            assert config.get_secret("CYCLE_PLANNER_DOTENV_CHECK") == "from-dotenv"
        finally:
            os.environ.pop("CYCLE_PLANNER_DOTENV_CHECK", None)


class TestTeams:
    """Test team resolution and profiles."""

    def test_resolve_team(self, config_file):
        """Test names, aliases and project keys resolve case-insensitively."""
        config = ConfigLoader(config_file)
        assert config.resolve_team("Payments Team") == "payments"
        assert config.resolve_team("pay") == "payments"
        assert config.resolve_team("unknown") is None
        assert config.resolve_team(None) is None

    def test_team_profile(self, config_file):
        """Test the profile carries headcount, history, roster and periods."""
        profile = ConfigLoader(config_file).team_profile("payments")
        assert profile.headcount == 6
        assert profile.velocity_samples == (50.0, 60.0, 70.0)
        assert profile.roster == ("Alice",)
        assert profile.period_range("q126c1") == DateRange(date(2026, 1, 5), date(2026, 2, 13))

    def test_unknown_team_profile(self, config_file):
        """Test unknown teams get defaults instead of an error."""
        profile = ConfigLoader(config_file).team_profile("growth", velocity_samples=[10])
        assert profile.name == "growth"
        assert profile.headcount is None
        assert profile.velocity_samples == (10,)

    def test_validate(self, config_file, tmp_path):
        """Test validate reports problems and passes a complete config."""
        assert ConfigLoader(config_file).validate() == []
        problems = ConfigLoader().validate()
        assert any("Jira URL" in p for p in problems)
        assert any("No teams" in p for p in problems)


class TestCycleKeys:
    """Test cycle key parsing and labels."""

    def test_parse(self):
        """Test keys with and without a year."""
        assert parse_cycle_key("q126c1") == ("26", 1, 1)
        assert parse_cycle_key("Q4C2", default_year="25") == ("25", 4, 2)

    def test_invalid(self):
        """Test malformed keys raise ValidationError."""
        with pytest.raises(ValidationError):
            parse_cycle_key("cycle-1")

    def test_label_and_canonical_key(self):
        """Test labels use the Jira period format."""
        assert format_cycle_label("q126c1") == "26'Q1.C1"
        assert format_cycle_label("q4c2", default_year="25") == "25'Q4.C2"
        assert canonical_cycle_key("q4c2", "25") == "q425c2"


class TestGetters:
    """Test the singleton and environment overrides."""

    def test_jira_env_overrides(self, config_file, monkeypatch):
        """Test JIRA_* variables win over config.yaml."""
        get_config(config_file)
        monkeypatch.setenv("JIRA_URL", "https://override.atlassian.net")
        monkeypatch.setenv("JIRA_API_TOKEN", "secret")
        conf = get_jira_config()
        assert conf["url"] == "https://override.atlassian.net"
        assert conf["username"] == "pm@example.com"
        assert conf["api_token"] == "secret"
