"""
Cycle Planner Command Line Interface

Main entry point for the cycle-planner CLI.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console

from cycle_planner.config import ConfigLoader, get_config, get_github_config, get_summarizer_config, get_timeoff_config
from cycle_planner.exceptions import CredentialError, PlannerError, get_error_code
from cycle_planner.logging_config import get_logger, setup_logging
from cycle_planner.ui import ReportUI

console = Console()


def _exit_with(error: PlannerError):
    """Print a planner error with its remediation and exit with its code."""
    get_logger("cli").debug("Command failed: %s", error.message, exc_info=error)
    ui = ReportUI(console)
    ui.print_error(error.message)
    if error.details:
        console.print(f"[dim]{error.details}[/dim]")
    if error.remediation:
        console.print(f"[yellow]To fix:[/yellow] {error.remediation}")
    sys.exit(get_error_code(error))


def _build_summarizer(enabled: bool):
    if not enabled:
        return None
    conf = get_summarizer_config()
    if not conf["enabled"] or not conf["api_key"]:
        console.print("[dim]Summaries disabled (set ANTHROPIC_API_KEY to enable)[/dim]")
        return None
    from cycle_planner.clients.summarizer import AnthropicSummarizer
    return AnthropicSummarizer(conf["api_key"], model=conf["model"], max_tokens=conf["max_tokens"])


def _build_time_off(enabled: bool):
    if not enabled:
        return None
    conf = get_timeoff_config()
    if not conf["subdomain"] or not conf["api_key"]:
        return None
    from cycle_planner.clients.timeoff import TimeOffClient
    return TimeOffClient(conf["api_key"])


def _jira(config: ConfigLoader):
    from cycle_planner.clients.jira import JiraIssueClient
    return JiraIssueClient.from_config(config)


def _github():
    from cycle_planner.clients.github import GitHubClient
    conf = get_github_config()
    if not conf["token"]:
        raise CredentialError(
            "GITHUB_TOKEN is not set",
            credential_type="GitHub",
            remediation="Create a token with repo read access and add GITHUB_TOKEN to .env",
        )
    return GitHubClient(conf["token"], api_url=conf["api_url"])


@click.group()
@click.version_option(package_name="cycle-planner")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="Path to config.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """Cycle Planner: size product ideas against team capacity"""
    setup_logging(logging.DEBUG if verbose else None)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = get_config(Path(config_path) if config_path else None, force_reload=True)
    except PlannerError as e:
        _exit_with(e)


@main.command()
@click.argument("cycle")
@click.argument("team")
@click.option("--output-dir", type=click.Path(file_okay=False), help="Where to write the planning documents")
@click.option("--include-resolved", is_flag=True, help="Count resolved items too")
@click.option("--no-comments", is_flag=True, help="Skip scanning comments for discovery notes")
@click.option("--max-depth", type=int, help="How far below each linked item to walk")
@click.option("--summarize/--no-summarize", default=True, help="Summarize discovery notes with Claude")
@click.option("--time-off/--no-time-off", default=True, help="Reduce capacity by approved time off")
@click.pass_context
def plan(
    ctx: click.Context,
    cycle: str,
    team: str,
    output_dir: Optional[str],
    include_resolved: bool,
    no_comments: bool,
    max_depth: Optional[int],
    summarize: bool,
    time_off: bool,
):
    """Plan a cycle for one team.

    CYCLE is a cycle key such as q126c1 (2026, Q1, cycle 1) or q4c2.

    Examples:
        cycle-planner plan q126c1 payments
        cycle-planner plan q4c2 "Voice Team" --include-resolved
    """
    from cycle_planner.reports.cycle_planning import planning_options, run_cycle_planning

    config = ctx.obj["config"]
    ui = ReportUI(console)
    try:
        client = _jira(config)
        options = planning_options(
            config,
            exclude_resolved=False if include_resolved else None,
            include_comments=False if no_comments else None,
            max_depth=max_depth,
        )
        label = config.cycle_label(cycle)
        ui.print_header(f"Cycle Planning: {label}", team)
        report, written = ui.show_progress(
            f"Planning {label} for {team}...",
            lambda: run_cycle_planning(
                config,
                client,
                cycle,
                team,
                options=options,
                summarizer=_build_summarizer(summarize),
                time_off=_build_time_off(time_off),
                output_dir=Path(output_dir) if output_dir else None,
            ),
        )
    except PlannerError as e:
        _exit_with(e)

    ui.show_plan_results(report)
    if written:
        ui.print_success(f"Wrote {len(written)} file(s) to {written[0].parent}")
    sys.exit(0 if report.processed_count or not report.failed_count else 1)


@main.command()
@click.option("--period", "periods", multiple=True, help="Period label, e.g. \"26'Q1.C1\" (repeatable)")
@click.option("--idea", "ideas", multiple=True, help="Idea key, number or URL (repeatable)")
@click.option("--team", "teams", multiple=True, help="Only ideas led by this team (repeatable)")
@click.option("--summarize/--no-summarize", default=False, help="Summarize discovery notes with Claude")
@click.pass_context
def ideas(ctx: click.Context, periods: Tuple[str, ...], ideas: Tuple[str, ...], teams: Tuple[str, ...], summarize: bool):
    """Size ideas for one or more periods, or an explicit list of ideas."""
    from cycle_planner.reports.idea_analysis import run_idea_analysis

    if not periods and not ideas:
        raise click.UsageError("Give at least one --period or --idea")

    config = ctx.obj["config"]
    ui = ReportUI(console)
    try:
        client = _jira(config)
        ui.print_header("Idea Analysis", ", ".join(periods or ideas))
        report = ui.show_progress(
            "Analysing ideas...",
            lambda: run_idea_analysis(
                config,
                client,
                period_labels=periods,
                references=ideas,
                teams=teams,
                summarizer=_build_summarizer(summarize),
            ),
        )
    except PlannerError as e:
        _exit_with(e)

    ui.show_plan_results(report)
    ui.show_groups(report.groups)


@main.command()
@click.argument("keys", nargs=-1, required=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the markdown report to a file")
@click.pass_context
def complexity(ctx: click.Context, keys: Tuple[str, ...], output: Optional[str]):
    """Explain the technical complexity of issues and how they relate."""
    from cycle_planner.clients.jira import parse_issue_reference
    from cycle_planner.reports.technical_complexity import render_report, run_complexity_analysis

    config = ctx.obj["config"]
    try:
        client = _jira(config)
        prefix = config.settings.jira.default_prefix
        report = run_complexity_analysis(client, [parse_issue_reference(k, prefix) for k in keys])
    except PlannerError as e:
        _exit_with(e)

    markdown = render_report(report)
    if output:
        Path(output).write_text(markdown, encoding="utf-8")
        ReportUI(console).print_success(f"Saved to {output}")
    else:
        click.echo(markdown)


@main.command()
@click.option("--jql", required=True, help="Tickets to classify")
@click.option("--show-hits", is_flag=True, help="List every matching ticket")
@click.pass_context
def keywords(ctx: click.Context, jql: str, show_hits: bool):
    """Count tickets mentioning each configured keyword group."""
    from cycle_planner.reports.keyword_analysis import run_keyword_analysis

    config = ctx.obj["config"]
    ui = ReportUI(console)
    try:
        client = _jira(config)
        results = ui.show_progress(
            "Fetching tickets...",
            lambda: run_keyword_analysis(client, jql, config.settings.keywords),
        )
    except PlannerError as e:
        _exit_with(e)

    ui.show_keyword_groups(results, show_hits=show_hits)


@main.command()
@click.option("--project", required=True, help="Jira project key")
@click.option("--since", default="-90d", show_default=True, help="JQL date for the earliest resolution")
@click.option("--assignee", help="Only this assignee (display name)")
@click.pass_context
def velocity(ctx: click.Context, project: str, since: str, assignee: Optional[str]):
    """Average hours per story point from In Progress to resolution."""
    from cycle_planner.reports.velocity import average_hours_per_point, run_velocity_report

    config = ctx.obj["config"]
    ui = ReportUI(console)
    try:
        rows = ui.show_progress(
            f"Reading {project} history...",
            lambda: run_velocity_report(_jira(config), project, since),
        )
    except PlannerError as e:
        _exit_with(e)

    averages = average_hours_per_point(rows, assignee=assignee)
    if not averages:
        ui.print_warning("No resolved, estimated issues with a usable cycle time")
        return
    ui.show_velocity(averages)


@main.command()
@click.option("--jql", required=True, help="Tickets to export")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default="support_tickets.csv", show_default=True)
@click.pass_context
def tickets(ctx: click.Context, jql: str, output: str):
    """Export tickets to CSV."""
    from cycle_planner.reports.support_tickets import run_ticket_export

    config = ctx.obj["config"]
    try:
        path = run_ticket_export(_jira(config), jql, Path(output))
    except PlannerError as e:
        _exit_with(e)
    ReportUI(console).print_success(f"Saved to {path}")


@main.command("review-latency")
@click.option("--owner", help="Repository owner (default: github.owner)")
@click.option("--repo", help="Repository name (default: github.repo)")
@click.option("--year", type=int, required=True, help="Year the PRs were closed in")
def review_latency(owner: Optional[str], repo: Optional[str], year: int):
    """Average time from opening a PR to its first review."""
    from cycle_planner.reports.github_metrics import review_latency as measure

    conf = get_github_config()
    owner = owner or conf["owner"]
    repo = repo or conf["repo"]
    if not owner or not repo:
        raise click.UsageError("Give --owner and --repo or set github.owner/github.repo")

    ui = ReportUI(console)
    try:
        client = _github()
        report = ui.show_progress(f"Reading {owner}/{repo} pull requests...", lambda: measure(client, owner, repo, year))
    except PlannerError as e:
        _exit_with(e)
    ui.show_review_latency(report)


@main.command()
@click.option("--org", help="GitHub organisation (default: github.owner)")
@click.option("--days", type=int, default=7, show_default=True, help="Look-back window")
def throughput(org: Optional[str], days: int):
    """Merged pull requests per engineer across an organisation."""
    from cycle_planner.reports.github_metrics import throughput as measure

    org = org or get_github_config()["owner"]
    if not org:
        raise click.UsageError("Give --org or set github.owner")

    ui = ReportUI(console)
    try:
        client = _github()
        stats = ui.show_progress(f"Reading {org} repositories...", lambda: measure(client, org, days))
    except PlannerError as e:
        _exit_with(e)
    ui.show_throughput(stats)


@main.command("validate-config")
@click.pass_context
def validate_config(ctx: click.Context):
    """Check config.yaml and .env for problems."""
    config = ctx.obj["config"]
    ui = ReportUI(console)
    problems = config.validate()

    if not problems:
        settings = config.settings
        ui.show_summary_table("Configuration", {
            "config": str(config.config_path or "defaults"),
            "jira.url": settings.jira.url,
            "teams": ", ".join(settings.teams),
            "periods": ", ".join(settings.periods),
            "JIRA_API_TOKEN": config.get_secret("JIRA_API_TOKEN") or "",
        })
        ui.print_success("Configuration is valid")
        return

    for problem in problems:
        ui.print_warning(problem)
    sys.exit(1)


if __name__ == "__main__":
    main()
