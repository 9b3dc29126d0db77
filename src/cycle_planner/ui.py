"""
Cycle Planner UI Components

Rich console output for the report commands, plus secret masking shared with
the log formatter.
"""

import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table


# Patterns that indicate a secret value
SECRET_PATTERNS = [
    "token", "password", "secret", "key", "credential",
    "api_key", "apikey", "auth", "bearer",
]

# Regex patterns for common secret formats
SECRET_REGEXES = [
    r'sk-ant-[a-zA-Z0-9\-]{20,}',  # Anthropic API keys
    r'ghp_[a-zA-Z0-9]{36,}',  # GitHub PAT
    r'gho_[a-zA-Z0-9]{36,}',  # GitHub OAuth
    r'github_pat_[a-zA-Z0-9_]{22,}',  # GitHub fine-grained PAT
    r'ATATT[a-zA-Z0-9_\-=]{20,}',  # Atlassian API tokens
]


def mask_secrets(text: str, mask: str = "********") -> str:
    """Mask secrets in a string.

    Args:
        text: The text that may contain secrets
        mask: The string to replace secrets with

    Returns:
        Text with secrets masked
    """
    if not text:
        return text

    result = text

    for pattern in SECRET_PATTERNS:
        # pattern="value" or pattern: value
        regex = rf'({pattern}["\']?\s*[=:]\s*["\']?)([^"\'\s]+)(["\']?)'
        result = re.sub(regex, rf'\1{mask}\3', result, flags=re.IGNORECASE)

    for regex in SECRET_REGEXES:
        result = re.sub(regex, mask, result)

    return result


def is_secret_key(key: str) -> bool:
    """Check if a key name indicates it holds a secret value."""
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SECRET_PATTERNS)


def _na(value: Optional[float], fmt: str = "{:.1f}") -> str:
    return "[dim]n/a[/dim]" if value is None else fmt.format(value)


class ReportUI:
    """Console output for planning and metrics reports."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_header(self, title: str, subtitle: str = ""):
        body = f"[bold blue]{title}[/bold blue]"
        if subtitle:
            body += f"\n[dim]{subtitle}[/dim]"
        self.console.print()
        self.console.print(Panel(body, border_style="blue", padding=(0, 2)))
        self.console.print()

    def print_success(self, message: str):
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str):
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str):
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str):
        self.console.print(f"[blue]ℹ[/blue] {message}")

    def show_progress(self, description: str, task_func: Callable[[], Any]) -> Any:
        """Show a spinner while executing a task."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=self.console
        ) as progress:
            progress.add_task(description, total=None)
            return task_func()

    def show_plan_results(self, report, title: str = "Planning Results"):
        """Per-root effort and capacity, then failures and counts."""
        table = Table(title=title, border_style="blue")
        table.add_column("Key", style="cyan")
        table.add_column("Title")
        table.add_column("Team")
        table.add_column("SP", justify="right")
        table.add_column("Items", justify="right")
        table.add_column("Sprints", justify="right")
        table.add_column("Person-sprints", justify="right")
        table.add_column("Buffer", justify="right")

        for result in report.results:
            capacity = result.capacity
            table.add_row(
                result.root.key,
                result.root.title[:50],
                result.team,
                f"{result.total_effort:g}",
                str(result.item_count),
                f"{capacity.periods_needed:.2f}",
                _na(capacity.person_periods),
                _na(capacity.buffer_percent, "{:.1f}%"),
            )
        self.console.print(table)
        self.show_outcome(report)

    def show_groups(self, groups: Sequence[Any]):
        """Totals per (team, period)."""
        if not groups:
            return
        table = Table(title="Totals by Team and Period", border_style="blue")
        table.add_column("Team", style="cyan")
        table.add_column("Period")
        table.add_column("Ideas", justify="right")
        table.add_column("SP", justify="right")
        table.add_column("Sprints", justify="right")
        table.add_column("Person-sprints", justify="right")
        for group in groups:
            table.add_row(
                group.team,
                group.period,
                str(group.root_count),
                f"{group.total_effort:g}",
                f"{group.capacity.periods_needed:.2f}",
                _na(group.capacity.person_periods),
            )
        self.console.print(table)

    def show_outcome(self, report):
        for failure in report.failures:
            self.print_error(f"{failure.key}: {failure.error}")
        self.console.print(
            f"\n[bold]Processed:[/bold] {report.processed_count}  "
            f"[bold]Failed:[/bold] {report.failed_count}"
        )

    def show_keyword_groups(self, results: Sequence[Any], show_hits: bool = False):
        table = Table(title="Keyword Analysis", border_style="blue")
        table.add_column("Group", style="cyan")
        table.add_column("Keywords")
        table.add_column("Tickets", justify="right")
        table.add_column("Share", justify="right")
        for result in results:
            table.add_row(
                result.name,
                ", ".join(result.keywords),
                f"{result.count}/{result.total}",
                f"{result.percentage:.1f}%",
            )
        self.console.print(table)

        if show_hits:
            for result in results:
                if not result.hits:
                    continue
                self.console.print(f"\n[bold]{result.name}[/bold]")
                for hit in result.hits:
                    self.console.print(
                        f"  [cyan]{hit.ticket.key}[/cyan] '{hit.keyword}' in {hit.source}: [dim]{hit.context}[/dim]"
                    )

    def show_velocity(self, averages: Sequence[Any]):
        table = Table(title="Hours per Story Point", border_style="blue")
        table.add_column("Story Points", justify="right", style="cyan")
        table.add_column("Issues", justify="right")
        table.add_column("Avg Hours", justify="right")
        table.add_column("Hours/SP", justify="right")
        for row in averages:
            table.add_row(
                f"{row.story_points:g}",
                str(row.count),
                f"{row.average_hours:.1f}",
                f"{row.average_hours / row.story_points:.1f}",
            )
        self.console.print(table)

    def show_review_latency(self, report):
        if report.average_hours is None:
            self.print_warning("No reviewed pull requests in range")
        else:
            self.print_info(
                f"Average time to first review: {report.average_hours:.2f}h "
                f"over {len(report.entries)} PR(s)"
            )
        self.console.print(
            f"[dim]{report.outliers} slower than the cut-off, {report.unreviewed} without a review[/dim]"
        )

    def show_throughput(self, stats: Sequence[Any]):
        table = Table(title="Merged Pull Requests", border_style="blue")
        table.add_column("Engineer", style="cyan")
        table.add_column("Merged", justify="right")
        table.add_column("Per Day", justify="right")
        for entry in stats:
            table.add_row(entry.engineer, str(entry.total), f"{entry.per_day:.2f}")
        self.console.print(table)

    def show_summary_table(self, title: str, data: Dict[str, str]):
        """Show a key/value table with secrets masked."""
        table = Table(title=title, border_style="blue")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")

        for key, value in data.items():
            if is_secret_key(key):
                display_value = "********" if value else "[dim]not set[/dim]"
            else:
                display_value = mask_secrets(str(value)) if value else "[dim]not set[/dim]"
            table.add_row(key, display_value)

        self.console.print(table)

    def show_checklist(self, items: List[tuple]):
        """Show (name, passed, message) rows."""
        for name, passed, message in items:
            if passed:
                self.print_success(f"{name}: {message}")
            else:
                self.print_error(f"{name}: {message}")
