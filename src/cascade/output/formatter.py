"""Output formatting using Rich for terminal output."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from cascade.agents.catalog import AgentCatalog
from cascade.orchestration.models import ExecutionPhase, TaskExecutionResult
from cascade.orchestration.ordering import ParallelGroup
from cascade.selection.selector import AgentSelectionResult
from cascade.trust.models import PrivilegeSet, TrustLevel, TrustMetrics, TrustSummary

CASCADE_THEME = Theme(
    {
        "success": "green",
        "error": "red bold",
        "warning": "yellow",
        "info": "blue",
        "phase": "magenta",
        "metadata": "dim",
        "level.0": "red bold",
        "level.1": "yellow",
        "level.2": "blue",
        "level.3": "green",
        "level.4": "green bold",
    }
)


def level_markup(level: TrustLevel) -> str:
    return f"[level.{int(level)}]{level.name}[/level.{int(level)}]"


class OutputFormatter:
    """Handles all terminal output for cascade."""

    def __init__(self, color: bool = True, verbose: bool = False, console: Console | None = None) -> None:
        self.console = console or Console(theme=CASCADE_THEME, no_color=not color)
        self.verbose = verbose

    def print_error(self, message: str) -> None:
        self.console.print(f"[error]Error: {message}[/error]")

    def print_success(self, message: str) -> None:
        self.console.print(f"[success]{message}[/success]")

    def print_info(self, message: str) -> None:
        self.console.print(f"[info]{message}[/info]")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[warning]{message}[/warning]")

    def print_phase(self, phase: ExecutionPhase) -> None:
        self.console.print(f"[phase]▶ {phase.value.upper()}[/phase]")

    def print_agent_list(self, catalog: AgentCatalog) -> None:
        table = Table(title="Agent Catalog")
        table.add_column("ID", style="cyan")
        table.add_column("Domain")
        table.add_column("Priority", justify="right")
        table.add_column("Triggers", style="metadata")

        for agent in catalog:
            table.add_row(
                agent.id,
                agent.domain.value,
                str(agent.static_priority),
                ", ".join(sorted(agent.trigger_keywords)),
            )
        self.console.print(table)

    def print_selection(self, selection: AgentSelectionResult) -> None:
        """Print selected agents with their scores."""
        table = Table(title=f"Selected Agents ({selection.complexity.value})")
        table.add_column("Agent", style="cyan")
        table.add_column("Domain")
        table.add_column("Score", justify="right")

        for agent in selection.selected_agents:
            table.add_row(agent.id, agent.domain.value, f"{selection.scores.get(agent.id, 0):g}")
        self.console.print(table)
        if self.verbose and selection.reasoning:
            self.console.print(f"[metadata]{selection.reasoning}[/metadata]")

    def print_plan(self, groups: list[ParallelGroup], levels: dict[str, TrustLevel]) -> None:
        """Print execution order as parallel groups."""
        table = Table(title="Execution Plan")
        table.add_column("Group", justify="right")
        table.add_column("Agents", style="cyan")
        table.add_column("Trust")
        table.add_column("Parallel", justify="center")

        for index, group in enumerate(groups, start=1):
            table.add_row(
                str(index),
                "\n".join(group.agent_ids),
                "\n".join(level_markup(levels[a]) for a in group.agent_ids if a in levels),
                "yes" if group.can_parallelize else "no",
            )
        self.console.print(table)

    def print_trust_summary(self, summary: TrustSummary, levels: dict[str, TrustLevel], metrics: dict[str, TrustMetrics]) -> None:
        table = Table(title="Agent Trust")
        table.add_column("Agent", style="cyan")
        table.add_column("Level")
        table.add_column("Runs", justify="right")
        table.add_column("Success", justify="right")
        table.add_column("Quality", justify="right")
        table.add_column("Streak", justify="right")

        for agent_id in sorted(metrics):
            m = metrics[agent_id]
            table.add_row(
                agent_id,
                level_markup(levels[agent_id]),
                str(m.total_executions),
                f"{m.success_rate:.0%}",
                f"{m.rolling_quality_score:.1f}",
                str(m.consecutive_failures),
            )
        self.console.print(table)

        counts = ", ".join(f"{level.name}={count}" for level, count in summary.by_level.items() if count)
        self.console.print(f"[metadata]{summary.total_agents} agents tracked ({counts or 'none'})[/metadata]")
        if summary.quarantined:
            self.print_warning(f"Quarantined: {', '.join(summary.quarantined)}")

    def print_agent_trust(self, agent_id: str, level: TrustLevel, privileges: PrivilegeSet, metrics: TrustMetrics | None) -> None:
        lines = [
            f"Level: {level_markup(level)}",
            f"Operations: {', '.join(sorted(privileges.allowed_operations))}",
            f"Max files/operation: {privileges.max_files_per_operation}",
            f"Max parallel agents: {privileges.max_parallel_agents}",
            f"Supervision: {privileges.supervision_mode.value}",
        ]
        if metrics is not None:
            lines += [
                f"Executions: {metrics.total_executions} "
                f"({metrics.successful_executions} ok, {metrics.failed_executions} failed)",
                f"Rolling quality: {metrics.rolling_quality_score:.1f}",
                f"Consecutive failures: {metrics.consecutive_failures}",
            ]
            if metrics.manual_override:
                lines.append(
                    f"Override: {metrics.manual_override.level.name} ({metrics.manual_override.reason})"
                )
        else:
            lines.append("[metadata]No execution history[/metadata]")
        self.console.print(Panel("\n".join(lines), title=agent_id, border_style="info"))

    def print_report(self, result: TaskExecutionResult) -> None:
        """Print the final task report."""
        style = "success" if result.success else "error"
        status = "succeeded" if result.success else "failed"
        self.console.print(Panel(
            f"[{style} bold]Task {result.task_id} {status}[/{style} bold]\n"
            f"Phase: {result.final_phase.value}  Duration: {result.total_duration_ms}ms  "
            f"Avg quality: {result.average_quality:.1f}",
            title="Cascade Report",
            border_style=style,
        ))

        if result.agent_results:
            table = Table()
            table.add_column("Agent", style="cyan")
            table.add_column("Trust")
            table.add_column("Result", justify="center")
            table.add_column("Quality", justify="right")
            table.add_column("Files", justify="right")
            for r in result.agent_results:
                table.add_row(
                    r.agent_id,
                    level_markup(r.trust_level),
                    "[success]ok[/success]" if r.success else "[error]failed[/error]",
                    f"{r.quality_score:.0f}",
                    str(len(r.modified_files)),
                )
            self.console.print(table)

        if result.rolled_back:
            self.print_warning(f"Rolled back to snapshot {result.snapshot_id}")
        for warning in result.warnings:
            self.print_warning(warning)
        for error in result.errors:
            self.print_error(error)
        if self.verbose and result.all_modified_files:
            self.console.print("[metadata]Modified: " + ", ".join(result.all_modified_files) + "[/metadata]")
