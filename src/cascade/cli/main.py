"""Main CLI entry point for cascade."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import click

from cascade.agents.catalog import AgentDescriptor, default_catalog
from cascade.config.manager import ConfigManager
from cascade.errors import CascadeError
from cascade.factory import build_orchestrator, build_trust_engine
from cascade.orchestration.models import ExecutionPhase, OrchestratorTask
from cascade.orchestration.ordering import ExecutionOrderAnalyzer
from cascade.output.formatter import OutputFormatter
from cascade.selection.selector import AgentSelector
from cascade.trust.models import TrustLevel

LEVEL_CHOICES = (
    [level.name for level in TrustLevel]
    + [level.name.split("_", 1)[0] for level in TrustLevel]
    + [str(int(level)) for level in TrustLevel]
)


def _formatter(ctx: click.Context) -> OutputFormatter:
    return ctx.obj["formatter"]


def _manager(ctx: click.Context) -> ConfigManager:
    return ctx.obj["manager"]


def _fail(ctx: click.Context, message: str) -> None:
    _formatter(ctx).print_error(message)
    raise SystemExit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.option("--no-color", is_flag=True, help="Disable colors")
@click.option(
    "-C", "--project-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    help="Project directory (default: current directory)",
)
@click.version_option(package_name="cascade-orchestrator")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, no_color: bool, project_dir: Path) -> None:
    """Cascade - trust-gated multi-agent orchestration.

    \b
    Examples:
        cascade select "add JWT auth to the API"   # Which agents would run
        cascade plan "add JWT auth to the API"     # Order and parallel groups
        cascade run "fix typo in README"           # Run the full pipeline
        cascade trust show                         # Trust levels of all agents
    """
    ctx.ensure_object(dict)
    manager = ConfigManager(project_dir)
    try:
        verbose = verbose or manager.config.orchestrator.verbose
    except CascadeError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj["verbose"] = verbose
    ctx.obj["manager"] = manager
    ctx.obj["formatter"] = OutputFormatter(color=not no_color, verbose=verbose)


@cli.command("agents")
@click.pass_context
def agents_cmd(ctx: click.Context) -> None:
    """List the agent catalog."""
    _formatter(ctx).print_agent_list(default_catalog())


@cli.command()
@click.argument("task", nargs=-1, required=True)
@click.option("-n", "--max-agents", type=int, help="Cap on selected agents")
@click.option("-f", "--force-agent", "force_agents", multiple=True, help="Always include this agent")
@click.option("-s", "--skip-agent", "skip_agents", multiple=True, help="Never include this agent")
@click.pass_context
def select(
    ctx: click.Context,
    task: tuple[str, ...],
    max_agents: int | None,
    force_agents: tuple[str, ...],
    skip_agents: tuple[str, ...],
) -> None:
    """Show which agents a task would be routed to."""
    config = _manager(ctx).config
    selector = AgentSelector(default_catalog(), max_agents=config.orchestrator.max_agents_per_task)
    selection = selector.select_agents(
        " ".join(task),
        force_agents=force_agents,
        skip_agents=skip_agents,
        max_agents=max_agents,
    )
    formatter = _formatter(ctx)
    if not selection.selected_agents:
        formatter.print_warning("No agent matched this task")
        return
    formatter.print_selection(selection)


@cli.command()
@click.argument("task", nargs=-1, required=True)
@click.pass_context
def plan(ctx: click.Context, task: tuple[str, ...]) -> None:
    """Show execution order, parallel groups and trust levels for a task."""
    manager = _manager(ctx)
    catalog = default_catalog()
    text = " ".join(task)

    selector = AgentSelector(catalog, max_agents=manager.config.orchestrator.max_agents_per_task)
    selection = selector.select_agents(text)
    formatter = _formatter(ctx)
    if not selection.selected_agents:
        formatter.print_warning("No agent matched this task")
        return

    try:
        trust = build_trust_engine(manager, catalog)
        levels = {a.id: trust.calculate_trust_level(a.id) for a in selection.selected_agents}
    except CascadeError as e:
        _fail(ctx, str(e))

    groups = ExecutionOrderAnalyzer(selector.analyzer).get_parallel_groups(selection.selected_agents, text)
    formatter.print_selection(selection)
    formatter.print_plan(groups, levels)
    quarantined = [agent_id for agent_id, level in levels.items() if level == TrustLevel.L0_QUARANTINE]
    if quarantined:
        formatter.print_warning(f"Quarantined agents would block this task: {', '.join(quarantined)}")


@cli.command()
@click.argument("task", nargs=-1, required=True)
@click.option("-f", "--force-agent", "force_agents", multiple=True, help="Always include this agent")
@click.option("-s", "--skip-agent", "skip_agents", multiple=True, help="Never include this agent")
@click.option("--file", "files", multiple=True, help="File or directory in scope (snapshotted)")
@click.option("-y", "--yes", is_flag=True, help="Approve the plan without asking")
@click.option("--no-snapshot", is_flag=True, help="Do not snapshot files before executing")
@click.option("--strict", is_flag=True, help="Fail the task when a post-execution gate fails")
@click.option("--parallel", is_flag=True, help="Run independent agents concurrently")
@click.option("--json", "output_json", is_flag=True, help="JSON output")
@click.pass_context
def run(
    ctx: click.Context,
    task: tuple[str, ...],
    force_agents: tuple[str, ...],
    skip_agents: tuple[str, ...],
    files: tuple[str, ...],
    yes: bool,
    no_snapshot: bool,
    strict: bool,
    parallel: bool,
    output_json: bool,
) -> None:
    """Run a task through the full orchestration pipeline."""
    manager = _manager(ctx)
    formatter = _formatter(ctx)
    settings = manager.config.orchestrator
    if no_snapshot:
        settings.enable_snapshots = False
    if strict:
        settings.strict_quality_gates = True
    if parallel:
        settings.execution_mode = "parallel"

    async def approve(task: OrchestratorTask, agents: list[AgentDescriptor], details: dict[str, Any]) -> bool:
        if yes:
            return True
        formatter.print_info(f"Plan for task {task.task_id} ({details['complexity']}):")
        for agent_id in details["execution_order"]:
            formatter.print_info(f"  {agent_id}  [{details['trust_levels'][agent_id]}]")
        return await asyncio.to_thread(click.confirm, "Proceed?", default=False)

    async def on_phase(phase: ExecutionPhase, data: dict[str, Any]) -> None:
        if not output_json:
            formatter.print_phase(phase)

    try:
        orchestrator = build_orchestrator(manager, approval_callback=approve, phase_callback=on_phase)
    except CascadeError as e:
        _fail(ctx, str(e))

    orchestrator_task = OrchestratorTask(
        description=" ".join(task),
        force_agents=list(force_agents),
        skip_agents=list(skip_agents),
        affected_files=list(files),
    )
    result = asyncio.run(orchestrator.execute_task(orchestrator_task))

    if output_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        formatter.print_report(result)
    if not result.success:
        raise SystemExit(1)


# --- Trust subcommands ---


@cli.group()
@click.pass_context
def trust(ctx: click.Context) -> None:
    """Inspect and manage agent trust levels."""
    try:
        ctx.obj["trust"] = build_trust_engine(_manager(ctx))
    except CascadeError as e:
        _fail(ctx, str(e))


@trust.command("show")
@click.argument("agent_id", required=False)
@click.pass_context
def trust_show(ctx: click.Context, agent_id: str | None) -> None:
    """Show trust for one agent, or a summary of all tracked agents."""
    engine = ctx.obj["trust"]
    formatter = _formatter(ctx)
    try:
        if agent_id:
            formatter.print_agent_trust(
                agent_id,
                engine.calculate_trust_level(agent_id),
                engine.get_privileges(agent_id),
                engine.get_metrics(agent_id),
            )
            return

        metrics = engine.get_all_metrics()
        if not metrics:
            formatter.print_info("No trust history recorded yet")
            return
        levels = {aid: engine.calculate_trust_level(aid) for aid in metrics}
        formatter.print_trust_summary(engine.get_summary(), levels, metrics)
    except CascadeError as e:
        _fail(ctx, str(e))


@trust.command("set")
@click.argument("agent_id")
@click.argument("level", type=click.Choice(LEVEL_CHOICES, case_sensitive=False))
@click.option("-r", "--reason", required=True, help="Why the level is being pinned")
@click.pass_context
def trust_set(ctx: click.Context, agent_id: str, level: str, reason: str) -> None:
    """Pin an agent to a trust level until the override is cleared."""
    engine = ctx.obj["trust"]
    try:
        engine.set_trust_level(agent_id, TrustLevel.parse(level), reason)
    except CascadeError as e:
        _fail(ctx, str(e))
    _formatter(ctx).print_success(f"{agent_id} pinned to {TrustLevel.parse(level).name}")


@trust.command("unpin")
@click.argument("agent_id")
@click.pass_context
def trust_unpin(ctx: click.Context, agent_id: str) -> None:
    """Remove a manual trust override."""
    engine = ctx.obj["trust"]
    try:
        cleared = engine.clear_override(agent_id)
    except CascadeError as e:
        _fail(ctx, str(e))
    if not cleared:
        _fail(ctx, f"{agent_id} has no manual override")
    level = engine.calculate_trust_level(agent_id)
    _formatter(ctx).print_success(f"Override removed; {agent_id} is now {level.name}")


@trust.command("clear")
@click.argument("agent_id")
@click.option("-r", "--reason", required=True, help="Why the quarantine is being lifted")
@click.pass_context
def trust_clear(ctx: click.Context, agent_id: str, reason: str) -> None:
    """Lift an agent's quarantine."""
    engine = ctx.obj["trust"]
    try:
        cleared = engine.clear_quarantine(agent_id, reason)
    except CascadeError as e:
        _fail(ctx, str(e))
    if not cleared:
        _fail(ctx, f"{agent_id} is not quarantined")
    level = engine.calculate_trust_level(agent_id)
    _formatter(ctx).print_success(f"Quarantine lifted; {agent_id} is now {level.name}")


@trust.command("reset")
@click.argument("agent_id")
@click.pass_context
def trust_reset(ctx: click.Context, agent_id: str) -> None:
    """Forget all trust history for an agent."""
    engine = ctx.obj["trust"]
    try:
        removed = engine.reset_agent(agent_id)
    except CascadeError as e:
        _fail(ctx, str(e))
    if not removed:
        _formatter(ctx).print_warning(f"No trust history for {agent_id}")
        return
    _formatter(ctx).print_success(f"Trust history for {agent_id} reset")


if __name__ == "__main__":
    cli()
