"""CLI entry point for shogun."""

import json
import sys
import time
from pathlib import Path

import click

from shogun.config import configure_logging, get_config
from shogun.core.schemas import QualityMetrics, ReportStatus, RunStatus, TaskStatus, TaskType
from shogun.errors import ShogunError


@click.group()
@click.option("--log-level", default=None, help="debug, info, warn or error (default: $LOG_LEVEL or info)")
def main(log_level):
    """shogun - Director / Captain / Player coordination"""
    configure_logging(log_level or get_config().log_level)


def _fail(message: str, code: int = 1):
    click.secho(message, fg="red", err=True)
    sys.exit(code)


# ── Director Commands ─────────────────────────────────────────────────────────


@main.group("director")
def director_group():
    """Submit commands and follow their progress."""
    pass


@director_group.command("run")
@click.argument("description")
@click.option(
    "--type", "task_type",
    type=click.Choice([t.value for t in TaskType]),
    default=None,
    help="Task type (default: feature)",
)
@click.option("--context", default=None, help="Additional context for the players")
@click.option("--wait/--no-wait", default=True, help="Wait for the captain to finish")
def director_run(description, task_type, context, wait):
    """Decompose DESCRIPTION into a command and hand it to the captain."""
    from shogun.director.director import Director

    config = get_config()
    director = Director(config)
    try:
        command = director.submit(description, TaskType(task_type) if task_type else None, context)
    except ShogunError as e:
        _fail(f"Error: {e}")

    body = command.command
    click.echo(f"Command created: {body.id}")
    for subtask in body.subtasks:
        click.echo(f"  {subtask.id} -> {subtask.assigned_to}: {subtask.description}")
    click.echo(f"  File: {config.display_path(config.command_file)}")

    if not wait:
        return

    click.echo("Waiting for the captain...")
    try:
        outcome = director.wait(body.id)
    except KeyboardInterrupt:
        director.stop()
        click.echo("Stopped waiting.")
        return

    click.echo(director.progress.status_summary(config.status_file))
    if outcome is RunStatus.FAILED:
        _fail(f"Command {body.id} finished with failed tasks.")
    click.secho(f"Command {body.id} completed.", fg="green")


@director_group.command("status")
def director_status():
    """Print the captain's current status."""
    from shogun.captain.dashboard import StatusBoard

    config = get_config()
    try:
        status = StatusBoard(config.status_file, config.dashboard_file).read()
    except ShogunError as e:
        _fail(f"Error: {e}")
    if status is None:
        click.echo("No status yet.")
        return

    click.echo(f"Command: {status.command_id or '-'} ({status.status.value})")
    click.echo(f"  Progress: {status.completed}/{status.total} completed, {status.failed} failed ({status.progress_percent}%)")
    for a in status.assignments:
        click.echo(f"  {a.player_id}: {a.task_id} [{a.status.value}] {a.description}")
    for b in status.blockers:
        click.secho(f"  BLOCKED {b.player_id} {b.task_id or ''}: {b.reason}", fg="yellow")


# ── Captain Command ───────────────────────────────────────────────────────────


@main.group("captain")
def captain_group():
    """Run the coordinator."""
    pass


@captain_group.command("run")
def captain_run():
    """Watch the command file and coordinate the players until interrupted."""
    from shogun.captain.coordinator import Captain

    config = get_config()
    click.echo(f"Captain watching {config.display_path(config.command_file)}")
    click.echo(f"  Players: {', '.join(config.players)}")
    try:
        Captain(config).serve()
    except ShogunError as e:
        _fail(f"Error: {e}")


# ── Player Commands ───────────────────────────────────────────────────────────


@main.group("player")
def player_group():
    """Read and update a player's task."""
    pass


def _player(player_id):
    from shogun.player import Player

    return Player(get_config(), player_id)


@player_group.command("show")
@click.argument("player_id")
def player_show(player_id):
    """Show the task assigned to PLAYER_ID with its guidance."""
    player = _player(player_id)
    try:
        click.echo(player.guidance())
    except FileNotFoundError:
        _fail(f"No task assigned to {player_id} ({player.task_file})")
    except ShogunError as e:
        _fail(f"Error: {e}")


@player_group.command("watch")
@click.argument("player_id")
def player_watch(player_id):
    """Print the task every time it is (re)assigned. Ctrl-C to stop."""
    from shogun.core.watcher import FileWatcher

    player = _player(player_id)
    player.task_file.parent.mkdir(parents=True, exist_ok=True)

    def _show(path):
        try:
            click.echo(player.guidance())
        except (FileNotFoundError, ShogunError) as e:
            click.secho(f"Could not read {path}: {e}", fg="yellow", err=True)

    if player.task_file.exists():
        _show(player.task_file)

    watcher = FileWatcher()
    watcher.watch(player.task_file, _show)
    click.echo(f"Watching {player.task_file}")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.unwatch_all()


@player_group.command("status")
@click.argument("player_id")
@click.argument("status", type=click.Choice([s.value for s in TaskStatus]))
def player_status(player_id, status):
    """Set the status of PLAYER_ID's task."""
    player = _player(player_id)
    try:
        task = player.update_status(TaskStatus(status))
    except FileNotFoundError:
        _fail(f"No task assigned to {player_id} ({player.task_file})")
    except ShogunError as e:
        _fail(f"Error: {e}")
    click.echo(f"{task.task.id}: {task.task.status.value}")


@player_group.command("report")
@click.argument("player_id")
@click.option(
    "--status",
    type=click.Choice([s.value for s in ReportStatus]),
    default=ReportStatus.COMPLETED.value,
    help="Outcome of the task",
)
@click.option("--coverage", type=float, default=None, help="Test coverage percentage")
@click.option("--lines", type=int, default=None, help="Lines of code changed")
@click.option("--lint/--no-lint", default=None, help="Lint passed")
@click.option("--typecheck/--no-typecheck", default=None, help="Type check passed")
@click.option("--tests/--no-tests", default=None, help="Tests passed")
@click.option("--blocker", multiple=True, help="Blocker description (repeatable)")
@click.option("--location", default=None, help="Where the deliverable was written")
def player_report(player_id, status, coverage, lines, lint, typecheck, tests, blocker, location):
    """Write a structured report for PLAYER_ID's task."""
    values = {
        "test_coverage": coverage,
        "lines_of_code": lines,
        "lint_passed": lint,
        "typecheck_passed": typecheck,
        "tests_passed": tests,
    }
    metrics = None
    if any(v is not None for v in values.values()):
        metrics = QualityMetrics(**{k: v for k, v in values.items() if v is not None})

    player = _player(player_id)
    try:
        path = player.write_report(ReportStatus(status), metrics, list(blocker), location)
    except FileNotFoundError:
        _fail(f"No task assigned to {player_id} ({player.task_file})")
    except ShogunError as e:
        _fail(f"Error: {e}")
    click.echo(f"Report written: {path}")


# ── Quality Gates ─────────────────────────────────────────────────────────────


@main.group("gates")
def gates_group():
    """Quality gates: coverage, PR size, security."""
    pass


COVERAGE_CANDIDATES = ["coverage/coverage-summary.json", "coverage.json"]


def _default_summary(root: Path) -> Path:
    for candidate in COVERAGE_CANDIDATES:
        if (root / candidate).exists():
            return root / candidate
    return root / COVERAGE_CANDIDATES[0]


@gates_group.command("coverage")
@click.argument("summary", required=False, type=click.Path())
@click.option("--threshold", type=float, default=None, help="Minimum percentage (default: 80)")
@click.option("--record", is_flag=True, help="Record the figures in the metrics store")
def gates_coverage(summary, threshold, record):
    """Fail when any coverage figure is below the threshold."""
    from shogun.gates.coverage import MINIMUM_COVERAGE, check_coverage, load_summary

    config = get_config()
    path = Path(summary) if summary else _default_summary(config.root)
    try:
        figures = load_summary(path)
    except ShogunError as e:
        click.echo("Run your test suite with coverage first.", err=True)
        _fail(f"Error: {e}")

    result = check_coverage(figures, threshold if threshold is not None else MINIMUM_COVERAGE)
    click.echo("Coverage Report")
    for name, value in figures.items():
        color = "green" if value >= result.threshold else "red"
        click.secho(f"  {name + ':':<12}{value:6.2f}%", fg=color)

    if record:
        from shogun.metrics.store import MetricsStore

        MetricsStore(config.metrics_file).record_coverage(
            figures.lines, figures.statements, figures.functions, figures.branches
        )

    if not result.passed:
        for failure in result.failures:
            click.secho(f"  {failure}", fg="red", err=True)
        _fail(f"Coverage is below {result.threshold:g}%")
    click.secho(f"All coverage figures meet {result.threshold:g}%", fg="green")


@gates_group.command("pr-size")
@click.argument("base", default="main")
@click.option("--record", is_flag=True, help="Record the size in the metrics store")
@click.option("--pr-number", type=int, default=None, help="PR number to record with the size")
def gates_pr_size(base, record, pr_number):
    """Compare HEAD with BASE and fail when the change is too large."""
    from shogun.gates.pr_size import BLOCK_THRESHOLD, SPLIT_SUGGESTIONS, WARNING_THRESHOLD, SizeVerdict, measure, verdict
    from shogun.integrations.git import GitError, get_current_branch

    config = get_config()
    try:
        size = measure(base, cwd=config.root)
        branch = get_current_branch(config.root)
    except GitError as e:
        _fail(f"Error: {e}")

    click.echo(f"PR Size: {branch or 'HEAD'} vs {base}")
    click.echo(f"  Additions:     +{size.additions}")
    click.echo(f"  Deletions:     -{size.deletions}")
    click.echo(f"  Total:         {size.total}")
    click.echo(f"  Files changed: {len(size.files)}")

    if record:
        from shogun.metrics.store import MetricsStore

        MetricsStore(config.metrics_file).record_pr_size(
            size.additions, size.deletions, len(size.files), pr_number=pr_number
        )

    result = verdict(size.total)
    if result is SizeVerdict.OK:
        click.secho(f"PR size is within {WARNING_THRESHOLD} lines", fg="green")
        return

    click.echo("Suggestions:")
    for suggestion in SPLIT_SUGGESTIONS:
        click.echo(f"  - {suggestion}")
    if result is SizeVerdict.BLOCK:
        _fail(f"PR is too large ({size.total} >= {BLOCK_THRESHOLD} lines). Split it.")
    click.secho(f"PR is getting large ({size.total} >= {WARNING_THRESHOLD} lines)", fg="yellow")


@gates_group.command("security")
@click.argument("paths", nargs=-1, type=click.Path())
def gates_security(paths):
    """Scan source files for hardcoded secrets and risky calls."""
    from shogun.gates.security import SUGGESTIONS, has_high_severity, scan_paths

    config = get_config()
    targets = list(paths) or [config.root / "src"]
    issues = scan_paths(targets)

    if not issues:
        click.secho("No security issues found", fg="green")
        return

    colors = {"high": "red", "medium": "yellow", "low": "white"}
    click.echo(f"Security Scan: {len(issues)} issue(s)")
    for issue in issues:
        click.secho(
            f"  [{issue.severity.upper()}] {issue.type}: {issue.message} ({issue.location})",
            fg=colors.get(issue.severity),
        )
    click.echo("Suggestions:")
    for suggestion in SUGGESTIONS:
        click.echo(f"  - {suggestion}")

    if has_high_severity(issues):
        _fail("High severity security issues found")


@gates_group.command("all")
def gates_all():
    """Run lint, type check, tests, coverage and security checks in order."""
    from shogun.gates.runner import critical_failure, default_checks, run_checks

    config = get_config()

    def _print(result):
        if result.passed:
            click.secho(f"  PASS {result.name} ({result.duration:.1f}s)", fg="green")
        elif result.critical:
            click.secho(f"  FAIL {result.name}: {result.error}", fg="red")
        else:
            click.secho(f"  WARN {result.name}: {result.error}", fg="yellow")

    click.echo("Running quality gates")
    checks = default_checks(config.lint_command, config.typecheck_command)
    results = run_checks(checks, cwd=config.root, on_result=_print)
    failure = critical_failure(results)
    if failure:
        _fail(f"Quality gate failed: {failure.name}")
    click.secho("All quality gates passed", fg="green")


# ── Metrics Commands ──────────────────────────────────────────────────────────


@main.group("metrics")
def metrics_group():
    """Metrics, anomalies and reports."""
    pass


def _metrics_store():
    from shogun.metrics.store import MetricsStore

    return MetricsStore(get_config().metrics_file)


@metrics_group.command("anomalies")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def metrics_anomalies(json_output):
    """Detect anomalies; exit 1 on any high severity."""
    from shogun.metrics.anomalies import AnomalyDetector, Severity, recommendations

    anomalies = AnomalyDetector(_metrics_store()).detect_all()
    high = any(a.severity is Severity.HIGH for a in anomalies)

    if json_output:
        click.echo(json.dumps([a.to_dict() for a in anomalies], indent=2))
    elif not anomalies:
        click.secho("No anomalies detected", fg="green")
    else:
        colors = {Severity.HIGH: "red", Severity.MEDIUM: "yellow", Severity.LOW: "cyan"}
        for anomaly in anomalies:
            click.secho(f"  [{anomaly.severity.value.upper()}] {anomaly.message}", fg=colors[anomaly.severity])
        click.echo("Recommendations:")
        for rec in recommendations(anomalies):
            click.echo(f"  - {rec}")

    if high:
        sys.exit(1)


@metrics_group.command("dashboard")
@click.option("--watch", "interval", type=float, default=None, help="Refresh every N seconds")
def metrics_dashboard(interval):
    """Print a metrics snapshot."""
    from shogun.metrics.report import render_snapshot
    from shogun.metrics.store import PlayerStateStore

    config = get_config()
    store = _metrics_store()
    states = PlayerStateStore(config.player_states_file, config.players)

    click.echo(render_snapshot(store, states.load()))
    if interval is None:
        return
    try:
        while True:
            time.sleep(interval)
            click.clear()
            click.echo(render_snapshot(store, states.load()))
    except KeyboardInterrupt:
        pass


@metrics_group.command("report")
@click.argument("period", type=click.Choice(["weekly", "monthly"]), default="weekly")
def metrics_report(period):
    """Write a weekly or monthly markdown report under reports/."""
    from shogun.metrics.report import ReportGenerator, ReportPeriod

    config = get_config()
    path = ReportGenerator(_metrics_store(), config.players).generate(
        ReportPeriod(period), config.generated_reports_dir
    )
    click.echo(f"Report generated: {path}")


# ── Dashboard Command ────────────────────────────────────────────────────────


@main.command("ui")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8787, type=int, help="Port to listen on")
@click.option("--open/--no-open", default=True, help="Open browser automatically")
def ui_command(host, port, open):
    """Launch the web dashboard."""
    import webbrowser

    from shogun.web.app import run_server

    url = f"http://{host}:{port}"
    click.echo(f"Starting dashboard at {url}")
    if open:
        webbrowser.open(url)
    run_server(host=host, port=port)


# ── MCP Server Command ───────────────────────────────────────────────────────


@main.group("mcp")
def mcp_group():
    """MCP server commands."""
    pass


@mcp_group.command("serve")
def mcp_serve():
    """Start the MCP server (stdio transport)."""
    from shogun.mcp.server import mcp
    from shogun.mcp import prompts  # noqa: F401 - registers prompts

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
