"""
Typer CLI for cf-planner.

Commands:
    cfp db init                     - Initialize database tables
    cfp seed                        - Seed topics, roadmap and rated problems
    cfp sync HANDLE                 - Import judge history and recompute mastery
    cfp stats HANDLE                - Show current and peak mastery per topic
    cfp roadmap HANDLE              - Show the topic roadmap with mastery
    cfp recommend HANDLE TOPIC      - Recommend problems for a topic
    cfp daily HANDLE                - Show today's problem
    cfp submit HANDLE PROBLEM_ID    - Credit a manually reported solve
    cfp recent HANDLE               - List recent solves or attempts

Usage:
    cfp --help
    cfp sync tourist
    cfp recommend tourist graphs --inc 100 --limit 3
    cfp submit tourist 1520F2 --minutes 35
"""

from __future__ import annotations

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from cfplanner.core.exceptions import PlannerError
from cfplanner.core.models import (
    CatalogProblem,
    MasteryResult,
    ProblemSolveInput,
    ProblemStatus,
    TopicGraph,
)
from cfplanner.logging_setup import configure_logging
from cfplanner.mastery.history import parse_problem_id
from cfplanner.mastery.tags import display_name
from config import get_settings

app = typer.Typer(
    name="cfp",
    help="cf-planner: Codeforces topic mastery and problem recommendations",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Lazily builds the judge client and mastery service.

    Nothing touches the database or network until a command needs it.
    """

    def __init__(self):
        self.settings = get_settings()
        self._client = None
        self._service = None

    @property
    def client(self):
        if self._client is None:
            from cfplanner.sync.codeforces_client import CodeforcesClient

            self._client = CodeforcesClient()
        return self._client

    @property
    def service(self):
        if self._service is None:
            from cfplanner.mastery.service import MasteryService

            self._service = MasteryService.from_database(self.client, settings=self.settings)
        return self._service

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> CLIContext:
        return self

    def __exit__(self, *args) -> None:
        self.close()


def _fail(error: Exception) -> None:
    logger.error(str(error))
    rprint(f"[red]✗[/red] {error}")
    raise typer.Exit(code=1)


def _problem_url(problem_id: str) -> str:
    contest_id, index = parse_problem_id(problem_id)
    return f"https://codeforces.com/problemset/problem/{contest_id}/{index}"


def _problem_table(title: str, problems: list[CatalogProblem]) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("Problem", style="cyan")
    table.add_column("Name")
    table.add_column("Rating", justify="right")
    table.add_column("Topics", style="dim")
    table.add_column("Link", style="dim")
    for problem in problems:
        table.add_row(
            problem.problem_id,
            problem.name,
            str(problem.rating),
            ", ".join(display_name(t) for t in problem.tags),
            _problem_url(problem.problem_id),
        )
    return table


def _mastery_label(slug: str, result: MasteryResult) -> str:
    return f"[cyan]{display_name(slug)}[/cyan] {result.current:.0f} [dim](peak {result.peak:.0f})[/dim]"


def roadmap_tree(graph: TopicGraph, stats: dict[str, MasteryResult], title: str = "Roadmap") -> Tree:
    """
    Render the prerequisite graph as a tree rooted at topics with no parent.

    A topic with several parents appears under each of them.
    """
    children: dict[str, list[str]] = {}
    has_parent = set()
    for edge in graph.edges:
        children.setdefault(edge.parent, []).append(edge.child)
        has_parent.add(edge.child)

    def add(node: Tree, slug: str, path: frozenset[str]) -> None:
        branch = node.add(_mastery_label(slug, stats.get(slug, MasteryResult())))
        for child in sorted(children.get(slug, ())):
            if child not in path:
                add(branch, child, path | {child})

    tree = Tree(f"[bold]{title}[/bold]")
    for slug in sorted(s for s in graph.slugs if s not in has_parent):
        add(tree, slug, frozenset({slug}))
    return tree


# ========================================
# Database
# ========================================

db_app = typer.Typer(help="Database management (init)")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from cfplanner.db.database import init_db

    init_db()
    rprint("[green]✓[/green] Database initialized!")


@app.command("seed")
def seed() -> None:
    """Seed roadmap topics, prerequisite edges and the rated problemset."""
    from cfplanner.catalog.seed import seed_catalog
    from cfplanner.db.database import session_scope
    from cfplanner.db.repository import MasteryRepository

    try:
        with CLIContext() as ctx:
            problems = ctx.client.problemset_problems()
        with session_scope() as session:
            report = seed_catalog(MasteryRepository(session), problems)
    except PlannerError as e:
        _fail(e)

    table = Table(title="Seed Results", show_header=True)
    table.add_column("Entity", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Topics", str(report.topics))
    table.add_row("New edges", str(report.edges))
    table.add_row("Problems", str(report.problems))
    table.add_row("Skipped", str(report.skipped))
    console.print(table)


# ========================================
# Mastery
# ========================================


@app.command("sync")
def sync(handle: str = typer.Argument(..., help="Codeforces handle")) -> None:
    """Import the user's judge history and recompute mastery."""
    try:
        with CLIContext() as ctx:
            summary = ctx.service.sync(handle)
    except PlannerError as e:
        _fail(e)

    rprint(
        f"[green]✓[/green] Synced [bold]{handle}[/bold]: "
        f"{summary.new_solves} new solves, {summary.unsolved} unsolved, "
        f"{summary.bins_updated} bins updated"
    )


@app.command("stats")
def stats(
    handle: str = typer.Argument(..., help="Codeforces handle"),
    refresh: bool = typer.Option(True, "--refresh/--no-refresh", help="Re-anchor at today's bin"),
) -> None:
    """Show current and peak mastery per topic."""
    try:
        with CLIContext() as ctx:
            service = ctx.service
            results = service.refresh_and_get_all_stats(handle) if refresh else service.get_all_stats(handle)
    except PlannerError as e:
        _fail(e)

    table = Table(title=f"Mastery: {handle}", show_header=True)
    table.add_column("Topic", style="cyan")
    table.add_column("Current", justify="right")
    table.add_column("Peak", justify="right")
    table.add_column("Decay", justify="right", style="yellow")
    for topic, result in sorted(results.items(), key=lambda item: -item[1].current):
        table.add_row(
            display_name(topic),
            f"{result.current:.0f}",
            f"{result.peak:.0f}",
            f"{result.peak - result.current:.0f}",
        )
    console.print(table)


@app.command("submit")
def submit(
    handle: str = typer.Argument(..., help="Codeforces handle"),
    problem_id: str = typer.Argument(..., help="Problem id, e.g. 1520F2"),
    minutes: int = typer.Option(0, "--minutes", "-m", help="Minutes spent (0 = not reported)"),
) -> None:
    """Credit a solve you just finished."""
    try:
        with CLIContext() as ctx:
            ctx.service.update_submission(
                handle, ProblemSolveInput(problem_id=problem_id, time_spent_minutes=minutes)
            )
    except PlannerError as e:
        _fail(e)

    rprint(f"[green]✓[/green] Credited {problem_id} for [bold]{handle}[/bold]")


@app.command("roadmap")
def roadmap(handle: str = typer.Argument(..., help="Codeforces handle")) -> None:
    """Show the topic roadmap with current and peak mastery."""
    try:
        with CLIContext() as ctx:
            graph, results = ctx.service.roadmap(handle)
    except PlannerError as e:
        _fail(e)

    if not graph.topics:
        rprint("[yellow]No roadmap stored. Run 'cfp seed' first.[/yellow]")
        raise typer.Exit(code=1)
    console.print(roadmap_tree(graph, results, title=f"Roadmap: {handle}"))


# ========================================
# Recommendations
# ========================================


@app.command("recommend")
def recommend(
    handle: str = typer.Argument(..., help="Codeforces handle"),
    topic: str = typer.Argument(..., help="Topic slug, e.g. 'graphs'"),
    inc: int | None = typer.Option(None, "--inc", help="Rating increment over current mastery"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Number of problems"),
) -> None:
    """Recommend problems for a topic just above current mastery."""
    try:
        with CLIContext() as ctx:
            problems = ctx.service.recommend_problem(handle, topic, inc, limit)
    except PlannerError as e:
        _fail(e)

    if not problems:
        rprint(f"[yellow]No unsolved problems found for {topic}[/yellow]")
        raise typer.Exit(code=1)
    console.print(_problem_table(f"Recommended: {display_name(topic)}", problems))


@app.command("daily")
def daily(handle: str = typer.Argument(..., help="Codeforces handle")) -> None:
    """Show today's problem."""
    try:
        with CLIContext() as ctx:
            problem = ctx.service.recommend_daily_problem(handle)
    except PlannerError as e:
        _fail(e)

    console.print(_problem_table("Daily Problem", [problem]))


@app.command("recent")
def recent(
    handle: str = typer.Argument(..., help="Codeforces handle"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of problems"),
    status: ProblemStatus = typer.Option(ProblemStatus.SOLVED, "--status", help="solved or unsolved"),
) -> None:
    """List the most recent solves (or open attempts)."""
    try:
        with CLIContext() as ctx:
            records = ctx.service.recent_problems(handle, limit, status)
    except PlannerError as e:
        _fail(e)

    table = Table(title=f"Recent {status.value}: {handle}", show_header=True)
    table.add_column("Problem", style="cyan")
    table.add_column("Name")
    table.add_column("Rating", justify="right")
    table.add_column("Last attempt", style="dim")
    for record in records:
        table.add_row(
            record.problem_id,
            record.name,
            str(record.rating),
            record.last_attempted_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    configure_logging()
    app()


if __name__ == "__main__":
    main()
