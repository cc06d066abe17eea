"""
Topic Trainer CLI.

A Rich terminal interface over the trainer core.

Commands:
- trainer categories       - Show the category tree
- trainer add-category     - Create a category
- trainer rename-category  - Rename a category
- trainer move-category    - Reparent a category
- trainer remove-category  - Delete a category (cascade needs confirmation)
- trainer add-question     - Create a question
- trainer questions        - List questions
- trainer session          - Preview a review session
- trainer review           - Answer questions and reschedule them
- trainer stats            - Show learning statistics
- trainer chat             - Ask the AI assistant to edit the question bank
"""
from __future__ import annotations

import asyncio
import sys
import time
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm, FloatPrompt, Prompt
from rich.table import Table
from rich.tree import Tree

from topic_trainer.app import TrainerApp, open_app
from topic_trainer.config import get_settings
from topic_trainer.core.errors import CategoryNotEmptyError, TrainerError
from topic_trainer.core.models import CategoryNode
from topic_trainer.integrations.agent import TutorAgent
from topic_trainer.integrations.openrouter_client import OpenRouterClient
from topic_trainer.integrations.tools import ToolRegistry

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="trainer",
    help="Topic Trainer: spaced-repetition review of your own questions",
    no_args_is_help=True,
)
console = Console()


def _run(coro) -> None:
    """Run a command coroutine, turning trainer errors into a clean exit."""
    try:
        asyncio.run(coro)
    except TrainerError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e


def _score_style(score: float) -> str:
    if score >= 7:
        return "bold green"
    if score >= 5:
        return "bold yellow"
    return "bold red"


# =============================================================================
# Categories
# =============================================================================


def _add_branch(tree: Tree, node: CategoryNode, trainer: TrainerApp) -> None:
    count = len(trainer.graph.questions_in(node.id))
    branch = tree.add(f"[bold]{node.name}[/bold] [dim]({count}) {node.id}[/dim]")
    for child in node.children:
        _add_branch(branch, child, trainer)


@app.command()
def categories() -> None:
    """Show the category tree with question counts."""

    async def _show() -> None:
        async with open_app() as trainer:
            roots = trainer.graph.category_tree()
            if not roots:
                console.print("[dim]No categories yet. Create one with add-category.[/dim]")
                return
            tree = Tree("[bold cyan]Categories[/bold cyan]")
            for root in roots:
                _add_branch(tree, root, trainer)
            console.print(tree)

    _run(_show())


@app.command("add-category")
def add_category(
    name: str = typer.Argument(..., help="Category name"),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="Parent category ID"),
) -> None:
    """Create a category."""

    async def _add() -> None:
        async with open_app() as trainer:
            category = await trainer.graph.add_category(name, parent)
            console.print(f"[green]Created category[/green] {category.name} [dim]{category.id}[/dim]")

    _run(_add())


@app.command("rename-category")
def rename_category(
    category_id: str = typer.Argument(..., help="Category ID"),
    name: str = typer.Argument(..., help="New name"),
) -> None:
    """Rename a category."""

    async def _rename() -> None:
        async with open_app() as trainer:
            category = await trainer.graph.rename_category(category_id, name)
            console.print(f"[green]Renamed to[/green] {category.name}")

    _run(_rename())


@app.command("move-category")
def move_category(
    category_id: str = typer.Argument(..., help="Category ID"),
    parent: Optional[str] = typer.Option(
        None, "--parent", "-p", help="New parent ID (omit to move to the top level)"
    ),
) -> None:
    """Move a category under another one."""

    async def _move() -> None:
        async with open_app() as trainer:
            await trainer.graph.move_category(category_id, parent)
            console.print(f"[green]Moved[/green] {trainer.graph.path_of(category_id)}")

    _run(_move())


@app.command("remove-category")
def remove_category(
    category_id: str = typer.Argument(..., help="Category ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Delete subcategories and questions too"),
) -> None:
    """Delete a category; a non-empty one needs confirmation."""

    async def _remove() -> None:
        async with open_app() as trainer:
            try:
                removal = await trainer.graph.remove_category(category_id, cascade=yes)
            except CategoryNotEmptyError as e:
                msg = (
                    f"Delete {trainer.graph.path_of(category_id)} with "
                    f"{e.descendant_count} subcategories and {e.question_count} questions?"
                )
                if not Confirm.ask(msg, default=False):
                    console.print("[dim]Nothing deleted.[/dim]")
                    return
                removal = await trainer.graph.remove_category(category_id, cascade=True)
            console.print(
                f"[green]Deleted {len(removal.category_ids)} categories and "
                f"{len(removal.question_ids)} questions[/green]"
            )

    _run(_remove())


# =============================================================================
# Questions
# =============================================================================


@app.command("add-question")
def add_question(
    category: str = typer.Option(..., "--category", "-c", help="Category ID"),
    text: str = typer.Option(..., "--text", "-t", help="Question text (Markdown)"),
    answer: str = typer.Option(..., "--answer", "-a", help="Correct answer (Markdown)"),
    difficulty: int = typer.Option(3, "--difficulty", "-d", help="Difficulty 1-5"),
    tags: Optional[list[str]] = typer.Option(None, "--tag", help="Tag (repeatable)"),
) -> None:
    """Create a question."""

    async def _add() -> None:
        async with open_app() as trainer:
            question = await trainer.graph.add_question(
                text=text,
                correct_answer=answer,
                category_id=category,
                difficulty=difficulty,
                tags=tags or [],
            )
            console.print(f"[green]Created question[/green] [dim]{question.id}[/dim]")

    _run(_add())


@app.command()
def questions(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Category ID"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Include subcategories"),
) -> None:
    """List questions."""

    async def _list() -> None:
        async with open_app() as trainer:
            if category:
                items = trainer.graph.questions_in(category, recursive=recursive)
            else:
                items = trainer.graph.questions()

            table = Table(title=f"Questions ({len(items)})")
            table.add_column("ID", style="dim")
            table.add_column("Question")
            table.add_column("Category")
            table.add_column("Diff", justify="right")
            table.add_column("Tags")
            table.add_column("Due")
            for q in items:
                table.add_row(
                    q.id,
                    q.text[:60],
                    trainer.graph.path_of(q.category_id),
                    str(q.difficulty),
                    ", ".join(q.tags),
                    q.next_review_date.strftime("%Y-%m-%d"),
                )
            console.print(table)

    _run(_list())


# =============================================================================
# Sessions
# =============================================================================


@app.command()
def session(
    category: Optional[list[str]] = typer.Option(None, "--category", "-c", help="Category ID (repeatable)"),
    tag: Optional[list[str]] = typer.Option(None, "--tag", help="Tag (repeatable)"),
    due: bool = typer.Option(False, "--due", help="Only questions already due"),
    limit: int = typer.Option(20, "--limit", "-l", help="Rows to show"),
) -> None:
    """Preview the review order for a selection."""

    async def _preview() -> None:
        async with open_app() as trainer:
            study = trainer.sessions.build_session(category or [], tag or [], due_only=due)
            if study.is_empty:
                console.print("[yellow]No matching questions.[/yellow]")
                return

            table = Table(title=f"Session: {len(study)} questions")
            table.add_column("#", justify="right")
            table.add_column("Question")
            table.add_column("Due")
            table.add_column("Interval", justify="right")
            table.add_column("EF", justify="right")
            for index, q in enumerate(study):
                if index >= limit:
                    break
                table.add_row(
                    str(index + 1),
                    q.text[:60],
                    q.next_review_date.strftime("%Y-%m-%d %H:%M"),
                    f"{q.interval}d",
                    f"{q.repetition_factor:.2f}",
                )
            console.print(table)

    _run(_preview())


@app.command()
def review(
    category: Optional[list[str]] = typer.Option(None, "--category", "-c", help="Category ID (repeatable)"),
    tag: Optional[list[str]] = typer.Option(None, "--tag", help="Tag (repeatable)"),
    all_questions: bool = typer.Option(False, "--all", help="Include questions not yet due"),
) -> None:
    """Answer questions; AI-scored when OpenRouter is configured, self-scored otherwise."""
    settings = get_settings()

    async def _review() -> None:
        async with open_app() as trainer:
            study = trainer.sessions.build_session(
                category or [], tag or [], due_only=not all_questions
            )
            if study.is_empty:
                console.print("[yellow]No matching questions.[/yellow]")
                return

            client = OpenRouterClient.from_settings(settings) if settings.has_ai_configured() else None
            service = trainer.review_service(evaluator=client)
            reviewed = 0
            try:
                while (question := study.current) is not None:
                    console.print(
                        Panel(
                            Markdown(question.text),
                            title=f"[{study.position + 1}/{len(study)}] "
                            f"{trainer.graph.path_of(question.category_id)}",
                        )
                    )
                    started = time.monotonic()
                    answer = Prompt.ask("Your answer (empty to stop)", default="")
                    if not answer:
                        break
                    duration = round(time.monotonic() - started, 1)

                    try:
                        if client is not None:
                            with console.status("Evaluating..."):
                                outcome = await service.submit_answer(question.id, answer, duration)
                        else:
                            console.print(Panel(Markdown(question.correct_answer), title="Correct answer"))
                            score = FloatPrompt.ask("Score yourself 0-10", default=5.0)
                            outcome = await service.record_score(
                                question.id, score, answer, duration=duration
                            )
                    except TrainerError as e:
                        # Not rescheduled; move on to the next question
                        console.print(f"[bold red]Error:[/bold red] {e}\n")
                        study.advance()
                        continue

                    if outcome.updated:
                        score = outcome.evaluation.score
                        console.print(f"[{_score_style(score)}]Score: {score:g}/10[/]")
                        if outcome.evaluation.feedback:
                            console.print(Markdown(outcome.evaluation.feedback))
                        console.print(f"[dim]Next review in {outcome.question.interval} days[/dim]\n")
                        reviewed += 1
                    study.advance()
            finally:
                if client is not None:
                    await client.close()

            console.print(f"[bold]Reviewed {reviewed} of {len(study)} questions.[/bold]")

    _run(_review())


# =============================================================================
# Stats
# =============================================================================


@app.command()
def stats(
    days: Optional[int] = typer.Option(
        None, "--days", "-d", help="Daily progress window (default from settings)"
    ),
) -> None:
    """Show learning statistics."""

    async def _stats() -> None:
        async with open_app() as trainer:
            window = days if days is not None else trainer.stats.window_days
            report = await trainer.stats.report(window_days=window)
            s = report.summary

            console.print("\n[bold]Learning Statistics[/bold]\n")
            summary = Table(show_header=False, box=None)
            summary.add_column("Metric", style="cyan")
            summary.add_column("Value", style="bold")
            summary.add_row("Questions", str(s.question_count))
            summary.add_row("Categories", str(s.category_count))
            summary.add_row("Due now", str(s.due_count))
            summary.add_row("Attempts", str(s.total_attempts))
            summary.add_row("Average score", f"{s.average_score:.1f}/10")
            summary.add_row("Success rate", f"{s.success_rate * 100:.0f}%")
            summary.add_row("Study time", f"{s.total_study_time / 60:.1f} min")
            console.print(summary)

            if report.categories:
                table = Table(title="By category")
                table.add_column("Category")
                table.add_column("Attempts", justify="right")
                table.add_column("Avg", justify="right")
                for stat in report.categories:
                    table.add_row(stat.path, str(stat.count), f"{stat.average_score:.1f}")
                console.print(table)

            if report.daily:
                table = Table(title=f"Last {window} days")
                table.add_column("Day")
                table.add_column("Attempts", justify="right")
                table.add_column("Avg", justify="right")
                for day in report.daily:
                    table.add_row(day.day.isoformat(), str(day.count), f"{day.average_score:.1f}")
                console.print(table)

    _run(_stats())


# =============================================================================
# Agent
# =============================================================================


@app.command()
def chat(
    message: str = typer.Argument(..., help="Instruction for the assistant"),
) -> None:
    """Ask the AI assistant to create or edit categories and questions."""
    settings = get_settings()
    if not settings.has_ai_configured():
        console.print("[red]Set OPENROUTER_API_KEY to use the assistant.[/red]")
        raise typer.Exit(1)

    async def _chat() -> None:
        async with open_app() as trainer, OpenRouterClient.from_settings(settings) as client:
            agent = TutorAgent(
                client,
                ToolRegistry(trainer.graph, question_limit=settings.tool_question_limit),
                max_tool_rounds=settings.agent_max_tool_rounds,
                user_name=settings.user_name,
            )
            with console.status("Thinking..."):
                reply = await agent.ask(message)
            console.print(Markdown(reply.content))
            if reply.tool_calls:
                console.print(f"[dim]{reply.tool_calls} tool calls executed[/dim]")

    _run(_chat())


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
