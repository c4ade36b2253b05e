"""
Recall: spaced repetition from the terminal.

A Rich terminal interface over the review engine.

Commands:
- recall due      - List cards due now
- recall review   - Record one review
- recall preview  - Show the interval each rating would give
- recall stats    - Show review statistics
- recall xp       - Show level and XP progress
- recall study    - Interactive session over due cards
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from recall.config import get_settings
from recall.core.clock import utcnow
from recall.core.mastery import MasteryLevel
from recall.core.ratings import Rating
from recall.study.stats import StatsAggregator
from recall.study.xp_engine import LevelProgress, XPConfig, XPEngine

from .scheduler import Scheduler, SchedulerConfig, format_interval
from .session import ReviewController, ReviewResult
from .state_store import ReviewCard, StateStore

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="recall",
    help="Recall: spaced repetition review engine",
    no_args_is_help=True,
)
console = Console()

RATING_STYLES = {
    Rating.AGAIN: "red",
    Rating.HARD: "yellow",
    Rating.GOOD: "green",
    Rating.EASY: "cyan",
}


def _controller(ctx: typer.Context) -> ReviewController:
    """Build a controller over the configured state database."""
    settings = get_settings()
    db_path = (ctx.obj or {}).get("db_path") or settings.state_db_path
    store = StateStore(db_path)
    ctx.call_on_close(store.close)
    return ReviewController(
        store,
        scheduler=Scheduler(SchedulerConfig.from_settings(settings)),
        xp_engine=XPEngine(store, XPConfig.from_settings(settings)),
    )


# =============================================================================
# Display Helpers
# =============================================================================

def style_mastery(level: MasteryLevel) -> str:
    """Get styled mastery label."""
    return f"[{level.color}]{level.emoji} {level.display_name}[/{level.color}]"


def display_card(card: ReviewCard, index: int, total: int, previews: dict[Rating, str]) -> None:
    """Display the card being reviewed with what each rating would do."""
    header = f"Card {index}/{total}  |  {card.channel or '-'}  |  {card.difficulty or '-'}"
    options = "   ".join(
        f"[{RATING_STYLES[r]}]({r.shortcut}) {r.label} {previews[r]}[/{RATING_STYLES[r]}]"
        for r in Rating
    )
    console.print(Panel(
        f"[bold]{card.question_id}[/bold]  {style_mastery(card.mastery_level)}\n\n{options}",
        title=header,
        title_align="left",
        border_style="cyan",
        padding=(1, 2),
    ))


def display_result(result: ReviewResult) -> None:
    card = result.card
    console.print(
        f"  Next review in [bold]{format_interval(card.interval_days)}[/bold]  "
        f"{style_mastery(card.mastery_level)}  [magenta]+{result.xp_earned} XP[/magenta]"
    )
    if result.leveled_up:
        console.print(f"  [bold yellow]Level up! You are now level {result.level_after}[/bold yellow]")


def display_level(progress: LevelProgress) -> None:
    console.print(Panel(
        f"[bold]Level {progress.level}[/bold]  {progress.title}\n\n"
        f"Total XP: {progress.total_xp}\n"
        f"XP to next level: {progress.xp_to_next_level}\n"
        f"Progress: {progress.progress_percent:.1f}%",
        title="XP",
        border_style="magenta",
    ))


# =============================================================================
# Commands
# =============================================================================

@app.callback()
def cli(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help="State database path (defaults to RECALL_STATE_DB_PATH or ~/.recall/state.db)",
    ),
) -> None:
    """Recall: spaced repetition review engine."""
    ctx.obj = {"db_path": db}


@app.command()
def due(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum cards to list"),
) -> None:
    """List cards due for review now."""
    controller = _controller(ctx)
    now = utcnow()
    cards = controller.get_due_cards(now, limit=limit)

    if not cards:
        console.print("[green]Nothing due. All caught up![/green]")
        return

    table = Table(title=f"{len(cards)} due")
    table.add_column("Question")
    table.add_column("Channel")
    table.add_column("Mastery")
    table.add_column("Interval")
    table.add_column("Due")
    table.add_column("Overdue", justify="right")

    for card in cards:
        table.add_row(
            card.question_id,
            card.channel,
            style_mastery(card.mastery_level),
            format_interval(card.interval_days),
            card.due_at.strftime("%Y-%m-%d %H:%M") if card.due_at else "-",
            f"{card.days_overdue(now)}d",
        )

    console.print(table)


@app.command()
def review(
    ctx: typer.Context,
    question_id: str = typer.Argument(..., help="Question identifier"),
    rating: Rating = typer.Argument(..., case_sensitive=False, help="again, hard, good or easy"),
    channel: str = typer.Option("", "--channel", "-c", help="Catalog channel for new cards"),
    difficulty: str = typer.Option("", "--difficulty", "-d", help="Catalog difficulty for new cards"),
) -> None:
    """Record one review."""
    controller = _controller(ctx)
    result = controller.record_review(question_id, channel, difficulty, rating)

    console.print(f"[bold]{question_id}[/bold] rated [{RATING_STYLES[rating]}]{rating.label}[/{RATING_STYLES[rating]}]")
    display_result(result)


@app.command()
def preview(
    ctx: typer.Context,
    question_id: str = typer.Argument(..., help="Question identifier"),
) -> None:
    """Show the next interval for each rating."""
    controller = _controller(ctx)
    previews = controller.preview(question_id)

    table = Table(title=question_id)
    table.add_column("Rating")
    table.add_column("Next review")

    for rating, interval in previews.items():
        table.add_row(f"[{RATING_STYLES[rating]}]{rating.label}[/{RATING_STYLES[rating]}]", interval)

    console.print(table)


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show review statistics and progress."""
    controller = _controller(ctx)
    snapshot = StatsAggregator(controller).get_stats()

    console.print("\n[bold cyan]Review Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Cards tracked", str(snapshot.total_cards_tracked))
    table.add_row("Due today", str(snapshot.due_today))
    table.add_row("Due tomorrow", str(snapshot.due_tomorrow))
    table.add_row("Due this week", str(snapshot.due_this_week))
    table.add_row("Review streak", f"{snapshot.review_streak} days")
    table.add_row("Longest streak", f"{snapshot.longest_streak} days")
    table.add_row("Total reviews", str(snapshot.total_reviews))
    table.add_row("Lifetime lapses", str(snapshot.lifetime_lapses))
    table.add_row("Level", f"{snapshot.level} ({snapshot.total_xp} XP)")

    console.print(table)

    console.print("\n[bold]Mastery[/bold]")
    mastery_table = Table()
    mastery_table.add_column("Level")
    mastery_table.add_column("Cards", justify="right")
    for level, count in snapshot.mastery_distribution.items():
        mastery_table.add_row(style_mastery(level), str(count))
    console.print(mastery_table)

    console.print("\n[bold]Ratings[/bold]")
    rating_table = Table()
    rating_table.add_column("Rating")
    rating_table.add_column("Count", justify="right")
    for rating, count in snapshot.rating_tally.items():
        rating_table.add_row(f"[{RATING_STYLES[rating]}]{rating.label}[/{RATING_STYLES[rating]}]", str(count))
    console.print(rating_table)


@app.command()
def xp(ctx: typer.Context) -> None:
    """Show level and XP progress."""
    controller = _controller(ctx)
    display_level(controller.xp.get_user_xp())


@app.command()
def study(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(
        None,
        "--limit", "-l",
        help="Maximum cards this session (defaults to RECALL_MAX_DUE_CARDS)",
    ),
) -> None:
    """
    Start an interactive review session.

    Presents due cards oldest first. Rate each with a/h/g/e,
    skip with s, or quit with q.
    """
    controller = _controller(ctx)
    session = controller.start_session(limit=limit or get_settings().max_due_cards)
    total = len(session.queue)

    if total == 0:
        console.print("[green]Nothing due. All caught up![/green]")
        return

    shortcuts = {r.shortcut: r for r in Rating}

    while not session.is_complete:
        card = session.current
        display_card(card, session.position + 1, total, controller.preview(card.question_id))

        choice = Prompt.ask("Rating", choices=[*shortcuts, "s", "q"], default="g")
        if choice == "q":
            break
        if choice == "s":
            session.skip()
            console.print("  [dim]Skipped[/dim]")
            continue

        display_result(session.answer(shortcuts[choice]))

    console.print("\n")
    console.print(Panel(
        f"[bold]Session Complete![/bold]\n\n"
        f"Cards reviewed: {len(session.reviewed)}\n"
        f"Skipped: {len(session.skipped)}\n"
        f"XP earned: {session.xp_earned}",
        title="Summary",
        border_style="green",
    ))


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
