from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from macrobius_tutor.errors import TutorError
from macrobius_tutor.learning.models import PersonalizedRecommendation, TutorResponse
from macrobius_tutor.system import MacrobiusTutorSystem
from macrobius_tutor.utils.logging import get_logger

app = typer.Typer(help="Adaptive Macrobius tutor: learner profiles, recommendations and tutoring.")
console = Console()
log = get_logger(__name__)


def _load_system(config: Optional[Path]) -> MacrobiusTutorSystem:
    """Instantiate `MacrobiusTutorSystem` with an optional config override."""
    return MacrobiusTutorSystem.from_config(config)


def _fail(exc: TutorError) -> None:
    console.print(f"[red]{exc}[/red]")
    raise typer.Exit(code=1)


def _print_response(response: TutorResponse) -> None:
    console.print(f"[bold]Tutor[/bold]: {response.content}")
    for connection in response.cultural_connections:
        console.print(
            f"  [cyan]{connection.ancient_concept}[/cyan] -> {connection.modern_parallel} "
            f"({connection.relevance_score:.2f})"
        )
    if response.modern_examples:
        console.print("  Modern examples: " + ", ".join(response.modern_examples))


@app.command("create-profile")
def create_profile(
    learner_id: str = typer.Argument(...),
    style: Optional[str] = typer.Option(None, help="visual, auditory, kinesthetic, reading or mixed."),
    level: Optional[str] = typer.Option(None, help="beginner, intermediate, advanced or expert."),
    weakness: List[str] = typer.Option([], help="Topic the learner struggles with (repeatable)."),
    strength: List[str] = typer.Option([], help="Topic the learner is strong in (repeatable)."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
):
    """Register a learner; unspecified fields take the configured defaults."""
    system = _load_system(config)
    initial = {
        "learning_style": style,
        "proficiency_level": level,
        "weakness_areas": weakness or None,
        "strength_areas": strength or None,
    }
    try:
        profile = system.engine.create_profile(
            learner_id, {key: value for key, value in initial.items() if value is not None}
        )
    except TutorError as exc:
        _fail(exc)
    console.print(
        f"Created profile [bold]{profile.learner_id}[/bold] "
        f"({profile.learning_style.value}, {profile.proficiency_level.value})."
    )


@app.command()
def profile(
    learner_id: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None),
):
    """Show a learner's adaptive parameters."""
    system = _load_system(config)
    try:
        learner = system.engine.get_profile(learner_id)
    except TutorError as exc:
        _fail(exc)
    table = Table(title=f"Learner {learner.learner_id}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Learning style", learner.learning_style.value)
    table.add_row("Proficiency", learner.proficiency_level.value)
    table.add_row("Preferred difficulty", f"{learner.preferred_difficulty:.2f}")
    table.add_row("Learning speed", f"{learner.learning_speed:.2f}")
    table.add_row("Retention rate", f"{learner.retention_rate:.2f}")
    table.add_row("Weaknesses", ", ".join(learner.weakness_areas) or "-")
    table.add_row("Strengths", ", ".join(learner.strength_areas) or "-")
    table.add_row("Last activity", learner.last_activity.isoformat())
    console.print(table)


@app.command()
def recommend(
    learner_id: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None),
):
    """List ranked recommendations for a learner."""
    system = _load_system(config)
    try:
        items: List[PersonalizedRecommendation] = system.engine.recommendations(learner_id)
    except TutorError as exc:
        _fail(exc)
    table = Table(title=f"Recommendations for {learner_id}")
    for column in ("Priority", "Type", "Title", "Minutes", "Score"):
        table.add_column(column)
    for item in items:
        table.add_row(
            item.priority.value,
            item.recommendation_type.value,
            item.title,
            str(item.estimated_minutes),
            f"{item.score:.2f}",
        )
    console.print(table)


@app.command()
def tutor(
    learner_id: str = typer.Argument(...),
    theme: Optional[str] = typer.Option(None, help="Cultural theme to focus the session on."),
    config: Optional[Path] = typer.Option(None),
):
    """
    Start an interactive tutoring session.

    Plain lines are asked as questions. `/hint <topic>` asks for a hint,
    `/explain <concept>` for an explanation and `/end` closes the session.
    """
    system = _load_system(config)
    try:
        session = system.tutor.start_session(learner_id, context={"cultural_theme": theme})
    except TutorError as exc:
        _fail(exc)
    greeting = system.sessions.get_session(session.session_id).interactions[0].response
    _print_response(greeting)

    while True:
        line = typer.prompt("You").strip()
        if not line:
            continue
        try:
            if line == "/end":
                feedback = typer.prompt("Any feedback?", default="", show_default=False)
                summary = system.tutor.end_session(learner_id, feedback=feedback or None)
                console.print(
                    f"Session closed after {summary.total_interactions} interactions, "
                    f"rating {summary.session_rating}."
                )
                for step in summary.recommended_next_steps:
                    console.print(f"- {step}")
                log.info("tutor_session_closed", learner_id=learner_id, session_id=summary.session_id)
                break
            if line.startswith("/hint"):
                topic = line[len("/hint"):].strip() or session.context.cultural_theme
                _print_response(system.tutor.hint(learner_id, topic))
            elif line.startswith("/explain"):
                concept = line[len("/explain"):].strip() or session.context.cultural_theme
                _print_response(system.tutor.explain(learner_id, concept))
            else:
                _print_response(system.tutor.ask(learner_id, line))
        except TutorError as exc:
            console.print(f"[red]{exc}[/red]")


@app.command()
def health(config: Optional[Path] = typer.Option(None)):
    """Check whether the Macrobius corpus backend is reachable."""
    system = _load_system(config)
    healthy = system.backend.health_check()
    if healthy:
        console.print("[green]Backend reachable[/green]")
    else:
        console.print("[yellow]Backend unavailable; serving bundled sample data[/yellow]")


if __name__ == "__main__":
    app()
