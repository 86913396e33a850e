"""
Typer CLI for examcast.

Commands:
    examcast db init                 - Initialize database tables
    examcast scope SUBJECT_ID        - Show the default syllabus scope
    examcast predict SUBJECT_ID      - Predict exam questions
    examcast freshness show ID       - Show the topic freshness ranking
    examcast freshness refresh ID    - Recompute stored topic freshness
    examcast serve                   - Run the HTTP API

Usage:
    examcast --help
    examcast predict 3f0c... --exam-type END_TERM --count 8
    examcast predict 3f0c... --exam-type MIDTERM_1 --exclude-module 4 --fast
"""

from __future__ import annotations

import asyncio
from datetime import datetime

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from config import get_settings
from examcast import __version__
from examcast.db.database import session_scope
from examcast.db.queries import get_current_syllabus, get_subject
from examcast.enums import ExamType
from examcast.logging_config import setup_logging
from examcast.prediction.engine import EngineConfig, PredictionEngine, build_client
from examcast.prediction.errors import NotFoundError, PredictionError
from examcast.prediction.freshness import FreshnessModel
from examcast.prediction.ingestion import refresh_freshness
from examcast.prediction.schemas import PredictionRequest
from examcast.prediction.scope import ModuleScope, resolve_scope

app = typer.Typer(
    help="examcast CLI: syllabus + past papers -> predicted exam questions",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG to stderr"),
):
    """Exam question prediction from syllabi and past papers."""
    settings = get_settings()
    setup_logging("DEBUG" if verbose else settings.log_level, settings.log_file)


def _fail(exc: PredictionError) -> None:
    rprint(f"[red]✗[/red] {escape(exc.message)} ({exc.error_code})")
    raise typer.Exit(code=1)


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from examcast.db.database import init_db

    logger.info("Initializing database tables...")
    init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# SCOPE
# ========================================


@app.command("scope")
def show_scope(subject_id: str = typer.Argument(..., help="Subject UUID")) -> None:
    """Show the modules and topics a prediction would cover by default."""
    with session_scope() as session:
        try:
            modules = resolve_scope(session, subject_id)
        except PredictionError as e:
            _fail(e)

        table = Table(title="Syllabus Scope")
        table.add_column("Module", style="cyan", justify="right")
        table.add_column("Name", style="bold")
        table.add_column("Topics", style="green")

        for module in modules:
            table.add_row(
                str(module.module_number),
                module.module_name,
                "\n".join(t.name for t in module.topics) or "[dim]none[/dim]",
            )
        console.print(table)


# ========================================
# PREDICT
# ========================================


@app.command("predict")
def predict(
    subject_id: str = typer.Argument(..., help="Subject UUID"),
    exam_type: ExamType = typer.Option(ExamType.END_TERM, "--exam-type", "-e", case_sensitive=False),
    count: int = typer.Option(None, "--count", "-n", min=1, max=50, help="Number of questions"),
    exclude_module: list[int] = typer.Option(
        None, "--exclude-module", "-x", help="Module number to leave out (repeatable)"
    ),
    model: str = typer.Option(None, "--model", "-m", help="Try this model first"),
    fast: bool = typer.Option(False, "--fast", help="Lead with the fast model instead of the reasoning one"),
    trends: bool = typer.Option(False, "--trends", help="Add trend hints to the prompt"),
) -> None:
    """Predict likely exam questions for a subject."""
    settings = get_settings()
    if not settings.has_ai_configured():
        rprint("[red]✗[/red] GEMINI_API_KEY is not set")
        raise typer.Exit(code=1)

    request = PredictionRequest(
        subject_id=subject_id,
        exam_type=exam_type,
        syllabus_scope=[
            ModuleScope(module_number=n, included=False) for n in (exclude_module or [])
        ]
        or None,
        question_count=count,
        use_web_search=trends,
        use_thinking_model=not fast,
        model=model,
    )

    with session_scope() as session:
        engine = PredictionEngine(session, build_client(settings), EngineConfig.from_settings(settings))
        with console.status(f"[bold]Predicting {exam_type.label} questions..."):
            try:
                result = asyncio.run(engine.predict(request))
            except PredictionError as e:
                _fail(e)

        meta = result.metadata
        table = Table(title=f"{meta.subject_code} {meta.exam_type.label} predictions")
        table.add_column("#", style="dim", justify="right")
        table.add_column("Question")
        table.add_column("Topic", style="cyan")
        table.add_column("Marks", justify="right")
        table.add_column("P", style="green", justify="right")

        for index, q in enumerate(result.predictions, start=1):
            table.add_row(str(index), q.text, q.topic, str(q.marks), f"{q.probability:.2f}")
        console.print(table)

        rprint(
            f"[green]✓[/green] Stored prediction {result.prediction_id} "
            f"(model {meta.model_used}, confidence {meta.confidence:.2f}, "
            f"{meta.total_questions_analyzed} past questions analyzed)"
        )
        for model_name, error in result.failed_attempts:
            rprint(f"  [yellow]⚠[/yellow] {model_name} failed: {error}")


# ========================================
# FRESHNESS COMMANDS
# ========================================

freshness_app = typer.Typer(help="Topic freshness (how due a topic is to be asked)")
app.add_typer(freshness_app, name="freshness")


@freshness_app.command("show")
def freshness_show(
    subject_id: str = typer.Argument(..., help="Subject UUID"),
    top: int = typer.Option(15, "--top", "-k", min=1),
) -> None:
    """Rank the subject's topics by freshness as of today."""
    freshness: FreshnessModel = EngineConfig.from_settings(get_settings()).freshness

    with session_scope() as session:
        subject = get_subject(session, subject_id)
        syllabus = get_current_syllabus(session, subject.id) if subject else None
        if syllabus is None:
            _fail(NotFoundError(f"No syllabus found for subject {subject_id}"))

        as_of = datetime.now()
        ranking = FreshnessModel.rank(
            [
                freshness.entry(m.number, m.name, t.name, t.times_asked or 0, t.last_asked_date, as_of)
                for m in syllabus.modules
                for t in m.topics
            ],
            top_k=top,
        )

        table = Table(title=f"{subject.code} topic freshness")
        table.add_column("Score", style="green", justify="right")
        table.add_column("Topic")
        table.add_column("Module", style="cyan")
        table.add_column("Asked", justify="right")
        table.add_column("Last asked", style="dim")
        for entry in ranking:
            table.add_row(
                f"{entry.score:.3f}",
                entry.topic,
                entry.module_name,
                str(entry.times_asked),
                entry.last_asked_date.isoformat() if entry.last_asked_date else "never",
            )
        console.print(table)


@freshness_app.command("refresh")
def freshness_refresh(subject_id: str = typer.Argument(..., help="Subject UUID")) -> None:
    """Recompute and store freshness for every topic of a subject."""
    freshness = EngineConfig.from_settings(get_settings()).freshness
    with session_scope() as session:
        try:
            count = refresh_freshness(session, subject_id, freshness=freshness)
        except PredictionError as e:
            _fail(e)
    rprint(f"[green]✓[/green] Refreshed freshness for {count} topics")


# ========================================
# SERVER
# ========================================


@app.command("serve")
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default: API_HOST)"),
    port: int = typer.Option(None, "--port", help="Port (default: API_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "examcast.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint(f"[bold]examcast[/bold] v{__version__}")
    rprint("  Syllabus + past papers -> predicted exam questions")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
