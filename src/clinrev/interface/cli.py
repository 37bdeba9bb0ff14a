"""clinrev CLI — analytics, review queue and data management commands."""

import asyncio
import json
import math
from pathlib import Path
from typing import Annotated

import typer

from clinrev.application.config import resolve_config
from clinrev.application.factory import get_analytics_engine, get_repository
from clinrev.domain.clock import now_ms, to_utc_datetime
from clinrev.domain.errors import ClinrevError, UnknownRatingError
from clinrev.domain.models import meta_index
from clinrev.domain.srs.models import DueVignette, Rating
from clinrev.domain.stats.models import SortMode
from clinrev.interface._common import _resolve_with_overrides, jsonable, setup_logging

HEATMAP_SHADES = " ░▒▓█"

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="clinrev: spaced repetition and performance analytics for clinical vignettes.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage clinrev configuration.")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
    data_file: Annotated[
        Path | None, typer.Option("--data-file", help="Override the state file location.")
    ] = None,
):
    """Global settings for clinrev."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = _resolve_with_overrides(data_file=data_file)
    setup_logging(max(verbose, ctx.obj["config"].verbose - 1))


def _config(ctx: typer.Context):
    obj = ctx.obj or {}
    return obj.get("config") or resolve_config()


def _echo_json(payload) -> None:
    typer.echo(json.dumps(jsonable(payload), indent=2))


async def _load(ctx: typer.Context):
    repo = get_repository(_config(ctx))
    snapshot = await repo.get_all_data()
    return repo, snapshot


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@app.command()
def stats(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show [bold]lifetime[/bold] totals and study consistency."""
    config = _config(ctx)

    async def run():
        _, snapshot = await _load(ctx)
        engine = get_analytics_engine(config)
        return engine.lifetime_summary(
            snapshot.sessions(), now_ms(), snapshot.lifetime_stats.to_domain()
        )

    summary = asyncio.run(run())

    if json_output:
        _echo_json(summary)
        return

    if summary.session_count == 0:
        typer.secho("No sessions recorded yet.", fg="yellow")
        return

    s = summary.stats
    first = to_utc_datetime(s.first_session_date).date().isoformat()
    typer.echo(f"Questions: {s.total_questions}  Correct: {s.total_correct}  ({s.avg_accuracy}%)")
    typer.echo(f"Hours: {s.total_hours}  Avg/question: {summary.avg_time_per_question_sec}s")
    typer.echo(
        f"Sessions: {summary.session_count}  Per week: {summary.sessions_per_week}"
        f"  Since: {first}"
    )


@app.command()
def topics(
    ctx: typer.Context,
    sort: Annotated[
        str | None, typer.Option(help="Ranking order: weakness, strength, alpha or urgency.")
    ] = None,
    filter_: Annotated[
        str | None, typer.Option("--filter", "-f", help="Case-insensitive name filter.")
    ] = None,
    limit: Annotated[int | None, typer.Option(help="Maximum topics to list.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Rank topics by [red]weakness[/red], strength, urgency or name."""
    config = _config(ctx)
    try:
        mode = SortMode(sort or config.default_sort)
    except ValueError:
        typer.secho(f"Unknown sort {sort!r}.", fg="red")
        raise typer.Exit(2) from None

    async def run():
        _, snapshot = await _load(ctx)
        engine = get_analytics_engine(config)
        return engine.ranked_topics(
            snapshot.sessions(),
            meta_index(snapshot.library()),
            mode,
            filter_,
            limit,
        )

    ranked = asyncio.run(run())

    if json_output:
        _echo_json(ranked)
        return

    if not ranked:
        typer.secho("No topic data yet.", fg="yellow")
        return

    arrows = {"improving": "↑", "declining": "↓", "neutral": " "}
    for topic in ranked:
        line = f"{topic.accuracy:>3}% {arrows[topic.momentum.value]} {topic.total:>4}  {topic.name}"
        typer.secho(line, dim=topic.low_sample)


@app.command()
def concepts(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List clinical concepts by how often they were seen."""

    async def run():
        _, snapshot = await _load(ctx)
        engine = get_analytics_engine(_config(ctx))
        return engine.concept_rollup(snapshot.sessions(), meta_index(snapshot.library()))

    rollup = asyncio.run(run())
    if json_output:
        _echo_json(rollup)
        return
    for concept in rollup:
        typer.echo(f"{concept.total:>4}  {concept.accuracy:>3}%  {concept.name}")


@app.command()
def timeline(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Accuracy and pace per session, oldest first."""

    async def run():
        _, snapshot = await _load(ctx)
        return get_analytics_engine(_config(ctx)).timeline(snapshot.sessions())

    points = asyncio.run(run())
    if json_output:
        _echo_json(points)
        return

    if not points:
        typer.secho("No sessions recorded yet.", fg="yellow")
        return
    for point in points:
        pace = f"{point.time_per_question_sec}s/q"
        typer.echo(f"{point.label:>4}  {point.date}  {point.accuracy:>3}%  {pace}")


@app.command()
def heatmap(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Questions answered per day over the recent window, one row per week."""

    async def run():
        _, snapshot = await _load(ctx)
        return get_analytics_engine(_config(ctx)).activity_heatmap(snapshot.sessions(), now_ms())

    result = asyncio.run(run())
    if json_output:
        _echo_json(result)
        return

    active = sum(1 for d in result.days if d.count)
    typer.echo(
        f"{result.days[0].date} to {result.days[-1].date}  "
        f"active days: {active}  busiest: {result.max_daily_count}"
    )
    for start in range(0, len(result.days), 7):
        week = result.days[start : start + 7]
        cells = "".join(
            HEATMAP_SHADES[math.ceil(result.intensity(d.count) * (len(HEATMAP_SHADES) - 1))]
            for d in week
        )
        typer.echo(f"{week[0].date}  {cells}")


@app.command()
def report(ctx: typer.Context):
    """Print every analytics view as JSON."""
    config = _config(ctx)

    async def run():
        _, snapshot = await _load(ctx)
        engine = get_analytics_engine(config)
        return engine.report(
            snapshot.sessions(),
            meta_index(snapshot.library()),
            now_ms(),
            sort=config.default_sort,
            stats=snapshot.lifetime_stats.to_domain(),
        )

    result = asyncio.run(run())
    if result is None:
        typer.secho("No sessions recorded yet.", fg="yellow")
        return
    _echo_json(result)


# ---------------------------------------------------------------------------
# Spaced repetition
# ---------------------------------------------------------------------------


@app.command()
def due(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List review cards that are due now."""

    async def run():
        repo = get_repository(_config(ctx))
        return await repo.due_items(now_ms())

    items = asyncio.run(run())

    if json_output:
        _echo_json(items)
        return

    if not items:
        typer.secho("Nothing due.", fg="green")
        return

    typer.echo(f"Due: {len(items)}")
    for item in items:
        if isinstance(item, DueVignette):
            typer.echo(f"  [vignette] {item.card.card_id}  {item.question.vignette[:60]}")
        else:
            typer.echo(
                f"  [{item.mastery_card.kind}] {item.card.card_id}  {item.mastery_card.front[:60]}"
            )


@app.command()
def rate(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Question or mastery card id.")],
    rating: Annotated[str, typer.Argument(help="again, hard, good or easy.")],
):
    """Record a review rating for a card."""
    try:
        parsed = Rating.parse(rating)
    except UnknownRatingError as e:
        typer.secho(str(e), fg="red")
        raise typer.Exit(2) from None

    async def run():
        repo = get_repository(_config(ctx))
        return await repo.rate_card(card_id, parsed, now_ms())

    card = asyncio.run(run())
    when = to_utc_datetime(card.next_review_at).strftime("%Y-%m-%d %H:%M UTC")
    typer.secho(
        f"{card_id}: next review in {card.interval_days}d ({when}), ease {card.ease_factor:.2f}",
        fg="green",
    )


# ---------------------------------------------------------------------------
# Data management
# ---------------------------------------------------------------------------


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    output: Annotated[
        Path | None, typer.Argument(help="Backup file to write. Prints to stdout if omitted.")
    ] = None,
):
    """Write a full backup of all study data."""

    async def run():
        return await get_repository(_config(ctx)).backup_all_data()

    data = asyncio.run(run())
    if output is None:
        typer.echo(data)
        return
    output.write_text(data, encoding="utf-8")
    typer.secho(f"Backup written to {output}", fg="green")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="Backup file to restore.")],
):
    """Replace all study data with a backup file."""
    try:
        payload = source.read_bytes()
    except OSError as e:
        typer.secho(f"Could not read {source}: {e}", fg="red")
        raise typer.Exit(1) from None

    async def run():
        return await get_repository(_config(ctx)).full_import(payload)

    if not asyncio.run(run()):
        typer.secho("Import failed: backup is not a valid clinrev export.", fg="red")
        raise typer.Exit(1)
    typer.secho("Import successful.", fg="green")


@app.command()
def reset(
    ctx: typer.Context,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation.")
    ] = False,
):
    """Delete all history, bookmarks and review cards."""
    if not force:
        typer.confirm("This permanently deletes all study data. Continue?", abort=True)

    async def run():
        await get_repository(_config(ctx)).reset_data()

    asyncio.run(run())
    typer.secho("All data cleared.", fg="green")


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8787,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("clinrev.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


def main() -> None:
    try:
        app()
    except ClinrevError as e:
        typer.secho(str(e), fg="red", err=True)
        raise SystemExit(1) from None
