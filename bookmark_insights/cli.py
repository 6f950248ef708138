"""Click CLI entry point for bookmark-insights."""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bookmark_insights.analytics.aggregator import MetricsAggregator
from bookmark_insights.analytics.predictive import METRICS, PredictiveAnalytics
from bookmark_insights.config import CONTENT_TYPES, TIME_WINDOWS, Config
from bookmark_insights.db import Database
from bookmark_insights.feed.models import ContentType, FeedOptions
from bookmark_insights.feed.ranker import PersonalizedFeedGenerator
from bookmark_insights.monetization.applications import ApplicationManager, ApplicationRejected
from bookmark_insights.trending.system import TrendingSystem
from bookmark_insights.utils.logger import setup_logger

console = Console()

# Tables a fixture file may populate, in dependency order
FIXTURE_TABLES = (
    "profiles",
    "follows",
    "bookmarks",
    "posts",
    "collections",
    "collection_bookmarks",
    "likes",
    "comments",
    "analytics_events",
)


def _init(config_path: str | None = None) -> tuple[Config, Database]:
    """Initialize config, logging and database."""
    config = Config.load(config_path)
    setup_logger(
        level=config.get("logging.level", default="INFO"),
        log_file=str(config.log_file) if config.log_file else None,
        max_size_mb=config.get("logging.max_size_mb", default=10),
        backup_count=config.get("logging.backup_count", default=5),
    )
    for warning in config.validate():
        console.print(f"[yellow]Config warning: {warning}[/yellow]")
    db = Database(config.db_path)
    return config, db


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.pass_context
def cli(ctx, config_path: str | None):
    """Bookmark Insights: feed ranking, trending and creator analytics."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# =============================================================================
# init-db / load
# =============================================================================

@cli.command("init-db")
@click.pass_context
def init_db(ctx):
    """Create the database schema."""
    config, _ = _init(ctx.obj.get("config_path"))
    console.print(f"[green]Database ready at {config.db_path}[/green]")


@cli.command("load")
@click.argument("fixture", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def load_fixture(ctx, fixture: Path):
    """Load rows from a YAML fixture (table name -> list of rows)."""
    _, db = _init(ctx.obj.get("config_path"))

    with open(fixture) as f:
        data = yaml.safe_load(f) or {}

    unknown = sorted(set(data) - set(FIXTURE_TABLES))
    if unknown:
        console.print(f"[red]Unknown tables in fixture: {', '.join(unknown)}[/red]")
        raise click.Abort()

    run_id = db.start_run("load")
    counts: dict[str, int] = {}
    try:
        for table in FIXTURE_TABLES:
            for row in data.get(table) or []:
                row = dict(row)
                if table == "bookmarks":
                    tags = row.pop("tags", None) or []
                    db.insert_bookmark(row, tags)
                elif table == "analytics_events":
                    db.insert_event(row)
                else:
                    db.insert(table, row)
                counts[table] = counts.get(table, 0) + 1

        table_view = Table(title=f"Loaded {fixture.name}")
        table_view.add_column("Table", style="cyan")
        table_view.add_column("Rows", style="white", justify="right")
        for name, count in counts.items():
            table_view.add_row(name, str(count))
        console.print(table_view)

        db.complete_run(run_id, "success", counts)
    except Exception as e:
        db.complete_run(run_id, "failed", counts, error=str(e))
        console.print(f"[red]Error loading fixture: {e}[/red]")
        raise click.Abort()


# =============================================================================
# feed
# =============================================================================

@cli.command("feed")
@click.argument("user_id")
@click.option("--limit", type=int, default=None, help="Items per page")
@click.option("--offset", type=int, default=None, help="Items to skip")
@click.option("--types", "content_types", multiple=True, type=click.Choice(CONTENT_TYPES), help="Content types to include")
@click.option("--no-following", is_flag=True, help="Ignore who the user follows")
@click.option("--no-public", is_flag=True, help="Exclude public content from non-followed users")
@click.pass_context
def show_feed(ctx, user_id: str, limit: int | None, offset: int | None, content_types: tuple[str, ...],
              no_following: bool, no_public: bool):
    """Show the personalized feed for USER_ID."""
    config, db = _init(ctx.obj.get("config_path"))
    feed_config = config.feed

    types = content_types or tuple(t for t in feed_config.get("content_types", CONTENT_TYPES) if t in CONTENT_TYPES)
    options = FeedOptions(
        user_id=user_id,
        limit=limit if limit is not None else feed_config.get("limit", 20),
        offset=offset if offset is not None else feed_config.get("offset", 0),
        include_following=feed_config.get("include_following", True) and not no_following,
        include_public=feed_config.get("include_public", True) and not no_public,
        content_types=tuple(ContentType(t) for t in types),
    )
    items = PersonalizedFeedGenerator(db).generate_feed(options)

    if not items:
        console.print("[dim]Nothing in this feed yet.[/dim]")
        return

    table = Table(title=f"Feed for {user_id}")
    table.add_column("Type", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Author", style="magenta")
    table.add_column("Score", style="green", justify="right")
    table.add_column("Eng / Rec / Rel", style="dim", justify="right")
    for item in items:
        title = item.content.get("title") or item.content.get("name") or ""
        table.add_row(
            item.type.value,
            str(title)[:60],
            item.username,
            f"{item.score:.1f}",
            f"{item.engagement_score:.0f} / {item.recency_score:.0f} / {item.relevance_score:.0f}",
        )
    console.print(table)


# =============================================================================
# trending
# =============================================================================

@cli.command("trending")
@click.argument("kind", type=click.Choice(["topics", "bookmarks", "collections"]))
@click.option("--window", type=click.Choice(TIME_WINDOWS), default=None, help="Time window for bookmarks")
@click.option("--limit", type=int, default=None, help="Number of results")
@click.option("--user", "user_id", default=None, help="Personalize bookmarks for this user")
@click.pass_context
def show_trending(ctx, kind: str, window: str | None, limit: int | None, user_id: str | None):
    """Show trending topics, bookmarks or collections."""
    config, db = _init(ctx.obj.get("config_path"))
    trending_config = config.trending
    system = TrendingSystem(db, topic_ttl_hours=trending_config.get("topic_ttl_hours", 72))

    if kind == "topics":
        topics = system.get_trending_topics(limit or trending_config.get("topics_limit", 10))
        table = Table(title="Trending Topics")
        table.add_column("Topic", style="cyan")
        table.add_column("Mentions", style="white", justify="right")
        table.add_column("Users", style="white", justify="right")
        table.add_column("Velocity", style="yellow", justify="right")
        table.add_column("Score", style="green", justify="right")
        for t in topics:
            table.add_row(t.topic, str(t.mention_count), str(t.user_count), f"{t.velocity:+.0f}", f"{t.trend_score:.1f}")
        console.print(table)
        return

    if kind == "collections":
        content = system.get_trending_collections(limit or trending_config.get("collections_limit", 10))
        title = "Trending Collections"
    elif user_id:
        content = system.get_personalized_trending(user_id, limit or trending_config.get("limit", 20))
        title = f"Trending for {user_id}"
    else:
        window = window or trending_config.get("window", "7d")
        content = system.get_trending_bookmarks(window, limit or trending_config.get("limit", 20))
        title = f"Trending Bookmarks ({window})"

    table = Table(title=title)
    table.add_column("Title", style="white")
    table.add_column("Likes", style="magenta", justify="right")
    table.add_column("Views", style="cyan", justify="right")
    table.add_column("Score", style="green", justify="right")
    for c in content:
        table.add_row(str(c.title or c.id)[:60], str(c.engagement.likes), str(c.engagement.views), f"{c.score:.1f}")
    console.print(table)


@cli.command("refresh-topics")
@click.pass_context
def refresh_topics(ctx):
    """Rebuild the trending topic cache from the last 24 hours of tags."""
    config, db = _init(ctx.obj.get("config_path"))

    run_id = db.start_run("refresh_topics")
    try:
        system = TrendingSystem(db, topic_ttl_hours=config.trending.get("topic_ttl_hours", 72))
        topics = system.update_trending_topics()
        console.print(f"[green]Refreshed {len(topics)} trending topics[/green]")
        db.complete_run(run_id, "success", {"topics": len(topics)})
    except Exception as e:
        db.complete_run(run_id, "failed", error=str(e))
        console.print(f"[red]Error refreshing topics: {e}[/red]")
        raise click.Abort()


# =============================================================================
# forecast / trend
# =============================================================================

@cli.command("forecast")
@click.argument("user_id")
@click.option("--metric", type=click.Choice(["earnings", "bookmarks"]), default="earnings")
@click.option("--days-ahead", type=int, default=None, help="Days to forecast")
@click.pass_context
def show_forecast(ctx, user_id: str, metric: str, days_ahead: int | None):
    """Forecast affiliate earnings or bookmark growth for USER_ID."""
    config, db = _init(ctx.obj.get("config_path"))
    analytics = config.analytics
    predictive = PredictiveAnalytics(MetricsAggregator(db))
    days_ahead = days_ahead or analytics.get("days_ahead", 30)
    alpha = analytics.get("alpha", 0.3)

    if metric == "earnings":
        forecasts = predictive.forecast_affiliate_earnings(
            user_id, days_ahead, lookback_days=analytics.get("earnings_lookback_days", 90), alpha=alpha
        )
    else:
        forecasts = predictive.forecast_bookmark_growth(user_id, days_ahead, alpha=alpha)

    if not forecasts:
        console.print(f"[yellow]Not enough {metric} history to forecast.[/yellow]")
        return

    table = Table(title=f"{metric.title()} forecast for {user_id}")
    table.add_column("Date", style="cyan")
    table.add_column("Predicted", style="green", justify="right")
    table.add_column("Range", style="white", justify="right")
    table.add_column("Confidence", style="dim", justify="right")
    for f in forecasts:
        table.add_row(
            f.date.isoformat(),
            str(f.predicted_value),
            f"{f.confidence_lower} - {f.confidence_upper}",
            f"{f.confidence_level}%",
        )
    console.print(table)


@cli.command("trend")
@click.argument("user_id")
@click.option("--metric", type=click.Choice(METRICS), default="views")
@click.option("--days", type=int, default=None, help="Days of history to analyze")
@click.pass_context
def show_trend(ctx, user_id: str, metric: str, days: int | None):
    """Trend direction, anomalies and moving average of a daily metric."""
    config, db = _init(ctx.obj.get("config_path"))
    analytics = config.analytics
    report = PredictiveAnalytics(MetricsAggregator(db)).analyze_metric(
        user_id,
        metric,
        days=days or analytics.get("trend_days", 30),
        anomaly_threshold=analytics.get("anomaly_threshold", 2.0),
        window_size=analytics.get("moving_average_window", 7),
    )

    trend = report["trend"]
    colors = {"increasing": "green", "decreasing": "red", "stable": "yellow"}
    console.print(Panel(
        f"Trend: [{colors[trend.trend.value]}]{trend.trend.value}[/]\n"
        f"Change: {trend.percentage_change:.1f}%\n"
        f"Average growth: {trend.average_growth_rate:.1f}%\n"
        f"Volatility: {trend.volatility:.2f}\n"
        f"Days observed: {len(report['series'])}",
        title=f"{metric.title()} trend for {user_id}",
        border_style="cyan",
    ))

    if report["anomalies"]:
        console.print("[bold]Anomalies:[/bold] " + ", ".join(d.isoformat() for d in report["anomalies"]))

    if report["moving_average"] and report["moving_average"] is not report["series"]:
        table = Table(title="Moving Average")
        table.add_column("Date", style="cyan")
        table.add_column("Value", style="white", justify="right")
        for point in report["moving_average"][-10:]:
            table.add_row(point.date.isoformat(), f"{point.value:g}")
        console.print(table)


# =============================================================================
# eligibility / apply
# =============================================================================

def _print_eligibility(eligibility, recommendations: bool = True) -> None:
    color = "green" if eligibility.is_eligible else "red"
    console.print(f"Quality score: [bold]{eligibility.quality_score}[/bold]/100")
    console.print(f"Eligible: [{color}]{'yes' if eligibility.is_eligible else 'no'}[/{color}]")
    for reason in eligibility.reasons:
        console.print(f"  - {reason}")
    if recommendations and eligibility.recommendations:
        console.print("[bold]Recommendations:[/bold]")
        for rec in eligibility.recommendations:
            console.print(f"  - {rec}")


@cli.command("eligibility")
@click.argument("user_id")
@click.pass_context
def show_eligibility(ctx, user_id: str):
    """Show monetization eligibility and progress for USER_ID."""
    _, db = _init(ctx.obj.get("config_path"))
    status = ApplicationManager(db, MetricsAggregator(db)).status(user_id)

    console.print(Panel(f"[bold]Creator Monetization: {user_id}[/bold]", border_style="green"))
    _print_eligibility(status["eligibility"])

    table = Table(title="Requirements")
    table.add_column("Requirement", style="cyan")
    table.add_column("Current", style="white", justify="right")
    table.add_column("Required", style="dim", justify="right")
    table.add_column("Progress", style="green", justify="right")
    for name, progress in status["progress"].items():
        table.add_row(name, str(progress.current), str(progress.required), f"{progress.percentage:.0f}%")
    console.print(table)

    console.print(f"Revenue share at current score: {status['revenue_share']}%")
    application = status["application"]
    if application is not None:
        console.print(f"Application: [bold]{application.status.value}[/bold] (submitted {application.application_date})")


@cli.command("apply")
@click.argument("user_id")
@click.pass_context
def apply_cmd(ctx, user_id: str):
    """Submit a creator monetization application for USER_ID."""
    _, db = _init(ctx.obj.get("config_path"))

    run_id = db.start_run("apply")
    try:
        application, eligibility = ApplicationManager(db, MetricsAggregator(db)).apply(user_id)
    except ApplicationRejected as e:
        db.complete_run(run_id, "rejected", {"user_id": user_id}, error=str(e))
        console.print(f"[red]{e}[/red]")
        if e.eligibility is not None:
            _print_eligibility(e.eligibility)
        raise click.Abort()
    except Exception as e:
        db.complete_run(run_id, "failed", {"user_id": user_id}, error=str(e))
        console.print(f"[red]Error submitting application: {e}[/red]")
        raise click.Abort()

    db.complete_run(run_id, "success", {"user_id": user_id, "quality_score": eligibility.quality_score})
    console.print(Panel(
        f"Status: [yellow]{application.status.value}[/yellow]\n"
        f"Quality score: {application.quality_score}\n"
        f"Revenue share: {application.revenue_share_percentage}%",
        title="Application Submitted",
        border_style="green",
    ))


# =============================================================================
# runs
# =============================================================================

@cli.command("runs")
@click.option("--last", "limit", default=10, help="Number of recent runs to show")
@click.pass_context
def show_runs(ctx, limit: int):
    """Show recent job runs."""
    _, db = _init(ctx.obj.get("config_path"))
    runs = db.get_recent_runs(limit)

    if not runs:
        console.print("[dim]No runs recorded.[/dim]")
        return

    table = Table(title=f"Recent Runs (last {limit})")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Started", style="dim")
    table.add_column("Error", style="red")
    for run in runs:
        table.add_row(
            str(run["id"]),
            run["run_type"],
            run["status"] or "running",
            str(run["started_at"])[:16],
            (run["error"] or "")[:60],
        )
    console.print(table)


if __name__ == "__main__":
    cli()
