#!/usr/bin/env python3
"""
gap-analytics CLI.

Grade-adjusted pace and heart-rate drift analytics for Strava runs.

Usage:
    gap-analytics auth                  # Print the Strava authorization URL
    gap-analytics auth --code CODE      # Exchange the callback code for tokens
    gap-analytics sync --count 1000     # Fetch activities into the local cache
    gap-analytics enrich --limit 50     # Fetch per-km splits for drift analysis
    gap-analytics report --last 30      # Dashboard for the last 30 runs
    gap-analytics report --year 2024    # Dashboard for one calendar year
    gap-analytics export --format csv --from 2024-01-01 --min-km 5
    gap-analytics status
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Tuple

import httpx
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .analysis.drift import analyze_drift
from .analysis.normalizer import normalize_activities
from .config import AnalyticsPolicy, Settings, get_settings
from .exceptions import ConfigurationError, GapAnalyticsError
from .export import ExportFormat, export_activities
from .integrations.base import IntegrationError, OAuthCredentials
from .integrations.strava import StravaClient, StravaOAuthFlow
from .models.analysis import FindingSeverity, RunFilter
from .services.activity_store import ActivityCache, ActivityStore
from .services.dashboard import DashboardReport, DashboardService
from .services.enrichment import SplitEnrichmentService
from .utils.log_sanitizer import install_log_sanitizer, sanitize_string

logger = logging.getLogger(__name__)

console = Console()


def get_severity_color(severity: FindingSeverity) -> str:
    """Get rich color for a finding severity."""
    colors = {
        FindingSeverity.OK: "green",
        FindingSeverity.WATCH: "yellow",
        FindingSeverity.ALERT: "red",
    }
    return colors.get(severity, "white")


def get_priority_color(priority: str) -> str:
    colors = {
        "critical": "red",
        "high": "yellow",
        "medium": "cyan",
    }
    return colors.get(priority, "white")


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD")


def _cache(settings: Settings) -> ActivityCache:
    return ActivityCache(settings.cache_path)


def _oauth_flow(settings: Settings) -> StravaOAuthFlow:
    if not settings.strava_configured:
        raise ConfigurationError(
            "Strava client is not configured. Set STRAVA_CLIENT_ID and STRAVA_CLIENT_SECRET."
        )
    return StravaOAuthFlow(
        client_id=settings.strava_client_id,
        client_secret=settings.strava_client_secret,
        redirect_uri=settings.strava_redirect_uri,
    )


async def _resolve_credentials(settings: Settings, cache: ActivityCache) -> OAuthCredentials:
    """
    Cached credentials, falling back to tokens from the environment.

    Refreshes (and re-caches) the access token when it is about to expire.
    """
    _, credentials = cache.load()

    if credentials is None and settings.strava_access_token:
        credentials = OAuthCredentials(
            access_token=settings.strava_access_token,
            refresh_token=settings.strava_refresh_token or None,
        )

    if credentials is None:
        raise ConfigurationError("No Strava credentials. Run 'gap-analytics auth' first.")

    if credentials.needs_refresh:
        logger.info("Refreshing Strava access token")
        credentials = await _oauth_flow(settings).refresh_token(credentials)
        cache.save(credentials=credentials)

    return credentials


def _load_store(settings: Settings) -> ActivityStore:
    store = _cache(settings).load_store()
    if not len(store):
        console.print("[yellow]No cached activities. Run 'gap-analytics sync' first.[/yellow]")
    return store


def _run_filter(args) -> RunFilter:
    if args.year is not None:
        return RunFilter.for_year(args.year)
    return RunFilter.last(args.last)


# =============================================================================
# Commands
# =============================================================================


def cmd_auth(args, settings: Settings):
    """Authorize with Strava."""
    flow = _oauth_flow(settings)

    if not args.code:
        console.print()
        console.print(Panel("[bold]gap-analytics - Strava Authorization[/bold]"))
        console.print("Open this URL, approve access, then re-run with the 'code' from the redirect:")
        console.print()
        console.print(flow.get_authorization_url(), soft_wrap=True)
        console.print()
        console.print("  gap-analytics auth --code <CODE>")
        console.print()
        return

    credentials = asyncio.run(flow.exchange_code(args.code))
    _cache(settings).save(credentials=credentials)
    who = credentials.athlete_name or credentials.athlete_id or "athlete"
    console.print(f"[green]Authorized as {who}.[/green] Credentials cached at {settings.cache_path}")


async def _sync(settings: Settings, count: int) -> int:
    cache = _cache(settings)
    credentials = await _resolve_credentials(settings, cache)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    ) as progress:
        task = progress.add_task("Fetching activities...", total=count)

        def on_progress(fetched: int, total: int) -> None:
            progress.update(task, completed=fetched, total=total)

        async with StravaClient(credentials) as client:
            activities = await client.get_activities(count=count, on_progress=on_progress)

    # Keep split detail already fetched for activities that are still listed
    previous = ActivityStore(cache.load()[0])
    merged = []
    for activity in activities:
        if activity.id in previous and previous.get(activity.id).has_splits:
            merged.append(previous.get(activity.id))
        else:
            merged.append(activity)

    cache.save(activities=merged)
    return len(merged)


def cmd_sync(args, settings: Settings):
    """Fetch activities from Strava into the local cache."""
    count = args.count or settings.activity_fetch_count
    console.print()
    console.print(Panel("[bold]gap-analytics - Sync[/bold]"))

    synced = asyncio.run(_sync(settings, count))

    console.print(f"[green]Synced {synced} activities.[/green]")
    console.print("Run 'gap-analytics enrich' to fetch splits for drift analysis.")
    console.print()


async def _enrich(settings: Settings, store: ActivityStore, ids: List[int]):
    cache = _cache(settings)
    credentials = await _resolve_credentials(settings, cache)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    ) as progress:
        task = progress.add_task("Fetching splits...", total=len(ids))

        def on_progress(completed: int, total: int) -> None:
            progress.update(task, completed=completed)

        async with StravaClient(credentials) as client:
            service = SplitEnrichmentService(
                client.get_activity,
                store,
                delay_seconds=settings.enrichment_delay_seconds,
            )
            try:
                return await service.enrich(ids, on_progress=on_progress)
            finally:
                # Keep whatever was fetched, even if the pass was aborted
                cache.save(activities=store.all())


def cmd_enrich(args, settings: Settings):
    """Fetch per-km splits for runs that the drift analysis needs."""
    console.print()
    console.print(Panel("[bold]gap-analytics - Split Enrichment[/bold]"))

    store = _load_store(settings)
    if not len(store):
        return

    if args.all:
        ids = store.missing_split_ids()
    else:
        runs = normalize_activities(store.running_activities(), settings.analytics_policy())
        report = analyze_drift(runs, settings.analytics_policy())
        ids = store.missing_split_ids(reversed(report.missing_detail))

    if args.limit:
        ids = ids[:args.limit]

    if not ids:
        console.print("[green]All eligible runs already have split detail.[/green]")
        console.print()
        return

    console.print(
        f"Fetching splits for {len(ids)} runs "
        f"({settings.enrichment_delay_seconds:g}s between requests)..."
    )
    result = asyncio.run(_enrich(settings, store, ids))

    table = Table(title="Enrichment Results", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green")
    table.add_row("Requested", str(result.total))
    table.add_row("Enriched", str(len(result.enriched)))
    table.add_row("Failed", str(result.failure_count))
    console.print(table)

    for activity_id, reason in result.failed.items():
        console.print(f"  [yellow]{activity_id}[/yellow]: {sanitize_string(reason)}")
    console.print()


def _print_report(report: DashboardReport, all_count: int, policy: AnalyticsPolicy):
    console.print()
    console.print(Panel(
        f"[bold]gap-analytics - Report[/bold]\n"
        f"{len(report.runs)} of {all_count} runs "
        f"({'last ' + str(report.run_filter.last_n) if report.run_filter.mode == 'last' else report.run_filter.year})"
    ))

    if report.is_empty:
        console.print("[yellow]Insufficient data: no runs match this filter.[/yellow]")
        console.print()
        return

    totals = report.totals.to_dict()
    console.print(
        f"Total: [bold]{totals['distance_km']} km[/bold] in {totals['moving_time']}, "
        f"{totals['elevation_gain_m']} m climbed"
    )
    console.print()

    # Monthly volume
    monthly = Table(title="Monthly Volume", box=box.ROUNDED)
    monthly.add_column("Month", style="cyan")
    monthly.add_column("Km", justify="right")
    monthly.add_column("Runs", justify="right")
    monthly.add_column("Avg HR", justify="right")
    monthly.add_column("Load", justify="right")
    for bucket in report.monthly:
        monthly.add_row(
            f"{bucket.label} {bucket.year}",
            f"{bucket.distance_km:.1f}",
            str(bucket.run_count),
            f"{bucket.avg_hr:.0f}" if bucket.hr_count else "-",
            f"{bucket.total_load:.0f}",
        )
    console.print(monthly)

    # Recent runs with GAP
    runs = Table(title="Runs (GAP)", box=box.ROUNDED)
    runs.add_column("Date", style="cyan")
    runs.add_column("Name")
    runs.add_column("Km", justify="right")
    runs.add_column("Pace", justify="right")
    runs.add_column("GAP", justify="right")
    runs.add_column("m/km", justify="right")
    runs.add_column("HR", justify="right")
    for run in report.runs[-15:]:
        gap_style = "magenta" if run.significant_adjustment else "white"
        runs.add_row(
            run.start.strftime("%Y-%m-%d"),
            run.name,
            f"{run.distance_km:.2f}",
            run.raw_pace,
            f"[{gap_style}]{run.gap}[/{gap_style}]",
            f"{run.elev_per_km:.0f}",
            f"{run.avg_hr:.0f}" if run.has_hr else "-",
        )
    console.print(runs)

    if not report.has_hr_data:
        console.print("[yellow]Insufficient data: no heart rate in these runs, so HR analytics are skipped.[/yellow]")
        console.print()
        return

    if report.hr_summary:
        hr = report.hr_summary
        console.print(
            f"Heart rate: avg [bold]{hr.avg_hr:.0f}[/bold] bpm, median {hr.median_hr:.0f}, "
            f"max ever {hr.max_hr_ever:.0f} over {hr.run_count} runs"
        )

    if report.personal_bests:
        pbs = Table(title="Personal Bests", box=box.ROUNDED)
        pbs.add_column("Distance", style="cyan")
        pbs.add_column("Time", style="green")
        pbs.add_column("Pace")
        pbs.add_column("Run")
        for pb in report.personal_bests:
            pbs.add_row(pb.label, pb.time, pb.pace, f"{pb.start:%Y-%m-%d} {pb.activity_name}")
        console.print(pbs)

    # Drift
    if report.drift.runs:
        drift = Table(title="Cardiac Drift", box=box.ROUNDED)
        drift.add_column("Run", style="cyan")
        drift.add_column("Splits", justify="right")
        drift.add_column("Drift (bpm)", justify="right")
        for d in report.drift.runs:
            color = "red" if d.drift > policy.high_drift_bpm else "white"
            drift.add_row(
                f"{'* ' if d.is_recent else ''}{d.name}",
                str(len(d.samples)),
                f"[{color}]{d.drift:+.1f}[/{color}]",
            )
        console.print(drift)
    else:
        console.print("[yellow]Insufficient data: no runs with per-km heart rate splits.[/yellow]")
    need_splits = len(report.drift.missing_detail) - len(report.drift.insufficient_hr)
    if need_splits:
        console.print(
            f"{need_splits} eligible runs lack split detail; "
            f"run 'gap-analytics enrich' to fetch them."
        )
    if report.drift.insufficient_hr:
        console.print(f"{len(report.drift.insufficient_hr)} runs have splits without heart rate.")
    console.print()

    # Diagnosis
    diagnosis = report.diagnosis
    console.print("[bold]Diagnosis[/bold] (full history, heuristic)")
    for finding in diagnosis.findings:
        color = get_severity_color(finding.severity)
        console.print(f"  [{color}]{finding.title}[/{color}]: {finding.message}")
    if diagnosis.actions:
        console.print()
        console.print("[bold]Recommended actions[/bold]")
        for action in diagnosis.actions:
            color = get_priority_color(action.priority)
            console.print(f"  [{color}]{action.priority.upper()}[/{color}] {action.task}")
    console.print()


def cmd_report(args, settings: Settings):
    """Show the dashboard for a filter."""
    store = _load_store(settings)
    activities = store.running_activities()

    service = DashboardService(settings.analytics_policy())
    report = service.build(activities, _run_filter(args))

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
        return

    _print_report(report, len(activities), service.policy)


def cmd_export(args, settings: Settings):
    """Export activities as JSON, CSV or text."""
    store = _cache(settings).load_store()
    activities = store.all() if args.all_sports else store.running_activities()

    output = export_activities(
        activities,
        fmt=args.format,
        date_from=args.date_from,
        date_to=args.date_to,
        min_distance_km=args.min_km,
    )

    if args.output:
        Path(args.output).write_text(output + "\n", encoding="utf-8")
        console.print(f"[green]Exported to {args.output}[/green]")
    else:
        print(output)


def _token_status(credentials: Optional[OAuthCredentials]) -> Tuple[str, str]:
    if credentials is None:
        return "not authorized", "red"
    if credentials.expires_at is None:
        return "authorized", "green"
    if credentials.is_expired:
        label = "expired (will refresh)" if credentials.refresh_token else "expired"
        return label, "yellow"
    expiry = datetime.fromtimestamp(credentials.expires_at)
    return f"valid until {expiry:%Y-%m-%d %H:%M}", "green"


def cmd_status(args, settings: Settings):
    """Show cache and credential status."""
    cache = _cache(settings)
    activities, credentials = cache.load()
    store = ActivityStore(activities)
    running = store.running_activities()

    token_label, token_color = _token_status(credentials)

    table = Table(title="gap-analytics status", box=box.ROUNDED)
    table.add_column("Item", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Version", __version__)
    table.add_row("Cache", str(settings.cache_path) + ("" if cache.exists else " (missing)"))
    table.add_row("Strava client", "configured" if settings.strava_configured else "[red]not configured[/red]")
    table.add_row("Token", f"[{token_color}]{token_label}[/{token_color}]")
    table.add_row("Activities", str(len(store)))
    table.add_row("Runs", str(len(running)))
    table.add_row("Runs with splits", str(sum(1 for a in running if a.has_splits)))
    if running:
        table.add_row("Latest run", f"{running[0].local_start:%Y-%m-%d} {running[0].name}")
    console.print(table)


# =============================================================================
# Entry point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gap-analytics",
        description="Grade-adjusted pace and heart-rate drift analytics for Strava runs",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--cache", type=Path, help="Cache file path (overrides CACHE_PATH)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Auth command
    auth_p = subparsers.add_parser("auth", help="Authorize with Strava")
    auth_p.add_argument("--code", help="Authorization code from the redirect URL")

    # Sync command
    sync_p = subparsers.add_parser("sync", help="Fetch activities from Strava")
    sync_p.add_argument(
        "--count", "-n", type=int, default=None, help="Number of activities to fetch"
    )

    # Enrich command
    enrich_p = subparsers.add_parser("enrich", help="Fetch per-km splits for drift analysis")
    enrich_p.add_argument(
        "--limit", type=int, default=None, help="Maximum number of runs to enrich"
    )
    enrich_p.add_argument(
        "--all", action="store_true", help="Enrich every run, not only drift candidates"
    )

    # Report command
    report_p = subparsers.add_parser("report", help="Show the analytics dashboard")
    window = report_p.add_mutually_exclusive_group()
    window.add_argument("--last", type=int, default=30, help="Most recent N runs")
    window.add_argument("--year", type=str, default=None, help="Calendar year, or 'All'")
    report_p.add_argument("--json", action="store_true", help="Print the report as JSON")

    # Export command
    export_p = subparsers.add_parser("export", help="Export activities")
    export_p.add_argument(
        "--format", "-f",
        choices=[f.value for f in ExportFormat],
        default="json",
        help="Output format",
    )
    export_p.add_argument("--from", dest="date_from", type=_parse_date, help="First date (YYYY-MM-DD)")
    export_p.add_argument("--to", dest="date_to", type=_parse_date, help="Last date (YYYY-MM-DD)")
    export_p.add_argument("--min-km", type=float, default=0.0, help="Minimum distance in km")
    export_p.add_argument("--all-sports", action="store_true", help="Include non-running activities")
    export_p.add_argument("--output", "-o", help="Write to a file instead of stdout")

    # Status command
    subparsers.add_parser("status", help="Show cache and credential status")

    return parser


COMMANDS = {
    "auth": cmd_auth,
    "sync": cmd_sync,
    "enrich": cmd_enrich,
    "report": cmd_report,
    "export": cmd_export,
    "status": cmd_status,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.cache:
        settings = settings.model_copy(update={"cache_path": args.cache})

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    install_log_sanitizer()

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 0

    try:
        command(args, settings)
    except (GapAnalyticsError, IntegrationError) as e:
        message = e.message if isinstance(e, GapAnalyticsError) else str(e)
        console.print(f"[red]Error: {sanitize_string(message)}[/red]")
        return 1
    except httpx.HTTPError as e:
        console.print(f"[red]Network error: {sanitize_string(str(e))}[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
