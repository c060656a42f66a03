from __future__ import annotations

import argparse
import asyncio

from job_aggregator.app import Application
from job_aggregator.config import load_settings, mask_secret
from job_aggregator.log import configure_logging
from job_aggregator.models import JobFilters
from job_aggregator.storage import StateStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="job-aggregator")
    subparsers = parser.add_subparsers(dest="command", required=True)

    search_parser = subparsers.add_parser("search", help="Search every enabled provider once")
    search_parser.add_argument("query")
    search_parser.add_argument("--location", default=None)
    search_parser.add_argument("--remote", action="store_true", default=False)
    search_parser.add_argument("--limit", type=int, default=20)

    alerts_parser = subparsers.add_parser("alerts", help="Manage saved job alerts")
    alerts_sub = alerts_parser.add_subparsers(dest="alerts_command", required=True)
    alerts_sub.add_parser("list", help="List saved alerts")
    add_parser = alerts_sub.add_parser("add", help="Create an alert and check it immediately")
    add_parser.add_argument("name")
    add_parser.add_argument("query")
    add_parser.add_argument("--location", default=None)
    add_parser.add_argument("--remote", action="store_true", default=False)
    add_parser.add_argument("--email", action="store_true", default=False)
    remove_parser = alerts_sub.add_parser("remove", help="Delete an alert")
    remove_parser.add_argument("alert_id")
    toggle_parser = alerts_sub.add_parser("toggle", help="Enable or disable an alert")
    toggle_parser.add_argument("alert_id")
    check_parser = alerts_sub.add_parser("check", help="Check one alert, or all enabled alerts")
    check_parser.add_argument("alert_id", nargs="?", default=None)

    health_parser = subparsers.add_parser("health", help="Show provider health")
    health_parser.add_argument("--cleanup", action="store_true", default=False)

    subparsers.add_parser("verify-boards", help="Probe company boards and disable dead ones")

    watch_parser = subparsers.add_parser("watch", help="Poll alerts and verify boards until interrupted")
    watch_parser.add_argument("--interval", type=float, default=None, help="Alert check interval in seconds")

    subparsers.add_parser("healthcheck", help="Validate config and local runtime readiness")
    return parser


def _filters(query: str, location: str | None, remote: bool, limit: int | None = None) -> JobFilters:
    return JobFilters(query=query, location=location, remote=True if remote else None, limit=limit)


async def _cmd_search(app: Application, args: argparse.Namespace) -> int:
    result = await app.aggregation.search_jobs(_filters(args.query, args.location, args.remote, args.limit))
    for job in result.jobs:
        remote = " [remote]" if job.remote else ""
        print(f"- {job.title} @ {job.company} ({job.location}){remote} [{job.source}] {job.url}")
    print(
        "search summary:",
        f"total_found={result.total_found}",
        f"sources={','.join(result.sources) or '-'}",
        f"processing_ms={result.processing_time_ms:.0f}",
    )
    for error in result.errors:
        print(f"error: {error}")
    return 1 if result.errors else 0


async def _cmd_alerts(app: Application, args: argparse.Namespace) -> int:
    alerts = app.alerts
    if args.alerts_command == "list":
        for alert in alerts.get_alerts():
            state = "on" if alert.enabled else "off"
            checked = alert.last_checked.isoformat() if alert.last_checked else "never"
            print(
                f"{alert.id} [{state}] {alert.name}: query={alert.filters.search_text!r}",
                f"matches={alert.total_matches} new={alert.new_matches} last_checked={checked}",
            )
        print("alerts summary:", *(f"{key}={value}" for key, value in alerts.get_stats().items()))
        return 0

    if args.alerts_command == "add":
        alert = await alerts.create_alert(
            args.name,
            _filters(args.query, args.location, args.remote),
            email_notifications=args.email,
        )
        print(f"created alert {alert.id}: total_matches={alert.total_matches} new_matches={alert.new_matches}")
        return 0

    if args.alerts_command == "remove":
        alert = alerts.delete_alert(args.alert_id)
        print(f"deleted alert {alert.id} ({alert.name})")
        return 0

    if args.alerts_command == "toggle":
        alert = alerts.toggle_alert(args.alert_id)
        print(f"alert {alert.id} is now {'enabled' if alert.enabled else 'disabled'}")
        return 0

    if args.alerts_command == "check":
        if args.alert_id:
            new_jobs = await alerts.check_alert(args.alert_id)
            for job in new_jobs:
                print(f"- {job.title} @ {job.company} {job.url}")
            print(f"check summary: alert={args.alert_id} new_jobs={len(new_jobs)}")
        else:
            counts = await alerts.check_all_alerts()
            print("check summary:", f"alerts_checked={len(counts)}", f"new_jobs={sum(counts.values())}")
        return 0
    return 1


def _cmd_health(app: Application, args: argparse.Namespace) -> int:
    if args.cleanup:
        removed = app.health.cleanup_old_data()
        print(f"removed {len(removed)} stale health entries")

    for report in app.health.get_provider_health_report():
        metric = report.metrics
        print(
            f"{report.provider_key}: {metric.status.value}",
            f"enabled={report.is_enabled}",
            f"failures={metric.consecutive_failures}",
            f"avg_ms={metric.average_response_time:.0f}",
            f"checks={metric.total_checks}",
            f"last_error={report.last_error or '-'}",
        )
    summary = app.health.get_health_summary()
    print(
        "health summary:",
        f"total={summary.total_providers}",
        f"healthy={summary.healthy_providers}",
        f"degraded={summary.degraded_providers}",
        f"failed={summary.failed_providers}",
        f"avg_ms={summary.average_response_time:.0f}",
    )
    return 0


async def _cmd_verify_boards(app: Application) -> int:
    results = await app.boards.verify()
    for key, available in sorted(results.items()):
        print(f"{key}: {'ok' if available else 'disabled'}")
    print(
        "verify summary:",
        f"boards={len(results)}",
        f"available={sum(1 for ok in results.values() if ok)}",
    )
    return 0


async def _cmd_watch(app: Application, args: argparse.Namespace) -> int:
    if args.interval is not None:
        if args.interval <= 0:
            raise ValueError("--interval must be positive")
        app.settings = app.settings.model_copy(update={"alert_check_interval_seconds": args.interval})
    await app.start_background()
    try:
        await asyncio.Event().wait()
    finally:
        await app.stop_background()
    return 0


async def _run(args: argparse.Namespace) -> int:
    settings = load_settings()
    async with Application(settings) as app:
        if args.command == "search":
            return await _cmd_search(app, args)
        if args.command == "alerts":
            return await _cmd_alerts(app, args)
        if args.command == "health":
            return _cmd_health(app, args)
        if args.command == "verify-boards":
            return await _cmd_verify_boards(app)
        if args.command == "watch":
            return await _cmd_watch(app, args)
    return 1


def _cmd_healthcheck() -> int:
    settings = load_settings()
    try:
        with StateStore(settings.state_db_path):
            pass
    except Exception as exc:
        print(f"state db check failed: {exc}")
        return 1

    print(f"state db ready: {settings.state_db_path}")
    if settings.slack_webhook_url:
        print(f"slack forwarding enabled: {mask_secret(settings.slack_webhook_url, 20, 4)}")
    else:
        print("SLACK_WEBHOOK_URL not set; notifications stay in-process")
    if not settings.jooble_api_key:
        print("JOOBLE_API_KEY not set; jooble provider will be skipped")
    print("healthcheck passed")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging()

    try:
        if args.command == "healthcheck":
            return _cmd_healthcheck()
        return asyncio.run(_run(args))
    except ValueError as exc:
        print(exc)
        return 1
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
