"""Command-line entrypoint for the folder activity audit report."""

from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from spo_folder_audit import __version__
from spo_folder_audit.config import Settings, load_settings
from spo_folder_audit.domain.parameters import RunParameters
from spo_folder_audit.errors import AuditRunError, ConfigurationError
from spo_folder_audit.execution.retry import RetryPolicy
from spo_folder_audit.logging_utils import configure_logging, get_logger
from spo_folder_audit.profile.loader import load_profile
from spo_folder_audit.profile.models import RunProfile
from spo_folder_audit.report.csv_sink import CsvReportSink
from spo_folder_audit.report.sites import load_site_allow_list
from spo_folder_audit.runner import ReportRunner, RunSummary
from spo_folder_audit.source.base import AuditSource
from spo_folder_audit.source.http_source import HttpAuditSource
from spo_folder_audit.source.replay import ReplayAuditSource
from spo_folder_audit.utils.time import utc_now

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_INVALID_PARAMETERS = 2


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO date or datetime: {value!r}") from exc


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spo-folder-audit",
        description="Export SharePoint Online / OneDrive folder activity to a CSV report.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--start-date", type=_parse_datetime, help="Range start (default: 180 days ago)")
    parser.add_argument("--end-date", type=_parse_datetime, help="Range end (default: now)")
    parser.add_argument("--performed-by", help="Only activity by this user (UPN)")
    parser.add_argument("--site-url", help="Only activity on this site URL")
    parser.add_argument("--import-sites-csv", type=Path, help="CSV with a SiteUrl column")
    workload = parser.add_mutually_exclusive_group()
    workload.add_argument("--sharepoint-online", action="store_true", default=None)
    workload.add_argument("--onedrive", action="store_true", default=None)
    parser.add_argument("--include-system-events", action="store_true", default=None)
    parser.add_argument("--interval-minutes", type=int, help="Query window length (1-10080)")
    parser.add_argument("--throttle-limit", type=int, help="Enrichment workers (1-100)")
    parser.add_argument("--output-path", type=Path, help="Directory for the report")
    parser.add_argument("--profile", help="YAML run profile")
    parser.add_argument("--replay", type=Path, help="Read records from a JSON-lines export")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    return parser


def _flag_or(value: object, fallback: object) -> object:
    """Return an explicitly given flag value, falsy ones included, else ``fallback``."""
    return value if value is not None else fallback


def build_parameters(args: argparse.Namespace, profile: RunProfile | None) -> RunParameters:
    """Merge command-line flags over profile values; unset values keep model defaults."""
    profile = profile or RunProfile()
    filters = profile.filters
    values: dict[str, object] = {
        "start_date": args.start_date,
        "end_date": args.end_date,
        "performed_by": _flag_or(args.performed_by, filters.performed_by),
        "site_url": _flag_or(args.site_url, filters.site_url),
        "import_sites_csv": _flag_or(args.import_sites_csv, filters.sites_csv),
        "include_system_events": _flag_or(args.include_system_events, filters.include_system_events),
        "interval_minutes": _flag_or(args.interval_minutes, profile.interval_minutes),
        "throttle_limit": _flag_or(args.throttle_limit, profile.throttle_limit),
        "output_path": _flag_or(args.output_path, profile.output_path),
        "operations": frozenset(profile.operations) if profile.operations else None,
    }
    if args.sharepoint_online or args.onedrive:
        values["sharepoint_online"] = bool(args.sharepoint_online)
        values["onedrive"] = bool(args.onedrive)
    elif filters.workload == "SharePoint":
        values["sharepoint_online"] = True
    elif filters.workload == "OneDrive":
        values["onedrive"] = True
    return RunParameters(**{key: value for key, value in values.items() if value is not None})


def _resolve_timezone(name: str | None) -> ZoneInfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown REPORT_TIMEZONE {name!r}") from exc


def _build_source(args: argparse.Namespace, settings: Settings) -> AuditSource:
    if args.replay is not None:
        return ReplayAuditSource.from_jsonl(args.replay)
    return HttpAuditSource(settings.source)


def _print_summary(summary: RunSummary) -> None:
    if summary.rows_written == 0:
        print("No folder activity matched the given criteria.")
        return
    print(f"Report contains {summary.rows_written} records: {summary.report_path}")
    if summary.parse_warnings:
        print(f"{summary.parse_warnings} records could not be parsed and were skipped.")


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    try:
        settings = load_settings()
    except RuntimeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INVALID_PARAMETERS

    configure_logging(args.log_level)
    logger = get_logger("spo_folder_audit.cli")

    try:
        profile = load_profile(args.profile) if args.profile else None
        params = build_parameters(args, profile)
        site_allow_list = (
            load_site_allow_list(params.import_sites_csv)
            if params.import_sites_csv
            else frozenset()
        )
        tz = _resolve_timezone(settings.report.timezone)
    except ValidationError as exc:
        print(f"Invalid parameters: {exc}", file=sys.stderr)
        return EXIT_INVALID_PARAMETERS
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INVALID_PARAMETERS

    if site_allow_list:
        logger.info("Restricting report to %d imported sites", len(site_allow_list))

    started_at = utc_now()
    output_dir = params.output_path or Path(settings.report.output_path)
    sink = CsvReportSink.for_run(output_dir, started_at.astimezone(tz))

    try:
        source = _build_source(args, settings)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_INVALID_PARAMETERS

    runner = ReportRunner(
        source=source,
        sink=sink,
        retry_policy=RetryPolicy.from_settings(settings.retry),
        params=params,
        site_allow_list=site_allow_list,
        now=started_at,
        tz=tz,
        page_size=settings.source.page_size,
    )
    try:
        summary = runner.run()
    except AuditRunError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        if runner.state.rows_written:
            print(
                f"Partial report with {runner.state.rows_written} records kept at {sink.path}",
                file=sys.stderr,
            )
        return EXIT_RUN_FAILED

    _print_summary(summary)
    return EXIT_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover
    run()
