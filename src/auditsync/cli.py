"""Command-line entry points for the scheduled jobs.

Usage:
    auditsync-export [s3|bigquery]
    auditsync-reingest [--dry-run] [--verbose]
    auditsync-fallback {list,stats,cleanup,resync}
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import sys
from collections.abc import Sequence
from typing import Any

from redis.asyncio import Redis  # type: ignore[import-untyped]

from auditsync.alerts import AlertDispatcher
from auditsync.alerts import AlertSuppressor
from auditsync.central import PostgrestCentralStore
from auditsync.checkpoint import CheckpointStore
from auditsync.config import Settings
from auditsync.config import load_settings
from auditsync.errors import ConfigurationError
from auditsync.errors import ExportFailedError
from auditsync.export import ExportDestination
from auditsync.export import ExportOrchestrator
from auditsync.export import ExportRunSummary
from auditsync.export import ObjectStoreDestination
from auditsync.export import PostgrestEventSource
from auditsync.export import RemoteExporter
from auditsync.export import WarehouseDestination
from auditsync.fallback import FallbackWriter
from auditsync.notify import build_channels
from auditsync.reingest import Reconciler
from auditsync.reingest import ReingestSummary
from auditsync.reingest import ResultNotifier
from auditsync.state import JsonFileStateStore
from auditsync.state import RedisStateStore
from auditsync.state import StateStore
from auditsync.sync_status import Destination
from auditsync.sync_status import DestinationType
from auditsync.sync_status import SyncStatus
from auditsync.sync_status import SyncStatusRecorder

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def load_factory(path: str) -> Any:
    """Resolve a ``package.module:callable`` reference."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"client factory {path!r} must look like 'module:callable'")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise ConfigurationError(f"cannot load client factory {path!r}: {exc}") from exc


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_destination(
    settings: Settings, destination_type: DestinationType
) -> ExportDestination:
    if destination_type == DestinationType.S3:
        factory = load_factory(settings.object_store.client_factory or "")
        return ObjectStoreDestination(factory(settings.object_store), settings.object_store)
    factory = load_factory(settings.warehouse.client_factory or "")
    return WarehouseDestination(factory(settings.warehouse), settings.warehouse)


def build_recorder(settings: Settings, central: PostgrestCentralStore) -> SyncStatusRecorder:
    return SyncStatusRecorder(
        central,
        FallbackWriter(settings.fallback),
        environment=settings.environment,
        timeout_seconds=settings.central.timeout_seconds,
    )


def build_state_store(
    settings: Settings, directory: str, redis: Redis | None = None
) -> StateStore:
    if redis is not None:
        return RedisStateStore(redis, prefix=settings.state.redis_prefix)
    return JsonFileStateStore(directory)


def build_orchestrator(
    settings: Settings,
    destination_type: DestinationType,
    *,
    redis: Redis | None = None,
) -> ExportOrchestrator:
    central = PostgrestCentralStore(settings.require_central())
    settings.require_destination(destination_type.value)
    exporter = RemoteExporter(
        PostgrestEventSource(
            central,
            table=settings.central.event_table,
            page_size=settings.export.batch_size,
        ),
        build_destination(settings, destination_type),
        timeout_seconds=settings.export.io_timeout_seconds,
    )
    alerts = AlertDispatcher(
        central,
        AlertSuppressor(
            build_state_store(settings, settings.alerts.cache_dir, redis),
            threshold=settings.alerts.suppression_threshold,
            window_seconds=settings.alerts.suppression_window_seconds,
        ),
        build_channels(settings.notifications),
        environment=settings.environment,
        config=settings.alerts,
    )
    return ExportOrchestrator(
        CheckpointStore(
            build_state_store(settings, settings.export.checkpoint_dir, redis),
            default_lookback_hours=settings.export.default_lookback_hours,
        ),
        [exporter],
        build_recorder(settings, central),
        alerts,
        config=settings.export,
    )


# ---------------------------------------------------------------------------
# auditsync-export
# ---------------------------------------------------------------------------


async def _export(settings: Settings, destination_type: DestinationType) -> ExportRunSummary:
    redis = Redis.from_url(settings.state.redis_url) if settings.state.redis_url else None
    try:
        orchestrator = build_orchestrator(settings, destination_type, redis=redis)
        return await orchestrator.run_export(destination_type)
    finally:
        if redis is not None:
            await redis.aclose()


def export_main(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="auditsync-export",
        description="Export new audit events to object storage or a warehouse.",
    )
    parser.add_argument("export_type", nargs="?", choices=["s3", "bigquery"], default=None)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    settings = settings or load_settings()
    export_type = args.export_type or "s3"
    try:
        summary = asyncio.run(_export(settings, DestinationType(export_type)))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 1
    except ExportFailedError as exc:
        logger.error("Export process failed: %s", exc)
        return 1
    logger.info(
        "Export process completed: %d records to %s",
        summary.records_exported,
        export_type,
    )
    return 0


# ---------------------------------------------------------------------------
# auditsync-reingest
# ---------------------------------------------------------------------------


def format_summary(summary: ReingestSummary) -> str:
    rule = "=" * 60
    lines = [
        "",
        rule,
        "FALLBACK LOG RE-INGESTION SUMMARY",
        rule,
        f"Total Files Processed: {summary.total_files}",
        f"Successful Inserts: {summary.successful_inserts}",
        f"  of which duplicates: {summary.duplicates}",
        f"Failed Inserts: {summary.failed_inserts}",
        f"Total Records: {summary.total_records}",
        f"Archived: {summary.archived}",
        f"Processing Time: {summary.processing_time_ms}ms",
    ]
    if summary.dry_run:
        lines.append(f"Would Insert: {summary.would_insert}")
    if summary.errors:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"  {i}. {error}" for i, error in enumerate(summary.errors, start=1))
    if summary.dry_run:
        lines.append("")
        lines.append("DRY-RUN MODE: No actual changes were made")
    lines.append(rule)
    return "\n".join(lines)


async def _reingest(settings: Settings, *, dry_run: bool, verbose: bool) -> ReingestSummary:
    central = PostgrestCentralStore(settings.central)
    reconciler = Reconciler(
        central, FallbackWriter(settings.fallback), config=settings.reingest
    )
    summary = await reconciler.run(dry_run=dry_run, verbose=verbose)
    print(format_summary(summary))

    notifier = ResultNotifier(
        build_channels(settings.notifications, include_email=False),
        environment=settings.environment,
        config=settings.reingest,
        timeout_seconds=settings.notifications.timeout_seconds,
    )
    await notifier.notify(summary)
    return summary


def reingest_main(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="auditsync-reingest",
        description="Re-ingest buffered fallback sync logs into the central store.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="show what would be done without making changes",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="show detailed processing information",
    )
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    settings = settings or load_settings()
    try:
        settings.require_central()
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 1

    summary = asyncio.run(_reingest(settings, dry_run=args.dry_run, verbose=args.verbose))
    if summary.ok:
        logger.info("Re-ingestion completed successfully")
        return 0
    logger.warning(
        "Re-ingestion completed with %d failures%s",
        summary.failed_inserts,
        " (aborted)" if summary.aborted else "",
    )
    return 1


# ---------------------------------------------------------------------------
# auditsync-fallback
# ---------------------------------------------------------------------------


async def _fallback_command(args: argparse.Namespace, settings: Settings) -> Any:
    writer = FallbackWriter(settings.fallback)
    if args.command == "list":
        logs = await writer.list_logs(
            args.limit,
            status=SyncStatus(args.status) if args.status else None,
            destination=Destination(args.destination) if args.destination else None,
        )
        return [log.model_dump(mode="json") for log in logs]
    if args.command == "stats":
        return (await writer.stats()).model_dump(mode="json")
    if args.command == "cleanup":
        return {"deleted": await writer.cleanup(args.days)}
    central = PostgrestCentralStore(settings.require_central())
    result = await writer.bulk_resync(central, args.batch_size)
    return result.model_dump()


def fallback_main(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="auditsync-fallback",
        description="Inspect and maintain the local fallback sync-log buffer.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="show buffered records, newest first")
    list_cmd.add_argument("--limit", type=int, default=100)
    list_cmd.add_argument("--status", choices=[s.value for s in SyncStatus])
    list_cmd.add_argument("--destination", choices=[d.value for d in Destination])

    sub.add_parser("stats", help="aggregate counts for the buffer")

    cleanup_cmd = sub.add_parser("cleanup", help="delete records older than --days")
    cleanup_cmd.add_argument("--days", type=int, default=None)

    resync_cmd = sub.add_parser("resync", help="reconcile the buffer in batches")
    resync_cmd.add_argument("--batch-size", type=int, default=None)

    args = parser.parse_args(argv)
    _configure_logging(False)

    settings = settings or load_settings()
    if args.command == "resync" and args.batch_size is None:
        args.batch_size = settings.reingest.bulk_batch_size
    try:
        output = asyncio.run(_fallback_command(args, settings))
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 1
    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0
