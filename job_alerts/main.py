"""Main entry point for the job alert dispatcher service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import json
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Optional, Tuple

from job_alerts.config.environment import EnvironmentConfig
from job_alerts.config.exceptions import ConfigurationError
from job_alerts.config.loader import load_config
from job_alerts.config.models import AppConfig
from job_alerts.dispatch import AlertDispatcher, DispatchSummary
from job_alerts.domain.exceptions import ValidationError
from job_alerts.events import PostingInbox
from job_alerts.logging import get_logger
from job_alerts.logging.config import configure_logging
from job_alerts.matching import AlertMatcher
from job_alerts.notifications.webpush_client import PushTransport, WebPushClient
from job_alerts.persistence.database import close_database, init_database
from job_alerts.persistence.exceptions import PersistenceError
from job_alerts.persistence.store import PostingEventStore, SubscriptionStore
from job_alerts.scheduler import SchedulerService

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load settings and settle the effective log level.

    Log level priority: CLI flag > LOG_LEVEL > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    return app_config, env_config


def build_inbox(
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    transport: Optional[PushTransport] = None,
) -> PostingInbox:
    """Wire stores, transport, dispatcher and inbox together.

    The database must already be initialized.
    """
    transport = transport or WebPushClient.from_config(app_config.push, env_config)
    dispatcher = AlertDispatcher(
        store=SubscriptionStore(),
        transport=transport,
        matcher=AlertMatcher(),
        max_workers=app_config.dispatch.max_workers,
    )
    return PostingInbox(
        event_store=PostingEventStore(),
        dispatcher=dispatcher,
        batch_size=app_config.event_source.batch_size,
    )


def read_event(path: str) -> Any:
    """Read one JSON event from ``path`` (``-`` for stdin)."""
    if path == "-":
        return json.load(sys.stdin)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def log_summary(summary: DispatchSummary) -> None:
    logger.info(
        f"Dispatch for posting {summary.posting_id}: "
        f"{summary.alerts_matched} alerts matched, "
        f"{len(summary.owner_ids)} owners, "
        f"{summary.sent_count} sent, "
        f"{summary.failed_count} failed, "
        f"{len(summary.pruned)} pruned",
        extra={
            "event": "service.dispatch.summary",
            "posting_id": summary.posting_id,
            "had_errors": summary.had_errors,
            "deliveries": summary.deliveries(),
        },
    )


def run_event_file(inbox: PostingInbox, path: str) -> int:
    """Dispatch the event in ``path`` and return the process exit code."""
    try:
        event = read_event(path)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Could not read event file {path}: {e}", file=sys.stderr)
        return 1

    try:
        summary = inbox.handle_event(event)
    except ValidationError as e:
        print(f"Rejected event: {e}", file=sys.stderr)
        logger.error(f"Rejected event: {e}", extra={"event": "service.event_rejected"})
        return 1
    except PersistenceError as e:
        print(f"Store unavailable: {e}", file=sys.stderr)
        return 1

    if summary is None:
        return 0
    log_summary(summary)
    return 1 if summary.had_errors else 0


def run_drain_once(inbox: PostingInbox) -> int:
    summaries = inbox.drain()
    for summary in summaries:
        log_summary(summary)
    return 1 if any(summary.had_errors for summary in summaries) else 0


def run_daemon(inbox: PostingInbox, interval_seconds: int) -> int:
    shutdown_event = threading.Event()
    scheduler_service = SchedulerService(
        drain_callable=inbox.drain,
        interval_seconds=interval_seconds,
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info("Scheduler started. Press Ctrl+C to stop", extra={"event": "service.daemon_mode.started"})

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down", extra={"event": "service.keyboard_interrupt"})
        scheduler_service.shutdown(wait=False)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Job alert dispatcher - pushes new job postings to subscribers whose alerts match"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml, then config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--event-file",
        metavar="PATH",
        help="Dispatch the posting event in PATH ('-' for stdin) and exit",
    )
    mode.add_argument(
        "--drain-once",
        action="store_true",
        help="Dispatch pending inbox events once and exit",
    )
    return parser


def main(argv=None) -> int:
    """
    Run the dispatcher.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment or "local",
        )

        mode = "event-file" if args.event_file else "drain-once" if args.drain_once else "daemon"
        logger.info(
            "Job alert dispatcher starting",
            extra={
                "event": "service.starting",
                "mode": mode,
                "log_level": env_config.log_level,
                "max_workers": app_config.dispatch.max_workers,
                "poll_interval_seconds": app_config.poll_interval_seconds,
            },
        )

        init_database(env_config.database_url)
        try:
            inbox = build_inbox(app_config, env_config)
            if args.event_file:
                exit_code = run_event_file(inbox, args.event_file)
            elif args.drain_once:
                exit_code = run_drain_once(inbox)
            else:
                exit_code = run_daemon(inbox, app_config.poll_interval_seconds)
        finally:
            close_database()

        logger.info(
            "Job alert dispatcher stopped",
            extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
        )
        return exit_code

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error",
            extra={"event": "service.fatal", "error_type": type(e).__name__, "error": str(e)},
            exc_info=True,
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
