"""Main entry point for the tender alert service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import asyncio
import os
import signal
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from tender_alerts.config.environment import EnvironmentConfig
from tender_alerts.config.exceptions import ConfigurationError
from tender_alerts.config.loader import load_config
from tender_alerts.config.models import AppConfig
from tender_alerts.logging import get_logger
from tender_alerts.logging.config import configure_logging
from tender_alerts.notifications.models import TransportInitializationError
from tender_alerts.notifications.templates import TemplateRenderer
from tender_alerts.notifications.transport import DeliveryTransport, create_transport
from tender_alerts.persistence.database import Database
from tender_alerts.persistence.store import SqlAlchemyAlertStore
from tender_alerts.pipeline.models import RunResult
from tender_alerts.pipeline.runner import AlertProcessor
from tender_alerts.scheduler.jobs import register_default_jobs
from tender_alerts.scheduler.service import SchedulerService, UnknownJobError

logger = get_logger(__name__, component="cli")


@dataclass
class Services:
    """Explicitly constructed components shared by every CLI mode."""

    store: SqlAlchemyAlertStore
    transport: DeliveryTransport
    processor: AlertProcessor
    scheduler: SchedulerService

    def close(self) -> None:
        self.scheduler.shutdown()
        self.store.close()


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Priority: CLI > LOG_LEVEL environment variable > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    return app_config, env_config


def build_services(app_config: AppConfig, env_config: EnvironmentConfig) -> Services:
    """
    Construct store, transport, orchestrator and scheduler with all jobs registered.

    Raises:
        DatabaseConnectionError: If the database cannot be opened
        TransportInitializationError: If no email transport can be built
    """
    database = Database(env_config.database_url).init()
    store = SqlAlchemyAlertStore(database)

    try:
        transport = create_transport(env_config, app_config.email)
    except TransportInitializationError:
        store.close()
        raise

    renderer = TemplateRenderer(
        base_url=app_config.links.base_url,
        timezone=app_config.scheduler.timezone,
    )
    processor = AlertProcessor(
        app_config=app_config,
        registry=store,
        records=store,
        stats=store,
        renderer=renderer,
        transport=transport,
        retention=store,
    )
    scheduler = SchedulerService(
        timezone=app_config.scheduler.timezone,
        slow_run_threshold=app_config.slow_run_threshold_seconds,
    )
    register_default_jobs(scheduler, processor, app_config)

    logger.info(
        "Services initialized",
        extra={
            "event": "services.initialized",
            "transport": transport.name,
            "jobs": scheduler.job_names,
        },
    )
    return Services(store=store, transport=transport, processor=processor, scheduler=scheduler)


async def run_daemon(services: Services) -> None:
    """Start every job and block until SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def request_stop(signum: int) -> None:
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, request_stop, signum)

    started = services.scheduler.start_all()
    logger.info(
        f"Scheduler started with {len(started)} job(s). Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started", "jobs": started},
    )
    try:
        await stop_event.wait()
    finally:
        services.close()


async def run_trigger(services: Services, name: str) -> Optional[RunResult]:
    """Run one named job once through the scheduler's trigger path."""
    try:
        return await services.scheduler.trigger(name)
    finally:
        services.close()


async def run_verify(services: Services) -> bool:
    try:
        result = await services.transport.verify()
    finally:
        services.close()
    if result.success:
        print(f"Transport OK: {result.message}")
    else:
        print(f"Transport check failed: {result.error}", file=sys.stderr)
    return result.success


def print_status(services: Services) -> None:
    for name, info in services.scheduler.status().items():
        next_run = info["next_run_at"].isoformat() if info["next_run_at"] else "-"
        print(f"{name:<14} {info['schedule']:<14} {info['timezone']:<16} next: {next_run}")
    services.close()


def main() -> int:
    """
    Main entry point for the tender alert service.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    parser = argparse.ArgumentParser(
        description="Tender alerts - match new tenders against saved alerts and email owners"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: ./config.yaml if present)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--trigger", metavar="NAME", help="Run one job (e.g. daily-09:00) and exit")
    mode.add_argument("--status", action="store_true", help="Print registered jobs and exit")
    mode.add_argument(
        "--verify-transport",
        action="store_true",
        help="Check the email transport connection and exit",
    )

    args = parser.parse_args()

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        environment = os.environ.get("ENVIRONMENT", "local")
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=environment,
        )

        logger.info(
            "Tender alert service starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "timezone": app_config.scheduler.timezone,
            },
        )

        services = build_services(app_config, env_config)

        if args.status:
            print_status(services)
            return 0

        if args.verify_transport:
            return 0 if asyncio.run(run_verify(services)) else 1

        if args.trigger:
            result = asyncio.run(run_trigger(services, args.trigger))
            if result is None:
                return 1
            logger.info(
                f"Manual run completed: {result.processed_owners} owner(s), "
                f"{result.emails_sent} email(s), {len(result.errors)} error(s)",
                extra={"event": "service.manual_run.completed", "run_id": result.run_id},
            )
            return 1 if result.had_errors else 0

        asyncio.run(run_daemon(services))
        logger.info(
            "Tender alert service stopped",
            extra={
                "event": "service.stopping",
                "uptime_seconds": round(time.time() - start_time, 2),
            },
        )
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1
    except UnknownJobError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except TransportInitializationError as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "No usable email transport",
            extra={"event": "service.startup.failed", "error_type": type(e).__name__},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error",
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True,
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
