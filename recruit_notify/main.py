"""Command-line entry point for notification administration."""

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from recruit_notify.campaigns import BulkCampaignRunner, RecipientSelector
from recruit_notify.config.environment import EnvironmentConfig
from recruit_notify.config.exceptions import ConfigurationError
from recruit_notify.config.loader import load_config, validate_config_file
from recruit_notify.config.models import AppConfig, LogFormat, LogLevel
from recruit_notify.domain.models import ApplicationStatus, NotificationStatus
from recruit_notify.logging import get_logger
from recruit_notify.logging.config import configure_logging
from recruit_notify.notifications.models import FailurePolicy, TransportError
from recruit_notify.notifications.service import NotificationService
from recruit_notify.notifications.smtp_client import SMTPTransport
from recruit_notify.persistence.database import close_database, init_database
from recruit_notify.persistence.exceptions import PersistenceError, RecordNotFoundError

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """Load configuration and settle the effective log level.

    Priority: CLI flag, then LOG_LEVEL, then the config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = LogLevel(app_config.logging.level).value

    return app_config, env_config


def build_notification_service(
    app_config: AppConfig, env_config: EnvironmentConfig
) -> NotificationService:
    transport = SMTPTransport(env_config, app_config.email)
    return NotificationService(
        transport,
        frontend_url=env_config.frontend_url,
        default_location=app_config.calendar.default_location,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recruit-notify",
        description="Recruit Notify - notification outbox administration",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    resend = subparsers.add_parser("resend", help="Resend one notification record")
    resend.add_argument("record_id", type=int, help="Notification record id")

    subparsers.add_parser("resend-failed", help="Resend every FAILED notification once")
    subparsers.add_parser("stats", help="Show notification counts per status")

    preview = subparsers.add_parser(
        "preview-campaign", help="List the recipients a campaign would target"
    )
    preview.add_argument(
        "--application-id",
        dest="application_ids",
        type=int,
        action="append",
        help="Explicit application id (repeatable, overrides filters)",
    )
    preview.add_argument("--job-id", type=int, default=None, help="Filter by job id")
    preview.add_argument(
        "--status",
        choices=[status.value for status in ApplicationStatus],
        default=None,
        help="Filter by application status",
    )

    validate = subparsers.add_parser(
        "validate-config", help="Validate a configuration file and exit"
    )
    validate.add_argument(
        "path", type=Path, nargs="?", default=Path("config.yaml"), help="File to validate"
    )

    return parser


def _resend(service: NotificationService, record_id: int) -> int:
    try:
        record = service.resend(record_id, policy=FailurePolicy.PROPAGATE)
    except RecordNotFoundError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    except TransportError as e:
        print(f"✗ Notification {record_id} failed again: {e}", file=sys.stderr)
        return 1

    print(f"✓ Notification {record.id} sent to {record.recipient_address} (retry {record.retry_count})")
    return 0


def _resend_failed(service: NotificationService) -> int:
    summary = service.resend_all_failed()
    print(
        f"Resent {summary.total} failed notifications: "
        f"{summary.success_count} sent, {summary.failure_count} failed"
    )
    return 0 if summary.failure_count == 0 else 1


def _stats(service: NotificationService) -> int:
    counts = service.delivery_stats()
    for status in NotificationStatus:
        print(f"{status.value:<8} {counts.get(status, 0)}")
    print(f"{'TOTAL':<8} {sum(counts.values())}")
    return 0


def _preview(runner: BulkCampaignRunner, args: argparse.Namespace) -> int:
    selector = RecipientSelector(
        application_ids=args.application_ids,
        job_id=args.job_id,
        status=ApplicationStatus(args.status) if args.status else None,
    )
    preview = runner.preview(selector)
    print(f"{preview.total_recipients} recipients")
    for recipient in preview.recipients:
        print(
            f"  #{recipient.application_id} {recipient.name} <{recipient.email or 'no email'}> "
            f"{recipient.job_title or 'unknown job'} [{recipient.application_status}]"
        )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    load_dotenv()
    args = build_parser().parse_args(argv)

    if args.command == "validate-config":
        return 0 if validate_config_file(args.path) else 1

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=LogFormat(app_config.logging.format).value,
            environment=os.environ.get("ENVIRONMENT", "local"),
        )
        init_database(env_config.database_url)
    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1
    except PersistenceError as e:
        print(f"Database Error: {e}", file=sys.stderr)
        return 1

    logger.info(
        f"Running command {args.command}",
        extra={"event": "cli.command.started", "command": args.command},
    )

    try:
        service = build_notification_service(app_config, env_config)
        if args.command == "resend":
            return _resend(service, args.record_id)
        if args.command == "resend-failed":
            return _resend_failed(service)
        if args.command == "stats":
            return _stats(service)
        if args.command == "preview-campaign":
            return _preview(BulkCampaignRunner(service, config=app_config.campaigns), args)
        return 2
    except PersistenceError as e:
        print(f"Database Error: {e}", file=sys.stderr)
        logger.error(
            f"Command {args.command} failed: {e}",
            extra={"event": "cli.command.failed", "error_type": type(e).__name__},
        )
        return 1
    finally:
        close_database()


if __name__ == "__main__":
    sys.exit(main())
