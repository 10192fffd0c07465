"""Unit tests for the main entry point.

Tests the main() function including:
- CLI argument parsing
- Configuration loading with log level priority (CLI > env > config)
- validate-config without environment variables
- Outbox administration commands against a real database file
- Exit code handling
"""

import logging
from unittest.mock import patch

import pytest

from recruit_notify.config.environment import EnvironmentConfig
from recruit_notify.config.models import AppConfig, LoggingConfig
from recruit_notify.domain.models import ApplicationStatus, NotificationRecord, NotificationStatus
from recruit_notify.main import build_parser, load_runtime_config, main
from recruit_notify.persistence import (
    NotificationRecordRepository,
    close_database,
    get_session,
    init_database,
)
from tests.helpers import FakeTransport, add_application, add_job, add_user

CONFIG_YAML = """
calendar:
  org_domain: acme.io
logging:
  level: WARNING
  format: json
"""


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'notify.db'}"


@pytest.fixture
def cli_env(monkeypatch, database_url):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("DATABASE_URL", database_url)
    for name in ("SMTP_USER", "SMTP_PASS", "LOG_LEVEL", "FRONTEND_URL", "SMTP_SENDER_NAME"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def transport(monkeypatch):
    fake = FakeTransport()
    monkeypatch.setattr("recruit_notify.main.SMTPTransport", lambda env_config, email_config: fake)
    return fake


def seed_records(database_url, *records):
    init_database(database_url)
    try:
        created = []
        with get_session() as session:
            repo = NotificationRecordRepository(session)
            for record, status in records:
                stored = repo.create(record)
                created.append(repo.update_status(stored.id, status, "550 mailbox unavailable"))
        return created
    finally:
        close_database()


def outbox_record(address):
    return NotificationRecord(
        recipient_address=address,
        subject="Job Offer - Backend Engineer",
        body="<p>Congratulations</p>",
        template_name="job-offer",
    )


class TestBuildParser:
    def test_resend(self):
        args = build_parser().parse_args(["resend", "42"])
        assert args.command == "resend"
        assert args.record_id == 42

    def test_preview_campaign_options(self):
        args = build_parser().parse_args(
            ["preview-campaign", "--application-id", "1", "--application-id", "2", "--status", "SHORTLISTED"]
        )
        assert args.application_ids == [1, 2]
        assert args.status == "SHORTLISTED"
        assert args.job_id is None

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_invalid_log_level_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-level", "LOUD", "stats"])


class TestLoadRuntimeConfig:
    """Test suite for load_runtime_config helper."""

    def test_log_level_priority(self, config_file):
        """Log level priority: CLI > env > config."""
        env_config = EnvironmentConfig(smtp_host="smtp.example.com", smtp_port=587, log_level="INFO")
        app_config = AppConfig(logging=LoggingConfig(level="WARNING"))

        with patch("recruit_notify.main.load_config", return_value=(app_config, env_config)):
            _, env = load_runtime_config(config_file, "DEBUG")
            assert env.log_level == "DEBUG"

            env_config.log_level = "INFO"
            _, env = load_runtime_config(config_file, None)
            assert env.log_level == "INFO"

            env_config.log_level = None
            _, env = load_runtime_config(config_file, None)
            assert env.log_level == "WARNING"

    def test_reads_file_and_environment(self, config_file, cli_env, database_url):
        app_config, env_config = load_runtime_config(config_file, None)

        assert app_config.calendar.org_domain == "acme.io"
        assert env_config.smtp_host == "smtp.example.com"
        assert env_config.database_url == database_url
        assert env_config.log_level == "WARNING"


class TestValidateConfigCommand:
    def test_valid_file(self, config_file, capsys, monkeypatch):
        monkeypatch.delenv("SMTP_HOST", raising=False)

        assert main(["validate-config", str(config_file)]) == 0
        assert "✓" in capsys.readouterr().out

    def test_invalid_file(self, tmp_path, capsys):
        bad = tmp_path / "bad.yaml"
        bad.write_text("logging:\n  level: LOUD\n")

        assert main(["validate-config", str(bad)]) == 1
        assert "Configuration validation failed" in capsys.readouterr().out


class TestConfigurationErrors:
    def test_missing_environment(self, config_file, monkeypatch, capsys):
        monkeypatch.delenv("SMTP_HOST", raising=False)
        monkeypatch.delenv("SMTP_PORT", raising=False)

        assert main(["--config", str(config_file), "stats"]) == 1
        assert "Configuration Error" in capsys.readouterr().err

    def test_missing_config_file(self, tmp_path, cli_env, capsys):
        assert main(["--config", str(tmp_path / "nope.yaml"), "stats"]) == 1
        assert "Configuration Error" in capsys.readouterr().err


class TestOutboxCommands:
    def test_stats(self, config_file, cli_env, database_url, transport, capsys):
        seed_records(
            database_url,
            (outbox_record("jane.doe@example.com"), NotificationStatus.SENT),
            (outbox_record("omar.khan@example.com"), NotificationStatus.FAILED),
        )

        assert main(["--config", str(config_file), "stats"]) == 0

        lines = [line.split() for line in capsys.readouterr().out.splitlines() if line.strip()]
        counts = {line[0]: int(line[1]) for line in lines if len(line) == 2 and line[1].isdigit()}
        assert counts == {"PENDING": 0, "SENT": 1, "FAILED": 1, "TOTAL": 2}

    def test_resend_success(self, config_file, cli_env, database_url, transport, capsys):
        (failed,) = seed_records(database_url, (outbox_record("omar.khan@example.com"), NotificationStatus.FAILED))

        assert main(["--config", str(config_file), "resend", str(failed.id)]) == 0

        assert transport.recipients() == ["omar.khan@example.com"]
        assert f"✓ Notification {failed.id} sent to omar.khan@example.com (retry 1)" in capsys.readouterr().out

    def test_resend_failure(self, config_file, cli_env, database_url, transport, capsys):
        (failed,) = seed_records(database_url, (outbox_record("omar.khan@example.com"), NotificationStatus.FAILED))
        transport.fail_all = True

        assert main(["--config", str(config_file), "resend", str(failed.id)]) == 1
        assert "failed again" in capsys.readouterr().err

    def test_resend_unknown_record(self, config_file, cli_env, transport, capsys):
        assert main(["--config", str(config_file), "resend", "999"]) == 1
        assert "not found" in capsys.readouterr().err

    def test_resend_failed(self, config_file, cli_env, database_url, transport, capsys):
        seed_records(
            database_url,
            (outbox_record("omar.khan@example.com"), NotificationStatus.FAILED),
            (outbox_record("lena.fischer@example.com"), NotificationStatus.FAILED),
        )

        assert main(["--config", str(config_file), "resend-failed"]) == 0
        assert "Resent 2 failed notifications: 2 sent, 0 failed" in capsys.readouterr().out

    def test_resend_failed_with_failures(self, config_file, cli_env, database_url, transport, capsys):
        seed_records(database_url, (outbox_record("omar.khan@example.com"), NotificationStatus.FAILED))
        transport.fail_all = True

        assert main(["--config", str(config_file), "resend-failed"]) == 1

    def test_log_level_flag(self, config_file, cli_env, transport):
        assert main(["--config", str(config_file), "--log-level", "DEBUG", "stats"]) == 0
        assert logging.getLogger().level == logging.DEBUG


class TestPreviewCampaign:
    def test_lists_filtered_recipients(self, config_file, cli_env, database_url, transport, capsys):
        init_database(database_url)
        try:
            job = add_job()
            jane = add_user("jane.doe@example.com", "Jane", "Doe")
            omar = add_user("omar.khan@example.com", "Omar", "Khan")
            add_application(jane, job, ApplicationStatus.SHORTLISTED)
            add_application(omar, job, ApplicationStatus.APPLIED)
        finally:
            close_database()

        assert main(["--config", str(config_file), "preview-campaign", "--status", "SHORTLISTED"]) == 0

        out = capsys.readouterr().out
        assert "1 recipients" in out
        assert "Jane Doe <jane.doe@example.com> Backend Engineer [SHORTLISTED]" in out
        assert "omar.khan@example.com" not in out
        assert transport.attempts == []
