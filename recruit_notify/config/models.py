"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class EmailConfig(BaseModel):
    """Outbound email settings."""

    use_tls: bool = Field(True, description="Use TLS/STARTTLS for secure connection")
    sender_address: Optional[EmailStr] = Field(
        None, description="From address; defaults to SMTP_USER or noreply@SMTP_HOST"
    )


class CalendarConfig(BaseModel):
    """Settings for generated interview calendar invites."""

    org_domain: str = Field(
        "example.com", min_length=1, description="Domain used in calendar UIDs"
    )
    product_id: str = Field(
        "-//Recruit Notify//Interview Scheduler//EN",
        min_length=1,
        description="PRODID of generated calendars",
    )
    default_location: str = Field(
        "Interview Room", min_length=1, description="Location when none is known"
    )
    online_location: str = Field(
        "Online Interview - Meeting link will be provided",
        min_length=1,
        description="Location text for online interviews",
    )
    meeting_link_placeholder: Optional[str] = Field(
        "https://meet.google.com/abc-defg-hij",
        description="Meeting link shown in online interview descriptions",
    )

    @field_validator("org_domain", "product_id", "default_location", "online_location")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip whitespace from string fields."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped

    @field_validator("org_domain")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        if "@" in v or " " in v:
            raise ValueError(f"org_domain must be a bare domain name, got: {v}")
        return v.lower()


class CampaignConfig(BaseModel):
    """Bulk campaign settings."""

    test_subject_prefix: str = Field(
        "[TEST] ", description="Prefix added to the subject of campaign test sends"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the notification engine."""

    email: EmailConfig = Field(default_factory=EmailConfig, description="Email settings")
    calendar: CalendarConfig = Field(
        default_factory=CalendarConfig, description="Calendar invite settings"
    )
    campaigns: CampaignConfig = Field(
        default_factory=CampaignConfig, description="Bulk campaign settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
