"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List

PLACEHOLDER_DOMAINS = {"example.com", "example.org", "localhost"}


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for potential issues and return warnings.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    email = config_dict.get("email", {})
    if isinstance(email, dict) and email.get("use_tls") is False:
        warning_messages.append(
            "email.use_tls is disabled; credentials and message content are sent in clear text"
        )

    calendar = config_dict.get("calendar", {})
    org_domain = calendar.get("org_domain", "example.com") if isinstance(calendar, dict) else None
    if isinstance(org_domain, str) and org_domain.strip().lower() in PLACEHOLDER_DOMAINS:
        warning_messages.append(
            f"calendar.org_domain is a placeholder ({org_domain}); calendar UIDs will not be "
            "unique to your organisation"
        )

    campaigns = config_dict.get("campaigns", {})
    if isinstance(campaigns, dict) and campaigns.get("test_subject_prefix") == "":
        warning_messages.append(
            "campaigns.test_subject_prefix is empty; test sends will look like real campaign emails"
        )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
