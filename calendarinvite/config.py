"""Settings for calendar invite generation.

Settings are loaded once at the edge of the application (environment
variables with the ``CALENDARINVITE_`` prefix, optionally overlaid by a
YAML/JSON file) and then passed explicitly into the event factory, the
lifecycle transitions and the service. Core functions never read process
state on their own.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .datetime_utils import resolve_timezone
from .models import Organizer

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "calendarinvite.yaml"


class InviteSettings(BaseSettings):
    """Application settings with environment variable support."""

    # Sending identity, also the fallback organizer for cancellations
    organizer_name: str = Field(default="Calendar Invite", description="Organizer display name")
    organizer_email: str = Field(
        default="calendar@example.com", description="Authenticated sender address"
    )

    uid_domain: Optional[str] = Field(
        default=None, description="Domain for generated UIDs (default: organizer email domain)"
    )
    prodid: str = Field(
        default="-//CalendarInvite//Email Calendar//EN", description="PRODID of rendered payloads"
    )
    default_timezone: str = Field(
        default="UTC", description="IANA timezone used to interpret naive datetimes"
    )
    cancellation_notice: str = Field(
        default="This meeting has been cancelled.",
        description="Paragraph prepended to the description of CANCEL payloads",
    )

    store_path: Optional[Path] = Field(
        default=None, description="JSON file for invite snapshots (None: in-memory)"
    )
    log_level: str = Field(default="INFO", description="Root log level name")

    model_config = SettingsConfigDict(
        env_prefix="CALENDARINVITE_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("organizer_email")
    @classmethod
    def _check_organizer_email(cls, value: str) -> str:
        value = value.strip()
        if value.count("@") != 1 or value.startswith("@") or value.endswith("@"):
            raise ValueError(f"organizer_email must be an email address, got {value!r}")
        return value

    @field_validator("default_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        resolve_timezone(value)
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return str(value).upper()

    @property
    def default_organizer(self) -> Organizer:
        """The sending identity as an organizer."""
        return Organizer(name=self.organizer_name, email=self.organizer_email)

    @property
    def effective_uid_domain(self) -> str:
        """Domain used to qualify generated UIDs."""
        if self.uid_domain:
            return self.uid_domain
        return self.organizer_email.split("@", 1)[1]


def _load_mapping(path: Path) -> Any:
    """Load a YAML or JSON document from ``path``."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    loaded = yaml.safe_load(text)
    # safe_load returns None for empty files
    if loaded is None:
        return {}
    return loaded


def load_settings(path: str | Path | None = None, **overrides: Any) -> InviteSettings:
    """Load settings from a YAML/JSON file on top of environment variables.

    Args:
        path: Optional config file. Defaults to ``./calendarinvite.yaml``.
        **overrides: Values that take precedence over the file

    Returns:
        InviteSettings instance

    Behavior:
    - Missing file: environment variables and defaults only.
    - File whose top level is not a mapping: raises ValueError.
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_FILENAME
    logger.debug("Attempting to load settings from %s", p)

    data: dict[str, Any] = {}
    if p.exists():
        raw = _load_mapping(p)
        if not isinstance(raw, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
            raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
        data.update(raw)
        logger.info("Loaded configuration from %s", p)
    else:
        logger.info("Config file %s not found; using environment and defaults", p)

    data.update({k: v for k, v in overrides.items() if v is not None})
    settings = InviteSettings(**data)
    logger.debug("Configuration values: %s", settings)
    return settings
