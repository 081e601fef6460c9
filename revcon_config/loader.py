"""
Configuration Loader (``revcon_config.loader``).

Responsibility
--------------
Loads YAML files and company-profile JSON blobs and parses them into the
frozen ``revcon_config.schema`` dataclasses, and exposes the
``ConfigSource`` implementations a notification scan reads from.

Architecture position
---------------------
**Config layer**.  May import the kernel (models, exceptions, logging);
the kernel never imports this package.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Reading configuration never writes: a missing company profile yields
  the packaged defaults without creating a row.
* Keys may be snake_case or the camelCase used by stored company
  profiles (``projectEndDate``, ``timingType``, ...).

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value types (e.g. ``enabled: "maybe"``)  -> ``InvalidConfigError``.
"""

from __future__ import annotations

import re
from importlib import resources
from pathlib import Path
from typing import Any, Protocol

import yaml
from sqlalchemy import select
from sqlalchemy.orm import Session

from revcon_config.schema import (
    AuditConfig,
    CategoryFlags,
    CompanySettings,
    NotificationConfig,
    TimingPolicy,
)
from revcon_kernel.exceptions import InvalidConfigError
from revcon_kernel.logging_config import get_logger
from revcon_kernel.models.company_profile import CompanyProfile

logger = get_logger("config.loader")

_CAMEL_RE = re.compile(r"(?<=[a-z])(?=[A-Z0-9])")
_LEGACY_TIMING_RE = re.compile(r"^days_before_?(\d+)$")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_snake(str(k)): v for k, v in data.items()}


def _as_bool(field_name: str, value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise InvalidConfigError(field_name, value, "expected a boolean")


def _as_mapping(field_name: str, value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidConfigError(field_name, value, "expected a mapping")
    return _normalize_keys(value)


# ---------------------------------------------------------------------------
# YAML
# ---------------------------------------------------------------------------


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        InvalidConfigError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigError(str(path), type(data).__name__, "top level must be a mapping")
    return data


def load_default_settings() -> CompanySettings:
    """Parse the ``defaults.yaml`` shipped with this package."""
    text = resources.files("revcon_config").joinpath("defaults.yaml").read_text()
    return parse_company_settings(yaml.safe_load(text) or {})


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def parse_timing(data: Any) -> TimingPolicy:
    d = _as_mapping("notifications.timing", data)
    if not d:
        return TimingPolicy()

    if "timing_type" in d:
        custom = d.get("custom_days")
        if custom is not None:
            try:
                custom = int(custom)
            except (TypeError, ValueError) as exc:
                raise InvalidConfigError(
                    "notifications.timing.custom_days", custom, "expected an integer",
                ) from exc
            if custom < 1:
                raise InvalidConfigError(
                    "notifications.timing.custom_days", custom, "must be at least 1",
                )
        return TimingPolicy(timing_type=str(d["timing_type"]), custom_days=custom)

    # Older profiles store one boolean per day: {"daysBefore3": true, ...}
    days = sorted(
        (int(m.group(1)) for k, v in d.items()
         if (m := _LEGACY_TIMING_RE.match(k)) and v),
        reverse=True,
    )
    if days:
        return TimingPolicy(timing_type=",".join(str(n) for n in days))
    return TimingPolicy()


def parse_notification_config(data: Any) -> NotificationConfig:
    d = _as_mapping("notifications", data)
    defaults = CategoryFlags()
    categories = CategoryFlags(
        **{
            name: _as_bool(f"notifications.{name}", d.get(name), getattr(defaults, name))
            for name in (
                "project_end_date",
                "billing_follow_up",
                "payment_overdue",
                "system_announcements",
                "unpaid_after_completion",
            )
        }
    )
    return NotificationConfig(
        enabled=_as_bool("notifications.enabled", d.get("enabled"), True),
        categories=categories,
        timing=parse_timing(d.get("timing")),
    )


def parse_audit_config(data: Any) -> AuditConfig:
    d = _as_mapping("audit", data)
    return AuditConfig(
        enabled=_as_bool("audit.enabled", d.get("enabled"), True),
        log_data_edits=_as_bool("audit.log_data_edits", d.get("log_data_edits"), True),
        log_deletions=_as_bool("audit.log_deletions", d.get("log_deletions"), True),
    )


def parse_company_settings(data: dict[str, Any]) -> CompanySettings:
    """Parse a whole settings document (the shape of ``defaults.yaml``)."""
    d = _normalize_keys(data or {})
    company = _as_mapping("company", d.get("company"))
    return CompanySettings(
        company_name=str(company.get("name", CompanySettings.company_name)),
        currency=str(company.get("currency", CompanySettings.currency)),
        notifications=parse_notification_config(
            d.get("notifications", d.get("notification_config")),
        ),
        audit=parse_audit_config(d.get("audit", d.get("audit_config"))),
    )


# ---------------------------------------------------------------------------
# Config sources
# ---------------------------------------------------------------------------


class ConfigSource(Protocol):
    """Where a scan reads its notification configuration from."""

    def get_notification_config(self) -> NotificationConfig: ...


class StaticConfigSource:
    """A fixed configuration value; used by tests and one-off runs."""

    def __init__(self, config: NotificationConfig | None = None):
        self._config = config or NotificationConfig()

    def get_notification_config(self) -> NotificationConfig:
        return self._config


class YamlConfigSource:
    """Reads a settings YAML file on every call."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def get_settings(self) -> CompanySettings:
        return parse_company_settings(load_yaml_file(self.path))

    def get_notification_config(self) -> NotificationConfig:
        config = self.get_settings().notifications
        logger.debug(
            "notification_config_loaded",
            extra={"source": "yaml", "path": str(self.path), "enabled": config.enabled},
        )
        return config


class CompanyProfileConfigSource:
    """Reads the first company profile row; never creates one."""

    def __init__(self, session: Session, defaults: CompanySettings | None = None):
        self.session = session
        self._defaults = defaults

    def _default_settings(self) -> CompanySettings:
        if self._defaults is None:
            self._defaults = load_default_settings()
        return self._defaults

    def get_settings(self) -> CompanySettings:
        profile = self.session.execute(
            select(CompanyProfile).order_by(CompanyProfile.created_at).limit(1)
        ).scalar_one_or_none()
        if profile is None:
            logger.info("company_profile_missing_using_defaults")
            return self._default_settings()

        defaults = self._default_settings()
        return CompanySettings(
            company_name=profile.company_name,
            currency=profile.currency or defaults.currency,
            notifications=(
                parse_notification_config(profile.notification_config)
                if profile.notification_config is not None
                else defaults.notifications
            ),
            audit=(
                parse_audit_config(profile.audit_config)
                if profile.audit_config is not None
                else defaults.audit
            ),
        )

    def get_notification_config(self) -> NotificationConfig:
        config = self.get_settings().notifications
        logger.debug(
            "notification_config_loaded",
            extra={"source": "company_profile", "enabled": config.enabled},
        )
        return config
