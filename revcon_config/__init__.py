"""
revcon_config -- company settings for the revenue control core.

Responsibility:
    Typed, frozen notification and audit settings, parsed from YAML files
    or from the stored company profile, and the ``ConfigSource`` objects a
    notification scan reads its configuration from.

Architecture position:
    Configuration.  Sits above ``revcon_kernel`` and below
    ``revcon_notifications``.  The kernel MUST NEVER import from
    ``revcon_config``.

Failure modes:
    - ``InvalidConfigError`` -- a value has the wrong type or range.
    - ``FileNotFoundError`` / ``yaml.YAMLError`` -- from YAML sources.
"""

from revcon_config.loader import (
    CompanyProfileConfigSource,
    ConfigSource,
    StaticConfigSource,
    YamlConfigSource,
    load_default_settings,
    load_yaml_file,
    parse_audit_config,
    parse_company_settings,
    parse_notification_config,
    parse_timing,
)
from revcon_config.schema import (
    AuditConfig,
    CategoryFlags,
    CompanySettings,
    NotificationConfig,
    TimingPolicy,
)

__all__ = [
    "AuditConfig",
    "CategoryFlags",
    "CompanyProfileConfigSource",
    "CompanySettings",
    "ConfigSource",
    "NotificationConfig",
    "StaticConfigSource",
    "TimingPolicy",
    "YamlConfigSource",
    "load_default_settings",
    "load_yaml_file",
    "parse_audit_config",
    "parse_company_settings",
    "parse_notification_config",
    "parse_timing",
]
