"""Notification scan ORM models."""

from revcon_notifications.models.scan_run import ScanRunModel

__all__ = ["ScanRunModel"]
