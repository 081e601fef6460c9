"""Scan services: dedup filter, scan driver, scheduler."""

from revcon_notifications.services.dedup import DeduplicationFilter, NotificationSink
from revcon_notifications.services.scan_driver import (
    NotificationScanDriver,
    run_notification_scan,
)
from revcon_notifications.services.scheduler import ScanScheduler

__all__ = [
    "DeduplicationFilter",
    "NotificationScanDriver",
    "NotificationSink",
    "ScanScheduler",
    "run_notification_scan",
]
