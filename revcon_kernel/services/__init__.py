"""Kernel services: lifecycle guard, financial record writes, notification
sink and audit trail.  Import from the submodules directly."""
