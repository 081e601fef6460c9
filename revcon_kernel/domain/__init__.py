"""Pure domain layer: clock, workflow tables and the permission matrix."""
