"""Pure scan logic: candidate types, condition evaluators, cron schedule."""
