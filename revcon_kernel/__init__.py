"""
RevCon Kernel

Persistence and write-path core of the project-finance tracker:
- Projects, billings, collections, revenues and expenses
- Project lifecycle guard (close, lock, soft delete, restore)
- Notification sink
- Hash-chained audit trail
"""

__version__ = "0.1.0"
