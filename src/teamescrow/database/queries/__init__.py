"""Database query functions for Teamescrow.

This module provides async query functions for all database entities:
- User Directory balances, audit log and candidate pool
- Project loading, row locking and deletion
- Expired invitation lookups
- Payout lookups for the release sweep

None of these functions begin or commit a transaction; the engine services
own the transaction boundary.
"""

from teamescrow.database.queries.members import list_expired_invitations
from teamescrow.database.queries.payouts import get_payout_project_id, list_due_payouts
from teamescrow.database.queries.projects import (
    delete_project,
    get_project,
    insert_project,
    list_projects,
    lock_project,
)
from teamescrow.database.queries.users import (
    adjust_balance,
    create_user,
    find_active_freelancers,
    get_balance,
    get_user,
    list_balance_logs,
    record_task_rating,
)

__all__ = [
    "adjust_balance",
    "create_user",
    "find_active_freelancers",
    "get_balance",
    "get_user",
    "list_balance_logs",
    "record_task_rating",
    "insert_project",
    "get_project",
    "lock_project",
    "list_projects",
    "delete_project",
    "list_expired_invitations",
    "get_payout_project_id",
    "list_due_payouts",
]
