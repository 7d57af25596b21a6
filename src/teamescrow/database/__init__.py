"""Database layer for Teamescrow.

This module handles database connections, session management, and provides
the SQLAlchemy async engine configuration for PostgreSQL (asyncpg) and
SQLite (aiosqlite, tests).

Public API:
    get_engine: Create an AsyncEngine from DatabaseConfig.
    get_session_factory: Create an async_sessionmaker from an engine.
    Base: SQLAlchemy declarative base for all models.
"""

from teamescrow.database.connection import get_engine, get_session_factory
from teamescrow.database.models import (
    BalanceLogEntry,
    Base,
    MemberStatus,
    PayoutRecord,
    PayoutStatus,
    PayoutType,
    Project,
    ProjectStatus,
    Task,
    TaskStatus,
    TeamMember,
    TimestampMixin,
    UserAccount,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "Base",
    "TimestampMixin",
    "UserAccount",
    "BalanceLogEntry",
    "Project",
    "ProjectStatus",
    "TeamMember",
    "MemberStatus",
    "Task",
    "TaskStatus",
    "PayoutRecord",
    "PayoutStatus",
    "PayoutType",
]
