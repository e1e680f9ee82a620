"""
Single source of truth for database tables that exist after migrations.

Every application collection (users, projects, tasks, messages, history, notifications)
lives in `documents`; auth accounts live in `accounts`.
"""
ALL_TABLE_NAMES = (
    "accounts",
    "documents",
)
