"""Remembered tool approvals."""

from ronin.permissions.store import (
    PermissionRecord,
    PermissionStats,
    PermissionStore,
    canonical_json,
    create_summary,
)

__all__ = [
    "PermissionRecord",
    "PermissionStats",
    "PermissionStore",
    "canonical_json",
    "create_summary",
]
