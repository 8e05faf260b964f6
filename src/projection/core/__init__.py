"""Core utilities for projection."""

from projection.core.backup import (
    DEFAULT_KEEP_COUNT,
    DEFAULT_KEEP_DAYS,
    BackupInfo,
    RetentionPolicy,
    create_backup,
    list_backups,
    prune_backups,
    rollback_file,
    safe_write_text,
)
from projection.core.config import get_paths, get_site_root

__all__ = [
    # Backup
    "create_backup",
    "safe_write_text",
    "prune_backups",
    "list_backups",
    "rollback_file",
    "BackupInfo",
    "RetentionPolicy",
    "DEFAULT_KEEP_COUNT",
    "DEFAULT_KEEP_DAYS",
    # Config
    "get_site_root",
    "get_paths",
]
