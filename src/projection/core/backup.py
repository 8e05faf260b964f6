"""
Timestamped backups and atomic writes for the projects file.

Every write goes through a temporary file in the target directory and a
rename, so readers see either the old or the new content. Before the
rename the previous content is copied to ``<stem>_<YYYYmmdd_HHMMSS><suffix>``
in the backup directory, and older copies are pruned by a RetentionPolicy.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_KEEP_COUNT = 10
DEFAULT_KEEP_DAYS = 30
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
BACKUP_NAME_PATTERN = re.compile(r"^(?P<stem>.+)_(?P<stamp>\d{8}_\d{6})(?P<suffix>\.\w+)$")

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def parse_backup_timestamp(filename: str) -> datetime | None:
    """Return the timestamp encoded in a backup filename, or None."""
    match = BACKUP_NAME_PATTERN.match(filename)
    if not match:
        return None
    try:
        return datetime.strptime(match["stamp"], TIMESTAMP_FORMAT)
    except ValueError:
        return None


@dataclass
class BackupInfo:
    """A backup file found on disk."""

    path: Path
    timestamp: datetime
    size_bytes: int
    file_name: str

    @classmethod
    def from_path(cls, path: Path) -> BackupInfo | None:
        """Describe ``path`` if its name looks like a backup, else None."""
        match = BACKUP_NAME_PATTERN.match(path.name)
        timestamp = parse_backup_timestamp(path.name)
        if match is None or timestamp is None:
            return None
        return cls(
            path=path,
            timestamp=timestamp,
            size_bytes=path.stat().st_size,
            file_name=match["stem"],
        )

    @property
    def age_days(self) -> float:
        return (datetime.now() - self.timestamp).total_seconds() / 86400

    @property
    def size_human(self) -> str:
        size = float(self.size_bytes)
        for unit in _SIZE_UNITS:
            if size < 1024 or unit == _SIZE_UNITS[-1]:
                break
            size /= 1024
        if unit == "B":
            return f"{self.size_bytes} B"
        return f"{size:.1f} {unit}"


@dataclass
class RetentionPolicy:
    """Which backups to keep.

    A backup survives if it is among the ``keep_count`` newest, or if
    ``keep_days`` is set and the backup is younger than that many days.
    With ``keep_days=None`` only the count applies.
    """

    keep_count: int = DEFAULT_KEEP_COUNT
    keep_days: int | None = DEFAULT_KEEP_DAYS

    def expired(self, backups: list[BackupInfo]) -> list[BackupInfo]:
        """Select the backups this policy would remove.

        Args:
            backups: Backups of one file, newest first (as list_backups returns)
        """
        cutoff = None
        if self.keep_days is not None:
            cutoff = datetime.now() - timedelta(days=self.keep_days)

        return [
            info
            for position, info in enumerate(backups)
            if position >= self.keep_count and (cutoff is None or info.timestamp < cutoff)
        ]


def list_backups(backup_dir: Path, file_stem: str | None = None) -> list[BackupInfo]:
    """List backups in ``backup_dir``, newest first.

    Args:
        backup_dir: Directory holding the backups
        file_stem: Only list backups of this file stem (e.g. 'projects')
    """
    backup_dir = Path(backup_dir)
    if not backup_dir.is_dir():
        return []

    found = []
    for path in backup_dir.iterdir():
        info = BackupInfo.from_path(path) if path.is_file() else None
        if info is None:
            continue
        if file_stem is not None and info.file_name != file_stem:
            continue
        found.append(info)

    found.sort(key=lambda info: info.timestamp, reverse=True)
    return found


def create_backup(file_path: Path, backup_dir: Path | None = None) -> Path:
    """Copy ``file_path`` to a timestamped name in ``backup_dir``.

    The backup directory defaults to ``file_path.parent / 'backups'``.

    Raises:
        FileNotFoundError: If file_path doesn't exist
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Cannot back up missing file: {file_path}")

    target_dir = Path(backup_dir) if backup_dir is not None else file_path.parent / "backups"
    target_dir.mkdir(parents=True, exist_ok=True)

    stamp = datetime.now().strftime(TIMESTAMP_FORMAT)
    backup_path = target_dir / f"{file_path.stem}_{stamp}{file_path.suffix}"
    shutil.copy2(file_path, backup_path)
    logger.debug("Backed up %s to %s", file_path, backup_path)
    return backup_path


def prune_backups(
    backup_dir: Path,
    file_stem: str,
    retention: RetentionPolicy | None = None,
) -> list[Path]:
    """Delete the backups of ``file_stem`` that ``retention`` no longer keeps."""
    retention = retention or RetentionPolicy()
    removed = []
    for info in retention.expired(list_backups(backup_dir, file_stem)):
        info.path.unlink(missing_ok=True)
        removed.append(info.path)

    if removed:
        logger.debug("Pruned %d backups of %s", len(removed), file_stem)
    return removed


def rollback_file(file_path: Path, backup_dir: Path, backup_index: int = 0) -> Path:
    """Replace ``file_path`` with one of its backups.

    The current content is backed up first, so a rollback can itself be
    rolled back.

    Args:
        file_path: File to restore
        backup_dir: Directory holding its backups
        backup_index: 0 for the newest backup, 1 for the one before, ...

    Returns:
        Path of the backup that was restored

    Raises:
        FileNotFoundError: If there is no backup at that index
    """
    file_path = Path(file_path)
    backups = list_backups(backup_dir, file_path.stem)

    if not backups:
        raise FileNotFoundError(f"No backups found for {file_path.name}")
    if not 0 <= backup_index < len(backups):
        raise FileNotFoundError(
            f"Backup index {backup_index} out of range (only {len(backups)} backups)"
        )

    chosen = backups[backup_index]
    # Read first: a backup of the current state taken in the same second
    # reuses the chosen backup's name
    restored = chosen.path.read_bytes()

    if file_path.exists():
        create_backup(file_path, backup_dir)
    _atomic_write(file_path, restored)

    logger.info("Restored %s from %s", file_path, chosen.path.name)
    return chosen.path


def _atomic_write(file_path: Path, payload: bytes) -> None:
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{file_path.name}.",
        suffix=".tmp",
        dir=file_path.parent,
    )
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        temp_path.replace(file_path)
    except Exception as e:
        with contextlib.suppress(OSError):
            temp_path.unlink()
        raise OSError(f"Failed to write {file_path}: {e}") from e


def safe_write_text(
    file_path: Path,
    text: str,
    create_backup_first: bool = True,
    backup_dir: Path | None = None,
    retention: RetentionPolicy | None = None,
) -> Path | None:
    """Atomically write ``text`` as UTF-8, backing up the previous content.

    Line endings are written exactly as they appear in ``text``.

    Args:
        file_path: File to write
        text: Complete new content
        create_backup_first: Back up an existing file before replacing it
        backup_dir: Backup directory (defaults to file_path.parent / 'backups')
        retention: Pruning applied after the backup (defaults to RetentionPolicy())

    Returns:
        Path of the backup taken, or None

    Raises:
        OSError: If the file cannot be written; the old content is left in place
    """
    file_path = Path(file_path)
    backup_path = None

    if create_backup_first and file_path.exists():
        backup_path = create_backup(file_path, backup_dir)
        prune_backups(backup_path.parent, file_path.stem, retention)

    payload = text.encode("utf-8")
    _atomic_write(file_path, payload)
    logger.debug("Wrote %d bytes to %s", len(payload), file_path)
    return backup_path
