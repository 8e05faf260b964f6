"""
Thumbnail storage with a staged upload protocol.

Each project has at most one final thumbnail (``<id><ext>``) and at most one
staged thumbnail (``<id>.temp<ext>``) in the screenshots directory. The admin
UI stages an upload while a record is being edited, then commits it when the
record is saved or discards it when the edit is cancelled.

File names are derived from the project id and the MIME type, never from the
client's file name. Deleting a file that is already gone counts as success
everywhere in this module.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from projection.core.errors import TooLargeError, UnsupportedTypeError
from projection.projects.models import validate_project_id
from projection.thumbnails.refs import (
    SUPPORTED_EXTENSIONS,
    TEMP_MARKER,
    AssetRef,
    FinalAssetRef,
    TempAssetRef,
    parse_filename,
)

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}
SUPPORTED_MIME_TYPES = tuple(MIME_EXTENSIONS)

MAX_FILE_SIZE = 5 * 1024 * 1024


@dataclass(frozen=True)
class ImageUpload:
    """Uploaded image bytes with the client's declared MIME type and size."""

    data: bytes
    mime_type: str
    size: int | None = None

    @property
    def effective_size(self) -> int:
        """The larger of the declared and actual size."""
        return max(len(self.data), self.size or 0)


def validate_upload(mime_type: str, size: int) -> None:
    """Check an upload's MIME type and size. Pure, no I/O.

    Raises:
        UnsupportedTypeError: If the MIME type is not an accepted image type
        TooLargeError: If the size exceeds MAX_FILE_SIZE
    """
    if mime_type not in MIME_EXTENSIONS:
        raise UnsupportedTypeError(
            f"Invalid file type: {mime_type}. Supported types: PNG, JPG, JPEG, GIF, WebP",
            mime_type=mime_type,
        )
    if size > MAX_FILE_SIZE:
        size_mb = size / (1024 * 1024)
        max_mb = MAX_FILE_SIZE / (1024 * 1024)
        raise TooLargeError(
            f"File too large: {size_mb:.2f} MB. Maximum size: {max_mb:.0f} MB",
            size=size,
            max_size=MAX_FILE_SIZE,
        )


def extension_for(mime_type: str) -> str:
    """File extension for a supported MIME type."""
    return MIME_EXTENSIONS[mime_type]


class ThumbnailManager:
    """Manages project thumbnails in one flat directory."""

    def __init__(self, screenshots_dir: Path | str):
        """Initialize manager.

        Args:
            screenshots_dir: Directory holding thumbnails (created on first write)
        """
        self.screenshots_dir = Path(screenshots_dir)

    # ------------------------------------------------------------------
    # Validation and lookup
    # ------------------------------------------------------------------

    def validate(self, upload: ImageUpload) -> None:
        """Validate an upload before anything touches the disk."""
        validate_upload(upload.mime_type, upload.effective_size)

    def _listing(self) -> set[str]:
        try:
            return {p.name for p in self.screenshots_dir.iterdir()}
        except FileNotFoundError:
            return set()

    def find_final(self, project_id: str) -> str | None:
        """Return the file name of the project's final thumbnail, or None."""
        validate_project_id(project_id, "find_final")
        names = self._listing()
        for ext in SUPPORTED_EXTENSIONS:
            if f"{project_id}{ext}" in names:
                return f"{project_id}{ext}"
        return None

    def find_temp(self, project_id: str) -> str | None:
        """Return the file name of the project's staged thumbnail, or None."""
        validate_project_id(project_id, "find_temp")
        names = self._listing()
        for ext in SUPPORTED_EXTENSIONS:
            if f"{project_id}{TEMP_MARKER}{ext}" in names:
                return f"{project_id}{TEMP_MARKER}{ext}"
        return None

    def path_for(self, ref: AssetRef) -> Path:
        """Absolute path of the file a reference points at."""
        return self.screenshots_dir / ref.filename

    def list_assets(self) -> list[AssetRef]:
        """All managed thumbnails in the directory, sorted by file name."""
        refs = [parse_filename(name) for name in sorted(self._listing())]
        return [ref for ref in refs if ref is not None]

    # ------------------------------------------------------------------
    # Final thumbnails
    # ------------------------------------------------------------------

    def save_final(self, project_id: str, upload: ImageUpload) -> FinalAssetRef:
        """Validate and store a final thumbnail, replacing any existing one.

        Returns:
            Reference to the new file (``asset://<id><ext>``)
        """
        validate_project_id(project_id, "save_final")
        self.validate(upload)
        self._ensure_dir()

        self._remove_all(project_id, temp=False)

        ref = FinalAssetRef(project_id, extension_for(upload.mime_type))
        self.path_for(ref).write_bytes(upload.data)
        logger.info("Saved thumbnail %s (%d bytes)", ref.filename, len(upload.data))
        return ref

    def delete_final(self, project_id: str) -> None:
        """Delete the project's final thumbnail if there is one."""
        validate_project_id(project_id, "delete_final")
        removed = self._remove_all(project_id, temp=False)
        if removed:
            logger.info("Deleted thumbnail(s) %s", ", ".join(removed))

    # ------------------------------------------------------------------
    # Staged thumbnails
    # ------------------------------------------------------------------

    def stage_temp(self, project_id: str, upload: ImageUpload) -> TempAssetRef:
        """Validate and store a staged thumbnail, replacing any staged one.

        Returns:
            Reference to the staged file (``asset://<id>.temp<ext>``)
        """
        validate_project_id(project_id, "stage_temp")
        self.validate(upload)
        self._ensure_dir()

        self._remove_all(project_id, temp=True)

        ref = TempAssetRef(project_id, extension_for(upload.mime_type))
        self.path_for(ref).write_bytes(upload.data)
        logger.debug("Staged thumbnail %s (%d bytes)", ref.filename, len(upload.data))
        return ref

    def commit_temp(self, project_id: str) -> FinalAssetRef | None:
        """Promote the staged thumbnail to the final one.

        Any existing final thumbnail is removed first and the staged file is
        renamed into place, so the content is never rebuilt from a copy.

        Returns:
            Reference to the final file, or None when nothing was staged
        """
        validate_project_id(project_id, "commit_temp")
        temp_name = self.find_temp(project_id)
        if temp_name is None:
            return None

        staged = TempAssetRef(project_id, temp_name[len(project_id) + len(TEMP_MARKER):])

        self._remove_all(project_id, temp=False)

        final = staged.final()
        self.path_for(staged).rename(self.path_for(final))
        logger.info("Committed thumbnail %s -> %s", staged.filename, final.filename)
        return final

    def delete_temp(self, project_id: str) -> None:
        """Delete the project's staged thumbnail if there is one."""
        validate_project_id(project_id, "delete_temp")
        removed = self._remove_all(project_id, temp=True)
        if removed:
            logger.debug("Discarded staged thumbnail(s) %s", ", ".join(removed))

    # ------------------------------------------------------------------
    # Orphans
    # ------------------------------------------------------------------

    def find_orphans(self, known_ids: Iterable[str]) -> list[Path]:
        """Thumbnails no record can reach.

        Final thumbnails whose id is not in *known_ids*, and every staged
        thumbnail (a staged file only lives for the duration of one edit).
        """
        known = set(known_ids)
        orphans = []
        for ref in self.list_assets():
            if ref.is_temp or ref.project_id not in known:
                orphans.append(self.path_for(ref))
        return orphans

    def clean_orphans(self, known_ids: Iterable[str], dry_run: bool = False) -> list[Path]:
        """Delete orphaned thumbnails.

        Returns:
            Paths that were (or, with dry_run, would be) removed
        """
        orphans = self.find_orphans(known_ids)
        if not dry_run:
            for path in orphans:
                with contextlib.suppress(FileNotFoundError):
                    path.unlink()
            if orphans:
                logger.info("Removed %d orphaned thumbnails", len(orphans))
        return orphans

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_dir(self) -> None:
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)

    def _remove_all(self, project_id: str, temp: bool) -> list[str]:
        """Remove the project's final (or staged) files under every extension."""
        marker = TEMP_MARKER if temp else ""
        names = self._listing()
        removed = []
        for ext in SUPPORTED_EXTENSIONS:
            name = f"{project_id}{marker}{ext}"
            if name not in names:
                continue
            with contextlib.suppress(FileNotFoundError):
                (self.screenshots_dir / name).unlink()
            removed.append(name)
        return removed
