"""
Coordinated project and thumbnail changes.

Sequences store and thumbnail operations so that a "save project" or "delete
project" action leaves the record and its thumbnail in a consistent state:

  * the record is validated before anything touches the disk;
  * a staged thumbnail is committed before the record is written, so a failed
    commit never produces a half-updated record;
  * a record is deleted before its thumbnail, so a failed delete keeps both.

If the record write fails after a successful commit (for example a duplicate
id), the committed thumbnail stays on disk; ``clean_orphans`` picks it up.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

from projection.core.backup import DEFAULT_KEEP_COUNT, DEFAULT_KEEP_DAYS
from projection.core.config import SitePaths, get_setting, load_settings
from projection.core.errors import (
    InvalidAssetRefError,
    InvalidRecordError,
    NotFoundError,
    NotInitializedError,
)
from projection.projects.models import Project, ProjectsData
from projection.projects.store import ProjectStore
from projection.thumbnails.manager import ImageUpload, ThumbnailManager
from projection.thumbnails.refs import AssetRef, FinalAssetRef, parse_asset_ref

logger = logging.getLogger(__name__)


class ProjectCoordinator:
    """Ties a ProjectStore and a ThumbnailManager together for one session."""

    def __init__(self, store: ProjectStore, thumbnails: ThumbnailManager):
        self.store = store
        self.thumbnails = thumbnails

    @classmethod
    def from_paths(cls, paths: SitePaths) -> ProjectCoordinator:
        """Build a coordinator from site paths and local settings."""
        settings = load_settings(paths)
        screenshots = Path(get_setting(settings, "thumbnails.dir", paths.screenshots))
        if not screenshots.is_absolute():
            screenshots = paths.root / screenshots
        # null means no age limit
        keep_days = get_setting(settings, "backup.keep_days", DEFAULT_KEEP_DAYS)

        store = ProjectStore(
            paths.projects_file,
            backup_dir=paths.backups,
            create_backups=bool(get_setting(settings, "backup.enabled", True)),
            keep_backups=int(get_setting(settings, "backup.keep_count", DEFAULT_KEEP_COUNT)),
            keep_days=keep_days if keep_days is None else int(keep_days),
        )
        return cls(store, ThumbnailManager(screenshots))

    def load(self) -> ProjectsData:
        """Read the projects file (required before any change)."""
        return self.store.read()

    # ------------------------------------------------------------------
    # Record changes
    # ------------------------------------------------------------------

    def create_project(
        self,
        project: Project | Mapping[str, Any],
        staged_image_id: str | None = None,
    ) -> Project:
        """Create a project, committing its staged thumbnail first.

        Args:
            project: The new record
            staged_image_id: Id the thumbnail was staged under (must be the
                record's id); when a staged file exists its reference becomes
                the record's thumbnailLink
        """
        project = self._as_project(project)
        if not self.store.is_loaded:
            raise NotInitializedError("Projects file not loaded. Call load() before create_project().", operation="create")
        project.validate("create")
        project = self._commit_staged(project, staged_image_id, "create")
        return self.store.create(project)

    def update_project(
        self,
        project_id: str,
        project: Project | Mapping[str, Any],
        staged_image_id: str | None = None,
    ) -> Project:
        """Update a project, committing its staged thumbnail first.

        When the stored record pointed at this project's managed thumbnail and
        the new record no longer does, the thumbnail file is deleted after the
        record is written.
        """
        project = self._as_project(project)
        previous = self.store.get(project_id)
        project.validate("update")
        if project.id != project_id:
            raise InvalidRecordError(
                f"Project id cannot be changed from '{project_id}' to '{project.id}'",
                project_id=project_id,
                operation="update",
            )
        if previous is None:
            raise NotFoundError(
                f"No project found with id '{project_id}'",
                project_id=project_id,
                operation="update",
            )

        project = self._commit_staged(project, staged_image_id, "update")
        updated = self.store.update(project_id, project)

        if self._owns_thumbnail(previous) and not self._owns_thumbnail(updated):
            self.thumbnails.delete_final(project_id)
        return updated

    def delete_project(self, project_id: str) -> None:
        """Delete a project and then its thumbnail.

        Raises:
            NotFoundError: If no project has *project_id* (the thumbnail is
                left untouched)
        """
        self.store.delete(project_id)
        self.thumbnails.delete_final(project_id)

    def cancel_edit(self, project_id: str) -> None:
        """Discard a staged thumbnail; the record and final file are untouched."""
        self.thumbnails.delete_temp(project_id)

    # ------------------------------------------------------------------
    # Thumbnail actions
    # ------------------------------------------------------------------

    def upload_thumbnail(self, project_id: str, upload: ImageUpload, edit: bool = False) -> AssetRef:
        """Store an uploaded thumbnail.

        In edit mode the upload is staged and waits for the record save.
        Otherwise it becomes the final thumbnail right away and, if the
        record already exists, its thumbnailLink is pointed at it.
        """
        if edit:
            return self.thumbnails.stage_temp(project_id, upload)

        ref = self.thumbnails.save_final(project_id, upload)
        existing = self.store.get(project_id) if self.store.is_loaded else None
        if existing is not None and existing.thumbnail_link != str(ref):
            self.store.update(project_id, replace(existing, thumbnail_link=str(ref)))
        return ref

    def commit_thumbnail(self, project_id: str) -> FinalAssetRef | None:
        """Commit a staged thumbnail without touching the record."""
        return self.thumbnails.commit_temp(project_id)

    def remove_thumbnail(self, project_id: str, temp: bool = False) -> None:
        """Delete a thumbnail.

        For the final thumbnail, the record's thumbnailLink is cleared too
        when the record exists and points at it.
        """
        if temp:
            self.thumbnails.delete_temp(project_id)
            return

        self.thumbnails.delete_final(project_id)
        existing = self.store.get(project_id) if self.store.is_loaded else None
        if existing is not None and self._owns_thumbnail(existing):
            self.store.update(project_id, replace(existing, thumbnail_link=None))

    def clean_orphans(self, dry_run: bool = False) -> list[Path]:
        """Delete thumbnails that no current record owns."""
        return self.thumbnails.clean_orphans(self.store.ids(), dry_run=dry_run)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _as_project(project: Project | Mapping[str, Any]) -> Project:
        if isinstance(project, Project):
            return project
        return Project.from_dict(project)

    def _commit_staged(self, project: Project, staged_image_id: str | None, operation: str) -> Project:
        if staged_image_id is None:
            return project
        if staged_image_id != project.id:
            raise InvalidRecordError(
                f"Staged thumbnail '{staged_image_id}' does not belong to project '{project.id}'",
                project_id=project.id,
                operation=operation,
            )

        committed = self.thumbnails.commit_temp(staged_image_id)
        if committed is None:
            logger.debug("No staged thumbnail for %s", staged_image_id)
            return project
        return replace(project, thumbnail_link=str(committed))

    @staticmethod
    def _owns_thumbnail(project: Project) -> bool:
        """Whether the record points at its own managed final thumbnail."""
        try:
            ref = parse_asset_ref(project.thumbnail_link)
        except InvalidAssetRefError:
            return False
        return isinstance(ref, FinalAssetRef) and ref.project_id == project.id
