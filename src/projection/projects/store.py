"""
Projects file store.

The only component that reads or writes the projects file. Holds the parsed
document for one editing session and enforces the collection-level
invariants (unique ids, immutable ids, record shape) that the document
itself does not know about.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any

from projection.core.backup import DEFAULT_KEEP_COUNT, DEFAULT_KEEP_DAYS, RetentionPolicy, safe_write_text
from projection.core.errors import (
    DuplicateIdError,
    InvalidRecordError,
    NotFoundError,
    NotInitializedError,
)
from projection.projects.document import StructuredDocument, detect_format, load_document
from projection.projects.models import Project, ProjectsData

logger = logging.getLogger(__name__)

STARTER_CONTENT = {
    "yaml": (
        "# Projects shown on the portfolio site.\n"
        "# Each entry needs id, title, description, creationDate, tags and pageLink.\n"
        "projects: []\n"
    ),
    "json": '{\n  "projects": []\n}\n',
}


class ProjectStore:
    """Reads and atomically rewrites a YAML or JSON projects file.

    Call ``read()`` once per session before any mutation; the parsed document
    stays in memory and every mutation is applied to it and written back.
    Nothing is re-read between mutations, so two stores open on the same file
    will overwrite each other's changes.
    """

    def __init__(
        self,
        path: Path | str,
        backup_dir: Path | None = None,
        create_backups: bool = True,
        keep_backups: int = DEFAULT_KEEP_COUNT,
        keep_days: int | None = DEFAULT_KEEP_DAYS,
    ):
        """Initialize store.

        Args:
            path: Path to the projects file (.yaml, .yml or .json)
            backup_dir: Where to keep backups (defaults to path.parent / 'backups')
            create_backups: Take a timestamped backup before each write
            keep_backups: Number of most recent backups to always keep
            keep_days: Remove backups older than this (None = no age limit)
        """
        self.path = Path(path)
        self.format = detect_format(self.path)
        self.backup_dir = backup_dir
        self.create_backups = create_backups
        self.keep_backups = keep_backups
        self.keep_days = keep_days
        self._document: StructuredDocument | None = None

    @classmethod
    def initialize(cls, path: Path | str, **kwargs: Any) -> ProjectStore:
        """Create a starter projects file and return a store for it.

        Raises:
            FileExistsError: If the file already exists
        """
        path = Path(path)
        if path.exists():
            raise FileExistsError(f"Projects file already exists: {path}")
        path.parent.mkdir(parents=True, exist_ok=True)
        store = cls(path, **kwargs)
        safe_write_text(path, STARTER_CONTENT[store.format], create_backup_first=False)
        logger.info("Created projects file %s", path)
        return store

    @property
    def document(self) -> StructuredDocument:
        """The document loaded by ``read()``."""
        return self._require_document("document")

    @property
    def is_loaded(self) -> bool:
        return self._document is not None

    def read(self) -> ProjectsData:
        """Load the projects file.

        Returns:
            The records (empty list when the file has none) and the embedded
            config block

        Raises:
            FileNotFoundError: If the projects file does not exist
            ParseError: If the file is not a valid projects document
        """
        content = self.path.read_bytes()
        self._document = load_document(content, self.format)
        data = self._snapshot()
        logger.debug("Read %d projects from %s", len(data.projects), self.path)
        return data

    def _snapshot(self) -> ProjectsData:
        document = self.document
        return ProjectsData(
            projects=[Project.from_dict(record) for record in document.records],
            config=document.config,
        )

    def __contains__(self, project_id: object) -> bool:
        document = self._require_document("contains")
        return document.find_record_index_by_id(project_id) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._require_document("len").records)

    def __iter__(self) -> Iterator[Project]:
        for record in self._require_document("iterate").records:
            yield Project.from_dict(record)

    def ids(self) -> list[str]:
        """Ids of all records in file order."""
        return [record.get("id") for record in self._require_document("ids").records]

    def get(self, project_id: str) -> Project | None:
        """Get a project by id, or None if not found."""
        document = self._require_document("get")
        index = document.find_record_index_by_id(project_id)
        if index is None:
            return None
        return Project.from_dict(document.records[index])

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, project: Project | Mapping[str, Any]) -> Project:
        """Append a new project and write the file.

        Raises:
            NotInitializedError: If ``read()`` has not been called
            InvalidRecordError: If the record is malformed
            DuplicateIdError: If a project with the same id exists
        """
        document = self._require_document("create")
        project = self._coerce(project, "create")

        if document.find_record_index_by_id(project.id) is not None:
            raise DuplicateIdError(
                f"A project with id '{project.id}' already exists",
                project_id=project.id,
                operation="create",
            )

        self._apply(lambda doc: doc.append_record(project.to_dict()))
        logger.info("Created project %s", project.id)
        return project

    def update(self, project_id: str, project: Project | Mapping[str, Any]) -> Project:
        """Replace an existing project in place and write the file.

        Raises:
            NotInitializedError: If ``read()`` has not been called
            InvalidRecordError: If the record is malformed or changes the id
            NotFoundError: If no project has *project_id*
        """
        document = self._require_document("update")
        project = self._coerce(project, "update")

        if project.id != project_id:
            raise InvalidRecordError(
                f"Project id cannot be changed from '{project_id}' to '{project.id}'",
                project_id=project_id,
                operation="update",
            )

        index = document.find_record_index_by_id(project_id)
        if index is None:
            raise NotFoundError(
                f"No project found with id '{project_id}'",
                project_id=project_id,
                operation="update",
            )

        self._apply(lambda doc: doc.replace_record_at(index, project.to_dict()))
        logger.info("Updated project %s", project_id)
        return project

    def delete(self, project_id: str) -> None:
        """Remove a project and write the file.

        Deleting an id that is already gone is an error, not a no-op.

        Raises:
            NotInitializedError: If ``read()`` has not been called
            NotFoundError: If no project has *project_id*
        """
        document = self._require_document("delete")
        index = document.find_record_index_by_id(project_id)
        if index is None:
            raise NotFoundError(
                f"No project found with id '{project_id}'",
                project_id=project_id,
                operation="delete",
            )

        self._apply(lambda doc: doc.remove_record_at(index))
        logger.info("Deleted project %s", project_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_document(self, operation: str) -> StructuredDocument:
        if self._document is None:
            raise NotInitializedError(
                f"Projects file not loaded. Call read() before {operation}().",
                operation=operation,
                path=str(self.path),
            )
        return self._document

    def _coerce(self, project: Project | Mapping[str, Any], operation: str) -> Project:
        if not isinstance(project, Project):
            project = Project.from_dict(project)
        project.validate(operation)
        return project

    def _apply(self, mutate: Callable[[StructuredDocument], None]) -> None:
        """Mutate the in-memory document and write it out.

        The document is fully rendered before the file is touched. If the
        write fails, the document is restored to its previous state.
        """
        document = self.document
        previous = document.serialize()
        mutate(document)
        try:
            safe_write_text(
                self.path,
                document.serialize(),
                create_backup_first=self.create_backups,
                backup_dir=self.backup_dir,
                retention=RetentionPolicy(self.keep_backups, self.keep_days),
            )
        except OSError:
            self._document = load_document(previous, self.format)
            raise
