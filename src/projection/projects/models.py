"""
Project record model.

Records are stored with camelCase keys (``creationDate``, ``pageLink``) so the
file stays compatible with the site generator. Unknown keys are carried in
``extra`` and written back on update.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from projection.core.errors import InvalidRecordError

PROJECT_ID_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")

# Wire key -> attribute name, in canonical output order
FIELD_KEYS = {
    "id": "id",
    "title": "title",
    "description": "description",
    "creationDate": "creation_date",
    "tags": "tags",
    "pageLink": "page_link",
    "sourceLink": "source_link",
    "thumbnailLink": "thumbnail_link",
    "featured": "featured",
}
OPTIONAL_KEYS = {"sourceLink", "thumbnailLink", "featured"}


def is_valid_project_id(project_id: Any) -> bool:
    """Check if a value is a valid project id (lowercase URL slug)."""
    return isinstance(project_id, str) and bool(PROJECT_ID_PATTERN.match(project_id))


def validate_project_id(project_id: Any, operation: str | None = None) -> str:
    """Return *project_id* if it is a valid slug.

    Raises:
        InvalidRecordError: If the id is not a lowercase URL slug
    """
    if not is_valid_project_id(project_id):
        raise InvalidRecordError(
            f"Invalid project id {project_id!r}: use lowercase letters, digits and single hyphens",
            project_id=str(project_id),
            operation=operation,
        )
    return project_id


def normalize_creation_date(value: Any) -> Any:
    """Convert native date values to their ``YYYY-MM-DD`` string form.

    Strings and other values are returned unchanged; validation happens
    separately.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


@dataclass
class Project:
    """A single project in the portfolio."""

    id: str
    title: str
    description: str
    creation_date: str
    tags: list[str] = field(default_factory=list)
    page_link: str = ""
    source_link: str | None = None
    thumbnail_link: str | None = None
    featured: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Project:
        """Build a project from a record mapping (camelCase keys).

        Missing required keys become empty values so that ``validate()`` can
        report them; keys outside the schema are kept in ``extra``.
        """
        if not isinstance(data, Mapping):
            raise InvalidRecordError(
                f"Project record must be a mapping, got {type(data).__name__}",
            )
        tags = data.get("tags")
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            creation_date=normalize_creation_date(data.get("creationDate", "")),
            tags=list(tags) if isinstance(tags, (list, tuple)) else tags,
            page_link=data.get("pageLink", ""),
            source_link=data.get("sourceLink"),
            thumbnail_link=data.get("thumbnailLink"),
            featured=data.get("featured"),
            extra={k: v for k, v in data.items() if k not in FIELD_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a record mapping in canonical key order.

        Optional fields that are None are left out.
        """
        result: dict[str, Any] = {}
        for key, attr in FIELD_KEYS.items():
            value = getattr(self, attr)
            if key in OPTIONAL_KEYS and value is None:
                continue
            if key == "creationDate":
                value = normalize_creation_date(value)
            elif key == "tags":
                value = list(value or [])
            result[key] = value
        result.update(self.extra)
        return result

    def validate(self, operation: str | None = None) -> None:
        """Check the structural invariants of the record.

        Raises:
            InvalidRecordError: On the first violated invariant
        """
        validate_project_id(self.id, operation)

        def fail(message: str) -> InvalidRecordError:
            return InvalidRecordError(message, project_id=self.id, operation=operation)

        for key in ("title", "description", "page_link"):
            value = getattr(self, key)
            if not isinstance(value, str) or not value.strip():
                raise fail(f"Field '{key}' must be a non-empty string")

        creation_date = normalize_creation_date(self.creation_date)
        if not isinstance(creation_date, str) or not DATE_PATTERN.fullmatch(creation_date):
            raise fail(f"creationDate must be YYYY-MM-DD, got {self.creation_date!r}")

        if not isinstance(self.tags, list) or not all(isinstance(t, str) for t in self.tags):
            raise fail("tags must be a list of strings")

        for key in ("source_link", "thumbnail_link"):
            value = getattr(self, key)
            if value is not None and not isinstance(value, str):
                raise fail(f"Field '{key}' must be a string")

        if self.featured is not None and not isinstance(self.featured, bool):
            raise fail("featured must be true or false")


@dataclass
class ProjectsData:
    """Projects read from the backing file plus its embedded config block."""

    projects: list[Project] = field(default_factory=list)
    config: dict[str, Any] | None = None

    def ids(self) -> list[str]:
        return [p.id for p in self.projects]

    def get(self, project_id: str) -> Project | None:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None


def tag_counts(projects: Iterable[Project]) -> list[tuple[str, int]]:
    """Count tag usage across projects.

    Returns:
        (tag, count) pairs, most used first, ties broken by name
    """
    counter: Counter[str] = Counter()
    for project in projects:
        counter.update(project.tags or [])
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))
