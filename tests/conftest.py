"""Shared test fixtures for projection package."""

import pytest
from pathlib import Path


SAMPLE_YAML = """\
# Portfolio projects
config:
  title: My Portfolio  # site title

projects:
  # Flagship
  - id: alpha
    title: Alpha
    description: First project
    creationDate: "2024-01-15"
    tags: [python, cli]
    pageLink: https://example.com/alpha
    thumbnailLink: asset://alpha.png

  - id: beta
    title: Beta
    description: Second project
    creationDate: "2023-06-01"
    tags:
      - web
    pageLink: https://example.com/beta
    featured: true
# trailing comment
"""

SAMPLE_JSON = """\
{
  "config": {"title": "My Portfolio"},
  "projects": [
    {
      "id": "alpha",
      "title": "Alpha",
      "description": "First project",
      "creationDate": "2024-01-15",
      "tags": ["python", "cli"],
      "pageLink": "https://example.com/alpha"
    },
    {
      "id": "beta",
      "title": "Beta",
      "description": "Second project",
      "creationDate": "2023-06-01",
      "tags": ["web"],
      "pageLink": "https://example.com/beta",
      "featured": true
    }
  ]
}
"""

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32


def make_project(project_id: str = "gamma", **overrides) -> dict:
    """Build a valid project record dict."""
    record = {
        "id": project_id,
        "title": project_id.title(),
        "description": f"The {project_id} project",
        "creationDate": "2025-03-10",
        "tags": ["new"],
        "pageLink": f"https://example.com/{project_id}",
    }
    record.update(overrides)
    return record


@pytest.fixture
def sample_yaml_file(tmp_path):
    """Create a commented YAML projects file."""
    file_path = tmp_path / "projects.yaml"
    file_path.write_text(SAMPLE_YAML, encoding="utf-8")
    return file_path


@pytest.fixture
def sample_json_file(tmp_path):
    """Create a pretty-printed JSON projects file."""
    file_path = tmp_path / "projects.json"
    file_path.write_text(SAMPLE_JSON, encoding="utf-8")
    return file_path


@pytest.fixture
def mock_site_root(tmp_path, monkeypatch):
    """Create a mock site with a projects file, .projection/ and screenshots/."""
    (tmp_path / ".projection" / "backups").mkdir(parents=True)
    (tmp_path / "screenshots").mkdir()
    (tmp_path / "screenshots" / "alpha.png").write_bytes(PNG_BYTES)
    (tmp_path / "projects.yaml").write_text(SAMPLE_YAML, encoding="utf-8")

    # Mock get_site_root to return our tmp_path
    from projection.core import config
    config.get_site_root.cache_clear()
    monkeypatch.setattr(config, "get_site_root", lambda: tmp_path)
    monkeypatch.delenv("PROJECTION_PROJECTS_FILE", raising=False)

    return tmp_path


@pytest.fixture
def image_file(tmp_path) -> Path:
    """Create a small PNG file to upload."""
    path = tmp_path / "upload" / "shot.png"
    path.parent.mkdir()
    path.write_bytes(PNG_BYTES)
    return path


@pytest.fixture
def sample_yaml_text():
    """The commented YAML sample as text."""
    return SAMPLE_YAML


@pytest.fixture
def sample_json_text():
    """The JSON sample as text."""
    return SAMPLE_JSON


@pytest.fixture
def new_project():
    """Factory for valid project record dicts."""
    return make_project


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES
