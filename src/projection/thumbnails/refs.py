"""
References to thumbnails stored in the screenshots directory.

Records point at managed thumbnails with ``asset://<file name>``. Parsing
happens here, at the boundary, so the rest of the code deals with either a
``FinalAssetRef`` or a ``TempAssetRef`` and never with half-valid strings.
Any other thumbnailLink value (an URL or a site path) is opaque to this layer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from projection.core.errors import InvalidAssetRefError

ASSET_SCHEME = "asset://"

# Accepted on disk; .jpeg is recognised but never written
SUPPORTED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp")

TEMP_MARKER = ".temp"

_REF_PATTERN = re.compile(
    r"^(?P<id>[a-z0-9]+(?:-[a-z0-9]+)*)(?P<temp>\.temp)?(?P<ext>\.[a-z]+)$"
)


@dataclass(frozen=True)
class FinalAssetRef:
    """A committed thumbnail, ``<id><ext>``."""

    project_id: str
    ext: str

    @property
    def filename(self) -> str:
        return f"{self.project_id}{self.ext}"

    @property
    def is_temp(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"{ASSET_SCHEME}{self.filename}"


@dataclass(frozen=True)
class TempAssetRef:
    """A staged thumbnail awaiting commit, ``<id>.temp<ext>``."""

    project_id: str
    ext: str

    @property
    def filename(self) -> str:
        return f"{self.project_id}{TEMP_MARKER}{self.ext}"

    @property
    def is_temp(self) -> bool:
        return True

    def final(self) -> FinalAssetRef:
        """The reference this thumbnail gets once committed."""
        return FinalAssetRef(self.project_id, self.ext)

    def __str__(self) -> str:
        return f"{ASSET_SCHEME}{self.filename}"


AssetRef = FinalAssetRef | TempAssetRef


def is_asset_ref(value: object) -> bool:
    """Check if a thumbnailLink uses the asset:// scheme."""
    return isinstance(value, str) and value.startswith(ASSET_SCHEME)


def parse_filename(filename: str) -> AssetRef | None:
    """Parse a file name in the screenshots directory.

    Returns:
        The matching reference, or None for files this layer does not manage
    """
    match = _REF_PATTERN.match(filename)
    if not match or match.group("ext") not in SUPPORTED_EXTENSIONS:
        return None
    if match.group("temp"):
        return TempAssetRef(match.group("id"), match.group("ext"))
    return FinalAssetRef(match.group("id"), match.group("ext"))


def parse_asset_ref(value: str | None) -> AssetRef | None:
    """Parse a thumbnailLink value.

    Returns:
        A FinalAssetRef or TempAssetRef for ``asset://`` values, None for any
        other (external) reference or for None

    Raises:
        InvalidAssetRefError: If the value uses asset:// but is malformed
    """
    if not is_asset_ref(value):
        return None
    filename = value[len(ASSET_SCHEME):]  # type: ignore[index]
    ref = parse_filename(filename)
    if ref is None:
        raise InvalidAssetRefError(
            f"Malformed thumbnail reference: {value!r}",
            reference=value,
            supported_extensions=", ".join(SUPPORTED_EXTENSIONS),
        )
    return ref
