"""Tests for projection.thumbnails.manager module."""

import pytest

from projection.core.errors import InvalidRecordError, TooLargeError, UnsupportedTypeError
from projection.thumbnails.manager import (
    MAX_FILE_SIZE,
    ImageUpload,
    ThumbnailManager,
    extension_for,
    validate_upload,
)
from projection.thumbnails.refs import FinalAssetRef, TempAssetRef


@pytest.fixture
def manager(tmp_path):
    return ThumbnailManager(tmp_path / "screenshots")


@pytest.fixture
def png(png_bytes):
    return ImageUpload(data=png_bytes, mime_type="image/png")


@pytest.fixture
def jpeg(jpeg_bytes):
    return ImageUpload(data=jpeg_bytes, mime_type="image/jpeg")


def names(manager):
    return sorted(p.name for p in manager.screenshots_dir.iterdir())


class TestValidateUpload:
    """Tests for validate_upload function."""

    @pytest.mark.parametrize("mime_type", ["image/png", "image/jpeg", "image/gif", "image/webp"])
    def test_accepts_supported_types(self, mime_type):
        """Test that supported image types pass."""
        validate_upload(mime_type, 1024)

    def test_rejects_unsupported_type(self):
        """Test that other MIME types raise UnsupportedTypeError."""
        with pytest.raises(UnsupportedTypeError):
            validate_upload("image/svg+xml", 10)

    def test_accepts_exact_limit(self):
        """Test that a file of exactly the maximum size passes."""
        validate_upload("image/png", MAX_FILE_SIZE)

    def test_rejects_too_large(self):
        """Test that oversized files raise TooLargeError."""
        with pytest.raises(TooLargeError) as exc_info:
            validate_upload("image/png", MAX_FILE_SIZE + 1)
        assert exc_info.value.details["max_size"] == MAX_FILE_SIZE

    def test_type_checked_before_size(self):
        """Test that an oversized file of a bad type reports the type."""
        with pytest.raises(UnsupportedTypeError):
            validate_upload("application/pdf", MAX_FILE_SIZE * 2)

    def test_jpeg_extension(self):
        """Test that JPEG uploads are stored as .jpg."""
        assert extension_for("image/jpeg") == ".jpg"

    def test_declared_size_counts(self, png_bytes):
        """Test that a declared size larger than the data is enforced."""
        upload = ImageUpload(data=png_bytes, mime_type="image/png", size=MAX_FILE_SIZE + 1)
        with pytest.raises(TooLargeError):
            ThumbnailManager("unused").validate(upload)


class TestFinal:
    """Tests for final thumbnails."""

    def test_save_final(self, manager, png):
        """Test saving creates <id><ext>."""
        ref = manager.save_final("alpha", png)

        assert ref == FinalAssetRef("alpha", ".png")
        assert names(manager) == ["alpha.png"]
        assert manager.path_for(ref).read_bytes() == png.data
        assert manager.find_final("alpha") == "alpha.png"

    def test_save_final_replaces_other_extension(self, manager, png, jpeg):
        """Test that at most one final file exists per project."""
        manager.save_final("alpha", png)
        manager.save_final("alpha", jpeg)
        assert names(manager) == ["alpha.jpg"]

    def test_save_final_keeps_staged(self, manager, png, jpeg):
        """Test that saving a final file leaves a staged one alone."""
        manager.stage_temp("alpha", jpeg)
        manager.save_final("alpha", png)
        assert names(manager) == ["alpha.png", "alpha.temp.jpg"]

    def test_invalid_upload_writes_nothing(self, manager):
        """Test that validation happens before any write."""
        with pytest.raises(UnsupportedTypeError):
            manager.save_final("alpha", ImageUpload(data=b"x", mime_type="text/plain"))
        assert not manager.screenshots_dir.exists()

    def test_delete_final(self, manager, png):
        """Test deleting a final thumbnail."""
        manager.save_final("alpha", png)
        manager.delete_final("alpha")
        assert names(manager) == []
        assert manager.find_final("alpha") is None

    def test_delete_missing_is_ok(self, manager):
        """Test that deleting nothing succeeds."""
        manager.delete_final("alpha")

    def test_delete_removes_every_extension(self, manager, png_bytes):
        """Test that stray finals under other extensions are removed too."""
        manager.screenshots_dir.mkdir()
        (manager.screenshots_dir / "alpha.png").write_bytes(png_bytes)
        (manager.screenshots_dir / "alpha.jpeg").write_bytes(png_bytes)
        (manager.screenshots_dir / "alphabet.png").write_bytes(png_bytes)

        manager.delete_final("alpha")
        assert names(manager) == ["alphabet.png"]


class TestStaged:
    """Tests for the staged upload protocol."""

    def test_stage_temp(self, manager, jpeg):
        """Test staging creates <id>.temp<ext>."""
        ref = manager.stage_temp("alpha", jpeg)
        assert ref == TempAssetRef("alpha", ".jpg")
        assert manager.find_temp("alpha") == "alpha.temp.jpg"

    def test_stage_replaces_previous_stage(self, manager, png, jpeg):
        """Test that at most one staged file exists per project."""
        manager.stage_temp("alpha", png)
        manager.stage_temp("alpha", jpeg)
        assert names(manager) == ["alpha.temp.jpg"]

    def test_commit_renames_and_replaces_final(self, manager, png, jpeg):
        """Test that commit replaces the final file with the staged one."""
        manager.save_final("alpha", png)
        manager.stage_temp("alpha", jpeg)

        ref = manager.commit_temp("alpha")

        assert ref == FinalAssetRef("alpha", ".jpg")
        assert names(manager) == ["alpha.jpg"]
        assert manager.path_for(ref).read_bytes() == jpeg.data

    def test_commit_without_stage(self, manager, png):
        """Test that commit with nothing staged returns None."""
        manager.save_final("alpha", png)
        assert manager.commit_temp("alpha") is None
        assert names(manager) == ["alpha.png"]

    def test_commit_without_directory(self, manager):
        """Test commit before the directory exists."""
        assert manager.commit_temp("alpha") is None

    def test_delete_temp(self, manager, png, jpeg):
        """Test that discarding a stage keeps the final file."""
        manager.save_final("alpha", png)
        manager.stage_temp("alpha", jpeg)
        manager.delete_temp("alpha")
        assert names(manager) == ["alpha.png"]


class TestIds:
    """Tests for project id checks on every operation."""

    @pytest.mark.parametrize("project_id", ["../escape", "Alpha", "a/b", ""])
    def test_rejects_invalid_ids(self, manager, png, project_id):
        """Test that unsafe ids never reach the filesystem."""
        with pytest.raises(InvalidRecordError):
            manager.save_final(project_id, png)
        with pytest.raises(InvalidRecordError):
            manager.stage_temp(project_id, png)
        with pytest.raises(InvalidRecordError):
            manager.delete_final(project_id)
        with pytest.raises(InvalidRecordError):
            manager.commit_temp(project_id)
        assert not manager.screenshots_dir.exists()


class TestOrphans:
    """Tests for orphan detection."""

    def test_find_orphans(self, manager, png, jpeg):
        """Test that unknown finals and all staged files are orphans."""
        manager.save_final("alpha", png)
        manager.save_final("ghost", png)
        manager.stage_temp("alpha", jpeg)
        (manager.screenshots_dir / "README.txt").write_text("not managed")

        orphans = manager.find_orphans(["alpha"])
        assert sorted(p.name for p in orphans) == ["alpha.temp.jpg", "ghost.png"]

    def test_clean_orphans_dry_run(self, manager, png):
        """Test that a dry run deletes nothing."""
        manager.save_final("ghost", png)
        removed = manager.clean_orphans([], dry_run=True)
        assert [p.name for p in removed] == ["ghost.png"]
        assert names(manager) == ["ghost.png"]

    def test_clean_orphans(self, manager, png):
        """Test deleting orphans."""
        manager.save_final("alpha", png)
        manager.save_final("ghost", png)
        manager.clean_orphans(["alpha"])
        assert names(manager) == ["alpha.png"]

    def test_list_assets(self, manager, png, jpeg):
        """Test listing managed files in name order."""
        manager.save_final("beta", png)
        manager.stage_temp("alpha", jpeg)
        assert manager.list_assets() == [TempAssetRef("alpha", ".jpg"), FinalAssetRef("beta", ".png")]
