"""Tests for saving originals into user storage."""

from pathlib import Path
from unittest.mock import patch

import pytest

from immich_bridge.errors import FilesystemConflictError, PersistError
from immich_bridge.persist import AssetPersister, candidate_names, sanitize_file_name


@pytest.fixture
def user_root(temp_dir: Path) -> Path:
    root = temp_dir / "alice"
    root.mkdir()
    return root


@pytest.fixture
def persister(user_root: Path) -> AssetPersister:
    return AssetPersister(user_root)


class TestSanitizeFileName:
    """Test file name sanitization."""

    def test_strips_directories(self):
        assert sanitize_file_name("../../etc/passwd", "a1") == "passwd"
        assert sanitize_file_name("C:\\Users\\x\\photo.jpg", "a1") == "photo.jpg"

    def test_empty_name(self):
        """An empty name becomes image_<assetId>.jpg."""
        assert sanitize_file_name("", "a1") == "image_a1.jpg"
        assert sanitize_file_name("some/dir/", "a1") == "dir"
        assert sanitize_file_name("..", "a1") == "image_a1.jpg"

    def test_plain_name_unchanged(self):
        assert sanitize_file_name("IMG_0001.HEIC", "a1") == "IMG_0001.HEIC"


class TestCandidateNames:
    """Test the collision naming sequence."""

    def test_sequence(self):
        names = candidate_names("photo.jpg")
        assert [next(names) for _ in range(4)] == [
            "photo.jpg",
            "photo_1.jpg",
            "photo_2.jpg",
            "photo_3.jpg",
        ]

    def test_no_extension(self):
        names = candidate_names("README")
        assert [next(names) for _ in range(2)] == ["README", "README_1"]

    def test_suffix_before_last_extension(self):
        names = candidate_names("archive.tar.gz")
        next(names)
        assert next(names) == "archive.tar_1.gz"


class TestResolveFolder:
    """Test target folder validation."""

    def test_root(self, persister, user_root):
        """'/' and '' both mean the user's root."""
        for target in ("/", ""):
            folder = persister.resolve_folder(target)
            assert folder.path == user_root.resolve()
            assert folder.relative == ""

    def test_subfolder(self, persister, user_root):
        (user_root / "Photos" / "2024").mkdir(parents=True)

        folder = persister.resolve_folder("/Photos/2024/")

        assert folder.relative == "Photos/2024"

    def test_missing_folder(self, persister):
        with pytest.raises(FilesystemConflictError, match="does not exist"):
            persister.resolve_folder("Nope")

    def test_file_is_not_folder(self, persister, user_root):
        (user_root / "notes.txt").write_text("hi")

        with pytest.raises(FilesystemConflictError, match="not a folder"):
            persister.resolve_folder("notes.txt")

    def test_escape_rejected(self, persister, temp_dir):
        """Paths leaving the user's root are rejected."""
        (temp_dir / "bob").mkdir()

        with pytest.raises(FilesystemConflictError, match="outside"):
            persister.resolve_folder("../bob")

    def test_root_target_creates_user_root(self, temp_dir):
        """Saving to the root creates a new user's storage root."""
        persister = AssetPersister(temp_dir / "new-user")
        assert persister.resolve_folder("/").path.is_dir()

    def test_subfolder_target_does_not_create_root(self, temp_dir):
        """A missing subfolder is rejected without touching the filesystem."""
        persister = AssetPersister(temp_dir / "new-user")

        with pytest.raises(FilesystemConflictError, match="does not exist"):
            persister.resolve_folder("Photos")

        assert not (temp_dir / "new-user").exists()


class TestSave:
    """Test writing files."""

    def test_writes_chunks(self, persister, user_root):
        target = persister.resolve_folder("/")

        rel = persister.save(target, "photo.jpg", "a1", [b"abc", b"def"])

        assert rel == "photo.jpg"
        assert (user_root / "photo.jpg").read_bytes() == b"abcdef"

    def test_collision_appends_counter(self, persister, user_root):
        """photo.jpg existing gives photo_1.jpg, then photo_2.jpg."""
        (user_root / "Photos").mkdir()
        (user_root / "Photos" / "photo.jpg").write_bytes(b"old")
        target = persister.resolve_folder("Photos")

        first = persister.save(target, "photo.jpg", "a1", [b"new1"])
        second = persister.save(target, "photo.jpg", "a1", [b"new2"])

        assert first == "Photos/photo_1.jpg"
        assert second == "Photos/photo_2.jpg"
        assert (user_root / "Photos" / "photo.jpg").read_bytes() == b"old"
        assert (user_root / "Photos" / "photo_2.jpg").read_bytes() == b"new2"

    def test_skips_taken_counters(self, persister, user_root):
        for name in ("photo.jpg", "photo_1.jpg", "photo_2.jpg"):
            (user_root / name).write_bytes(b"x")

        rel = persister.save(persister.resolve_folder("/"), "photo.jpg", "a1", [b"y"])

        assert rel == "photo_3.jpg"

    def test_empty_name_synthesized(self, persister, user_root):
        rel = persister.save(persister.resolve_folder("/"), "", "a1", [b"y"])
        assert rel == "image_a1.jpg"

    def test_directory_components_ignored(self, persister, user_root):
        """A name with directories is written into the target folder only."""
        rel = persister.save(persister.resolve_folder("/"), "../../evil.jpg", "a1", [b"y"])
        assert rel == "evil.jpg"
        assert (user_root / "evil.jpg").exists()

    def test_race_treated_as_collision(self, persister, user_root):
        """A file created between the existence check and open is skipped."""
        real_open = open
        calls = {"n": 0}

        def flaky_open(path, mode="r", *args, **kwargs):
            if mode == "xb" and calls["n"] == 0:
                calls["n"] += 1
                raise FileExistsError(path)
            return real_open(path, mode, *args, **kwargs)

        with patch("builtins.open", side_effect=flaky_open):
            rel = persister.save(persister.resolve_folder("/"), "photo.jpg", "a1", [b"y"])

        assert rel == "photo_1.jpg"

    def test_write_failure(self, persister):
        """An OSError while writing is a PersistError."""

        def chunks():
            yield b"ok"
            raise OSError("disk full")

        with pytest.raises(PersistError, match="disk full"):
            persister.save(persister.resolve_folder("/"), "photo.jpg", "a1", chunks())

    def test_create_failure(self, persister):
        """An OSError when creating the file is a PersistError."""
        with patch("builtins.open", side_effect=PermissionError("read-only")):
            with pytest.raises(PersistError, match="read-only"):
                persister.save(persister.resolve_folder("/"), "photo.jpg", "a1", [b"y"])
