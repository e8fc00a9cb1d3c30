"""Tests for path resolution under the storage root."""

import pytest

from engine.exceptions import InvalidNameError, StorageIOError
from engine.storage_layout import StorageLayout, normalize_owner_id, sanitize_name


@pytest.fixture
def layout(storage_root):
    return StorageLayout(storage_root)


class TestSanitizeName:
    """Test file name sanitization."""

    @pytest.mark.parametrize("raw, expected", [
        ("notes.txt", "notes.txt"),
        ("../../secret", "secret"),
        ("/etc/passwd", "passwd"),
        ("a/b/c.txt", "c.txt"),
        ("..\\..\\windows.ini", "windows.ini"),
        ("  padded.txt  ", "padded.txt"),
        (".hidden", ".hidden"),
    ])
    def test_reduces_to_base_name(self, raw, expected):
        assert sanitize_name(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", ".", "..", "../", "a/..", "nul\x00byte"])
    def test_rejects_unusable_names(self, raw):
        with pytest.raises(InvalidNameError):
            sanitize_name(raw)

    def test_rejects_staging_names(self):
        with pytest.raises(InvalidNameError):
            sanitize_name(".report.pdf.x1y2.staging")

    def test_rejects_non_string(self):
        with pytest.raises(InvalidNameError):
            sanitize_name(None)


class TestNormalizeOwnerId:
    """Test owner id normalization."""

    def test_int_and_str(self):
        assert normalize_owner_id(42) == "42"
        assert normalize_owner_id("user-7") == "user-7"

    @pytest.mark.parametrize("owner", ["", "..", "a/b", "a\\b", True, None, 1.5])
    def test_rejects_unusable_ids(self, owner):
        with pytest.raises(InvalidNameError):
            normalize_owner_id(owner)


class TestStorageLayout:
    """Test StorageLayout."""

    def test_traversal_stays_in_owner_directory(self, layout, storage_root):
        path = layout.resolve(42, "../../secret")
        assert path == storage_root.resolve() / "owner_42" / "secret"

    def test_initialize_creates_root(self, tmp_path):
        layout = StorageLayout(tmp_path / "new" / "root")
        root = layout.initialize()
        assert root.is_dir()

    def test_initialize_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_bytes(b"")
        with pytest.raises(StorageIOError):
            StorageLayout(blocker / "root").initialize()

    def test_owner_directory_created_idempotently(self, layout):
        first = layout.ensure_owner_directory("alice")
        second = layout.ensure_owner_directory("alice")
        assert first == second
        assert first.is_dir()
        assert first.name == "owner_alice"

    def test_symlinked_owner_directory_escaping_root(self, layout, storage_root, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (storage_root / "owner_mallory").symlink_to(outside, target_is_directory=True)

        with pytest.raises(InvalidNameError):
            layout.resolve("mallory", "loot.txt")

    def test_check_stored_path(self, layout, storage_root, tmp_path):
        inside = storage_root / "owner_1" / "file.txt"
        assert layout.check_stored_path(inside) == inside

        with pytest.raises(StorageIOError):
            layout.check_stored_path(tmp_path / "elsewhere.txt")
