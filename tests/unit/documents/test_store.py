"""Tests for the filesystem document store."""

import pytest

from retitler.documents.store import FileSystemDocumentStore
from retitler.utils.errors import DocumentError, ErrorCode, ValidationError


@pytest.fixture
def store(tmp_path):
    return FileSystemDocumentStore(tmp_path)


class TestFileSystemDocumentStore:
    """Tests for FileSystemDocumentStore."""

    @pytest.mark.asyncio
    async def test_read_and_write(self, store, tmp_path):
        """Test content round-trips through the store."""
        (tmp_path / "note.md").write_text("original", encoding="utf-8")

        assert await store.read_content("note.md") == "original"
        await store.write_content("note.md", "updated")
        assert (tmp_path / "note.md").read_text(encoding="utf-8") == "updated"

    @pytest.mark.asyncio
    async def test_read_missing_file(self, store):
        """Test a missing document raises DocumentError."""
        with pytest.raises(DocumentError) as exc_info:
            await store.read_content("missing.md")
        assert exc_info.value.code == ErrorCode.FILE_OPERATION_ERROR

    @pytest.mark.asyncio
    async def test_rename(self, store, tmp_path):
        """Test rename moves the file."""
        (tmp_path / "old.md").write_text("x", encoding="utf-8")

        await store.rename("old.md", "new.md")

        assert not (tmp_path / "old.md").exists()
        assert (tmp_path / "new.md").read_text(encoding="utf-8") == "x"

    @pytest.mark.asyncio
    async def test_rename_refuses_existing_target(self, store, tmp_path):
        """Test rename never overwrites an existing document."""
        (tmp_path / "old.md").write_text("old", encoding="utf-8")
        (tmp_path / "new.md").write_text("new", encoding="utf-8")

        with pytest.raises(DocumentError, match="already exists"):
            await store.rename("old.md", "new.md")

        assert (tmp_path / "new.md").read_text(encoding="utf-8") == "new"
        assert (tmp_path / "old.md").exists()

    @pytest.mark.asyncio
    async def test_exists(self, store, tmp_path):
        """Test exists reflects the filesystem."""
        (tmp_path / "here.md").write_text("x", encoding="utf-8")
        assert await store.exists("here.md") is True
        assert await store.exists("gone.md") is False

    def test_path_outside_root_is_rejected(self, store):
        """Test relative paths cannot escape the document root."""
        with pytest.raises(ValidationError):
            store.resolve("../outside.md")

    def test_nested_path_is_allowed(self, store, tmp_path):
        """Test paths into subdirectories resolve under the root."""
        assert store.resolve("notes/a.md") == (tmp_path / "notes" / "a.md").resolve()

    def test_extension_filter(self, tmp_path):
        """Test only configured document types are accepted."""
        store = FileSystemDocumentStore(tmp_path, extensions=[".md"])

        assert store.resolve("a.MD") == (tmp_path / "a.MD").resolve()
        with pytest.raises(ValidationError, match="Unsupported document type"):
            store.resolve("image.png")

    @pytest.mark.asyncio
    async def test_invalid_text_raises_document_error(self, store, tmp_path):
        """Test undecodable bytes are reported as a document error."""
        (tmp_path / "note.md").write_bytes(b"\xff\xfe bad bytes \xc3\x28")

        with pytest.raises(DocumentError, match="not valid utf-8 text") as exc_info:
            await store.read_content("note.md")
        assert exc_info.value.code == ErrorCode.FILE_OPERATION_ERROR

    @pytest.mark.asyncio
    async def test_filesystem_calls_run_in_threads(self, store, tmp_path, monkeypatch):
        """Test blocking filesystem calls are moved off the event loop."""
        offloaded = []

        async def fake_to_thread(func, *args, **kwargs):
            offloaded.append(func)
            return func(*args, **kwargs)

        monkeypatch.setattr("retitler.documents.store.asyncio.to_thread", fake_to_thread)
        (tmp_path / "old.md").write_text("x", encoding="utf-8")

        await store.read_content("old.md")
        await store.write_content("old.md", "y")
        await store.exists("old.md")
        await store.rename("old.md", "new.md")

        assert len(offloaded) == 4
        assert (tmp_path / "new.md").read_text(encoding="utf-8") == "y"
