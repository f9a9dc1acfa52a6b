"""
Unit tests for JournalStorage.
"""

import shutil
import tempfile
import time
from pathlib import Path

import pytest

from journal_rag.errors import StorageUnavailable
from journal_rag.models import PROFILE_FILE_ID
from journal_rag.storage import PROFILE_TEMPLATE, JournalStorage


@pytest.mark.unit
class TestJournalStorage:
    """Test suite for JournalStorage."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.storage = JournalStorage(root=Path(self.temp_dir) / "files")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_save_and_get(self):
        record, is_new = self.storage.save_file(
            "2024/june", "June", "Went hiking.", journal_date="2024-06-02"
        )

        assert is_new
        assert record.id == "2024/june"
        loaded = self.storage.get_file("2024/june")
        assert loaded.content == "Went hiking."
        assert loaded.journal_date == "2024-06-02"
        assert loaded.word_count == 2

    def test_save_updates_existing(self):
        first, _ = self.storage.save_file("a", "A", "one", folder_id="journal")
        second, is_new = self.storage.save_file("a", "", "two")

        assert not is_new
        assert second.name == "A"
        assert second.folder_id == "journal"
        assert second.content == "two"
        assert second.created_at == first.created_at

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            self.storage.save_file("  / ", "Nameless", "text")

    def test_get_missing_file(self):
        assert self.storage.find_file("missing") is None
        with pytest.raises(FileNotFoundError):
            self.storage.get_file("missing")
        with pytest.raises(FileNotFoundError):
            self.storage.delete_file("missing")

    def test_list_files_newest_first(self):
        self.storage.save_file("old", "Old", "old text")
        time.sleep(0.01)
        self.storage.save_file("new", "New", "new text")

        assert [record.id for record in self.storage.list_files()] == ["new", "old"]

    def test_pinned_files(self):
        self.storage.save_file("a", "A", "text", is_pinned=True)
        self.storage.save_file("b", "B", "text")
        self.storage.save_file("b", "B", "text", is_pinned=True)
        self.storage.save_file("a", "A", "text", is_pinned=False)

        assert [record.id for record in self.storage.pinned_files()] == ["b"]

    def test_save_without_pin_flag_keeps_it(self):
        self.storage.save_file("a", "A", "text", is_pinned=True)
        self.storage.save_file("a", "A", "edited text")

        assert self.storage.get_file("a").is_pinned is True

    def test_delete_file(self):
        self.storage.save_file("a", "A", "text")
        deleted = self.storage.delete_file("a")

        assert deleted.id == "a"
        assert self.storage.find_file("a") is None

    def test_profile_template_counts_as_empty(self):
        profile = self.storage.ensure_profile_file()

        assert profile.id == PROFILE_FILE_ID
        assert profile.content == PROFILE_TEMPLATE
        assert self.storage.profile_text() == ""

        self.storage.save_file(PROFILE_FILE_ID, "Profile", "I am a nurse who loves climbing.")
        assert self.storage.profile_text() == "I am a nurse who loves climbing."

    def test_unreadable_records_are_skipped_when_listing(self):
        self.storage.save_file("good", "Good", "fine")
        (self.storage.files_dir / "bad.json").write_text("{not json", encoding="utf-8")

        assert [record.id for record in self.storage.list_files()] == ["good"]
        with pytest.raises(StorageUnavailable):
            self.storage.get_file("bad")
