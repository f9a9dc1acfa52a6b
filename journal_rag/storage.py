"""Filesystem-backed storage for journal files."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from journal_rag.errors import StorageUnavailable
from journal_rag.logging_config import get_logger
from journal_rag.models import PROFILE_FILE_ID, JournalFile

log = get_logger(__name__)

PROFILE_TEMPLATE = """# Profile

This is your AI context profile. The AI reads this file in every conversation to understand who you are. Write a few sentences about yourself, your role, what you're working on, and anything else that would help the AI have better conversations with you. Keep it personal and conversational - think of it as introducing yourself to a friend.

When you're ready, delete this instruction text and write your own introduction. The AI only sees what you write, not these instructions.
"""


class JournalStorage:
    """Local JSON storage, one record per journal file."""

    def __init__(self, root: Optional[Path] = None):
        base_dir = Path(root) if root else Path(__file__).resolve().parent / "storage" / "files"
        try:
            base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot create file storage at {base_dir}: {exc}") from exc
        self.files_dir = base_dir

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get_file(self, file_id: str) -> JournalFile:
        record = self.find_file(file_id)
        if record is None:
            raise FileNotFoundError(f"File not found: {file_id}")
        return record

    def find_file(self, file_id: str) -> Optional[JournalFile]:
        path = self._path_for(file_id)
        if not path.exists():
            return None
        return self._read_record(path)

    def list_files(self) -> List[JournalFile]:
        """All stored files, most recently updated first."""
        records = list(self._load_all_records().values())
        records.sort(key=lambda r: r.updated_at, reverse=True)
        return records

    def pinned_files(self) -> List[JournalFile]:
        return [record for record in self.list_files() if record.is_pinned]

    def save_file(
        self,
        file_id: str,
        name: str,
        content: str,
        folder_id: Optional[str] = None,
        journal_date: Optional[str] = None,
        is_pinned: Optional[bool] = None,
    ) -> Tuple[JournalFile, bool]:
        normalized = self._normalize_id(file_id)
        if not normalized:
            raise ValueError("file_id must not be empty")

        existing = self.find_file(normalized)
        is_new = existing is None

        record = existing or JournalFile(id=normalized, name=name or normalized)
        record.name = name or record.name
        record.content = content
        record.folder_id = folder_id if folder_id is not None else record.folder_id
        record.journal_date = journal_date if journal_date is not None else record.journal_date
        if is_pinned is not None:
            record.is_pinned = is_pinned
        record.file_path = str(self._path_for(normalized))
        if is_new:
            record.created_at = time.time()
        record.updated_at = time.time()

        self._write_record(record)
        return record, is_new

    def delete_file(self, file_id: str) -> JournalFile:
        record = self.get_file(file_id)
        try:
            self._path_for(record.id).unlink()
        except OSError as exc:
            raise StorageUnavailable(f"Cannot delete {file_id}: {exc}") from exc
        return record

    def ensure_profile_file(self) -> JournalFile:
        profile = self.find_file(PROFILE_FILE_ID)
        if profile is not None:
            return profile
        profile, _ = self.save_file(PROFILE_FILE_ID, "Profile", PROFILE_TEMPLATE)
        return profile

    def profile_text(self) -> str:
        """The user's own profile text; the untouched template counts as empty."""
        profile = self.ensure_profile_file()
        if profile.content.strip() == PROFILE_TEMPLATE.strip():
            return ""
        return profile.content

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _normalize_id(self, raw_id: str) -> str:
        return raw_id.strip().strip("/")

    def _safe_stem(self, file_id: str) -> str:
        return self._normalize_id(file_id).replace("/", "__")

    def _path_for(self, file_id: str) -> Path:
        return self.files_dir / f"{self._safe_stem(file_id)}.json"

    def _load_all_records(self) -> Dict[str, JournalFile]:
        records: Dict[str, JournalFile] = {}
        for path in sorted(self.files_dir.glob("*.json")):
            try:
                record = self._read_record(path)
            except StorageUnavailable as exc:
                log.warning("Skipping unreadable file record %s: %s", path.name, exc)
                continue
            records[record.id] = record
        return records

    def _read_record(self, path: Path) -> JournalFile:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageUnavailable(f"Cannot read {path}: {exc}") from exc

        record_id = self._normalize_id(raw.get("id") or path.stem.replace("__", "/"))
        return JournalFile(
            id=record_id,
            name=raw.get("name") or record_id,
            content=raw.get("content", ""),
            folder_id=raw.get("folder_id"),
            file_path=str(path),
            journal_date=raw.get("journal_date"),
            is_pinned=bool(raw.get("is_pinned", False)),
            created_at=raw.get("created_at", time.time()),
            updated_at=raw.get("updated_at", time.time()),
        )

    def _write_record(self, record: JournalFile):
        payload = {
            "id": record.id,
            "name": record.name,
            "folder_id": record.folder_id,
            "journal_date": record.journal_date,
            "is_pinned": record.is_pinned,
            "word_count": record.word_count,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
            "content": record.content,
        }
        path = self._path_for(record.id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot write {path}: {exc}") from exc
