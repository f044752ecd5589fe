"""Managed standalone files: metadata in SQLite, bodies on disk.

Storage layout: ``{base_path}/{filename}``. Metadata rows keep insertion
order, which is also the emission order on the read side.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from snippetvault.core.storage import ensure_parent, storage_errors, transaction
from snippetvault.models.location import ManagedFile

logger = logging.getLogger(__name__)

_CREATE_FILES = """
CREATE TABLE IF NOT EXISTS managed_files (
    position   INTEGER PRIMARY KEY AUTOINCREMENT,
    file_id    TEXT NOT NULL UNIQUE,
    meta_json  TEXT NOT NULL
);
"""

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9_\-.]")
_DASH_RUN_RE = re.compile(r"-+")
_SLUG_RE = re.compile(r"[^a-z0-9]+")
_ID_RE = re.compile(r"[^a-z0-9_\-]")


def slugify(text: str) -> str:
    """Lowercase, dash-separated slug of *text*."""
    return _SLUG_RE.sub("-", text.lower()).strip("-")


def normalize_key(text: str) -> str:
    """Lowercase identifier restricted to ``[a-z0-9_-]``."""
    return _ID_RE.sub("", text.lower())


def normalize_filename(filename: str, label: str, extension: str) -> str:
    """Derive a safe on-disk filename.

    Falls back to a slug of *label*, forces *extension*, replaces unsafe
    characters, strips leading dots and collapses dash runs. Returns ``""``
    when nothing usable is left.
    """
    name = filename.strip() if isinstance(filename, str) else ""
    if not name:
        slug = slugify(label)
        name = slug + extension if slug else ""
    name = _UNSAFE_FILENAME_RE.sub("-", name).lstrip(".")
    name = _DASH_RUN_RE.sub("-", name)
    stem = name[: -len(extension)] if name.lower().endswith(extension.lower()) else name
    stem = stem.strip("-.")
    return stem + extension if stem else ""


def file_id_for(filename: str, extension: str) -> str:
    stem = filename[: -len(extension)] if filename.lower().endswith(extension.lower()) else filename
    return normalize_key(stem) or "file"


class ManagedFileStore:
    """CRUD for managed files.

    Parameters
    ----------
    db_path:
        SQLite database holding the metadata table.
    base_path:
        Directory holding file bodies. Created if it does not exist.
    extension:
        Extension every managed filename carries.
    """

    def __init__(self, db_path: Path, base_path: Path, *, extension: str = ".js") -> None:
        self._db_path = ensure_parent(db_path)
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)
        self.extension = extension
        with transaction(self._db_path, "managed file schema init") as conn:
            conn.execute(_CREATE_FILES)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def list(self) -> list[ManagedFile]:
        with transaction(self._db_path, "list managed files") as conn:
            rows = conn.execute(
                "SELECT meta_json FROM managed_files ORDER BY position ASC"
            ).fetchall()
        return [ManagedFile.model_validate_json(row[0]) for row in rows]

    def get(self, file_id: str) -> ManagedFile | None:
        with transaction(self._db_path, f"read managed file {file_id!r}") as conn:
            row = conn.execute(
                "SELECT meta_json FROM managed_files WHERE file_id = ?", (file_id,)
            ).fetchone()
        return ManagedFile.model_validate_json(row[0]) if row else None

    def owner_of(self, filename: str) -> ManagedFile | None:
        """The managed file whose body lives at *filename*, if any."""
        for file in self.list():
            if file.filename == filename:
                return file
        return None

    # ------------------------------------------------------------------
    # Bodies
    # ------------------------------------------------------------------

    def path_for(self, filename: str) -> Path:
        return self._base / filename

    def read_content(self, file: ManagedFile) -> str:
        path = self.path_for(file.filename)
        with storage_errors(f"read file body {file.filename!r}"):
            return path.read_text(encoding="utf-8") if path.exists() else ""

    def unique_filename(self, filename: str) -> str:
        """Return *filename*, suffixed ``-1``, ``-2``… until unused on disk."""
        stem = filename[: -len(self.extension)]
        candidate, suffix = filename, 1
        while self.path_for(candidate).exists():
            candidate = f"{stem}-{suffix}{self.extension}"
            suffix += 1
        return candidate

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write(self, file: ManagedFile, content: str, *, replacing: str | None = None) -> None:
        """Write the body and upsert metadata.

        When *replacing* names an existing file id, that row keeps its
        position and a renamed body is removed from disk.
        """
        previous = self.get(replacing) if replacing else None
        with storage_errors(f"write file body {file.filename!r}"):
            self.path_for(file.filename).write_text(content, encoding="utf-8")
            if previous is not None and previous.filename != file.filename:
                self.path_for(previous.filename).unlink(missing_ok=True)

        with transaction(self._db_path, f"write managed file {file.file_id!r}") as conn:
            if previous is not None:
                if file.file_id != previous.file_id:
                    conn.execute("DELETE FROM managed_files WHERE file_id = ?", (file.file_id,))
                conn.execute(
                    "UPDATE managed_files SET file_id = ?, meta_json = ? WHERE file_id = ?",
                    (file.file_id, file.model_dump_json(), previous.file_id),
                )
            else:
                conn.execute(
                    """
                    INSERT INTO managed_files (file_id, meta_json) VALUES (?, ?)
                    ON CONFLICT(file_id) DO UPDATE SET meta_json = excluded.meta_json
                    """,
                    (file.file_id, file.model_dump_json()),
                )

    def delete(self, file_id: str) -> tuple[ManagedFile, str] | None:
        """Remove a file and return its metadata and last body, or ``None``."""
        found = self.get(file_id)
        if found is None:
            return None
        content = self.read_content(found)
        with transaction(self._db_path, f"delete managed file {file_id!r}") as conn:
            conn.execute("DELETE FROM managed_files WHERE file_id = ?", (file_id,))
        with storage_errors(f"remove file body {found.filename!r}"):
            self.path_for(found.filename).unlink(missing_ok=True)
        return found, content

    def clear(self) -> None:
        with transaction(self._db_path, "clear managed files") as conn:
            conn.execute("DROP TABLE IF EXISTS managed_files")
        if self._base.exists():
            with storage_errors("remove files directory"):
                shutil.rmtree(self._base)
