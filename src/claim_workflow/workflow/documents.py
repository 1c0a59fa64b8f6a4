"""Document attachment ledger and the blob store behind it.

Uploads are validated as a batch before anything is written: one bad file
rejects the whole batch. Blobs live under an opaque random key; the database
rows referencing them are written by the workflow engine in the same
transaction as the transition they belong to.
"""

import mimetypes
import re
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

from claim_workflow.config.settings import ALLOWED_EXTENSIONS, get_attachment_limits, get_upload_dir
from claim_workflow.exceptions import FileValidationError, NotFound
from claim_workflow.models.claim import DocumentOrigin, FileMeta
from claim_workflow.observability import get_logger
from claim_workflow.utils.sanitization import sanitize_filename

logger = get_logger(__name__)

_STORED_NAME_RE = re.compile(r"^[0-9a-f]{32}\.[a-z0-9]{1,8}$")


class BlobStore:
    """Files on disk keyed by a random ``<uuid hex>.<ext>`` name."""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root) if root is not None else None

    @property
    def root(self) -> Path:
        # Resolved lazily so CLAIM_WORKFLOW_UPLOAD_DIR set after construction is honoured
        return self._root if self._root is not None else Path(get_upload_dir())

    def _path(self, stored_filename: str) -> Path:
        if not _STORED_NAME_RE.match(stored_filename or ""):
            raise NotFound(f"Document not found: {stored_filename}")
        return self.root / stored_filename

    def put(self, content: bytes, extension: str) -> str:
        stored_filename = f"{uuid.uuid4().hex}.{extension}"
        self.root.mkdir(parents=True, exist_ok=True)
        self._path(stored_filename).write_bytes(content)
        return stored_filename

    def read(self, stored_filename: str) -> bytes:
        path = self._path(stored_filename)
        if not path.is_file():
            raise NotFound(f"Document not found: {stored_filename}")
        return path.read_bytes()

    def delete(self, stored_filename: str) -> None:
        path = self._path(stored_filename)
        path.unlink(missing_ok=True)


def _format_mb(limit_bytes: int) -> str:
    mb = limit_bytes / (1024 * 1024)
    return f"{mb:g}MB"


class DocumentLedger:
    """Validates upload batches and stages them as Document rows."""

    def __init__(self, store: BlobStore | None = None, limits: dict[str, int] | None = None):
        self.store = store or BlobStore()
        self._limits = limits

    @property
    def limits(self) -> dict[str, int]:
        return self._limits if self._limits is not None else get_attachment_limits()

    def max_files(self, origin: DocumentOrigin) -> int:
        if origin is DocumentOrigin.REVIEWER:
            return self.limits["max_reviewer_files"]
        return self.limits["max_claimant_files"]

    def validate_batch(self, origin: DocumentOrigin, files: Sequence[FileMeta]) -> None:
        """Raise FileValidationError for the first offending file; no side effects."""
        max_files = self.max_files(origin)
        if len(files) > max_files:
            raise FileValidationError(
                f"You can upload a maximum of {max_files} files.",
                reason="count",
            )
        max_bytes = self.limits["max_file_bytes"]
        allowed = ", ".join(sorted(ALLOWED_EXTENSIONS))
        for meta in files:
            name = sanitize_filename(meta.filename)
            if not name:
                raise FileValidationError("Every uploaded file needs a filename.", reason="name")
            if meta.size_bytes > max_bytes:
                raise FileValidationError(
                    f'File "{name}" exceeds the {_format_mb(max_bytes)} size limit.',
                    filename=name,
                    reason="size",
                )
            if meta.content is not None and len(meta.content) != meta.size_bytes:
                raise FileValidationError(
                    f'File "{name}" size does not match its content.',
                    filename=name,
                    reason="size",
                )
            if meta.extension not in ALLOWED_EXTENSIONS:
                raise FileValidationError(
                    f'File "{name}" has an invalid type. Allowed types: {allowed}.',
                    filename=name,
                    reason="type",
                )

    def stage(self, origin: DocumentOrigin, files: Sequence[FileMeta]) -> list[dict[str, Any]]:
        """Validate then store every blob; return rows ready for insertion."""
        self.validate_batch(origin, files)
        rows: list[dict[str, Any]] = []
        try:
            for meta in files:
                name = sanitize_filename(meta.filename)
                stored = self.store.put(meta.content or b"", meta.extension)
                rows.append(
                    {
                        "original_filename": name,
                        "stored_filename": stored,
                        "mime_type": _mime_type(meta),
                        "file_size_bytes": meta.size_bytes,
                        "is_review_document": origin.is_review_document,
                    }
                )
        except OSError:
            self.discard(rows)
            raise
        return rows

    def discard(self, rows: Sequence[dict[str, Any]]) -> None:
        for row in rows:
            try:
                self.store.delete(row["stored_filename"])
            except OSError:
                logger.warning("Could not remove staged blob %s", row["stored_filename"], exc_info=True)

    @contextmanager
    def attach(self, origin: DocumentOrigin, files: Sequence[FileMeta] | None) -> Iterator[list[dict[str, Any]]]:
        """Stage a batch for the duration of a block; remove the blobs if the block fails.

        Usage:
            with ledger.attach(DocumentOrigin.REVIEWER, files) as rows:
                repo.apply_transition(..., documents=rows)
        """
        rows = self.stage(origin, list(files or []))
        try:
            yield rows
        except BaseException:
            self.discard(rows)
            raise

    def read(self, stored_filename: str) -> bytes:
        return self.store.read(stored_filename)


def _mime_type(meta: FileMeta) -> str:
    if meta.mime_type and meta.mime_type != "application/octet-stream":
        return meta.mime_type
    guessed, _ = mimetypes.guess_type(meta.filename)
    return guessed or "application/octet-stream"
