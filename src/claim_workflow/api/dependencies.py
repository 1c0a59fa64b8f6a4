"""Request-scoped access to the workflow services and upload conversion."""

from dataclasses import dataclass
from typing import Any

from fastapi import Request, UploadFile

from claim_workflow.models.claim import FileMeta
from claim_workflow.workflow import (
    AssignmentResolver,
    BlobStore,
    ClaimQueries,
    DocumentLedger,
    UserDirectory,
    WorkflowEngine,
)


@dataclass
class Services:
    engine: WorkflowEngine
    resolver: AssignmentResolver
    queries: ClaimQueries
    users: UserDirectory


def build_services(db_path: str | None = None, upload_dir: str | None = None) -> Services:
    users = UserDirectory(db_path)
    engine = WorkflowEngine(db_path, ledger=DocumentLedger(BlobStore(upload_dir)), users=users)
    return Services(
        engine=engine,
        resolver=AssignmentResolver(engine),
        queries=ClaimQueries(engine),
        users=users,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def read_uploads(files: list[UploadFile] | None, max_bytes: int) -> list[FileMeta]:
    """Buffer multipart uploads into FileMeta; empty file inputs are skipped.

    At most ``max_bytes + 1`` bytes are read per file. An oversized upload
    keeps its reported size but no content, so the ledger rejects it.
    """
    metas: list[FileMeta] = []
    for upload in files or []:
        if not upload.filename:
            continue
        if upload.size is not None and upload.size > max_bytes:
            content = None
            size = upload.size
        else:
            content = upload.file.read(max_bytes + 1)
            size = len(content)
            if size > max_bytes:
                content = None
        metas.append(
            FileMeta(
                filename=upload.filename,
                size_bytes=size,
                mime_type=upload.content_type or "application/octet-stream",
                content=content,
            )
        )
    return metas


def envelope(payload: Any) -> dict[str, Any]:
    """Wrap a model or list of models in the ``{"data": ...}`` success envelope."""
    if isinstance(payload, list):
        return {"data": [_dump(item) for item in payload]}
    return {"data": _dump(payload)}


def _dump(item: Any) -> Any:
    if hasattr(item, "model_dump"):
        return item.model_dump(mode="json")
    return item
