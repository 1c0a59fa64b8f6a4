"""Document download."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from claim_workflow.api.dependencies import Services, get_services

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("/download/{stored_filename}", summary="Download an attached document")
def download_document(
    stored_filename: str,
    services: Annotated[Services, Depends(get_services)],
    user_id: Annotated[str | None, Query()] = None,
):
    document, content = services.queries.open_document(stored_filename, user_id)
    return Response(
        content=content,
        media_type=document.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{document.original_filename}"'},
    )
