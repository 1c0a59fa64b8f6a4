"""Claimant routes: file a claim, list and view own claims."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from claim_workflow.api.dependencies import Services, envelope, get_services, read_uploads
from claim_workflow.models.claim import ClaimSubmission, Role

router = APIRouter(prefix="/claimant", tags=["claimant"])


@router.get("/claims/{user_id}", summary="List the claimant's claims")
def list_own_claims(
    user_id: str,
    services: Annotated[Services, Depends(get_services)],
):
    return envelope(services.queries.list_claims(Role.CLAIMANT, user_id))


@router.post(
    "/claims",
    status_code=status.HTTP_201_CREATED,
    summary="Submit a new claim with supporting documents",
)
def submit_claim(
    services: Annotated[Services, Depends(get_services)],
    user_id: Annotated[str, Form()],
    claim_type: Annotated[int, Form(alias="claimType")],
    incident_date: Annotated[str, Form()],
    description: Annotated[str, Form()],
    documents: Annotated[list[UploadFile] | None, File(alias="documents[]")] = None,
):
    """Create a Pending claim. Up to 5 files of at most 5MB each (png, jpg, jpeg, pdf, doc, docx)."""
    claim = services.engine.submit_claim(
        user_id,
        ClaimSubmission(
            claim_type_id=claim_type,
            incident_date=incident_date,
            description=description,
        ),
        files=read_uploads(documents, services.engine.ledger.limits["max_file_bytes"]),
    )
    return envelope(claim)


@router.get("/claims/{claim_id}/{user_id}", summary="Get one of the claimant's claims")
def get_own_claim(
    claim_id: str,
    user_id: str,
    services: Annotated[Services, Depends(get_services)],
):
    return envelope(services.queries.get_claim(claim_id, Role.CLAIMANT, user_id))
