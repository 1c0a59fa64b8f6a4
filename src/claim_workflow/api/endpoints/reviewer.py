"""Reviewer routes: assigned claims and submission for approval."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from claim_workflow.api.dependencies import Services, envelope, get_services, read_uploads
from claim_workflow.models.claim import Role

router = APIRouter(prefix="/reviewer", tags=["reviewer"])


@router.get("/claims/{user_id}", summary="List claims assigned to the reviewer")
def list_assigned_claims(
    user_id: str,
    services: Annotated[Services, Depends(get_services)],
):
    return envelope(services.queries.list_claims(Role.REVIEWER, user_id))


@router.get("/claims/{claim_id}/{user_id}", summary="Get a claim assigned to the reviewer")
def get_assigned_claim(
    claim_id: str,
    user_id: str,
    services: Annotated[Services, Depends(get_services)],
):
    return envelope(services.queries.get_claim(claim_id, Role.REVIEWER, user_id))


# Older clients POST this form; both verbs perform the same transition
@router.api_route(
    "/claims/{claim_id}/submit-for-approval/{user_id}",
    methods=["PATCH", "POST"],
    summary="Submit review notes and documents for checker approval",
)
def submit_for_approval(
    claim_id: str,
    user_id: str,
    services: Annotated[Services, Depends(get_services)],
    reviewer_notes: Annotated[str | None, Form()] = None,
    settlement_amount: Annotated[str | None, Form()] = None,
    reviewer_documents: Annotated[list[UploadFile] | None, File(alias="reviewer_documents[]")] = None,
):
    claim = services.engine.submit_for_approval(
        claim_id,
        user_id,
        reviewer_notes=reviewer_notes,
        settlement_amount=settlement_amount,
        files=read_uploads(reviewer_documents, services.engine.ledger.limits["max_file_bytes"]),
    )
    return envelope(claim)
