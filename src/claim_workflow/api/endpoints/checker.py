"""Checker routes: claim queue, reviewer assignment, final decision and user admin."""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, status

from claim_workflow.api.dependencies import Services, envelope, get_services
from claim_workflow.exceptions import ValidationError
from claim_workflow.models.claim import (
    ApproveRequest,
    AssignRequest,
    DenyRequest,
    Role,
    UserCreate,
)

router = APIRouter(prefix="/checker", tags=["checker"])


@router.get("/claims", summary="List all claims, optionally filtered")
def list_claims(
    services: Annotated[Services, Depends(get_services)],
    status_filter: Annotated[list[str] | None, Query(alias="status")] = None,
    claim_type_id: Annotated[int | None, Query()] = None,
):
    """Filter by one or more ``status`` values (repeat the parameter or comma separate)."""
    claims = services.queries.list_claims(
        Role.CHECKER,
        None,
        {"status": status_filter, "claim_type_id": claim_type_id},
    )
    return envelope(claims)


@router.get("/claims/{claim_id}", summary="Get any claim")
def get_claim(
    claim_id: str,
    services: Annotated[Services, Depends(get_services)],
):
    return envelope(services.queries.get_claim(claim_id, Role.CHECKER, None))


@router.patch("/claims/{claim_id}/assign", summary="Assign a reviewer to a Pending claim")
def assign_reviewer(
    claim_id: str,
    request: AssignRequest,
    services: Annotated[Services, Depends(get_services)],
):
    claim = services.resolver.assign(claim_id, request.reviewer_id, checker_id=request.checker_id)
    return envelope(claim)


@router.patch("/claims/{claim_id}/approve/{user_id}", summary="Approve a claim pending approval")
def approve_claim(
    claim_id: str,
    user_id: str,
    services: Annotated[Services, Depends(get_services)],
    request: Annotated[ApproveRequest | None, Body()] = None,
):
    amount = request.settlement_amount if request is not None else None
    return envelope(services.engine.approve(claim_id, user_id, settlement_amount=amount))


@router.patch("/claims/{claim_id}/deny/{user_id}", summary="Deny a claim pending approval")
def deny_claim(
    claim_id: str,
    user_id: str,
    services: Annotated[Services, Depends(get_services)],
    request: Annotated[DenyRequest | None, Body()] = None,
):
    reason = request.denial_reason if request is not None else None
    return envelope(services.engine.deny(claim_id, user_id, reason))


@router.get("/users", summary="List users, e.g. the reviewers available for assignment")
def list_users(
    services: Annotated[Services, Depends(get_services)],
    role: Annotated[str | None, Query()] = None,
    active: Annotated[bool | None, Query()] = None,
):
    if role is None:
        return envelope(services.users.list_users(active=active))
    try:
        wanted = Role(role)
    except ValueError as e:
        raise ValidationError(f"Unknown role '{role}'.") from e
    if wanted is Role.REVIEWER and active is None:
        return envelope(services.resolver.list_available_reviewers())
    return envelope(services.users.list_users(role=wanted, active=active))


@router.post("/users", status_code=status.HTTP_201_CREATED, summary="Create a user")
def create_user(
    request: UserCreate,
    services: Annotated[Services, Depends(get_services)],
):
    return envelope(services.users.create_user(request))


@router.get("/stats", summary="Claim counts by status and by type")
def claim_stats(services: Annotated[Services, Depends(get_services)]):
    return envelope(services.queries.stats())
