"""Pydantic models for claims, users and workflow requests."""

from claim_workflow.models.claim import (
    AssignRequest,
    ApproveRequest,
    Claim,
    ClaimAction,
    ClaimStats,
    ClaimStatus,
    ClaimSubmission,
    ClaimType,
    DenyRequest,
    Document,
    DocumentOrigin,
    FileMeta,
    Role,
    TransitionRecord,
    User,
    UserCreate,
)

__all__ = [
    "AssignRequest",
    "ApproveRequest",
    "Claim",
    "ClaimAction",
    "ClaimStats",
    "ClaimStatus",
    "ClaimSubmission",
    "ClaimType",
    "DenyRequest",
    "Document",
    "DocumentOrigin",
    "FileMeta",
    "Role",
    "TransitionRecord",
    "User",
    "UserCreate",
]
