"""Pydantic models for claims, documents, users and workflow requests."""

import re
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from claim_workflow.config.settings import MIN_PASSWORD_LENGTH

_EMAIL_RE = re.compile(r"^\S+@\S+$")


class ClaimStatus(str, Enum):
    """Claim lifecycle states. Values are the wire strings (single source of truth)."""

    PENDING = "Pending"
    UNDER_REVIEW = "Under Review"
    PENDING_APPROVAL = "Pending Approval"
    APPROVED = "Approved"
    DENIED = "Denied"

    @property
    def is_terminal(self) -> bool:
        return self in (ClaimStatus.APPROVED, ClaimStatus.DENIED)


class Role(str, Enum):
    """Actor capability. A user holds exactly one."""

    CLAIMANT = "claimant"
    REVIEWER = "reviewer"
    CHECKER = "checker"


class ClaimAction(str, Enum):
    """Audit log action names: creation plus the four transitions."""

    CREATED = "created"
    ASSIGN = "assign"
    SUBMIT_FOR_APPROVAL = "submit_for_approval"
    APPROVE = "approve"
    DENY = "deny"


class DocumentOrigin(str, Enum):
    """Who attached a document: the claimant at submission or the reviewer."""

    CLAIMANT = "claimant"
    REVIEWER = "reviewer"

    @property
    def is_review_document(self) -> bool:
        return self is DocumentOrigin.REVIEWER


class User(BaseModel):
    """User as exposed over the API (never carries the password hash)."""

    id: str = Field(..., description="User ID")
    username: str = Field(..., description="Login / display name")
    email: str = Field(..., description="Email address")
    role: Role = Field(..., description="claimant, reviewer or checker")
    active: bool = Field(default=True, description="Inactive users cannot act")
    claim_type_ids: list[int] = Field(
        default_factory=list, description="Claim types a claimant may file (empty = any)"
    )


class UserCreate(BaseModel):
    """Payload for creating a user from the user management screen."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=1, description="Login / display name")
    email: str = Field(..., description="Email address")
    password: str = Field(..., description="Plain password, at least 8 characters")
    role: Role = Field(..., description="claimant, reviewer or checker")
    claim_type_ids: list[int] = Field(
        default_factory=list,
        alias="claimTypeIds",
        description="Allowed claim types (claimants only)",
    )

    @field_validator("email")
    @classmethod
    def _email_shape(cls, value: str) -> str:
        value = value.strip()
        if not _EMAIL_RE.match(value):
            raise ValueError("Invalid email.")
        return value

    @field_validator("password")
    @classmethod
    def _password_length(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        return value


class ClaimType(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    active: bool = True


class Document(BaseModel):
    """A file attached to a claim. Immutable once created."""

    id: int = Field(..., description="Document ID")
    claim_id: str = Field(..., description="Owning claim")
    original_filename: str = Field(..., description="Filename as uploaded")
    stored_filename: str = Field(..., description="Opaque storage key")
    mime_type: str = Field(..., description="MIME type")
    file_size_bytes: int = Field(..., description="Size in bytes")
    is_review_document: bool = Field(
        default=False, description="True when attached by the reviewer"
    )
    created_at: Optional[str] = None


class FileMeta(BaseModel):
    """An upload candidate: metadata plus (optionally) its bytes."""

    filename: str = Field(..., description="Client-supplied filename")
    size_bytes: int = Field(..., ge=0, description="Size in bytes")
    mime_type: str = Field(default="application/octet-stream", description="MIME type")
    content: Optional[bytes] = Field(default=None, repr=False, description="File bytes")

    @property
    def extension(self) -> str:
        _, dot, ext = self.filename.rpartition(".")
        return ext.lower() if dot else ""


class TransitionRecord(BaseModel):
    """One audit row: a creation or a status transition."""

    id: int
    claim_id: str
    action: str
    old_status: Optional[ClaimStatus] = None
    new_status: Optional[ClaimStatus] = None
    actor_id: Optional[str] = None
    details: Optional[str] = None
    created_at: str


class Claim(BaseModel):
    """Claim record with its documents and transition history."""

    id: str = Field(..., description="Claim ID")
    claimant_id: str = Field(..., description="Owning claimant")
    claim_type_id: int = Field(..., description="Claim category")
    claim_type_name: Optional[str] = Field(default=None, description="Claim category name")
    status: ClaimStatus = Field(..., description="Lifecycle state")
    description: str = Field(..., description="Claimant narrative")
    incident_date: str = Field(..., description="Date of incident (YYYY-MM-DD)")
    assigned_reviewer_id: Optional[str] = None
    reviewer_notes: Optional[str] = None
    proposed_settlement_amount: Optional[Decimal] = None
    final_action_by_user_id: Optional[str] = None
    final_action_at: Optional[str] = None
    denial_reason: Optional[str] = None
    settlement_amount: Optional[Decimal] = None
    submitted_for_approval_at: Optional[str] = None
    version: int = Field(default=1, description="Optimistic concurrency version")
    created_at: str
    updated_at: str
    documents: list[Document] = Field(default_factory=list)
    history: list[TransitionRecord] = Field(default_factory=list)


class ClaimSubmission(BaseModel):
    """Claimant's new claim form."""

    claim_type_id: int = Field(..., description="Claim category")
    incident_date: str = Field(..., description="Date of incident (YYYY-MM-DD)")
    description: str = Field(..., description="What happened")


class AssignRequest(BaseModel):
    reviewer_id: str = Field(..., description="Reviewer to assign")
    checker_id: Optional[str] = Field(default=None, description="Acting checker, when known")


class ApproveRequest(BaseModel):
    settlement_amount: Optional[str | Decimal] = Field(
        default=None, description="Final settlement amount"
    )


class DenyRequest(BaseModel):
    denial_reason: Optional[str] = Field(default=None, description="Reason shown to the claimant")


class ClaimStats(BaseModel):
    """Counts behind the checker dashboard charts."""

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
