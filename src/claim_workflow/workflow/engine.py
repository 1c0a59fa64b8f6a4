"""Claim workflow engine: the maker-checker state machine.

Pending -> Under Review -> Pending Approval -> Approved | Denied

Each action is validated in a fixed order (input, existence, actor
entitlement, state) and then written as one versioned transition. A rejected
action never mutates the claim.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from claim_workflow.config.settings import MAX_DESCRIPTION_LENGTH, MAX_NOTES_LENGTH
from claim_workflow.db.repository import ClaimRepository, utc_now
from claim_workflow.exceptions import (
    ClaimWorkflowError,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from claim_workflow.models.claim import (
    Claim,
    ClaimAction,
    ClaimStatus,
    ClaimSubmission,
    Document,
    DocumentOrigin,
    FileMeta,
    Role,
    TransitionRecord,
    User,
)
from claim_workflow.observability import claim_context, get_logger, log_claim_event
from claim_workflow.utils.sanitization import sanitize_text
from claim_workflow.workflow.documents import DocumentLedger
from claim_workflow.workflow.users import UserDirectory

logger = get_logger(__name__)

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class Transition:
    action: ClaimAction
    source: ClaimStatus
    target: ClaimStatus
    actor_role: Role


TRANSITIONS: dict[ClaimAction, Transition] = {
    t.action: t
    for t in (
        Transition(ClaimAction.ASSIGN, ClaimStatus.PENDING, ClaimStatus.UNDER_REVIEW, Role.CHECKER),
        Transition(
            ClaimAction.SUBMIT_FOR_APPROVAL,
            ClaimStatus.UNDER_REVIEW,
            ClaimStatus.PENDING_APPROVAL,
            Role.REVIEWER,
        ),
        Transition(ClaimAction.APPROVE, ClaimStatus.PENDING_APPROVAL, ClaimStatus.APPROVED, Role.CHECKER),
        Transition(ClaimAction.DENY, ClaimStatus.PENDING_APPROVAL, ClaimStatus.DENIED, Role.CHECKER),
    )
}


def next_status(current: ClaimStatus, action: ClaimAction) -> ClaimStatus:
    """Target status of ``action`` from ``current``; InvalidTransition if not allowed."""
    transition = TRANSITIONS.get(action)
    if transition is None or transition.source is not current:
        raise InvalidTransition(
            f"Cannot {action.value.replace('_', ' ')} a claim with status '{current.value}'."
        )
    return transition.target


def parse_amount(value: Any, field: str) -> Decimal | None:
    """Parse a money amount: non-negative, at most two decimal places. None/blank -> None."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number.")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValidationError(f"{field} must be a number.") from e
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number.")
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative.")
    try:
        quantized = amount.quantize(_CENTS)
    except InvalidOperation as e:
        raise ValidationError(f"{field} is too large.") from e
    if quantized != amount:
        raise ValidationError(f"{field} cannot have more than 2 decimal places.")
    return quantized


def _required_text(value: str | None, field: str, max_length: int) -> str:
    text = sanitize_text(value)
    if not text:
        raise ValidationError(f"{field} is required.")
    if len(text) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters.")
    return text


def claim_from_row(row: dict[str, Any]) -> Claim:
    return Claim(
        id=row["id"],
        claimant_id=row["claimant_id"],
        claim_type_id=row["claim_type_id"],
        claim_type_name=row.get("claim_type_name"),
        status=ClaimStatus(row["status"]),
        description=row["description"],
        incident_date=row["incident_date"],
        assigned_reviewer_id=row.get("assigned_reviewer_id"),
        reviewer_notes=row.get("reviewer_notes"),
        proposed_settlement_amount=row.get("proposed_settlement_amount"),
        final_action_by_user_id=row.get("final_action_by_user_id"),
        final_action_at=row.get("final_action_at"),
        denial_reason=row.get("denial_reason"),
        settlement_amount=row.get("settlement_amount"),
        submitted_for_approval_at=row.get("submitted_for_approval_at"),
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class WorkflowEngine:
    """Validates and applies claim transitions for a given actor."""

    def __init__(
        self,
        db_path: str | None = None,
        ledger: DocumentLedger | None = None,
        users: UserDirectory | None = None,
    ):
        self.claims = ClaimRepository(db_path)
        self.users = users or UserDirectory(db_path)
        self.ledger = ledger or DocumentLedger()

    # -- reads ---------------------------------------------------------------

    def find_claim(self, claim_id: str) -> Claim | None:
        """Claim summary without documents or history; None when missing."""
        row = self.claims.get_claim(claim_id)
        return claim_from_row(row) if row is not None else None

    def require_claim(self, claim_id: str) -> Claim:
        claim = self.find_claim(claim_id)
        if claim is None:
            raise NotFound(f"Claim not found: {claim_id}")
        return claim

    def load_claim(self, claim_id: str) -> Claim:
        """Full claim representation: record, documents and transition history."""
        claim = self.require_claim(claim_id)
        claim.documents = [
            Document(**{**d, "is_review_document": bool(d["is_review_document"])})
            for d in self.claims.get_documents(claim_id)
        ]
        claim.history = [TransitionRecord(**h) for h in self.claims.get_claim_history(claim_id)]
        return claim

    # -- transition plumbing -------------------------------------------------

    def require_actor(self, action: ClaimAction, actor_id: str | None) -> User:
        """The acting user, who must be active and hold the role the action requires."""
        return self.users.require_actor(actor_id, TRANSITIONS[action].actor_role)

    @contextmanager
    def action_scope(
        self, action: ClaimAction | str, claim_id: str | None, actor_id: str | None, role: Role
    ):
        """Log context for one action; logs and re-raises any rejection."""
        with claim_context(claim_id=claim_id, actor_id=actor_id, role=role.value):
            try:
                yield
            except ClaimWorkflowError as e:
                log_claim_event(
                    logger,
                    "transition_rejected",
                    claim_id=claim_id,
                    level=logging.WARNING,
                    action=getattr(action, "value", action),
                    error=e.code,
                    reason=e.message,
                )
                raise

    def transition(
        self,
        claim: Claim,
        action: ClaimAction,
        actor_id: str | None,
        updates: dict[str, Any] | None = None,
        details: str | None = None,
        documents: list[dict[str, Any]] | None = None,
        at: str | None = None,
    ) -> ClaimStatus:
        """Write ``action`` against the claim snapshot it was validated on.

        Raises InvalidTransition if the snapshot's status does not allow the
        action and Conflict if the stored claim changed since the snapshot.
        """
        target = next_status(claim.status, action)
        self.claims.apply_transition(
            claim.id,
            expected_version=claim.version,
            action=action,
            old_status=claim.status,
            new_status=target,
            updates=updates,
            actor_id=actor_id,
            details=details,
            documents=documents,
            at=at,
        )
        return target

    # -- claimant ------------------------------------------------------------

    def submit_claim(
        self,
        claimant_id: str,
        submission: ClaimSubmission,
        files: Sequence[FileMeta] | None = None,
    ) -> Claim:
        """File a new claim in Pending with the claimant's documents (max 5)."""
        with self.action_scope("submit", None, claimant_id, Role.CLAIMANT):
            description = _required_text(submission.description, "Description", MAX_DESCRIPTION_LENGTH)
            incident_date = self._validate_incident_date(submission.incident_date)
            files = list(files or [])
            self.ledger.validate_batch(DocumentOrigin.CLAIMANT, files)
            claimant = self.users.require_actor(claimant_id, Role.CLAIMANT)
            claim_type = self.users.get_claim_type(submission.claim_type_id)
            if claim_type is None or not claim_type.active:
                raise ValidationError(f"Unknown claim type: {submission.claim_type_id}")
            if claimant.claim_type_ids and claim_type.id not in claimant.claim_type_ids:
                raise Forbidden(f"You are not allowed to file '{claim_type.name}' claims.")

            with self.ledger.attach(DocumentOrigin.CLAIMANT, files) as rows:
                claim_id = self.claims.create_claim(
                    claimant_id=claimant.id,
                    claim_type_id=claim_type.id,
                    incident_date=incident_date,
                    description=description,
                    documents=rows,
                )
        log_claim_event(
            logger,
            "claim_submitted",
            claim_id=claim_id,
            claimant_id=claimant.id,
            claim_type=claim_type.name,
            documents=len(rows),
        )
        return self.load_claim(claim_id)

    @staticmethod
    def _validate_incident_date(value: str) -> str:
        raw = (value or "").strip()
        if not raw:
            raise ValidationError("Incident date is required.")
        try:
            parsed = date.fromisoformat(raw)
        except ValueError as e:
            raise ValidationError("Incident date must be a date in YYYY-MM-DD format.") from e
        if parsed > date.today():
            raise ValidationError("Incident date cannot be in the future.")
        return parsed.isoformat()

    # -- reviewer ------------------------------------------------------------

    def submit_for_approval(
        self,
        claim_id: str,
        reviewer_id: str,
        reviewer_notes: str | None,
        settlement_amount: Any = None,
        files: Sequence[FileMeta] | None = None,
    ) -> Claim:
        """Under Review -> Pending Approval by the assigned reviewer (max 3 documents).

        Only accepted from Under Review: once Pending Approval the notes are
        final. A rejected submission leaves the claim Under Review, so the
        reviewer can correct it and submit again.
        """
        with self.action_scope(ClaimAction.SUBMIT_FOR_APPROVAL, claim_id, reviewer_id, Role.REVIEWER):
            notes = _required_text(reviewer_notes, "Reviewer notes", MAX_NOTES_LENGTH)
            amount = parse_amount(settlement_amount, "Settlement amount")
            files = list(files or [])
            self.ledger.validate_batch(DocumentOrigin.REVIEWER, files)
            claim = self.require_claim(claim_id)
            reviewer = self.require_actor(ClaimAction.SUBMIT_FOR_APPROVAL, reviewer_id)
            if claim.assigned_reviewer_id != reviewer.id:
                raise Forbidden(f"Claim {claim_id} is not assigned to you.")
            next_status(claim.status, ClaimAction.SUBMIT_FOR_APPROVAL)
            now = utc_now()
            with self.ledger.attach(DocumentOrigin.REVIEWER, files) as rows:
                self.transition(
                    claim,
                    ClaimAction.SUBMIT_FOR_APPROVAL,
                    actor_id=reviewer.id,
                    updates={
                        "reviewer_notes": notes,
                        "proposed_settlement_amount": str(amount) if amount is not None else None,
                        "submitted_for_approval_at": now,
                    },
                    details="Submitted for approval",
                    documents=rows,
                    at=now,
                )
        log_claim_event(
            logger,
            "claim_submitted_for_approval",
            claim_id=claim_id,
            reviewer_id=reviewer_id,
            proposed_settlement_amount=amount,
            documents=len(rows),
        )
        return self.load_claim(claim_id)

    # -- checker: final decision ---------------------------------------------

    def _require_final_actor(self, claim: Claim, action: ClaimAction, checker_id: str) -> User:
        checker = self.require_actor(action, checker_id)
        if claim.assigned_reviewer_id == checker.id:
            raise Forbidden("The reviewer of a claim cannot also make the final decision.")
        return checker

    def approve(self, claim_id: str, checker_id: str, settlement_amount: Any = None) -> Claim:
        """Pending Approval -> Approved."""
        with self.action_scope(ClaimAction.APPROVE, claim_id, checker_id, Role.CHECKER):
            amount = parse_amount(settlement_amount, "Settlement amount")
            claim = self.require_claim(claim_id)
            checker = self._require_final_actor(claim, ClaimAction.APPROVE, checker_id)
            now = utc_now()
            self.transition(
                claim,
                ClaimAction.APPROVE,
                actor_id=checker.id,
                updates={
                    "final_action_by_user_id": checker.id,
                    "final_action_at": now,
                    "settlement_amount": str(amount) if amount is not None else None,
                },
                details="Claim approved",
                at=now,
            )
        log_claim_event(
            logger, "claim_approved", claim_id=claim_id, checker_id=checker_id, settlement_amount=amount
        )
        return self.load_claim(claim_id)

    def deny(self, claim_id: str, checker_id: str, denial_reason: str | None) -> Claim:
        """Pending Approval -> Denied. The reason is required."""
        with self.action_scope(ClaimAction.DENY, claim_id, checker_id, Role.CHECKER):
            reason = _required_text(denial_reason, "Denial reason", MAX_NOTES_LENGTH)
            claim = self.require_claim(claim_id)
            checker = self._require_final_actor(claim, ClaimAction.DENY, checker_id)
            now = utc_now()
            self.transition(
                claim,
                ClaimAction.DENY,
                actor_id=checker.id,
                updates={
                    "final_action_by_user_id": checker.id,
                    "final_action_at": now,
                    "denial_reason": reason,
                },
                details="Claim denied",
                at=now,
            )
        log_claim_event(logger, "claim_denied", claim_id=claim_id, checker_id=checker_id)
        return self.load_claim(claim_id)
