"""Role-scoped reads: claim lists, claim detail, dashboard counts and document access."""

from typing import Any, Iterable

from claim_workflow.exceptions import Forbidden, NotFound, ValidationError
from claim_workflow.models.claim import Claim, ClaimStats, ClaimStatus, Document, Role, User
from claim_workflow.workflow.engine import WorkflowEngine, claim_from_row


def parse_statuses(values: Iterable[str] | str | None) -> list[ClaimStatus]:
    """Turn ``?status=`` values (repeated or comma separated) into ClaimStatus."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    statuses: list[ClaimStatus] = []
    for value in values:
        for part in str(value).split(","):
            part = part.strip()
            if not part:
                continue
            try:
                statuses.append(ClaimStatus(part))
            except ValueError as e:
                allowed = ", ".join(s.value for s in ClaimStatus)
                raise ValidationError(f"Unknown status '{part}'. Allowed: {allowed}.") from e
    return statuses


class ClaimQueries:
    """What each role may see."""

    def __init__(self, engine: WorkflowEngine):
        self._engine = engine
        self._claims = engine.claims
        self._users = engine.users

    def _actor(self, role: Role, actor_id: str | None) -> User | None:
        # Checker reads do not carry an identity on every route
        if role is Role.CHECKER and actor_id is None:
            return None
        return self._users.require_actor(actor_id, role)

    def list_claims(
        self, role: Role, actor_id: str | None, filters: dict[str, Any] | None = None
    ) -> list[Claim]:
        """Claims visible to the actor: own claims, assigned claims, or (checker) all."""
        filters = filters or {}
        self._actor(role, actor_id)
        statuses = parse_statuses(filters.get("status"))
        claim_type_id = filters.get("claim_type_id")
        if role is Role.CLAIMANT:
            rows = self._claims.list_claims(
                claimant_id=actor_id, statuses=statuses, claim_type_id=claim_type_id
            )
        elif role is Role.REVIEWER:
            rows = self._claims.list_claims(
                reviewer_id=actor_id, statuses=statuses, claim_type_id=claim_type_id
            )
        else:
            rows = self._claims.list_claims(statuses=statuses, claim_type_id=claim_type_id)
        return [claim_from_row(r) for r in rows]

    def get_claim(self, claim_id: str, role: Role, actor_id: str | None) -> Claim:
        """Full claim if the actor is entitled to it, else Forbidden."""
        self._actor(role, actor_id)
        claim = self._engine.load_claim(claim_id)
        if role is Role.CLAIMANT and claim.claimant_id != actor_id:
            raise Forbidden(f"Claim {claim_id} does not belong to you.")
        if role is Role.REVIEWER and claim.assigned_reviewer_id != actor_id:
            raise Forbidden(f"Claim {claim_id} is not assigned to you.")
        return claim

    def stats(self) -> ClaimStats:
        by_status = {s.value: 0 for s in ClaimStatus}
        by_status.update(self._claims.count_by_status())
        by_type = self._claims.count_by_type()
        return ClaimStats(total=sum(by_status.values()), by_status=by_status, by_type=by_type)

    def open_document(self, stored_filename: str, user_id: str | None) -> tuple[Document, bytes]:
        """Document metadata and bytes for an entitled user.

        The owning claimant, the assigned reviewer and any checker may
        download; everyone else gets Forbidden.
        """
        row = self._claims.get_document_by_stored_filename(stored_filename)
        if row is None:
            raise NotFound(f"Document not found: {stored_filename}")
        user = self._users.find_user(user_id)
        if user is None or not user.active:
            raise Forbidden("You are not allowed to download this document.")
        claim = self._engine.require_claim(row["claim_id"])
        allowed = (
            user.role is Role.CHECKER
            or (user.role is Role.CLAIMANT and claim.claimant_id == user.id)
            or (user.role is Role.REVIEWER and claim.assigned_reviewer_id == user.id)
        )
        if not allowed:
            raise Forbidden("You are not allowed to download this document.")
        document = Document(**{**row, "is_review_document": bool(row["is_review_document"])})
        return document, self._engine.ledger.read(stored_filename)
