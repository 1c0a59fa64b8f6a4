"""Assignment resolver: a checker hands a pending claim to a chosen reviewer.

Assignment is manual; there is no load balancing. Reassignment is not
supported: once a reviewer is set the claim is no longer assignable.
"""

from claim_workflow.exceptions import ClaimNotAssignable, ReviewerUnavailable
from claim_workflow.models.claim import Claim, ClaimAction, ClaimStatus, Role, User
from claim_workflow.observability import get_logger, log_claim_event
from claim_workflow.workflow.engine import WorkflowEngine

logger = get_logger(__name__)


class AssignmentResolver:
    def __init__(self, engine: WorkflowEngine):
        self._engine = engine
        self._users = engine.users

    def list_available_reviewers(self) -> list[User]:
        """Active reviewers, for the checker's assignment picker."""
        return self._users.list_users(role=Role.REVIEWER, active=True)

    @staticmethod
    def ensure_assignable(claim: Claim) -> None:
        if claim.assigned_reviewer_id:
            raise ClaimNotAssignable(
                f"Claim {claim.id} is already assigned to {claim.assigned_reviewer_id}."
            )
        if claim.status is not ClaimStatus.PENDING:
            raise ClaimNotAssignable(
                f"Claim {claim.id} cannot be assigned: status is '{claim.status.value}'."
            )

    def resolve_reviewer(self, reviewer_id: str | None) -> User:
        reviewer = self._users.find_user(reviewer_id)
        if reviewer is None:
            raise ReviewerUnavailable(f"Reviewer not found: {reviewer_id}")
        if reviewer.role is not Role.REVIEWER:
            raise ReviewerUnavailable(f"User {reviewer_id} is not a reviewer.")
        if not reviewer.active:
            raise ReviewerUnavailable(f"Reviewer {reviewer_id} is inactive.")
        return reviewer

    def assign(self, claim_id: str, reviewer_id: str, checker_id: str | None = None) -> Claim:
        """Pending -> Under Review with ``reviewer_id`` as the assigned reviewer.

        Raises Forbidden if a checker_id is given that is not an active
        checker, NotFound for an unknown claim, ClaimNotAssignable if the
        claim is not Pending or already has a reviewer, ReviewerUnavailable if
        the candidate is missing, inactive or not a reviewer, and Conflict if
        another request changed the claim meanwhile.
        """
        with self._engine.action_scope(ClaimAction.ASSIGN, claim_id, checker_id, Role.CHECKER):
            if checker_id is not None:
                self._engine.require_actor(ClaimAction.ASSIGN, checker_id)
            claim = self._engine.require_claim(claim_id)
            self.ensure_assignable(claim)
            reviewer = self.resolve_reviewer(reviewer_id)
            self._engine.transition(
                claim,
                ClaimAction.ASSIGN,
                actor_id=checker_id,
                updates={"assigned_reviewer_id": reviewer.id},
                details=f"Assigned to reviewer {reviewer.id}",
            )
        log_claim_event(
            logger, "claim_assigned", claim_id=claim_id, reviewer_id=reviewer.id, checker_id=checker_id
        )
        return self._engine.load_claim(claim_id)
