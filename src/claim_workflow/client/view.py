"""Read-through view of one actor's claims.

The view never patches its own state after a mutation. A successful call
is followed by a re-fetch of the list and the current claim; a failed call
leaves both as they were and records the error message for display.
"""

from typing import Any, Callable, TypeVar

from claim_workflow.client.http import ClaimsClient
from claim_workflow.exceptions import ClaimWorkflowError
from claim_workflow.models.claim import Claim, FileMeta, Role

T = TypeVar("T")


class WorkflowView:
    def __init__(
        self,
        client: ClaimsClient,
        role: Role | str,
        actor_id: str | None = None,
        filters: dict[str, Any] | None = None,
    ):
        self.client = client
        self.role = Role(role)
        self.actor_id = actor_id
        self.filters = dict(filters or {})
        self.claims: list[Claim] = []
        self.current: Claim | None = None
        self.error: str | None = None
        self.loading = False

    def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T | None:
        self.loading = True
        try:
            result = func(*args, **kwargs)
        except ClaimWorkflowError as e:
            self.error = e.message
            return None
        finally:
            self.loading = False
        self.error = None
        return result

    # -- reads ---------------------------------------------------------------

    def refresh(self) -> bool:
        """Reload the claim list (and the current claim, if one is open)."""
        claims = self._call(self.client.list_claims, self.role, self.actor_id, self.filters)
        if claims is None:
            return False
        current = self.current
        if current is not None:
            current = self._call(self.client.get_claim, current.id, self.role, self.actor_id)
            if current is None:
                return False
        self.claims = claims
        self.current = current
        return True

    def open(self, claim_id: str) -> Claim | None:
        claim = self._call(self.client.get_claim, claim_id, self.role, self.actor_id)
        if claim is not None:
            self.current = claim
        return claim

    def set_filters(self, **filters: Any) -> bool:
        previous = self.filters
        self.filters = {k: v for k, v in filters.items() if v is not None}
        if not self.refresh():
            self.filters = previous
            return False
        return True

    # -- mutations -----------------------------------------------------------

    def _mutate(self, claim_id: str | None, func: Callable[..., Claim], *args: Any, **kwargs: Any) -> bool:
        result = self._call(func, *args, **kwargs)
        if result is None:
            return False
        target = claim_id or result.id
        # The mutation response is not trusted as the new state; re-read both views
        claims = self._call(self.client.list_claims, self.role, self.actor_id, self.filters)
        current = self._call(self.client.get_claim, target, self.role, self.actor_id)
        if claims is not None:
            self.claims = claims
        if current is not None:
            self.current = current
        return True

    def submit_claim(
        self,
        claim_type_id: int,
        incident_date: str,
        description: str,
        files: list[FileMeta] | None = None,
    ) -> bool:
        return self._mutate(
            None,
            self.client.submit_claim,
            self.actor_id,
            claim_type_id,
            incident_date,
            description,
            files,
        )

    def assign(self, claim_id: str, reviewer_id: str) -> bool:
        return self._mutate(claim_id, self.client.assign, claim_id, reviewer_id, self.actor_id)

    def submit_for_approval(
        self,
        claim_id: str,
        reviewer_notes: str,
        settlement_amount: Any = None,
        files: list[FileMeta] | None = None,
    ) -> bool:
        return self._mutate(
            claim_id,
            self.client.submit_for_approval,
            claim_id,
            self.actor_id,
            reviewer_notes,
            settlement_amount,
            files,
        )

    def approve(self, claim_id: str, settlement_amount: Any = None) -> bool:
        return self._mutate(claim_id, self.client.approve, claim_id, self.actor_id, settlement_amount)

    def deny(self, claim_id: str, denial_reason: str | None) -> bool:
        return self._mutate(claim_id, self.client.deny, claim_id, self.actor_id, denial_reason)
