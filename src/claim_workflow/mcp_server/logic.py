"""Read-only claim inspection behind the MCP tools. Each function returns a JSON string."""

import json
from typing import Any

from claim_workflow.exceptions import ClaimWorkflowError
from claim_workflow.models.claim import Role
from claim_workflow.workflow import AssignmentResolver, ClaimQueries, WorkflowEngine, status_path, verify_lifecycle


def _dumps(payload: Any) -> str:
    return json.dumps(payload, default=str)


def _error(exc: ClaimWorkflowError) -> str:
    return _dumps(exc.to_dict())


def get_claim_status_impl(claim_id: str) -> str:
    engine = WorkflowEngine()
    try:
        claim = engine.require_claim(claim_id)
    except ClaimWorkflowError as e:
        return _error(e)
    return _dumps(
        {
            "claim_id": claim.id,
            "status": claim.status.value,
            "claim_type": claim.claim_type_name,
            "assigned_reviewer_id": claim.assigned_reviewer_id,
            "final_action_by_user_id": claim.final_action_by_user_id,
            "version": claim.version,
            "updated_at": claim.updated_at,
        }
    )


def get_claim_history_impl(claim_id: str) -> str:
    engine = WorkflowEngine()
    try:
        claim = engine.load_claim(claim_id)
    except ClaimWorkflowError as e:
        return _error(e)
    return _dumps([record.model_dump(mode="json") for record in claim.history])


def check_claim_lifecycle_impl(claim_id: str) -> str:
    """Report the statuses a claim went through and whether the path is a valid maker-checker one."""
    engine = WorkflowEngine()
    try:
        claim = engine.load_claim(claim_id)
    except ClaimWorkflowError as e:
        return _error(e)
    path = [s.value for s in status_path(claim.history)]
    try:
        verify_lifecycle(claim.history)
    except ClaimWorkflowError as e:
        return _dumps({"claim_id": claim_id, "status_path": path, "valid": False, "reason": e.message})
    return _dumps({"claim_id": claim_id, "status_path": path, "valid": True})


def list_claims_impl(status: str = "", claim_type_id: int | None = None) -> str:
    queries = ClaimQueries(WorkflowEngine())
    try:
        claims = queries.list_claims(
            Role.CHECKER, None, {"status": status or None, "claim_type_id": claim_type_id}
        )
    except ClaimWorkflowError as e:
        return _error(e)
    return _dumps(
        [
            {
                "claim_id": c.id,
                "status": c.status.value,
                "claim_type": c.claim_type_name,
                "claimant_id": c.claimant_id,
                "assigned_reviewer_id": c.assigned_reviewer_id,
                "incident_date": c.incident_date,
            }
            for c in claims
        ]
    )


def get_claim_stats_impl() -> str:
    return _dumps(ClaimQueries(WorkflowEngine()).stats().model_dump(mode="json"))


def list_reviewers_impl() -> str:
    reviewers = AssignmentResolver(WorkflowEngine()).list_available_reviewers()
    return _dumps([r.model_dump(mode="json") for r in reviewers])
