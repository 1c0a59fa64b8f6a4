"""Claim workflow: state machine, reviewer assignment, document ledger and history."""

from claim_workflow.workflow.assignment import AssignmentResolver
from claim_workflow.workflow.documents import BlobStore, DocumentLedger
from claim_workflow.workflow.engine import TRANSITIONS, WorkflowEngine, next_status, parse_amount
from claim_workflow.workflow.history import status_path, verify_lifecycle
from claim_workflow.workflow.queries import ClaimQueries, parse_statuses
from claim_workflow.workflow.users import UserDirectory, hash_password, verify_password

__all__ = [
    "AssignmentResolver",
    "BlobStore",
    "ClaimQueries",
    "DocumentLedger",
    "TRANSITIONS",
    "UserDirectory",
    "WorkflowEngine",
    "hash_password",
    "next_status",
    "parse_amount",
    "parse_statuses",
    "status_path",
    "verify_lifecycle",
    "verify_password",
]
