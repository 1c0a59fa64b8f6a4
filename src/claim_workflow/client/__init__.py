"""Python client for the claims API."""

from claim_workflow.client.http import ClaimsClient, error_from_response
from claim_workflow.client.view import WorkflowView

__all__ = ["ClaimsClient", "WorkflowView", "error_from_response"]
