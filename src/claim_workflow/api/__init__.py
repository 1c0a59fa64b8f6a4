"""REST API for the claim workflow."""

from claim_workflow.api.app import create_app

__all__ = ["create_app"]
