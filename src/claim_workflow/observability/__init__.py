"""Structured logging with claim and actor context."""

from claim_workflow.observability.logger import (
    ClaimLogger,
    claim_context,
    get_logger,
    log_claim_event,
)

__all__ = [
    "ClaimLogger",
    "claim_context",
    "get_logger",
    "log_claim_event",
]
