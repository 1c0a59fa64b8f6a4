"""MCP server exposing read-only claim workflow tools via stdio transport."""

from mcp.server.fastmcp import FastMCP

from claim_workflow.mcp_server.logic import (
    check_claim_lifecycle_impl,
    get_claim_history_impl,
    get_claim_stats_impl,
    get_claim_status_impl,
    list_claims_impl,
    list_reviewers_impl,
)

mcp = FastMCP("claim-workflow", json_response=True)


@mcp.tool()
def get_claim_status(claim_id: str) -> str:
    """Get a claim's current status, assigned reviewer and final decision maker."""
    return get_claim_status_impl(claim_id)


@mcp.tool()
def get_claim_history(claim_id: str) -> str:
    """Get the ordered transition history (audit log) of a claim."""
    return get_claim_history_impl(claim_id)


@mcp.tool()
def check_claim_lifecycle(claim_id: str) -> str:
    """Check that a claim moved Pending -> Under Review -> Pending Approval -> decision without skipping."""
    return check_claim_lifecycle_impl(claim_id)


@mcp.tool()
def list_claims(status: str = "", claim_type_id: int | None = None) -> str:
    """List claims, optionally by status (comma separated, e.g. "Pending,Under Review") or claim type."""
    return list_claims_impl(status, claim_type_id)


@mcp.tool()
def get_claim_stats() -> str:
    """Claim counts by status and by claim type.

    Returns:
        JSON string with ``total``, ``by_status`` (every status, zero filled)
        and ``by_type``.
    """
    return get_claim_stats_impl()


@mcp.tool()
def list_reviewers() -> str:
    """List the active reviewers a checker can assign claims to."""
    return list_reviewers_impl()


def main() -> None:
    """Run the MCP server with stdio transport (default)."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
