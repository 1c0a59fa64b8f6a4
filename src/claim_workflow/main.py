"""CLI entry point for the claim workflow service.

Operator commands: set up the database, manage users and claim types,
inspect claims, and run the REST API.
"""

import json
import logging
import os
import sys

from claim_workflow.exceptions import ClaimWorkflowError


def _setup_logging() -> None:
    """Configure logging for CLI usage."""
    from claim_workflow.observability import get_logger

    get_logger("claim_workflow")
    logging.getLogger("claim_workflow").setLevel(
        logging.DEBUG if "--debug" in sys.argv else logging.INFO
    )


def _usage() -> str:
    return """Usage:
  claim-workflow init-db                                   Create the database schema
  claim-workflow create-claim-type <name> [description]    Add a claim type
  claim-workflow create-user <username> <email> <password> <role> [type_id,...]
                                                           Add a user (role: claimant, reviewer, checker)
  claim-workflow users [role]                              List users
  claim-workflow deactivate-user <user_id>                 Block a user from acting or being assigned
  claim-workflow activate-user <user_id>                   Re-enable a user
  claim-workflow status <claim_id>                         Get claim status
  claim-workflow history <claim_id>                        Get claim transition history
  claim-workflow verify <claim_id>                         Check the claim followed the maker-checker path
  claim-workflow list [status,...]                         List claims, optionally by status
  claim-workflow stats                                     Claim counts by status and type
  claim-workflow serve [host] [port]                       Run the REST API

Options:
  --debug                                                  Enable debug logging
  --json                                                   Use JSON log format
"""


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def cmd_init_db() -> None:
    from claim_workflow.db.database import get_db_path, init_db

    init_db()
    print(f"Database ready: {get_db_path()}")


def cmd_create_claim_type(name: str, description: str | None = None) -> None:
    from claim_workflow.workflow import UserDirectory

    try:
        claim_type = UserDirectory().create_claim_type(name, description)
    except ClaimWorkflowError as e:
        _fail(e.message)
    _print(claim_type.model_dump(mode="json"))


def cmd_create_user(
    username: str, email: str, password: str, role: str, claim_type_ids: list[int] | None = None
) -> None:
    from claim_workflow.workflow import UserDirectory

    payload = {
        "username": username,
        "email": email,
        "password": password,
        "role": role,
        "claimTypeIds": claim_type_ids or [],
    }
    try:
        user = UserDirectory().create_user(payload)
    except ClaimWorkflowError as e:
        _fail(e.message)
    _print(user.model_dump(mode="json"))


def cmd_users(role: str | None = None) -> None:
    from claim_workflow.models.claim import Role
    from claim_workflow.workflow import UserDirectory

    try:
        wanted = Role(role) if role else None
    except ValueError:
        _fail(f"Unknown role: {role}")
    users = UserDirectory().list_users(role=wanted)
    _print([u.model_dump(mode="json") for u in users])


def cmd_set_active(user_id: str, active: bool) -> None:
    """Activate or deactivate a user; inactive users cannot act or be assigned."""
    from claim_workflow.workflow import UserDirectory

    try:
        user = UserDirectory().set_active(user_id, active)
    except ClaimWorkflowError as e:
        _fail(e.message)
    _print(user.model_dump(mode="json"))


def cmd_status(claim_id: str) -> None:
    """Print the claim record with its documents."""
    from claim_workflow.workflow import WorkflowEngine

    try:
        claim = WorkflowEngine().load_claim(claim_id)
    except ClaimWorkflowError as e:
        _fail(e.message)
    _print(claim.model_dump(mode="json", exclude={"history"}))


def cmd_history(claim_id: str) -> None:
    """Print the claim transition history."""
    from claim_workflow.workflow import WorkflowEngine

    try:
        claim = WorkflowEngine().load_claim(claim_id)
    except ClaimWorkflowError as e:
        _fail(e.message)
    _print([record.model_dump(mode="json") for record in claim.history])


def cmd_verify(claim_id: str) -> None:
    from claim_workflow.workflow import WorkflowEngine, verify_lifecycle

    try:
        claim = WorkflowEngine().load_claim(claim_id)
        path = verify_lifecycle(claim.history)
    except ClaimWorkflowError as e:
        _fail(e.message)
    print(" -> ".join(status.value for status in path))


def cmd_list(status: str | None = None) -> None:
    from claim_workflow.models.claim import Role
    from claim_workflow.workflow import ClaimQueries, WorkflowEngine

    try:
        claims = ClaimQueries(WorkflowEngine()).list_claims(Role.CHECKER, None, {"status": status})
    except ClaimWorkflowError as e:
        _fail(e.message)
    _print([c.model_dump(mode="json", exclude={"documents", "history"}) for c in claims])


def cmd_stats() -> None:
    from claim_workflow.workflow import ClaimQueries, WorkflowEngine

    _print(ClaimQueries(WorkflowEngine()).stats().model_dump(mode="json"))


def cmd_serve(host: str | None = None, port: int | None = None) -> None:
    """Run the REST API with uvicorn."""
    import uvicorn

    from claim_workflow.config.settings import API_HOST, API_PORT

    uvicorn.run("claim_workflow.api.app:app", host=host or API_HOST, port=port or API_PORT)


def _parse_type_ids(raw: str) -> list[int]:
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        _fail(f"Claim type ids must be integers: {raw}")


def main() -> None:
    """Dispatch a claim-workflow command."""
    argv = [arg for arg in sys.argv[1:] if not arg.startswith("--")]
    options = [arg for arg in sys.argv[1:] if arg.startswith("--")]

    if "--json" in options:
        os.environ["CLAIM_WORKFLOW_LOG_FORMAT"] = "json"
    if "--debug" in options:
        os.environ["CLAIM_WORKFLOW_LOG_LEVEL"] = "DEBUG"

    _setup_logging()

    if not argv:
        print(_usage(), file=sys.stderr)
        sys.exit(1)

    command, args = argv[0].lower(), argv[1:]

    if command in ("status", "history", "verify"):
        if not args:
            print(f"Error: {command} requires <claim_id>", file=sys.stderr)
            print(_usage(), file=sys.stderr)
            sys.exit(1)
        {"status": cmd_status, "history": cmd_history, "verify": cmd_verify}[command](args[0])
        return

    if command == "init-db":
        cmd_init_db()
        return

    if command == "create-claim-type":
        if not args:
            _fail("create-claim-type requires <name>")
        cmd_create_claim_type(args[0], args[1] if len(args) > 1 else None)
        return

    if command == "create-user":
        if len(args) < 4:
            _fail("create-user requires <username> <email> <password> <role>")
        type_ids = _parse_type_ids(args[4]) if len(args) > 4 else []
        cmd_create_user(args[0], args[1], args[2], args[3], type_ids)
        return

    if command == "users":
        cmd_users(args[0] if args else None)
        return

    if command in ("deactivate-user", "activate-user"):
        if not args:
            _fail(f"{command} requires <user_id>")
        cmd_set_active(args[0], command == "activate-user")
        return

    if command == "list":
        cmd_list(args[0] if args else None)
        return

    if command == "stats":
        cmd_stats()
        return

    if command == "serve":
        host = args[0] if args else None
        port = None
        if len(args) > 1:
            try:
                port = int(args[1])
            except ValueError:
                _fail(f"Invalid port: {args[1]}")
        cmd_serve(host, port)
        return

    print(f"Error: Unknown command: {command}", file=sys.stderr)
    print(_usage(), file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
    main()
