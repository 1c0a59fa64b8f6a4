"""SQLite database module for claim persistence and audit logging."""

from claim_workflow.db.database import get_connection, get_db_path, init_db, write_transaction
from claim_workflow.db.repository import ClaimRepository, UserRepository

__all__ = [
    "ClaimRepository",
    "UserRepository",
    "get_connection",
    "get_db_path",
    "init_db",
    "write_transaction",
]
