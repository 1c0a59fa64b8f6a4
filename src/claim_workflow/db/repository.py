"""Claim and user repositories: CRUD, transitions with audit logging, and search."""

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

from claim_workflow.db.database import get_connection, write_transaction
from claim_workflow.exceptions import Conflict, NotFound, ValidationError
from claim_workflow.models.claim import ClaimAction, ClaimStatus

# Claim columns a transition may set besides status/version/updated_at
_TRANSITION_COLUMNS = frozenset(
    {
        "assigned_reviewer_id",
        "reviewer_notes",
        "proposed_settlement_amount",
        "submitted_for_approval_at",
        "final_action_by_user_id",
        "final_action_at",
        "denial_reason",
        "settlement_amount",
    }
)

_CLAIM_SELECT = """
    SELECT c.*, t.name AS claim_type_name
    FROM claims c
    LEFT JOIN claim_types t ON t.id = c.claim_type_id
"""


def _generate_claim_id(prefix: str = "CLM") -> str:
    """Generate a unique claim ID (64 random bits)."""
    return f"{prefix}-{uuid.uuid4().hex[:16].upper()}"


def _generate_user_id(prefix: str = "USR") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:16].upper()}"


def utc_now() -> str:
    """Current UTC time as ISO-8601 text, the format every timestamp column uses."""
    return datetime.now(timezone.utc).isoformat()


def _insert_documents(
    conn: sqlite3.Connection, claim_id: str, documents: list[dict[str, Any]], now: str
) -> None:
    for doc in documents:
        conn.execute(
            """
            INSERT INTO claim_documents (
                claim_id, original_filename, stored_filename, mime_type,
                file_size_bytes, is_review_document, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                claim_id,
                doc["original_filename"],
                doc["stored_filename"],
                doc["mime_type"],
                doc["file_size_bytes"],
                1 if doc["is_review_document"] else 0,
                now,
            ),
        )


class ClaimRepository:
    """Repository for claim persistence, documents and the transition audit log."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    def create_claim(
        self,
        claimant_id: str,
        claim_type_id: int,
        incident_date: str,
        description: str,
        documents: list[dict[str, Any]] | None = None,
    ) -> str:
        """Insert new claim in Pending with its documents, log 'created' audit entry. Returns claim_id."""
        now = utc_now()
        with write_transaction(self._db_path) as conn:
            # The write lock is held, so an unused id stays unused until commit
            claim_id = _generate_claim_id()
            while conn.execute("SELECT 1 FROM claims WHERE id = ?", (claim_id,)).fetchone():
                claim_id = _generate_claim_id()
            conn.execute(
                """
                INSERT INTO claims (
                    id, claimant_id, claim_type_id, status, description, incident_date,
                    version, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)
                """,
                (
                    claim_id,
                    claimant_id,
                    claim_type_id,
                    ClaimStatus.PENDING.value,
                    description,
                    incident_date,
                    now,
                    now,
                ),
            )
            _insert_documents(conn, claim_id, documents or [], now)
            conn.execute(
                """
                INSERT INTO claim_audit_log (
                    claim_id, action, new_status, actor_id, details, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    claim_id,
                    ClaimAction.CREATED.value,
                    ClaimStatus.PENDING.value,
                    claimant_id,
                    "Claim record created",
                    now,
                ),
            )
        return claim_id

    def get_claim(self, claim_id: str) -> dict[str, Any] | None:
        """Fetch claim by ID."""
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                f"{_CLAIM_SELECT} WHERE c.id = ?", (claim_id,)
            ).fetchone()
        if row is None:
            return None
        return dict(row)

    def apply_transition(
        self,
        claim_id: str,
        expected_version: int,
        action: ClaimAction,
        old_status: ClaimStatus,
        new_status: ClaimStatus,
        updates: dict[str, Any] | None = None,
        actor_id: str | None = None,
        details: str | None = None,
        documents: list[dict[str, Any]] | None = None,
        at: str | None = None,
    ) -> str:
        """Move a claim from old_status to new_status if nobody changed it since it was read.

        The status/field update, new documents and the audit row are written in
        one transaction. Raises Conflict when the stored version or status no
        longer matches what the caller validated against. Returns the
        transition timestamp (``at`` when given).
        """
        updates = dict(updates or {})
        unknown = set(updates) - _TRANSITION_COLUMNS
        if unknown:
            raise ValueError(f"Not a transition column: {', '.join(sorted(unknown))}")
        now = at or utc_now()
        sets = ["status = ?", "version = version + 1", "updated_at = ?"]
        params: list[Any] = [new_status.value, now]
        for column, value in updates.items():
            sets.append(f"{column} = ?")
            params.append(value)
        params.extend([claim_id, expected_version, old_status.value])
        with write_transaction(self._db_path) as conn:
            cur = conn.execute(
                f"UPDATE claims SET {', '.join(sets)} WHERE id = ? AND version = ? AND status = ?",
                params,
            )
            if cur.rowcount == 0:
                exists = conn.execute(
                    "SELECT 1 FROM claims WHERE id = ?", (claim_id,)
                ).fetchone()
                if exists is None:
                    raise NotFound(f"Claim not found: {claim_id}")
                raise Conflict(
                    f"Claim {claim_id} was modified by another request; reload and try again."
                )
            _insert_documents(conn, claim_id, documents or [], now)
            conn.execute(
                """
                INSERT INTO claim_audit_log (
                    claim_id, action, old_status, new_status, actor_id, details, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    claim_id,
                    action.value,
                    old_status.value,
                    new_status.value,
                    actor_id,
                    details or "",
                    now,
                ),
            )
        return now

    def get_documents(self, claim_id: str) -> list[dict[str, Any]]:
        """Documents attached to a claim, claimant uploads first."""
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM claim_documents
                WHERE claim_id = ?
                ORDER BY is_review_document ASC, id ASC
                """,
                (claim_id,),
            ).fetchall()
        return [dict(r) for r in rows]

    def get_document_by_stored_filename(self, stored_filename: str) -> dict[str, Any] | None:
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM claim_documents WHERE stored_filename = ?",
                (stored_filename,),
            ).fetchone()
        return dict(row) if row is not None else None

    def get_claim_history(self, claim_id: str) -> list[dict[str, Any]]:
        """Get audit log entries for a claim."""
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT id, claim_id, action, old_status, new_status, actor_id, details, created_at
                FROM claim_audit_log
                WHERE claim_id = ?
                ORDER BY id ASC
                """,
                (claim_id,),
            ).fetchall()
        return [dict(r) for r in rows]

    def list_claims(
        self,
        claimant_id: str | None = None,
        reviewer_id: str | None = None,
        statuses: list[ClaimStatus] | None = None,
        claim_type_id: int | None = None,
    ) -> list[dict[str, Any]]:
        """List claims newest first, filtered by owner, assigned reviewer, status and/or type."""
        clauses: list[str] = []
        params: list[Any] = []
        if claimant_id is not None:
            clauses.append("c.claimant_id = ?")
            params.append(claimant_id)
        if reviewer_id is not None:
            clauses.append("c.assigned_reviewer_id = ?")
            params.append(reviewer_id)
        if statuses:
            clauses.append(f"c.status IN ({', '.join('?' for _ in statuses)})")
            params.extend(s.value for s in statuses)
        if claim_type_id is not None:
            clauses.append("c.claim_type_id = ?")
            params.append(claim_type_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                f"{_CLAIM_SELECT}{where} ORDER BY c.created_at DESC, c.id ASC",
                params,
            ).fetchall()
        return [dict(r) for r in rows]

    def count_by_status(self) -> dict[str, int]:
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS n FROM claims GROUP BY status"
            ).fetchall()
        return {r["status"]: r["n"] for r in rows}

    def count_by_type(self) -> dict[str, int]:
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT COALESCE(t.name, 'Unknown') AS type_name, COUNT(*) AS n
                FROM claims c
                LEFT JOIN claim_types t ON t.id = c.claim_type_id
                GROUP BY type_name
                """
            ).fetchall()
        return {r["type_name"]: r["n"] for r in rows}


class UserRepository:
    """Repository for users, claim types and claimant claim-type permissions."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    def create_user(
        self,
        username: str,
        email: str,
        password_hash: str,
        role: str,
        claim_type_ids: list[int] | None = None,
        active: bool = True,
    ) -> str:
        """Insert a user and their allowed claim types. Returns user_id."""
        user_id = _generate_user_id()
        try:
            with write_transaction(self._db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO users (id, username, email, password_hash, role, active, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, username, email, password_hash, role, 1 if active else 0, utc_now()),
                )
                for type_id in claim_type_ids or []:
                    conn.execute(
                        "INSERT OR IGNORE INTO user_claim_types (user_id, claim_type_id) VALUES (?, ?)",
                        (user_id, type_id),
                    )
        except sqlite3.IntegrityError as e:
            message = str(e)
            if "users.username" in message or "users.email" in message:
                raise ValidationError("A user with this username or email already exists.") from e
            raise ValidationError(f"Invalid user data: {message}") from e
        return user_id

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        """Fetch user by ID with claim_type_ids; None when missing."""
        with get_connection(self._db_path) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            if row is None:
                return None
            user = dict(row)
            user["claim_type_ids"] = self._claim_type_ids(conn, user_id)
        return user

    def get_user_by_username(self, username: str) -> dict[str, Any] | None:
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ?", (username,)
            ).fetchone()
            if row is None:
                return None
            user = dict(row)
            user["claim_type_ids"] = self._claim_type_ids(conn, user["id"])
        return user

    def list_users(self, role: str | None = None, active: bool | None = None) -> list[dict[str, Any]]:
        """List users ordered by username, optionally by role and active flag."""
        clauses: list[str] = []
        params: list[Any] = []
        if role is not None:
            clauses.append("role = ?")
            params.append(role)
        if active is not None:
            clauses.append("active = ?")
            params.append(1 if active else 0)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                f"SELECT * FROM users{where} ORDER BY username ASC", params
            ).fetchall()
            users = []
            for r in rows:
                user = dict(r)
                user["claim_type_ids"] = self._claim_type_ids(conn, user["id"])
                users.append(user)
        return users

    def set_active(self, user_id: str, active: bool) -> None:
        with write_transaction(self._db_path) as conn:
            cur = conn.execute(
                "UPDATE users SET active = ? WHERE id = ?", (1 if active else 0, user_id)
            )
            if cur.rowcount == 0:
                raise NotFound(f"User not found: {user_id}")

    def create_claim_type(self, name: str, description: str | None = None) -> int:
        try:
            with write_transaction(self._db_path) as conn:
                cur = conn.execute(
                    "INSERT INTO claim_types (name, description) VALUES (?, ?)",
                    (name, description),
                )
                return int(cur.lastrowid)
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Claim type already exists: {name}") from e

    def get_claim_type(self, claim_type_id: int) -> dict[str, Any] | None:
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM claim_types WHERE id = ?", (claim_type_id,)
            ).fetchone()
        return dict(row) if row is not None else None

    def list_claim_types(self, active_only: bool = False) -> list[dict[str, Any]]:
        query = "SELECT * FROM claim_types"
        if active_only:
            query += " WHERE active = 1"
        with get_connection(self._db_path) as conn:
            rows = conn.execute(f"{query} ORDER BY name ASC").fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def _claim_type_ids(conn: sqlite3.Connection, user_id: str) -> list[int]:
        rows = conn.execute(
            "SELECT claim_type_id FROM user_claim_types WHERE user_id = ? ORDER BY claim_type_id",
            (user_id,),
        ).fetchall()
        return [r["claim_type_id"] for r in rows]
