"""Tests for database and repositories."""

import sqlite3

import pytest

from claim_workflow.db.database import get_connection, init_db, write_transaction
from claim_workflow.db.repository import ClaimRepository, UserRepository
from claim_workflow.exceptions import Conflict, NotFound, ValidationError
from claim_workflow.models.claim import ClaimAction, ClaimStatus


@pytest.fixture
def users(temp_db):
    return UserRepository(temp_db)


@pytest.fixture
def claims(temp_db):
    return ClaimRepository(temp_db)


@pytest.fixture
def seeded(users):
    type_id = users.create_claim_type("Auto")
    claimant = users.create_user("alice", "alice@example.com", "hash", "claimant")
    reviewer = users.create_user("bob", "bob@example.com", "hash", "reviewer")
    return {"type_id": type_id, "claimant": claimant, "reviewer": reviewer}


def _doc(name, stored, review=False):
    return {
        "original_filename": name,
        "stored_filename": stored,
        "mime_type": "application/pdf",
        "file_size_bytes": 10,
        "is_review_document": review,
    }


class TestSchema:
    def test_init_db_creates_tables(self, temp_db):
        with get_connection(temp_db) as conn:
            names = {
                r["name"]
                for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
            }
        assert {"users", "claim_types", "user_claim_types", "claims", "claim_documents", "claim_audit_log"} <= names

    def test_init_db_is_idempotent(self, temp_db):
        init_db(temp_db)
        init_db(temp_db)

    def test_status_check_constraint(self, claims, seeded, temp_db):
        claim_id = claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-15", "desc")
        with get_connection(temp_db) as conn:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute("UPDATE claims SET status = 'Closed' WHERE id = ?", (claim_id,))


class TestWriteTransaction:
    def test_rolls_back_on_error(self, temp_db, users):
        with pytest.raises(RuntimeError):
            with write_transaction(temp_db) as conn:
                conn.execute("INSERT INTO claim_types (name) VALUES ('Travel')")
                raise RuntimeError("boom")
        assert users.list_claim_types() == []

    def test_commits_on_success(self, temp_db, users):
        with write_transaction(temp_db) as conn:
            conn.execute("INSERT INTO claim_types (name) VALUES ('Travel')")
        assert [t["name"] for t in users.list_claim_types()] == ["Travel"]


class TestClaimRepository:
    def test_create_claim_writes_documents_and_audit(self, claims, seeded):
        claim_id = claims.create_claim(
            seeded["claimant"], seeded["type_id"], "2025-01-15", "desc", [_doc("a.pdf", "k1.pdf")]
        )
        assert claim_id.startswith("CLM-")
        row = claims.get_claim(claim_id)
        assert row["status"] == "Pending"
        assert row["version"] == 1
        assert row["claim_type_name"] == "Auto"
        assert [d["original_filename"] for d in claims.get_documents(claim_id)] == ["a.pdf"]
        history = claims.get_claim_history(claim_id)
        assert len(history) == 1
        assert history[0]["action"] == "created"
        assert history[0]["old_status"] is None
        assert history[0]["new_status"] == "Pending"

    def test_create_claim_skips_taken_ids(self, claims, seeded, monkeypatch):
        from claim_workflow.db import repository

        first = claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-15", "first")
        ids = iter([first, "CLM-FRESH"])
        monkeypatch.setattr(repository, "_generate_claim_id", lambda prefix="CLM": next(ids))
        second = claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-16", "second")
        assert second == "CLM-FRESH"
        assert claims.get_claim(first)["description"] == "first"

    def test_claim_ids_are_wide(self, claims, seeded):
        claim_id = claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-15", "desc")
        assert len(claim_id.removeprefix("CLM-")) == 16

    def test_get_claim_missing(self, claims):
        assert claims.get_claim("CLM-NOPE") is None

    def test_apply_transition_bumps_version(self, claims, seeded):
        claim_id = claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-15", "desc")
        claims.apply_transition(
            claim_id,
            expected_version=1,
            action=ClaimAction.ASSIGN,
            old_status=ClaimStatus.PENDING,
            new_status=ClaimStatus.UNDER_REVIEW,
            updates={"assigned_reviewer_id": seeded["reviewer"]},
            actor_id="USR-CHECKER",
        )
        row = claims.get_claim(claim_id)
        assert row["status"] == "Under Review"
        assert row["version"] == 2
        assert row["assigned_reviewer_id"] == seeded["reviewer"]
        history = claims.get_claim_history(claim_id)
        assert history[-1]["action"] == "assign"
        assert history[-1]["actor_id"] == "USR-CHECKER"

    def test_apply_transition_stale_version_conflicts(self, claims, seeded):
        claim_id = claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-15", "desc")
        args = dict(
            action=ClaimAction.ASSIGN,
            old_status=ClaimStatus.PENDING,
            new_status=ClaimStatus.UNDER_REVIEW,
            updates={"assigned_reviewer_id": seeded["reviewer"]},
        )
        claims.apply_transition(claim_id, expected_version=1, **args)
        with pytest.raises(Conflict):
            claims.apply_transition(claim_id, expected_version=1, **args)
        assert len(claims.get_claim_history(claim_id)) == 2

    def test_conflict_writes_no_documents(self, claims, seeded):
        claim_id = claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-15", "desc")
        with pytest.raises(Conflict):
            claims.apply_transition(
                claim_id,
                expected_version=7,
                action=ClaimAction.SUBMIT_FOR_APPROVAL,
                old_status=ClaimStatus.UNDER_REVIEW,
                new_status=ClaimStatus.PENDING_APPROVAL,
                documents=[_doc("r.pdf", "k2.pdf", review=True)],
            )
        assert claims.get_documents(claim_id) == []

    def test_apply_transition_missing_claim(self, claims):
        with pytest.raises(NotFound):
            claims.apply_transition(
                "CLM-NOPE",
                expected_version=1,
                action=ClaimAction.ASSIGN,
                old_status=ClaimStatus.PENDING,
                new_status=ClaimStatus.UNDER_REVIEW,
            )

    def test_apply_transition_rejects_unknown_columns(self, claims, seeded):
        claim_id = claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-15", "desc")
        with pytest.raises(ValueError, match="status"):
            claims.apply_transition(
                claim_id,
                expected_version=1,
                action=ClaimAction.ASSIGN,
                old_status=ClaimStatus.PENDING,
                new_status=ClaimStatus.UNDER_REVIEW,
                updates={"status": "Approved"},
            )

    def test_list_claims_filters(self, claims, seeded, users):
        other_type = users.create_claim_type("Home")
        first = claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-15", "one")
        second = claims.create_claim(seeded["claimant"], other_type, "2025-01-16", "two")
        claims.apply_transition(
            first,
            expected_version=1,
            action=ClaimAction.ASSIGN,
            old_status=ClaimStatus.PENDING,
            new_status=ClaimStatus.UNDER_REVIEW,
            updates={"assigned_reviewer_id": seeded["reviewer"]},
        )
        assert {r["id"] for r in claims.list_claims()} == {first, second}
        assert [r["id"] for r in claims.list_claims(reviewer_id=seeded["reviewer"])] == [first]
        assert [r["id"] for r in claims.list_claims(statuses=[ClaimStatus.PENDING])] == [second]
        assert [r["id"] for r in claims.list_claims(claim_type_id=other_type)] == [second]
        assert claims.list_claims(claimant_id="USR-OTHER") == []

    def test_counts(self, claims, seeded):
        claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-15", "one")
        claims.create_claim(seeded["claimant"], seeded["type_id"], "2025-01-15", "two")
        assert claims.count_by_status() == {"Pending": 2}
        assert claims.count_by_type() == {"Auto": 2}


class TestUserRepository:
    def test_create_and_get_user(self, users):
        type_id = users.create_claim_type("Auto")
        user_id = users.create_user("alice", "alice@example.com", "hash", "claimant", [type_id])
        row = users.get_user(user_id)
        assert row["username"] == "alice"
        assert row["claim_type_ids"] == [type_id]
        assert users.get_user_by_username("alice")["id"] == user_id

    def test_duplicate_username(self, users):
        users.create_user("alice", "alice@example.com", "hash", "claimant")
        with pytest.raises(ValidationError, match="already exists"):
            users.create_user("alice", "other@example.com", "hash", "claimant")

    def test_invalid_role_rejected(self, users):
        with pytest.raises(ValidationError):
            users.create_user("mallory", "m@example.com", "hash", "admin")

    def test_list_users_by_role_and_active(self, users):
        a = users.create_user("a", "a@example.com", "hash", "reviewer")
        b = users.create_user("b", "b@example.com", "hash", "reviewer")
        users.create_user("c", "c@example.com", "hash", "checker")
        users.set_active(b, False)
        assert [u["id"] for u in users.list_users(role="reviewer", active=True)] == [a]
        assert len(users.list_users()) == 3

    def test_set_active_missing_user(self, users):
        with pytest.raises(NotFound):
            users.set_active("USR-NOPE", False)

    def test_duplicate_claim_type(self, users):
        users.create_claim_type("Auto")
        with pytest.raises(ValidationError):
            users.create_claim_type("Auto")
