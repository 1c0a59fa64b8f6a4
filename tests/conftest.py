"""Shared pytest fixtures for all test files."""

import os
import tempfile
from types import SimpleNamespace

import pytest

from claim_workflow.db.database import init_db
from claim_workflow.models.claim import ClaimSubmission, FileMeta
from claim_workflow.workflow import AssignmentResolver, UserDirectory, WorkflowEngine

PASSWORD = "password123"


@pytest.fixture(autouse=True)
def temp_db():
    """Use a temporary SQLite DB for tests."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    init_db(path)
    prev = os.environ.get("CLAIMS_DB_PATH")
    os.environ["CLAIMS_DB_PATH"] = path
    try:
        yield path
    finally:
        if prev is None:
            os.environ.pop("CLAIMS_DB_PATH", None)
        else:
            os.environ["CLAIMS_DB_PATH"] = prev
        try:
            os.unlink(path)
        except OSError:
            # Ignore errors when cleaning up the temporary DB file (e.g., if already removed).
            pass


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Store uploaded blobs in a per-test directory."""
    path = tmp_path / "uploads"
    monkeypatch.setenv("CLAIM_WORKFLOW_UPLOAD_DIR", str(path))
    return path


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    """Full-strength PBKDF2 makes every user fixture slow."""
    monkeypatch.setattr("claim_workflow.workflow.users._PBKDF2_ITERATIONS", 1000)


@pytest.fixture
def directory(temp_db):
    return UserDirectory(temp_db)


@pytest.fixture
def claim_type(directory):
    return directory.create_claim_type("Auto", "Vehicle damage")


@pytest.fixture
def actors(directory, claim_type):
    """Claimant U1, reviewer U2, checker U3, plus a second reviewer and checker."""

    def user(username, role):
        return directory.create_user(
            {
                "username": username,
                "email": f"{username}@example.com",
                "password": PASSWORD,
                "role": role,
            }
        )

    return SimpleNamespace(
        claimant=user("alice", "claimant"),
        reviewer=user("bob", "reviewer"),
        checker=user("carol", "checker"),
        other_reviewer=user("dave", "reviewer"),
        other_checker=user("erin", "checker"),
    )


@pytest.fixture
def engine(temp_db):
    return WorkflowEngine(temp_db)


@pytest.fixture
def resolver(engine):
    return AssignmentResolver(engine)


@pytest.fixture
def make_file():
    """Build an upload candidate; ``size`` defaults to the content length."""

    def _make(filename="receipt.pdf", content=b"%PDF-1.4 test", mime_type="application/pdf", size=None):
        return FileMeta(
            filename=filename,
            size_bytes=len(content) if size is None else size,
            mime_type=mime_type,
            content=content,
        )

    return _make


@pytest.fixture
def submission(claim_type):
    return ClaimSubmission(
        claim_type_id=claim_type.id,
        incident_date="2025-01-15",
        description="Rear-ended at a stoplight.",
    )


@pytest.fixture
def pending_claim(engine, actors, submission, make_file):
    return engine.submit_claim(actors.claimant.id, submission, files=[make_file()])


@pytest.fixture
def under_review_claim(resolver, pending_claim, actors):
    return resolver.assign(pending_claim.id, actors.reviewer.id, checker_id=actors.checker.id)


@pytest.fixture
def pending_approval_claim(engine, under_review_claim, actors):
    return engine.submit_for_approval(
        under_review_claim.id, actors.reviewer.id, "Looks valid", settlement_amount="1500.00"
    )
