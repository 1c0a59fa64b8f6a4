"""Centralized configuration from environment variables with defaults."""

import os

from dotenv import load_dotenv

load_dotenv()


def _float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _str(key: str, default: str) -> str:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def get_upload_dir() -> str:
    """Directory holding uploaded document blobs (CLAIM_WORKFLOW_UPLOAD_DIR)."""
    return _str("CLAIM_WORKFLOW_UPLOAD_DIR", "data/uploads")


DB_BUSY_RETRIES = _int("CLAIM_WORKFLOW_DB_BUSY_RETRIES", 3)
DB_BUSY_TIMEOUT_SECONDS = _float("CLAIM_WORKFLOW_DB_BUSY_TIMEOUT", 5.0)


# ---------------------------------------------------------------------------
# Document attachments
# ---------------------------------------------------------------------------

def get_attachment_limits() -> dict:
    """Per-origin attachment limits for claimant and reviewer uploads."""
    max_file_mb = _float("CLAIM_WORKFLOW_MAX_FILE_MB", 5.0)
    return {
        "max_file_bytes": int(max_file_mb * 1024 * 1024),
        "max_claimant_files": _int("CLAIM_WORKFLOW_MAX_CLAIMANT_FILES", 5),
        "max_reviewer_files": _int("CLAIM_WORKFLOW_MAX_REVIEWER_FILES", 3),
    }


ALLOWED_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "pdf", "doc", "docx"})


# ---------------------------------------------------------------------------
# Free text
# ---------------------------------------------------------------------------

MAX_DESCRIPTION_LENGTH = _int("CLAIM_WORKFLOW_MAX_DESCRIPTION_LENGTH", 5000)
MAX_NOTES_LENGTH = _int("CLAIM_WORKFLOW_MAX_NOTES_LENGTH", 5000)
MIN_PASSWORD_LENGTH = 8


# ---------------------------------------------------------------------------
# HTTP API and client
# ---------------------------------------------------------------------------

def get_api_url() -> str:
    """Base URL of the claims API used by ClaimsClient (CLAIM_WORKFLOW_API_URL)."""
    return _str("CLAIM_WORKFLOW_API_URL", "http://localhost:8080/api")


HTTP_TIMEOUT_SECONDS = _float("CLAIM_WORKFLOW_HTTP_TIMEOUT", 30.0)
API_HOST = _str("CLAIM_WORKFLOW_API_HOST", "127.0.0.1")
API_PORT = _int("CLAIM_WORKFLOW_API_PORT", 8080)
