"""HTTP client for the claims REST API.

Every call is a single blocking request. Nothing is retried: a failed call
raises the matching ClaimWorkflowError with the server's message, and
transport failures raise NetworkError.
"""

from decimal import Decimal
from typing import Any, Sequence

import httpx

from claim_workflow.config.settings import HTTP_TIMEOUT_SECONDS, get_api_url
from claim_workflow.exceptions import (
    ERRORS_BY_CODE,
    ClaimWorkflowError,
    Conflict,
    Forbidden,
    NetworkError,
    NotFound,
    ValidationError,
)
from claim_workflow.models.claim import (
    Claim,
    ClaimStats,
    ClaimType,
    DocumentOrigin,
    FileMeta,
    Role,
    User,
)
from claim_workflow.observability import get_logger
from claim_workflow.workflow.documents import DocumentLedger

logger = get_logger(__name__)

_ERRORS_BY_STATUS: dict[int, type[ClaimWorkflowError]] = {
    403: Forbidden,
    404: NotFound,
    409: Conflict,
    422: ValidationError,
}


def error_from_response(response: httpx.Response) -> ClaimWorkflowError:
    """Rebuild the server-side error from an error envelope."""
    try:
        body = response.json()
    except ValueError:
        body = None
    code = message = None
    if isinstance(body, dict):
        code = body.get("error")
        message = body.get("message") or body.get("detail")
    if not isinstance(message, str) or not message:
        message = f"Request failed with status {response.status_code}."
    error_cls = ERRORS_BY_CODE.get(code) or _ERRORS_BY_STATUS.get(response.status_code)
    if error_cls is None:
        error = ClaimWorkflowError(message)
        error.status_code = response.status_code
        return error
    return error_cls(message)


def _multipart(field: str, files: Sequence[FileMeta]) -> list[tuple[str, tuple[str, bytes, str]]]:
    return [(field, (f.filename, f.content or b"", f.mime_type)) for f in files]


def _amount(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


class ClaimsClient:
    """Role-scoped calls against ``/api``.

    ``http`` may be any ``httpx.Client`` whose base URL points at the API
    root, such as a FastAPI ``TestClient``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        http: httpx.Client | None = None,
        timeout: float | None = None,
        ledger: DocumentLedger | None = None,
    ):
        self._owns_http = http is None
        self._http = http or httpx.Client(
            base_url=base_url or get_api_url(),
            timeout=timeout if timeout is not None else HTTP_TIMEOUT_SECONDS,
        )
        self._ledger = ledger or DocumentLedger()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "ClaimsClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- transport -----------------------------------------------------------

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning("Claims API unreachable: %s %s", method, path, exc_info=True)
            raise NetworkError(f"Could not reach the claims API: {e}") from e
        if response.is_error:
            error = error_from_response(response)
            logger.info(
                "Claims API rejected %s %s: %s",
                method,
                path,
                error.code,
                extra={"status_code": response.status_code},
            )
            raise error
        return response

    def _data(self, method: str, path: str, **kwargs: Any) -> Any:
        return self._send(method, path, **kwargs).json()["data"]

    # -- reads ---------------------------------------------------------------

    def list_claims(
        self, role: Role | str, actor_id: str | None = None, filters: dict[str, Any] | None = None
    ) -> list[Claim]:
        role = Role(role)
        filters = filters or {}
        if role is Role.CHECKER:
            params: dict[str, Any] = {}
            status = filters.get("status")
            if status:
                params["status"] = [status] if isinstance(status, str) else list(status)
            if filters.get("claim_type_id") is not None:
                params["claim_type_id"] = filters["claim_type_id"]
            data = self._data("GET", "/checker/claims", params=params)
        else:
            data = self._data("GET", f"/{role.value}/claims/{actor_id}")
        return [Claim.model_validate(item) for item in data]

    def get_claim(self, claim_id: str, role: Role | str, actor_id: str | None = None) -> Claim:
        role = Role(role)
        if role is Role.CHECKER:
            path = f"/checker/claims/{claim_id}"
        else:
            path = f"/{role.value}/claims/{claim_id}/{actor_id}"
        return Claim.model_validate(self._data("GET", path))

    def list_reviewers(self) -> list[User]:
        data = self._data("GET", "/checker/users", params={"role": Role.REVIEWER.value})
        return [User.model_validate(item) for item in data]

    def list_claim_types(self) -> list[ClaimType]:
        return [ClaimType.model_validate(item) for item in self._data("GET", "/claim-types")]

    def allowed_claim_types(self, user_id: str) -> list[ClaimType]:
        data = self._data("GET", f"/allowed-claim-types/{user_id}")
        return [ClaimType.model_validate(item) for item in data]

    def stats(self) -> ClaimStats:
        return ClaimStats.model_validate(self._data("GET", "/checker/stats"))

    def download_document(self, stored_filename: str, user_id: str) -> bytes:
        response = self._send(
            "GET", f"/documents/download/{stored_filename}", params={"user_id": user_id}
        )
        return response.content

    # -- mutations -----------------------------------------------------------

    def submit_claim(
        self,
        claimant_id: str,
        claim_type_id: int,
        incident_date: str,
        description: str,
        files: Sequence[FileMeta] | None = None,
    ) -> Claim:
        """File a claim. The attachment batch is validated before any request is sent."""
        files = list(files or [])
        self._ledger.validate_batch(DocumentOrigin.CLAIMANT, files)
        data = {
            "user_id": claimant_id,
            "claimType": str(claim_type_id),
            "incident_date": incident_date,
            "description": description,
        }
        payload = self._data(
            "POST", "/claimant/claims", data=data, files=_multipart("documents[]", files) or None
        )
        return Claim.model_validate(payload)

    def assign(self, claim_id: str, reviewer_id: str, checker_id: str | None = None) -> Claim:
        body: dict[str, Any] = {"reviewer_id": reviewer_id}
        if checker_id is not None:
            body["checker_id"] = checker_id
        return Claim.model_validate(self._data("PATCH", f"/checker/claims/{claim_id}/assign", json=body))

    def submit_for_approval(
        self,
        claim_id: str,
        reviewer_id: str,
        reviewer_notes: str,
        settlement_amount: Any = None,
        files: Sequence[FileMeta] | None = None,
    ) -> Claim:
        files = list(files or [])
        self._ledger.validate_batch(DocumentOrigin.REVIEWER, files)
        data = {"reviewer_notes": reviewer_notes}
        amount = _amount(settlement_amount)
        if amount is not None:
            data["settlement_amount"] = amount
        payload = self._data(
            "PATCH",
            f"/reviewer/claims/{claim_id}/submit-for-approval/{reviewer_id}",
            data=data,
            files=_multipart("reviewer_documents[]", files) or None,
        )
        return Claim.model_validate(payload)

    def approve(self, claim_id: str, checker_id: str, settlement_amount: Any = None) -> Claim:
        body = {}
        amount = _amount(settlement_amount)
        if amount is not None:
            body["settlement_amount"] = amount
        payload = self._data("PATCH", f"/checker/claims/{claim_id}/approve/{checker_id}", json=body)
        return Claim.model_validate(payload)

    def deny(self, claim_id: str, checker_id: str, denial_reason: str | None) -> Claim:
        payload = self._data(
            "PATCH",
            f"/checker/claims/{claim_id}/deny/{checker_id}",
            json={"denial_reason": denial_reason},
        )
        return Claim.model_validate(payload)

    def create_user(self, payload: dict[str, Any]) -> User:
        return User.model_validate(self._data("POST", "/checker/users", json=payload))
