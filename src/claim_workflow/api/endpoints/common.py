"""Routes shared by every role: claim types, login and health."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from claim_workflow.api.dependencies import Services, envelope, get_services
from claim_workflow.exceptions import Forbidden

router = APIRouter(tags=["common"])


class LoginRequest(BaseModel):
    username: str
    password: str


@router.get("/claim-types", summary="List active claim types")
def list_claim_types(services: Annotated[Services, Depends(get_services)]):
    return envelope(services.users.list_claim_types(active_only=True))


@router.get("/allowed-claim-types/{user_id}", summary="Claim types a claimant may file")
def allowed_claim_types(
    user_id: str,
    services: Annotated[Services, Depends(get_services)],
):
    return envelope(services.users.allowed_claim_types(user_id))


@router.post("/login", summary="Check credentials and return the user")
def login(
    request: LoginRequest,
    services: Annotated[Services, Depends(get_services)],
):
    user = services.users.authenticate(request.username, request.password)
    if user is None:
        raise Forbidden("Invalid username or password.")
    return envelope(user)


@router.get("/health", summary="Liveness probe")
def health():
    return {"status": "ok"}
