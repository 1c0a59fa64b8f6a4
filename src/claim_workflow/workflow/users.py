"""User directory: accounts, roles, claim types and actor entitlement checks."""

import hashlib
import hmac
import secrets

from pydantic import ValidationError as PydanticValidationError

from claim_workflow.db.repository import UserRepository
from claim_workflow.exceptions import Forbidden, NotFound, ValidationError
from claim_workflow.models.claim import ClaimType, Role, User, UserCreate
from claim_workflow.observability import get_logger, log_claim_event

logger = get_logger(__name__)

_PBKDF2_ITERATIONS = 260_000


def hash_password(password: str, salt: str | None = None, iterations: int | None = None) -> str:
    """Encode a password as ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``."""
    salt = salt or secrets.token_hex(16)
    iterations = iterations or _PBKDF2_ITERATIONS
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"pbkdf2_sha256${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    candidate = hash_password(password, salt=salt, iterations=int(iterations))
    return hmac.compare_digest(candidate.rsplit("$", 1)[-1], expected)


def _to_user(row: dict) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        role=Role(row["role"]),
        active=bool(row["active"]),
        claim_type_ids=row.get("claim_type_ids") or [],
    )


def _to_claim_type(row: dict) -> ClaimType:
    return ClaimType(
        id=row["id"],
        name=row["name"],
        description=row.get("description"),
        active=bool(row.get("active", 1)),
    )


class UserDirectory:
    """Users and claim types, plus the checks that an actor may act in a role."""

    def __init__(self, db_path: str | None = None):
        self._repo = UserRepository(db_path)

    # -- users ---------------------------------------------------------------

    def create_user(self, data: UserCreate | dict) -> User:
        """Create a user. Claim type permissions apply to claimants only."""
        if isinstance(data, dict):
            try:
                data = UserCreate.model_validate(data)
            except PydanticValidationError as e:
                raise ValidationError(_first_error(e)) from e
        username = data.username.strip()
        if not username:
            raise ValidationError("Username required.")
        claim_type_ids = data.claim_type_ids if data.role is Role.CLAIMANT else []
        for type_id in claim_type_ids:
            if self._repo.get_claim_type(type_id) is None:
                raise ValidationError(f"Unknown claim type: {type_id}")
        user_id = self._repo.create_user(
            username=username,
            email=data.email,
            password_hash=hash_password(data.password),
            role=data.role.value,
            claim_type_ids=claim_type_ids,
        )
        log_claim_event(logger, "user_created", user_id=user_id, role=data.role.value)
        return self.get_user(user_id)

    def find_user(self, user_id: str | None) -> User | None:
        if not user_id:
            return None
        row = self._repo.get_user(user_id)
        return _to_user(row) if row is not None else None

    def get_user(self, user_id: str) -> User:
        user = self.find_user(user_id)
        if user is None:
            raise NotFound(f"User not found: {user_id}")
        return user

    def list_users(self, role: Role | None = None, active: bool | None = None) -> list[User]:
        rows = self._repo.list_users(role=role.value if role else None, active=active)
        return [_to_user(r) for r in rows]

    def set_active(self, user_id: str, active: bool) -> User:
        self._repo.set_active(user_id, active)
        log_claim_event(logger, "user_active_changed", user_id=user_id, active=active)
        return self.get_user(user_id)

    def authenticate(self, username: str, password: str) -> User | None:
        """Return the active user matching the credentials, else None."""
        row = self._repo.get_user_by_username(username.strip())
        if row is None or not row["active"]:
            return None
        if not verify_password(password, row["password_hash"]):
            return None
        return _to_user(row)

    def require_actor(self, user_id: str | None, role: Role) -> User:
        """Return the acting user if they exist, are active and hold ``role``; else Forbidden."""
        user = self.find_user(user_id)
        if user is None:
            raise Forbidden(f"Unknown user: {user_id}")
        if not user.active:
            raise Forbidden(f"User {user_id} is inactive.")
        if user.role is not role:
            raise Forbidden(f"User {user_id} is not a {role.value}.")
        return user

    # -- claim types ---------------------------------------------------------

    def create_claim_type(self, name: str, description: str | None = None) -> ClaimType:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Claim type name required.")
        type_id = self._repo.create_claim_type(name, description)
        return _to_claim_type(self._repo.get_claim_type(type_id))

    def get_claim_type(self, claim_type_id: int) -> ClaimType | None:
        row = self._repo.get_claim_type(claim_type_id)
        return _to_claim_type(row) if row is not None else None

    def list_claim_types(self, active_only: bool = False) -> list[ClaimType]:
        return [_to_claim_type(r) for r in self._repo.list_claim_types(active_only=active_only)]

    def allowed_claim_types(self, user_id: str) -> list[ClaimType]:
        """Active claim types a claimant may file; all of them when none are configured."""
        user = self.get_user(user_id)
        active = self.list_claim_types(active_only=True)
        if not user.claim_type_ids:
            return active
        allowed = set(user.claim_type_ids)
        return [t for t in active if t.id in allowed]


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()))
    message = first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message
