import hmac
import logging
import uuid
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from jose import jwt
from passlib.context import CryptContext
from pydantic import BaseModel, Field

from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.core.security import get_current_user
from app.models.user import UserRole
from app.schemas.user import UserPublic, UserRecord
from app.services.store import DuplicateUserError, RecordStore, StoreError, get_store

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger("au_assess.auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
    user: UserPublic


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    username: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)
    password: str
    role: UserRole = UserRole.student
    faculty_code: str | None = None


def _hash_password(password: str) -> str:
    return pwd_context.hash(password)


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def _create_access_token(*, user_id: str, role: str) -> str:
    now = datetime.utcnow()
    expire = now + timedelta(minutes=settings.jwt_access_token_minutes)
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": expire,
        "iss": str(settings.jwt_issuer),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _token_response(user: UserRecord) -> TokenResponse:
    return TokenResponse(
        access_token=_create_access_token(user_id=user.id, role=user.role.value),
        expires_in=int(settings.jwt_access_token_minutes) * 60,
        user=UserPublic.of(user),
    )


def _store_unavailable(e: StoreError) -> HTTPException:
    logger.warning("auth store failure: %s", e)
    return HTTPException(
        status_code=503,
        detail={"error_code": "store_unavailable", "error_message": "Database connection error."},
    )


@router.post("/register", response_model=TokenResponse)
def register(
    payload: RegisterRequest,
    store: RecordStore = Depends(get_store),
    _: object = rate_limit(key_prefix="auth_register", limit=10, window_seconds=60),
):
    if not settings.allow_public_register:
        raise HTTPException(status_code=403, detail="registration disabled")

    if payload.role == UserRole.admin:
        provided = str(payload.faculty_code or "")
        if not hmac.compare_digest(provided, str(settings.faculty_verification_code or "")):
            raise HTTPException(status_code=403, detail="Invalid Faculty Verification Code.")

    if not payload.password or len(payload.password) < int(settings.password_min_length or 0):
        raise HTTPException(status_code=400, detail="password too short")

    email = payload.email.strip()
    username = payload.username.strip()
    if "@" not in email:
        raise HTTPException(status_code=400, detail="invalid email")

    user = UserRecord(
        id=f"u_{uuid.uuid4().hex[:16]}",
        username=username,
        name=payload.name.strip(),
        email=email,
        role=payload.role,
        password_hash=_hash_password(payload.password),
    )
    try:
        if store.find_user(email) is not None:
            raise HTTPException(status_code=409, detail="User already registered with this email.")
        store.register_user(user)
    except DuplicateUserError as e:
        raise HTTPException(status_code=409, detail="Username already taken.") from e
    except StoreError as e:
        raise _store_unavailable(e) from e

    logger.info("registered user id=%s role=%s", user.id, user.role.value)
    return _token_response(user)


@router.post("/token", response_model=TokenResponse)
def token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    store: RecordStore = Depends(get_store),
    _: object = rate_limit(key_prefix="auth_token", limit=20, window_seconds=60),
):
    try:
        user = store.find_user(form_data.username)
    except StoreError as e:
        raise _store_unavailable(e) from e

    if user is None or not _verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials. Access denied.")

    return _token_response(user)


@router.get("/me", response_model=UserPublic)
def me(user: UserRecord = Depends(get_current_user)):
    return UserPublic.of(user)
