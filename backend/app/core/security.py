from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.models.user import UserRole
from app.schemas.user import UserRecord
from app.services.store import RecordKind, RecordStore, get_store


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

TOKEN_COOKIE = "au_token"


def get_current_user(
    request: Request,
    store: RecordStore = Depends(get_store),
    token: str = Depends(oauth2_scheme),
) -> UserRecord:
    if not token:
        token = request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="not authenticated")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=str(settings.jwt_issuer),
        )
        user_id = str(payload.get("sub") or "").strip()
        if not user_id:
            raise HTTPException(status_code=401, detail="invalid token")
    except JWTError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    user = store.get(RecordKind.users, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="invalid token")

    request.state.user_id = user.id
    return user


def require_roles(*roles: UserRole):
    def _dep(user: UserRecord = Depends(get_current_user)) -> UserRecord:
        # Faculty (ADMIN) can access everything; students only what lists them.
        if user.role == UserRole.admin:
            return user

        if user.role not in roles:
            raise HTTPException(status_code=403, detail="forbidden")
        return user

    return _dep
