from fastapi import Header, HTTPException, status
from jose import JWTError, jwt
from pydantic import BaseModel

from storefront.db import settings


class TokenData(BaseModel):
    sub: str
    role: str


def _decode_token(token: str) -> TokenData:
    payload = None
    last_error: Exception | None = None
    for secret in settings.AUTH_SECRETS_LIST:
        try:
            payload = jwt.decode(token, secret, algorithms=[settings.auth_algorithm])
            break
        except JWTError as exc:
            last_error = exc
            continue
    if payload is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from last_error

    sub = payload.get("sub")
    role = payload.get("role")
    if not sub or not role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return TokenData(sub=sub, role=role)


def require_admin(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> TokenData:
    token: str | None = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing credentials")

    token_data = _decode_token(token)
    if token_data.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return token_data
