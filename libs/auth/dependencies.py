import hmac
import time
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import AuthUser
from libs.common.config import get_settings

security = HTTPBearer()

_SERVICE_TOKEN_TTL_SECONDS = 300


async def get_current_user(
    request: Request,
    token: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> AuthUser:
    """
    Validate the bearer JWT and return the authenticated user.

    The user is also left on ``request.state.user`` for per-user rate limits.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token.credentials,
            get_settings().SERVICE_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )
        user = AuthUser(**payload)

    except (JWTError, ValidationError):
        raise credentials_exception

    request.state.user = user
    return user


async def require_service_role(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """
    Ensure the caller is another service holding a service-role token.
    """
    if current_user.role != "service_role":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Service role required",
        )
    return current_user


def _service_role_jwt(calling_service: str) -> str:
    """Mint a short-lived service-role token for internal calls."""
    now = int(time.time())
    claims = {
        "sub": calling_service,
        "role": "service_role",
        "iat": now,
        "exp": now + _SERVICE_TOKEN_TTL_SECONDS,
    }
    return jwt.encode(claims, get_settings().SERVICE_JWT_SECRET, algorithm="HS256")


def _extract_cron_secret(
    x_cron_secret: Optional[str], authorization: Optional[str]
) -> str:
    if x_cron_secret and x_cron_secret.strip():
        return x_cron_secret.strip()
    if authorization:
        scheme, _, value = authorization.strip().partition(" ")
        if scheme.lower() == "bearer":
            return value.strip()
    return ""


async def require_cron_secret(
    x_cron_secret: Annotated[Optional[str], Header()] = None,
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    """
    Guard for externally triggered batch endpoints.

    Accepts the shared secret as ``x-cron-secret`` or ``Authorization: Bearer``.
    An unset CRON_SECRET rejects everything.
    """
    expected = get_settings().CRON_SECRET.strip()
    provided = _extract_cron_secret(x_cron_secret, authorization)
    if not expected or not provided or not hmac.compare_digest(
        provided.encode(), expected.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron credentials",
        )
