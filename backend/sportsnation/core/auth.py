"""
Session token authentication

The storefront signs HS256 JWTs with AUTH_SECRET; admin routes accept them as
bearer tokens and check the role claim.
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, ExpiredSignatureError, JWTError
from pydantic import BaseModel

from .config import settings


bearer_scheme = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"

ROLE_LEVELS = {
    "customer": 1,
    "user": 2,
    "admin": 3,
}


class TokenUser(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str = "customer"

    @classmethod
    def from_claims(cls, claims: dict) -> Optional["TokenUser"]:
        """None when the token lacks a user id or email"""
        user_id = claims.get("id") or claims.get("sub")
        if not user_id or not claims.get("email"):
            return None
        return cls(
            id=str(user_id),
            email=claims["email"],
            name=claims.get("name"),
            role=claims.get("role") or "customer",
        )

    def has_role(self, role: str) -> bool:
        return ROLE_LEVELS.get(self.role, 0) >= ROLE_LEVELS.get(role, 0)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


def decode_session_token(token: str) -> dict:
    """
    Verify a session token and return its claims

    Claims used: id (or sub), email, name, role, exp.

    Raises:
        HTTPException: 401 for expired or invalid tokens, 500 without AUTH_SECRET
    """
    if not settings.AUTH_SECRET:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="AUTH_SECRET is not configured"
        )

    try:
        return jwt.decode(
            token,
            settings.AUTH_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"verify_aud": False}
        )
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError as e:
        raise _unauthorized(f"Invalid token: {str(e)}")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> TokenUser:
    if not credentials:
        raise _unauthorized("Authentication required")

    user = TokenUser.from_claims(decode_session_token(credentials.credentials))
    if user is None:
        raise _unauthorized("Invalid token payload: missing user id or email")
    return user


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[TokenUser]:
    """Like get_current_user, but anonymous or bad tokens give None"""
    if not credentials:
        return None
    try:
        claims = decode_session_token(credentials.credentials)
    except HTTPException:
        return None
    return TokenUser.from_claims(claims)


def require_role(required_role: str):
    """
    Dependency factory: 401 without a valid token, 403 below required_role

    Usage:
        @router.get("/analytics")
        async def analytics(user: TokenUser = Depends(require_role("admin"))):
            ...

    Raises:
        ValueError: If required_role is not a known role
    """
    if required_role not in ROLE_LEVELS:
        raise ValueError(f"Unknown role: {required_role}")

    async def role_checker(user: TokenUser = Depends(get_current_user)) -> TokenUser:
        if not user.has_role(required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {required_role}, your role: {user.role}"
            )
        return user

    return role_checker


require_admin = require_role("admin")
