"""
Authentication dependencies for the Shipcrowd backend
Validates bearer JWTs issued by the dashboard and provides tenant context

Dashboard token claims:
    sub (or id), email, name, role, company_id (or companyId), exp
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError, ExpiredSignatureError
from pydantic import BaseModel

from .config import settings
from .exceptions import AppError

JWT_ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


class TokenUser(BaseModel):
    """Dashboard user and the company the token is scoped to"""
    id: str
    email: str
    name: Optional[str] = None
    role: str = "user"
    company_id: Optional[int] = None


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


def decode_token(token: str) -> dict:
    if not settings.AUTH_SECRET:
        raise AppError("AUTH_SECRET is not configured", "AUTH_NOT_CONFIGURED", 500)

    try:
        return jwt.decode(token, settings.AUTH_SECRET, algorithms=[JWT_ALGORITHM],
                          options={"verify_aud": False})
    except ExpiredSignatureError:
        raise unauthorized("Token has expired")
    except JWTError as e:
        raise unauthorized(f"Invalid token: {e}")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> TokenUser:
    """Resolve the dashboard user from the Authorization header"""
    if not credentials:
        raise unauthorized("Authentication required")

    claims = decode_token(credentials.credentials)

    user_id = claims.get("sub") or claims.get("id")
    if not user_id or not claims.get("email"):
        raise unauthorized("Token is missing the user id or email claim")

    company_id = claims.get("company_id", claims.get("companyId"))

    return TokenUser(
        id=str(user_id),
        email=claims["email"],
        name=claims.get("name"),
        role=claims.get("role", "user"),
        company_id=int(company_id) if company_id is not None else None
    )


async def get_company_id(user: TokenUser = Depends(get_current_user)) -> int:
    """
    Dependency returning the caller's company ID.

    Every store, mapping and order endpoint is scoped to this company.
    """
    if user.company_id is None:
        raise unauthorized("Token is not scoped to a company")
    return user.company_id
