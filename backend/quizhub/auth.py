"""Authentication helpers and FastAPI security dependencies.

This module provides utilities to decode JWT tokens, the dependency
`get_current_user` that validates the bearer token and returns the
corresponding `User`, and `get_auth_context` which turns that user into
the explicit `AuthContext` passed to services.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies.
"""

from dataclasses import dataclass
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session
from .config import settings
from .database import get_session
from . import models, repositories

bearer_scheme = HTTPBearer()


@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller of one request."""
    user_id: int
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'

    @classmethod
    def for_user(cls, user: models.User) -> 'AuthContext':
        return cls(user_id=user.id, username=user.username, role=user.role)


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
):
    """FastAPI dependency that returns the authenticated user.

    The function extracts the bearer token from the request, decodes it
    and performs a database lookup to return the `User` object. It raises
    an HTTPException(401) for any authentication issue.
    """
    payload = decode_token(credentials.credentials)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail='user not found')
    return user


def get_auth_context(user: models.User = Depends(get_current_user)) -> AuthContext:
    return AuthContext.for_user(user)


def require_roles(*roles: str):
    """Build a dependency that only lets the given roles through (403 otherwise)."""
    def _check(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if ctx.role not in roles:
            raise HTTPException(status_code=403, detail=f"role '{ctx.role}' is not authorized to access this route")
        return ctx
    return _check
