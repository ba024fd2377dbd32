"""
Security module — Supabase JWT verification + Mock auth + Role guard.

Auth Flow:
1. User signs in through the Supabase client in the browser → gets a JWT
2. Frontend sends the JWT to FastAPI
3. FastAPI verifies the JWT with Supabase Auth
4. Backend fetches the user profile from the `profiles` table
5. Backend injects: user_id, role, email, name

Mock mode accepts `mock-{email}` tokens and only looks the profile up.
"""

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from ttrac.core.config import settings
from ttrac.core.database import get_supabase, result_one

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer()


def _profile_to_user(profile: dict) -> dict:
    return {
        "user_id": profile["id"],
        "email": profile.get("email", ""),
        "role": profile.get("role", "student"),
        "name": profile.get("full_name", ""),
    }


def _load_profile(column: str, value: str) -> dict | None:
    db = get_supabase()
    result = (
        db.table("profiles")
        .select("id, email, role, full_name")
        .eq(column, value)
        .maybe_single()
        .execute()
    )
    return result_one(result)


# ---------------------------------------------------------------------------
# Token verification — the core auth function
# ---------------------------------------------------------------------------
async def authenticate_token(token: str) -> dict:
    """Resolve a bearer token to a user dict. Shared by HTTP and WebSocket routes."""
    if settings.AUTH_MODE == "mock":
        return await _mock_auth(token)

    return await _supabase_auth(token)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> dict:
    return await authenticate_token(credentials.credentials)


async def _mock_auth(token: str) -> dict:
    """Mock mode: token is "mock-email@example.com"."""
    if token.startswith("mock-"):
        profile = _load_profile("email", token[5:])
        if profile:
            return _profile_to_user(profile)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid token.",
    )


async def _supabase_auth(token: str) -> dict:
    """Supabase mode: verify JWT with Supabase Auth, then fetch the profile row."""
    db = get_supabase()
    try:
        response = db.auth.get_user(token)
    except Exception as e:
        logger.info("Rejected token: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    if response is None or response.user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    profile = _load_profile("id", response.user.id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No profile found for this account.",
        )

    user = _profile_to_user(profile)
    user["email"] = user["email"] or (response.user.email or "")
    return user


# ---------------------------------------------------------------------------
# Role guard dependency
# ---------------------------------------------------------------------------
def require_role(allowed_roles: list[str]):
    """
    Usage:
        @router.get("/faculty-only")
        async def endpoint(user=Depends(require_role(["faculty", "admin"]))):
    """

    async def role_checker(
        user: dict = Depends(get_current_user),
    ) -> dict:
        if user["role"] not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user['role']}' not authorized. Required: {allowed_roles}",
            )
        return user

    return role_checker
