"""
Current User Resolution

Sign-in itself is handled outside this package. All we need is the
opaque id of whoever is signed in, because every storage call is
scoped to it. No id means no data access.
"""

from typing import Optional

from pydantic import BaseModel, Field

from foretrack.config import get_settings


class UnauthenticatedError(Exception):
    """No signed-in user; storage must not be touched."""
    pass


class CurrentUser(BaseModel):
    user_id: str = Field(..., min_length=1)
    display_name: Optional[str] = None


def resolve_current_user(user_id: Optional[str] = None) -> CurrentUser:
    """
    Resolve the acting user.

    An explicit id wins; otherwise fall back to DEFAULT_USER_ID for
    single-user deployments.

    Raises:
        UnauthenticatedError: If neither is available
    """
    candidate = (user_id or "").strip() or (get_settings().app.default_user_id or "").strip()
    if not candidate:
        raise UnauthenticatedError("Sign in to see your finances")
    return CurrentUser(user_id=candidate)
