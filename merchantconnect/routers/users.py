# merchantconnect/routers/users.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from merchantconnect.core.auth import Identity, require_auth
from merchantconnect.core.context import ServiceContext, get_service_context
from merchantconnect.database import get_session
from merchantconnect.schemas.user import UserProfileRead, UserProfileUpdate

router = APIRouter(prefix="/users", tags=["Users"])


# -------- Self profile --------


@router.get("/me", response_model=UserProfileRead)
def read_me(
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_auth),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Return the authenticated user's profile.

    If no profile was saved yet, a default built from the sign-in display
    name is returned (`persisted=false`); it is not written.

    Auth:
      - Requires valid Supabase JWT.
    """
    return ctx.user_service.get_profile(session, identity)


@router.patch("/me", response_model=UserProfileRead)
def update_me(
    payload: UserProfileUpdate,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_auth),
    ctx: ServiceContext = Depends(get_service_context),
):
    """
    Update the authenticated user's profile (partial, merge write).

    Auth:
      - Requires valid Supabase JWT.
    """
    return ctx.user_service.update_profile(session, identity, payload)
