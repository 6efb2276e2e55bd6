"""Authentication status and token refresh routes."""
from fastapi import APIRouter, Depends

from insights.cal.tokens import TokenRefresher
from insights.core.dependencies import get_current_user_id, get_token_refresher
from insights.models.credential import as_utc

router = APIRouter(tags=["auth"])


@router.get("/auth/status")
async def auth_status(
    user_id: str = Depends(get_current_user_id),
    refresher: TokenRefresher = Depends(get_token_refresher),
):
    """
    Check whether the signed-in user has connected Cal.com.

    Reports whether a credential exists, when its access token expires,
    and whether the next bookings request would refresh it first.
    """
    credential = refresher.store.get(user_id)
    if credential is None:
        return {
            "authenticated": True,
            "userId": user_id,
            "connected": False,
            "message": "Connect your Cal.com account to load bookings",
        }

    expires_at = as_utc(credential.access_token_expires_at)
    return {
        "authenticated": True,
        "userId": user_id,
        "connected": bool(credential.access_token),
        "accessTokenExpiresAt": expires_at.isoformat() if expires_at else None,
        "needsRefresh": refresher.is_expired(credential),
        "hasRefreshToken": bool(credential.refresh_token),
        "message": "Cal.com account connected",
    }


@router.post("/api/cal/oauth/refresh")
async def refresh_token(
    force: bool = False,
    user_id: str = Depends(get_current_user_id),
    refresher: TokenRefresher = Depends(get_token_refresher),
):
    """
    Refresh the Cal.com access token for the signed-in user.

    Without ``force`` the token is only exchanged when it is about to
    expire. With ``force=true`` the refresh token is always exchanged.
    """
    if force:
        result = await refresher.refresh_access_token(user_id)
    else:
        result = await refresher.ensure_fresh(user_id)

    return {
        "success": True,
        "refreshed": result.refreshed,
        "expiresAt": result.expires_at.isoformat() if result.expires_at else None,
        "message": (
            "Access token refreshed successfully."
            if result.refreshed
            else "Access token is still valid, no refresh needed."
        ),
    }
