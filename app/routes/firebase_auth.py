from fastapi import Depends, Header, HTTPException, status
from typing import Optional
from firebase_admin import auth
from app.models.user import Principal
import asyncio, logging

logger = logging.getLogger(__name__)


async def get_optional_principal(authorization: Optional[str] = Header(None)) -> Optional[Principal]:
    """
    Resolve the signed-in operator from a Firebase ID token.
    No Authorization header means no session and yields None.
    """
    if not authorization:
        return None

    if not authorization.startswith("Bearer "):
        logger.warning("Malformed authorization header")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing or invalid authorization header")

    id_token = authorization.split(" ", 1)[1]

    try:
        # verify_id_token is blocking, run it in the default thread pool
        loop = asyncio.get_event_loop()
        decoded_token = await loop.run_in_executor(None, auth.verify_id_token, id_token)
    except Exception:
        logger.error("Token verification failed", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not decoded_token.get("uid") or not decoded_token.get("email"):
        logger.warning("Token without uid or email, treating as signed out")
        return None

    logger.info(f"Token verified for user: {decoded_token['uid']}")
    return Principal(
        uid=decoded_token["uid"],
        email=decoded_token["email"],
        name=decoded_token.get("name"),
    )


async def get_current_principal(principal: Optional[Principal] = Depends(get_optional_principal)) -> Principal:
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated. Please log in again.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal
