"""Request helpers shared by the API routers."""
from fastapi import HTTPException, Request

from certlab.constants import COOKIE_NAME


def get_user_id_from_cookie(request: Request) -> str:
    """Extract user ID from cookie."""
    user_id = request.cookies.get(COOKIE_NAME)
    if not user_id:
        raise HTTPException(status_code=401, detail="No user session found")
    return user_id
