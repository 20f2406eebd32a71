"""
FastAPI dependencies (DB session, authentication)
"""
from fastapi import Request, HTTPException, status

from cadence.infrastructure.db.session import get_db as _get_db


# Re-export get_db for routers
get_db = _get_db


def get_current_account_id(request: Request) -> int:
    """
    Account of the signed-in user (session cookie)

    Raises:
        HTTPException(401): no user in session

    Usage:
        @router.get("/tasks")
        def list_tasks(account_id: int = Depends(get_current_account_id)):
            ...
    """
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return int(user_id)
