from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pagesy.database import get_db
from pagesy.models import User
from pagesy.schemas import NotificationRead
from pagesy.services.notifications import list_notifications
from pagesy.users import current_active_user

router = APIRouter(prefix="/api/v1/users", tags=["notifications"])


@router.get("/me/notifications", response_model=List[NotificationRead])
async def my_notifications(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_db),
):
    # catch-up path for anything missed while the live socket was down
    return await list_notifications(db, user.id, limit=limit, offset=offset)


__all__ = ["router"]
