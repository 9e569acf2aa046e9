"""
Dashboard endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.core.security import Caller, get_current_caller
from app.schemas.dashboard import UserDashboardResponse
from app.services.dashboard_service import get_user_dashboard

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/user", response_model=UserDashboardResponse)
async def user_dashboard(
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Upcoming registrations, totals, recent activity and recommended events."""
    return await get_user_dashboard(db, caller.user_id)
