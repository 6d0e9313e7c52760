from typing import Annotated
import uuid

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storeshift.core.database import get_db
from storeshift.models.location import Location
from storeshift.services.schedule_service import ScheduleService


async def get_current_location(
    db: Annotated[AsyncSession, Depends(get_db)],
    x_location_id: Annotated[str | None, Header()] = None,
) -> Location:
    if not x_location_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No location selected (X-Location-Id header missing)",
        )
    try:
        location_id = uuid.UUID(x_location_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-Location-Id header")

    location = await db.get(Location, location_id)
    if location is None or not location.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    return location


def get_scheduler(request: Request) -> ScheduleService:
    return request.app.state.scheduler


DB = Annotated[AsyncSession, Depends(get_db)]
CurrentLocation = Annotated[Location, Depends(get_current_location)]
Scheduler = Annotated[ScheduleService, Depends(get_scheduler)]
