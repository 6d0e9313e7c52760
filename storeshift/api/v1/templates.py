import uuid

from fastapi import APIRouter, status
from sqlalchemy import select

from storeshift.api.deps import DB, CurrentLocation, Scheduler
from storeshift.models.shift import ShiftTemplate
from storeshift.schemas.shift import (
    ShiftTemplateCreate, ShiftTemplateOut, ApplyTemplateRequest, CaptureTemplateRequest, BatchResultOut,
)

router = APIRouter(prefix="/shift-templates", tags=["shift-templates"])


@router.get("", response_model=list[ShiftTemplateOut])
async def list_templates(location: CurrentLocation, db: DB):
    result = await db.execute(
        select(ShiftTemplate).where(ShiftTemplate.location_id == location.id).order_by(ShiftTemplate.name)
    )
    return result.scalars().all()


@router.post("", response_model=ShiftTemplateOut, status_code=status.HTTP_201_CREATED)
async def create_template(payload: ShiftTemplateCreate, location: CurrentLocation, scheduler: Scheduler):
    return await scheduler.create_template(
        location.id, payload.name, [bp.model_dump() for bp in payload.blueprints],
    )


@router.post("/capture", response_model=ShiftTemplateOut, status_code=status.HTTP_201_CREATED)
async def capture_template(payload: CaptureTemplateRequest, location: CurrentLocation, scheduler: Scheduler):
    """Save the shifts of a date range (default: one week) as a reusable template."""
    return await scheduler.capture_template(location.id, payload.name, payload.from_date, payload.days)


@router.post("/{template_id}/apply", response_model=BatchResultOut)
async def apply_template(
    template_id: uuid.UUID, payload: ApplyTemplateRequest, location: CurrentLocation, scheduler: Scheduler,
):
    return BatchResultOut.from_result(await scheduler.apply_template(location.id, template_id, payload.anchor_date))
