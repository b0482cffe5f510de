"""
Organizer dashboard endpoint.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends

from ..schemas.booking import (
    BookingLogResponse,
    DashboardEventResponse,
    DashboardResponse,
    DashboardSummaryResponse,
)
from ..services.booking_service import BookingService
from ..utils.auth import Principal
from ..utils.dependencies import get_booking_manager, get_booking_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    principal: Principal = Depends(get_booking_manager),
    booking_service: BookingService = Depends(get_booking_service),
):
    """
    Upcoming events with booking counts, totals across them and recent activity.

    Organizers see the events they organize; admins see the whole tenant.
    """
    result = await booking_service.dashboard(
        organizer_id=principal.id,
        tenant_id=principal.tenant_id,
        acting_role=principal.role,
    )

    return DashboardResponse(
        upcoming_events=[
            DashboardEventResponse(id=event.id, title=event.title, date=event.date, **stats.to_dict())
            for event, stats in result.events
        ],
        summary=DashboardSummaryResponse(**asdict(result.summary)),
        recent_activity=[BookingLogResponse.model_validate(entry) for entry in result.recent_activity],
        generated_at=result.generated_at,
    )
