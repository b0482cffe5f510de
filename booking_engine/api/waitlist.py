"""
Waitlist promotion and event booking administration endpoints.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..schemas.booking import (
    BookingLogResponse,
    BookingResponse,
    EventStatsResponse,
    PromoteWaitlistRequest,
    PromotionResponse,
)
from ..services.audit_service import AuditService
from ..services.booking_service import BookingService
from ..utils.auth import Principal
from ..utils.dependencies import (
    get_audit_service,
    get_booking_manager,
    get_booking_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["waitlist"])

PROMOTION_MESSAGES = {
    "promoted": "Waitlisted booking promoted to confirmed",
    "no_waitlist": "No waitlisted bookings to promote",
    "at_capacity": "Event is at full capacity. Nothing to promote.",
}


@router.post("/waitlist/promote", response_model=PromotionResponse)
async def promote_waitlist(
    request: PromoteWaitlistRequest,
    principal: Principal = Depends(get_booking_manager),
    booking_service: BookingService = Depends(get_booking_service),
):
    """
    Promote the oldest waitlisted booking for an event.

    - **event_id**: event whose waitlist should move up

    Succeeds without changes when nobody is waitlisted or the event is full.
    """
    result = await booking_service.promote_waitlist(
        event_id=request.event_id,
        tenant_id=principal.tenant_id,
        acting_role=principal.role,
        acting_user_id=principal.id,
    )

    logger.info(f"Promotion for event {request.event_id} by {principal.id}: {result.reason}")
    return PromotionResponse(
        promoted=result.was_promoted,
        message=PROMOTION_MESSAGES.get(result.reason, result.reason),
        booking=BookingResponse.model_validate(result.promoted) if result.promoted else None,
        available_spots=result.available_spots,
    )


@router.get("/events/{event_id}/stats", response_model=EventStatsResponse)
async def get_event_stats(
    event_id: UUID,
    principal: Principal = Depends(get_booking_manager),
    booking_service: BookingService = Depends(get_booking_service),
):
    """Confirmed, waitlisted and canceled counts for an event."""
    result = await booking_service.get_event_stats(event_id, principal.tenant_id)
    return EventStatsResponse(
        event_id=result.event.id,
        event_title=result.event.title,
        counts_available=result.counts_available,
        **result.stats.to_dict(),
    )


@router.get("/events/{event_id}/bookings", response_model=List[BookingResponse])
async def list_event_bookings(
    event_id: UUID,
    principal: Principal = Depends(get_booking_manager),
    booking_service: BookingService = Depends(get_booking_service),
):
    """All bookings for an event in booking order."""
    bookings = await booking_service.list_event_bookings(
        event_id=event_id,
        tenant_id=principal.tenant_id,
        acting_user_id=principal.id,
        acting_role=principal.role,
    )
    return [BookingResponse.model_validate(booking) for booking in bookings]


@router.get("/activity/recent", response_model=List[BookingLogResponse])
async def recent_activity(
    limit: int = Query(AuditService.RECENT_ACTIVITY_LIMIT, ge=1, le=50),
    principal: Principal = Depends(get_booking_manager),
    audit_service: AuditService = Depends(get_audit_service),
):
    """Latest booking activity across the tenant."""
    entries = await audit_service.recent_activity(principal.tenant_id, limit=limit)
    return [BookingLogResponse.model_validate(entry) for entry in entries]
