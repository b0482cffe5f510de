"""
FastAPI routes for booking creation, cancellation and listing.

Routes stay thin: engine errors propagate to ErrorHandlerMiddleware, which
maps them to HTTP responses.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..models.booking import Booking, BookingStatus
from ..schemas.booking import (
    BookingCancelResponse,
    BookingCreateRequest,
    BookingListResponse,
    BookingLogResponse,
    BookingResponse,
    BookingUpdateRequest,
    BookingWithEventResponse,
    PromotionPreview,
)
from ..services.audit_service import AuditService
from ..services.booking_service import BookingService
from ..utils.auth import Principal
from ..utils.dependencies import (
    get_audit_service,
    get_booking_manager,
    get_booking_service,
    get_current_principal,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])


def _booking_with_event(booking: Booking) -> BookingWithEventResponse:
    event = booking.event
    return BookingWithEventResponse(
        id=booking.id,
        event_id=booking.event_id,
        user_id=booking.user_id,
        tenant_id=booking.tenant_id,
        status=booking.status,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        event_title=event.title if event else None,
        event_date=event.date if event else None,
        venue=event.venue if event else None,
    )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreateRequest,
    principal: Principal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
):
    """
    Book an event for the current user.

    The booking is confirmed while the event has a free slot and
    waitlisted otherwise.
    """
    booking = await booking_service.create_booking(
        user_id=principal.id,
        event_id=request.event_id,
        tenant_id=principal.tenant_id,
    )
    return BookingResponse.model_validate(booking)


@router.get("/mine", response_model=BookingListResponse)
async def list_my_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    principal: Principal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
):
    """List the current user's bookings, newest first."""
    bookings = await booking_service.list_user_bookings(
        user_id=principal.id,
        tenant_id=principal.tenant_id,
        status=status_filter,
    )
    return BookingListResponse(
        bookings=[_booking_with_event(booking) for booking in bookings],
        total=len(bookings),
    )


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: UUID,
    principal: Principal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
):
    """
    Cancel one of the current user's bookings.

    When a confirmed booking is canceled and someone is waitlisted, the
    response names the booking expected to be promoted.
    """
    result = await booking_service.cancel_booking(
        booking_id=booking_id,
        user_id=principal.id,
        tenant_id=principal.tenant_id,
    )

    preview = None
    message = "Booking canceled successfully."
    if result.promotion_preview is not None:
        preview = PromotionPreview(
            booking_id=result.promotion_preview.id,
            user_id=result.promotion_preview.user_id,
        )
        message += " A waitlisted attendee will be promoted to confirmed."

    return BookingCancelResponse(
        message=message,
        booking=BookingResponse.model_validate(result.booking),
        promoted_booking_info=preview,
    )


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: UUID,
    request: BookingUpdateRequest,
    principal: Principal = Depends(get_booking_manager),
    booking_service: BookingService = Depends(get_booking_service),
):
    """Administrative status change for a booking (organizers and admins)."""
    booking = await booking_service.update_booking(
        booking_id=booking_id,
        patch=request.model_dump(exclude_unset=True),
        tenant_id=principal.tenant_id,
        acting_role=principal.role,
        acting_user_id=principal.id,
    )
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/history", response_model=List[BookingLogResponse])
async def get_booking_history(
    booking_id: UUID,
    principal: Principal = Depends(get_current_principal),
    audit_service: AuditService = Depends(get_audit_service),
):
    """Audit trail for a booking, oldest entry first."""
    entries = await audit_service.booking_history(
        booking_id=booking_id,
        tenant_id=principal.tenant_id,
        acting_user_id=principal.id,
        acting_role=principal.role,
    )
    return [BookingLogResponse.model_validate(entry) for entry in entries]
