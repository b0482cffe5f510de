"""
Pydantic schemas for booking-related API requests and responses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.booking import BookingStatus
from ..models.booking_log import BookingAction


class BookingCreateRequest(BaseModel):
    """Schema for creating a new booking. Tenant and user come from the token."""

    model_config = ConfigDict(extra="forbid")

    event_id: UUID = Field(..., description="ID of the event to book")


class BookingUpdateRequest(BaseModel):
    """
    Schema for an administrative booking update.

    Event, user and tenant are accepted only so that attempts to change them
    are rejected with a clear error.
    """

    model_config = ConfigDict(extra="forbid")

    status: Optional[BookingStatus] = None
    event_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None


class PromoteWaitlistRequest(BaseModel):
    event_id: UUID = Field(..., description="Event whose waitlist should be promoted")


class BookingResponse(BaseModel):
    """Schema for booking responses."""

    id: UUID
    event_id: UUID
    user_id: UUID
    tenant_id: UUID
    status: BookingStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingWithEventResponse(BookingResponse):
    event_title: Optional[str] = None
    event_date: Optional[datetime] = None
    venue: Optional[str] = None


class BookingListResponse(BaseModel):
    bookings: List[BookingWithEventResponse]
    total: int


class PromotionPreview(BaseModel):
    """The waitlisted booking expected to take the freed slot."""

    booking_id: UUID
    user_id: UUID


class BookingCancelResponse(BaseModel):
    message: str
    booking: BookingResponse
    promoted_booking_info: Optional[PromotionPreview] = None


class PromotionResponse(BaseModel):
    promoted: bool
    message: str
    booking: Optional[BookingResponse] = None
    available_spots: int


class EventStatsResponse(BaseModel):
    event_id: UUID
    event_title: str
    capacity: int
    confirmed: int
    waitlisted: int
    canceled: int
    available: int
    percentage_filled: int
    counts_available: bool = True


class BookingLogResponse(BaseModel):
    id: UUID
    booking_id: UUID
    event_id: UUID
    user_id: UUID
    action: BookingAction
    note: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class DashboardEventResponse(BaseModel):
    id: UUID
    title: str
    date: datetime
    capacity: int
    confirmed: int
    waitlisted: int
    canceled: int
    available: int
    percentage_filled: int


class DashboardSummaryResponse(BaseModel):
    total_events: int
    total_confirmed: int
    total_waitlisted: int
    total_canceled: int
    total_bookings: int
    average_capacity_utilization: int


class DashboardResponse(BaseModel):
    """Organizer dashboard: upcoming events, totals and the latest activity."""

    upcoming_events: List[DashboardEventResponse]
    summary: DashboardSummaryResponse
    recent_activity: List[BookingLogResponse]
    generated_at: datetime
