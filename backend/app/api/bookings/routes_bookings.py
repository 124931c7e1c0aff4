"""Booking store routes."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.api.deps import get_current_user, get_services
from app.api.swaps.swap_models import AuctionAvailabilityResponse
from app.domain.bookings.models import Booking, BookingStatus, BookingType
from app.domain.common.types import require_uuid, to_naive_utc
from app.domain.users.models import User
from app.services.container import SwapServices

router = APIRouter()


class BookingCreateRequest(BaseModel):
    type: BookingType
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    city: str
    country: str
    check_in_date: datetime
    check_out_date: datetime
    original_price: float = Field(ge=0)
    swap_value: float = Field(ge=0)


class BookingResponse(BaseModel):
    id: str
    owner_id: str
    type: BookingType
    title: str
    description: Optional[str] = None
    city: str
    country: str
    check_in_date: datetime
    check_out_date: datetime
    original_price: float
    swap_value: float
    status: BookingStatus

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            owner_id=booking.owner_id,
            type=booking.type,
            title=booking.title,
            description=booking.description,
            city=booking.city,
            country=booking.country,
            check_in_date=booking.check_in_date,
            check_out_date=booking.check_out_date,
            original_price=booking.original_price,
            swap_value=booking.swap_value,
            status=booking.status,
        )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreateRequest,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    booking = await services.bookings.create_booking(
        owner_id=current_user.id,
        type=request.type,
        title=request.title,
        city=request.city,
        country=request.country,
        check_in_date=to_naive_utc(request.check_in_date),
        check_out_date=to_naive_utc(request.check_out_date),
        original_price=request.original_price,
        swap_value=request.swap_value,
        description=request.description,
    )
    return BookingResponse.from_entity(booking)


@router.get("", response_model=List[BookingResponse])
async def list_my_bookings(
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    bookings = await services.bookings.list_user_bookings(current_user.id)
    return [BookingResponse.from_entity(b) for b in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    booking = await services.bookings.get_booking(require_uuid(booking_id, "booking_id"))
    return BookingResponse.from_entity(booking)


@router.get("/{booking_id}/auction-availability", response_model=AuctionAvailabilityResponse)
async def auction_availability(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    """Whether the booking may be listed in auction mode, and the latest allowed end date."""
    availability = await services.auctions.check_auction_availability(require_uuid(booking_id, "booking_id"))
    return AuctionAvailabilityResponse.from_entity(availability)
