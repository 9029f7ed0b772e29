from fastapi import APIRouter, Depends, HTTPException, Query
from app.database.connection import get_db
from app.models.parking import (
    Analytics,
    Booking,
    BookingCreate,
    BookingDetailsUpdate,
    BookingStatusUpdate,
    ParkingCharges,
    Payment,
    Slot,
    SlotStatus,
)
from app.models.user import Principal
from app.routes.firebase_auth import get_current_principal, get_optional_principal
from app.services import parking_service
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/analytics", response_model=Analytics)
async def get_dashboard_analytics(
    db=Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal)
):
    """Slot counters, revenue and occupancy for the signed-in park"""
    return await parking_service.get_analytics(db, principal)


@router.get("/slots", response_model=List[Slot])
async def get_parking_slots(
    slot_status: Optional[SlotStatus] = Query(None, alias="status"),
    db=Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal)
):
    return await parking_service.get_slots(db, principal, slot_status)


@router.get("/bookings", response_model=List[Booking])
async def get_bookings(
    booking_status: Optional[str] = Query(None, alias="status"),
    db=Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal)
):
    bookings = (await parking_service.load_dashboard(db, principal))["bookings"]
    if booking_status:
        bookings = [b for b in bookings if b.status == booking_status]
    return bookings


@router.get("/payments", response_model=List[Payment])
async def get_payments(
    db=Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal)
):
    return (await parking_service.load_dashboard(db, principal))["payments"]


@router.post("/bookings", status_code=201)
def create_booking(
    booking: BookingCreate,
    db=Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        return parking_service.create_booking(db, principal, booking)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating booking: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/bookings/{booking_id}")
def update_booking_details(
    booking_id: str,
    booking_update: BookingDetailsUpdate,
    db=Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        return parking_service.update_booking_details(db, principal, booking_id, booking_update)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating booking {booking_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/bookings/{booking_id}")
def delete_booking(
    booking_id: str,
    db=Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        return parking_service.delete_booking(db, principal, booking_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting booking {booking_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/bookings/{booking_id}/status")
def update_booking_status(
    booking_id: str,
    status_update: BookingStatusUpdate,
    db=Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        return parking_service.update_booking_status(db, principal, booking_id, status_update.status)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating booking {booking_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/bookings/{booking_id}/charges", response_model=ParkingCharges)
def get_booking_charges(
    booking_id: str,
    db=Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    return parking_service.get_booking_charges(db, principal, booking_id)
