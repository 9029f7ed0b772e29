from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional
from datetime import datetime
from app.utils.timestamps import to_instant

SlotStatus = Literal["available", "occupied", "reserved"]


class Slot(BaseModel):
    id: str
    status: SlotStatus = "available"
    price: float = 5.00
    booking_id: Optional[str] = None
    customer_name: Optional[str] = None
    vehicle_number: Optional[str] = None
    check_in_time: Optional[datetime] = None


class Booking(BaseModel):
    # phone numbers and slot ids are sometimes stored as numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    slot_id: Optional[str] = None
    customer_name: Optional[str] = None
    phone_number: Optional[str] = None
    vehicle_number: Optional[str] = None
    vehicle_type: Optional[str] = None
    duration: Optional[float] = None
    amount: Optional[float] = None
    status: str = "pending"
    park_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    approved_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", "check_in_time", "check_out_time", "approved_at", mode="before")
    @classmethod
    def normalize_timestamp(cls, value):
        return to_instant(value)

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "Booking":
        return cls(
            id=doc_id,
            slot_id=data.get("slotId"),
            customer_name=data.get("customerName"),
            phone_number=data.get("phoneNumber"),
            vehicle_number=data.get("vehicleNumber"),
            vehicle_type=data.get("vehicleType"),
            duration=data.get("duration"),
            amount=data.get("amount"),
            status=data.get("status") or "pending",
            park_id=data.get("parkId"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            check_in_time=data.get("checkInTime"),
            check_out_time=data.get("checkOutTime"),
            approved_at=data.get("approvedAt"),
        )


class Payment(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    amount: float = 0.0
    status: str = "pending"
    booking_id: Optional[str] = None
    slot_id: Optional[str] = None
    source: str = "payments"
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def normalize_timestamp(cls, value):
        return to_instant(value)

    @classmethod
    def from_document(cls, doc_id: str, data: dict, source: str) -> "Payment":
        return cls(
            id=doc_id,
            amount=data.get("amount") or 0.0,
            status=data.get("status") or "pending",
            booking_id=data.get("bookingId"),
            slot_id=data.get("slotId"),
            source=source,
            created_at=data.get("createdAt"),
        )


class Analytics(BaseModel):
    total_slots: int = 0
    occupied_slots: int = 0
    available_slots: int = 0
    reserved_slots: int = 0
    revenue: float = 0.0
    avg_occupancy: int = 0
    reserved_occupancy: int = 0
    total_bookings: int = 0
    active_bookings: int = 0
    pending_bookings: int = 0


class ParkingCharges(BaseModel):
    total_amount: float
    is_overtime: bool
    overtime_hours: float
    regular_hours: float
    actual_hours: float
    regular_amount: float
    overtime_amount: float
    base_rate: float
    overtime_rate: float


class BookingStatusUpdate(BaseModel):
    status: Literal["approved", "active", "completed", "cancelled"]


class BookingCreate(BaseModel):
    slot_id: str = Field(..., pattern=r"^S\d+$")
    customer_name: str = Field(..., min_length=1)
    phone_number: str = ""
    vehicle_number: str = Field(..., min_length=1)
    vehicle_type: str = "car"
    duration: float = Field(..., gt=0)
    notes: str = ""


class BookingDetailsUpdate(BaseModel):
    """Only the fields present in the request body are written."""
    customer_name: Optional[str] = Field(None, min_length=1)
    phone_number: Optional[str] = None
    vehicle_number: Optional[str] = Field(None, min_length=1)
    vehicle_type: Optional[str] = None
    duration: Optional[float] = Field(None, gt=0)
    notes: Optional[str] = None
