from app.models.parking import Analytics, Booking, ParkingCharges, Payment, Slot
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)

OCCUPIED_BOOKING_STATUSES = ("approved", "active")
RESERVED_BOOKING_STATUSES = ("pending",)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def percentage(part: int, total: int) -> int:
    if total == 0:
        return 0
    return round(part / total * 100)


def compute_analytics(slots: Sequence[Slot], bookings: Sequence[Booking], payments: Sequence[Payment]) -> Analytics:
    """Summary counters for the dashboard cards"""
    total_slots = len(slots)
    occupied = sum(1 for s in slots if s.status == "occupied")
    available = sum(1 for s in slots if s.status == "available")
    reserved = sum(1 for s in slots if s.status == "reserved")

    revenue = sum(p.amount for p in payments if p.status == "completed")

    return Analytics(
        total_slots=total_slots,
        occupied_slots=occupied,
        available_slots=available,
        reserved_slots=reserved,
        revenue=revenue,
        avg_occupancy=percentage(occupied, total_slots),
        reserved_occupancy=percentage(occupied + reserved, total_slots),
        total_bookings=len(bookings),
        active_bookings=sum(1 for b in bookings if b.status in OCCUPIED_BOOKING_STATUSES),
        pending_bookings=sum(1 for b in bookings if b.status in RESERVED_BOOKING_STATUSES),
    )


def slot_status_for(booking_status: str) -> str:
    if booking_status in OCCUPIED_BOOKING_STATUSES:
        return "occupied"
    if booking_status in RESERVED_BOOKING_STATUSES:
        return "reserved"
    return "available"


def slot_prices_from_design(design: Optional[dict], default_price: float = 5.00) -> Dict[str, float]:
    """Map slot number -> price from a parking design document's elements."""
    prices = {}
    if not design:
        return prices

    for element in design.get("elements") or []:
        meta = element.get("meta") or {}
        if element.get("type") == "slot" and meta.get("slotNumber"):
            prices[str(meta["slotNumber"])] = meta.get("price") or default_price
    return prices


def derive_slots(
    bookings: Sequence[Booking],
    prices: Optional[Dict[str, float]] = None,
    slot_count: int = 50,
    default_price: float = 5.00,
) -> List[Slot]:
    """
    Build slots S1..S<slot_count> with statuses taken from bookings.

    The newest booking on a slot (by created_at) decides its status, so a
    completed booking followed by a pending one leaves the slot reserved.
    """
    prices = prices or {}

    latest: Dict[str, Booking] = {}
    for booking in bookings:
        if not booking.slot_id:
            continue
        current = latest.get(booking.slot_id)
        if current is None or (booking.created_at or _OLDEST) >= (current.created_at or _OLDEST):
            latest[booking.slot_id] = booking

    slots = []
    for i in range(1, slot_count + 1):
        slot_id = f"S{i}"
        price = prices.get(slot_id, default_price)
        booking = latest.get(slot_id)

        if booking is None:
            slots.append(Slot(id=slot_id, status="available", price=price))
            continue

        slots.append(Slot(
            id=slot_id,
            status=slot_status_for(booking.status),
            price=price,
            booking_id=booking.id,
            customer_name=booking.customer_name,
            vehicle_number=booking.vehicle_number,
            check_in_time=booking.check_in_time,
        ))

    unknown = set(latest) - {s.id for s in slots}
    if unknown:
        logger.warning(f"Bookings reference slots outside S1..S{slot_count}: {sorted(unknown)}")

    return slots


def calculate_parking_charges(
    approved_at: Optional[datetime],
    requested_hours: float = 1,
    base_rate: float = 200,
    overtime_rate: float = 300,
    check_out: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> ParkingCharges:
    """
    Charges for a booking: the full requested duration at base rate plus any
    time beyond it at the overtime rate.
    """
    if approved_at is None:
        actual_hours = 0.0
    else:
        end = check_out or now or datetime.now(timezone.utc)
        actual_hours = (end - approved_at).total_seconds() / 3600

    regular_amount = requested_hours * base_rate
    overtime_hours = 0.0
    overtime_amount = 0.0

    is_overtime = actual_hours > requested_hours
    if is_overtime:
        overtime_hours = actual_hours - requested_hours
        overtime_amount = overtime_hours * overtime_rate

    return ParkingCharges(
        total_amount=round(regular_amount + overtime_amount, 2),
        is_overtime=is_overtime,
        overtime_hours=round(overtime_hours, 2),
        regular_hours=requested_hours,
        actual_hours=round(actual_hours, 2),
        regular_amount=round(regular_amount, 2),
        overtime_amount=round(overtime_amount, 2),
        base_rate=base_rate,
        overtime_rate=overtime_rate,
    )


def calculate_payment_amount(duration: Optional[float], rate_per_hour: float = 200) -> float:
    """Flat charge for a booking: requested hours at the hourly rate."""
    return round((duration or 0) * rate_per_hour, 2)
