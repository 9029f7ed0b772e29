from fastapi import HTTPException, status
from google.cloud.firestore import FieldFilter, SERVER_TIMESTAMP
from app.config.settings import settings
from app.models.parking import (
    Analytics,
    Booking,
    BookingCreate,
    BookingDetailsUpdate,
    ParkingCharges,
    Payment,
    Slot,
)
from app.models.user import Principal
from app.services.refresh_service import refresh_coordinator
from app.utils.analytics import (
    calculate_parking_charges,
    calculate_payment_amount,
    compute_analytics,
    derive_slots,
    slot_prices_from_design,
    slot_status_for,
)
from app.utils.documents import parse_documents
from datetime import datetime, timezone
from typing import Dict, List, Optional
import asyncio, logging

logger = logging.getLogger(__name__)


# ****************************************************
#  Reads
# ****************************************************

def fetch_bookings(db, park_id: str) -> List[Booking]:
    docs = db.collection(settings.BOOKINGS_COLLECTION) \
        .where(filter=FieldFilter("parkId", "==", park_id)) \
        .stream()
    bookings = parse_documents(docs, Booking.from_document, settings.BOOKINGS_COLLECTION)

    # newest first
    bookings.sort(key=lambda b: b.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
    return bookings


def dedupe_payments(payments: List[Payment]) -> List[Payment]:
    """
    Drop payments recorded in both collections for the same booking and slot.
    The paymentHistory copy wins over the payments copy.
    """
    unique: Dict[str, Payment] = {}
    for payment in payments:
        key = f"{payment.booking_id or payment.id}_{payment.slot_id}"
        existing = unique.get(key)
        if existing is None:
            unique[key] = payment
        elif payment.source == settings.PAYMENT_HISTORY_COLLECTION and existing.source != settings.PAYMENT_HISTORY_COLLECTION:
            unique[key] = payment
    return list(unique.values())


def fetch_payments(db, park_id: str) -> List[Payment]:
    payments = []

    # paymentHistory is the primary source, payments kept for older records
    for collection_name in (settings.PAYMENT_HISTORY_COLLECTION, settings.PAYMENTS_COLLECTION):
        try:
            docs = db.collection(collection_name) \
                .where(filter=FieldFilter("parkId", "==", park_id)) \
                .stream()
            fetched = parse_documents(
                docs,
                lambda doc_id, data, source=collection_name: Payment.from_document(doc_id, data, source),
                collection_name,
            )
            logger.info(f"Fetched {len(fetched)} payments from {collection_name}")
            payments.extend(fetched)
        except Exception as e:
            logger.error(f"Error fetching from {collection_name}: {str(e)}")

    payments = dedupe_payments(payments)
    payments.sort(key=lambda p: p.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
    return payments


def fetch_slot_prices(db, park_id: str) -> Dict[str, float]:
    try:
        design = db.collection(settings.DESIGNS_COLLECTION).document(park_id).get()
        if not design.exists:
            return {}
        return slot_prices_from_design(design.to_dict(), settings.DEFAULT_SLOT_PRICE)
    except Exception as e:
        logger.error(f"Error getting slot prices for park {park_id}: {str(e)}")
        return {}


async def load_dashboard(db, principal: Optional[Principal]) -> dict:
    """
    Bookings, payments and slot prices for one park, fetched concurrently.
    Every source is best effort: a failed fetch is logged and left empty.
    """
    if principal is None:
        logger.info("No authenticated user found, returning empty dashboard")
        return {"slots": [], "bookings": [], "payments": [], "analytics": Analytics()}

    async def load():
        loop = asyncio.get_event_loop()
        results = await asyncio.gather(
            loop.run_in_executor(None, fetch_bookings, db, principal.park_id),
            loop.run_in_executor(None, fetch_payments, db, principal.park_id),
            loop.run_in_executor(None, fetch_slot_prices, db, principal.park_id),
            return_exceptions=True,
        )

        names = ("bookings", "payments", "slot prices")
        defaults = ([], [], {})
        values = []
        for name, default, result in zip(names, defaults, results):
            if isinstance(result, Exception):
                logger.error(f"Error fetching {name} for park {principal.park_id}: {str(result)}")
                values.append(default)
            else:
                values.append(result)

        bookings, payments, prices = values
        slots = derive_slots(bookings, prices, settings.SLOT_COUNT, settings.DEFAULT_SLOT_PRICE)
        analytics = compute_analytics(slots, bookings, payments)
        logger.info(f"Dashboard for park {principal.park_id}: {analytics.occupied_slots}/{analytics.total_slots} occupied")

        return {"slots": slots, "bookings": bookings, "payments": payments, "analytics": analytics}

    return await refresh_coordinator.run(principal.park_id, "dashboard", load)


async def get_analytics(db, principal: Optional[Principal]) -> Analytics:
    return (await load_dashboard(db, principal))["analytics"]


async def get_slots(db, principal: Optional[Principal], slot_status: Optional[str] = None) -> List[Slot]:
    slots = (await load_dashboard(db, principal))["slots"]
    if slot_status:
        slots = [s for s in slots if s.status == slot_status]
    return slots


# ****************************************************
#  Writes
# ****************************************************

def get_owned_booking(db, principal: Principal, booking_id: str):
    doc_ref = db.collection(settings.BOOKINGS_COLLECTION).document(booking_id)
    doc = doc_ref.get()

    if not doc.exists:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")

    data = doc.to_dict()
    if data.get("parkId") != principal.park_id:
        logger.warning(f"Park {principal.park_id} tried to access booking {booking_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Booking does not belong to current parking lot"
        )
    return doc_ref, data


def update_booking_status(db, principal: Principal, booking_id: str, booking_status: str) -> dict:
    doc_ref, data = get_owned_booking(db, principal, booking_id)

    if data.get("status") in ("completed", "cancelled"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Booking is already {data.get('status')}"
        )

    now = datetime.now(timezone.utc)
    update_data = {
        "status": booking_status,
        "updatedAt": SERVER_TIMESTAMP,
    }
    if booking_status == "approved":
        update_data["approvedAt"] = now.isoformat()
    elif booking_status in ("completed", "cancelled"):
        update_data["checkOutTime"] = now.isoformat()

    doc_ref.update(update_data)
    logger.info(f"Booking {booking_id} set to {booking_status}")

    # the status change stands even when the payment cannot be recorded
    if booking_status == "completed":
        try:
            completed = {**data, "status": booking_status, "checkOutTime": update_data["checkOutTime"]}
            generate_payment_for_booking(db, principal, booking_id, completed)
        except Exception as e:
            logger.error(f"Error generating payment for booking {booking_id}: {str(e)}")

    refresh_coordinator.invalidate(principal.park_id)

    return {"id": booking_id, "status": booking_status}


def create_booking(db, principal: Principal, request: BookingCreate) -> dict:
    slot_number = int(request.slot_id[1:])
    if not 1 <= slot_number <= settings.SLOT_COUNT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Slot {request.slot_id} does not exist, slots are S1..S{settings.SLOT_COUNT}"
        )

    # bookings come back newest first, so the first match decides the slot
    latest = next((b for b in fetch_bookings(db, principal.park_id) if b.slot_id == request.slot_id), None)
    if latest is not None and slot_status_for(latest.status) != "available":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Slot {request.slot_id} is already {slot_status_for(latest.status)}"
        )

    amount = calculate_payment_amount(request.duration, settings.BASE_RATE_PER_HOUR)
    booking_doc = {
        "slotId": request.slot_id,
        "customerName": request.customer_name,
        "phoneNumber": request.phone_number,
        "vehicleNumber": request.vehicle_number,
        "vehicleType": request.vehicle_type,
        "duration": request.duration,
        "checkInTime": datetime.now(timezone.utc).isoformat(),
        "checkOutTime": None,
        "amount": amount,
        "status": "pending",
        "notes": request.notes,
        "userEmail": principal.email,
        "parkId": principal.park_id,
        "uniqueSlotId": f"{principal.park_id}_{request.slot_id}",
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
    }

    _, doc_ref = db.collection(settings.BOOKINGS_COLLECTION).add(booking_doc)
    refresh_coordinator.invalidate(principal.park_id)
    logger.info(f"Booking {doc_ref.id} created for slot {request.slot_id}")

    return {"id": doc_ref.id, "status": "pending", "amount": amount}


BOOKING_FIELDS = {
    "customer_name": "customerName",
    "phone_number": "phoneNumber",
    "vehicle_number": "vehicleNumber",
    "vehicle_type": "vehicleType",
    "duration": "duration",
    "notes": "notes",
}


def update_booking_details(db, principal: Principal, booking_id: str, update: BookingDetailsUpdate) -> dict:
    doc_ref, _ = get_owned_booking(db, principal, booking_id)

    changes = update.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    update_data = {BOOKING_FIELDS[field]: value for field, value in changes.items()}
    if "duration" in changes:
        update_data["amount"] = calculate_payment_amount(changes["duration"], settings.BASE_RATE_PER_HOUR)
    update_data["updatedAt"] = SERVER_TIMESTAMP

    doc_ref.update(update_data)
    refresh_coordinator.invalidate(principal.park_id)
    logger.info(f"Booking {booking_id} updated: {sorted(changes)}")

    return {"id": booking_id, "updated": sorted(changes)}


def delete_booking(db, principal: Principal, booking_id: str) -> dict:
    doc_ref, _ = get_owned_booking(db, principal, booking_id)
    doc_ref.delete()
    refresh_coordinator.invalidate(principal.park_id)
    logger.info(f"Deleted booking {booking_id}")
    return {"message": "Booking deleted successfully", "id": booking_id}


def payment_exists_for_booking(db, park_id: str, booking_id: str) -> bool:
    for collection_name in (settings.PAYMENT_HISTORY_COLLECTION, settings.PAYMENTS_COLLECTION):
        docs = db.collection(collection_name) \
            .where(filter=FieldFilter("parkId", "==", park_id)) \
            .where(filter=FieldFilter("bookingId", "==", booking_id)) \
            .get()
        if docs:
            return True
    return False


def generate_payment_for_booking(db, principal: Principal, booking_id: str, data: dict) -> Optional[str]:
    """
    Record a cash payment for a completed booking.
    Returns the new payment id, or None when the booking was already paid.
    """
    if payment_exists_for_booking(db, principal.park_id, booking_id):
        logger.info(f"Payment already exists for booking {booking_id}")
        return None

    booking = Booking.from_document(booking_id, data)
    payment_doc = {
        "driverName": booking.customer_name,
        "vehicleType": booking.vehicle_type,
        "vehicleNumber": booking.vehicle_number,
        "slotId": booking.slot_id,
        "checkInTime": data.get("checkInTime"),
        "checkOutTime": data.get("checkOutTime"),
        "duration": booking.duration,
        "paymentMethod": "Cash",
        "status": "completed",
        "date": datetime.now(timezone.utc).date().isoformat(),
        "notes": f"Payment for booking #{booking_id}",
        "bookingId": booking_id,
        "userEmail": principal.email,
        "parkId": principal.park_id,
        "createdAt": SERVER_TIMESTAMP,
        "amount": calculate_payment_amount(booking.duration, settings.BASE_RATE_PER_HOUR),
    }

    _, doc_ref = db.collection(settings.PAYMENTS_COLLECTION).add(payment_doc)
    logger.info(f"Payment {doc_ref.id} generated from booking {booking_id}")
    return doc_ref.id


def get_booking_charges(db, principal: Principal, booking_id: str, now: Optional[datetime] = None) -> ParkingCharges:
    _, data = get_owned_booking(db, principal, booking_id)
    booking = Booking.from_document(booking_id, data)

    return calculate_parking_charges(
        approved_at=booking.approved_at,
        requested_hours=booking.duration or 1,
        base_rate=settings.BASE_RATE_PER_HOUR,
        overtime_rate=settings.OVERTIME_RATE_PER_HOUR,
        check_out=booking.check_out_time,
        now=now,
    )
