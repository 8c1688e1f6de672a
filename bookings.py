"""
Consultation bookings.

A booking reserves one available schedule slot. Its lifecycle is

    pending -> confirmed -> completed
    pending | confirmed  -> cancelled

and the slot follows along: booked while the booking is open, available
again after a cancellation, completed with the booking.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import require_roles
from counselors import counselor_for_account, counselors_by_id
from database import db, create_document, find_by_id, update_by_id, serialize, to_object_id, now_utc
from schemas import BookingStatus, ConsultationBooking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/consultationbooking", tags=["bookings"])

BOOKING_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}
SLOT_STATUS_AFTER = {"cancelled": "available", "completed": "completed"}


class BookingPayload(BaseModel):
    schedule_id: str
    note: Optional[str] = None


class BookingUpdatePayload(BaseModel):
    status: Optional[BookingStatus] = None
    note: Optional[str] = None
    result: Optional[str] = None


class FeedbackPayload(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None


def get_booking_or_404(booking_id: str) -> dict:
    booking = find_by_id("consultationbooking", booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def set_slot_status(schedule_id: str, status: str):
    db["consultationschedule"].update_one({"_id": to_object_id(schedule_id)},
                                          {"$set": {"status": status, "updated_at": now_utc()}})


def with_schedules(bookings: List[dict]) -> List[dict]:
    oids = [o for o in (to_object_id(b.get("schedule_id")) for b in bookings) if o]
    schedules = {str(s["_id"]): s for s in db["consultationschedule"].find({"_id": {"$in": oids}})}
    counselors = counselors_by_id(s.get("counselor_id") for s in schedules.values())
    result = []
    for b in bookings:
        schedule = schedules.get(str(b.get("schedule_id")))
        if schedule:
            schedule = {**schedule, "counselor": counselors.get(str(schedule.get("counselor_id")))}
        result.append({**b, "schedule": schedule})
    return result


@router.post("", status_code=201)
def create_booking(payload: BookingPayload, user=Depends(require_roles("Customer"))):
    schedule = find_by_id("consultationschedule", payload.schedule_id)
    if not schedule:
        raise HTTPException(status_code=404, detail="Schedule not found")
    # conditional update so two customers cannot take the same slot
    claimed = db["consultationschedule"].update_one(
        {"_id": schedule["_id"], "status": "available"},
        {"$set": {"status": "booked", "updated_at": now_utc()}},
    )
    if claimed.modified_count == 0:
        raise HTTPException(status_code=400, detail="This slot is no longer available")
    booking = ConsultationBooking(
        customer_id=str(user["_id"]),
        schedule_id=str(schedule["_id"]),
        booking_date=schedule["start_time"],
        note=payload.note,
    )
    bid = create_document("consultationbooking", booking)
    logger.info("Booking %s created for slot %s", bid, payload.schedule_id)
    return serialize(with_schedules([find_by_id("consultationbooking", bid)])[0])


@router.get("/customer/{account_id}")
def bookings_by_customer(account_id: str, user=Depends(require_roles("Customer"))):
    if str(user["_id"]) != account_id:
        raise HTTPException(status_code=403, detail="You can only view your own bookings")
    docs = list(db["consultationbooking"].find({"customer_id": account_id}).sort("booking_date", -1))
    return serialize(with_schedules(docs))


@router.get("/counselor/{account_id}")
def bookings_by_counselor(account_id: str, user=Depends(require_roles("Counselor"))):
    profile = counselor_for_account(account_id)
    if not profile:
        return []
    slot_ids = [str(s["_id"]) for s in db["consultationschedule"].find({"counselor_id": str(profile["_id"])}, {"_id": 1})]
    docs = list(db["consultationbooking"].find({"schedule_id": {"$in": slot_ids}}).sort("booking_date", -1))
    return serialize(with_schedules(docs))


@router.get("")
def list_bookings(user=Depends(require_roles("Admin"))):
    docs = list(db["consultationbooking"].find().sort("booking_date", -1))
    return serialize(with_schedules(docs))


@router.get("/{booking_id}")
def get_booking(booking_id: str, user=Depends(require_roles("Admin", "Counselor", "Customer"))):
    return serialize(with_schedules([get_booking_or_404(booking_id)])[0])


@router.put("/{booking_id}")
def update_booking(booking_id: str, payload: BookingUpdatePayload,
                   user=Depends(require_roles("Admin", "Counselor"))):
    booking = get_booking_or_404(booking_id)
    fields = payload.model_dump(exclude_none=True)
    new_status = fields.get("status")
    current = booking.get("status", "pending")
    if new_status and new_status != current:
        if new_status not in BOOKING_TRANSITIONS.get(current, set()):
            raise HTTPException(status_code=400, detail=f"Cannot change booking from {current} to {new_status}")
        if new_status in SLOT_STATUS_AFTER:
            set_slot_status(booking["schedule_id"], SLOT_STATUS_AFTER[new_status])
        logger.info("Booking %s: %s -> %s by %s", booking_id, current, new_status, user["_id"])
    return serialize(update_by_id("consultationbooking", booking_id, fields))


@router.post("/{booking_id}/feedback")
def leave_feedback(booking_id: str, payload: FeedbackPayload, user=Depends(require_roles("Customer"))):
    booking = get_booking_or_404(booking_id)
    if booking.get("customer_id") != str(user["_id"]):
        raise HTTPException(status_code=403, detail="You can only rate your own bookings")
    if booking.get("status") != "completed":
        raise HTTPException(status_code=400, detail="Only completed consultations can be rated")
    return serialize(update_by_id("consultationbooking", booking_id, payload.model_dump(exclude_none=True)))


@router.delete("/{booking_id}")
def delete_booking(booking_id: str, user=Depends(require_roles("Admin"))):
    booking = get_booking_or_404(booking_id)
    db["consultationbooking"].delete_one({"_id": booking["_id"]})
    if booking.get("status") in ("pending", "confirmed"):
        set_slot_status(booking["schedule_id"], "available")
    return {"message": "Booking deleted successfully"}
