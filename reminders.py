from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from auth import acting_account_id, get_current_user
from database import db, create_document, find_by_id, update_by_id, delete_by_id, serialize, to_datetime
from schemas import Reminder

router = APIRouter(prefix="/api/reminders", tags=["reminders"])


class ReminderPayload(BaseModel):
    type: str
    date: datetime
    message: Optional[str] = None
    customer_id: Optional[str] = None


class ReminderUpdatePayload(BaseModel):
    type: Optional[str] = None
    date: Optional[datetime] = None
    message: Optional[str] = None
    is_sent: Optional[bool] = None


@router.post("", status_code=201)
def create_reminder(payload: ReminderPayload, user=Depends(get_current_user)):
    reminder = Reminder(
        customer_id=acting_account_id(payload.customer_id, user),
        type=payload.type,
        date=to_datetime(payload.date),
        message=payload.message,
    ).model_dump()
    rid = create_document("reminder", reminder)
    return serialize(find_by_id("reminder", rid))


def get_owned_reminder(reminder_id: str, user: dict) -> dict:
    reminder = find_by_id("reminder", reminder_id)
    if not reminder:
        raise HTTPException(status_code=404, detail="Reminder not found")
    acting_account_id(reminder.get("customer_id"), user)
    return reminder


@router.get("/by-customer/{customer_id}")
def reminders_by_customer(customer_id: str, user=Depends(get_current_user)):
    acting_account_id(customer_id, user)
    return [serialize(r) for r in db["reminder"].find({"customer_id": customer_id}).sort("date", 1)]


@router.get("/by-id/{reminder_id}")
def get_reminder(reminder_id: str, user=Depends(get_current_user)):
    return serialize(get_owned_reminder(reminder_id, user))


@router.put("/by-id/{reminder_id}")
def update_reminder(reminder_id: str, payload: ReminderUpdatePayload, user=Depends(get_current_user)):
    reminder = get_owned_reminder(reminder_id, user)
    fields = payload.model_dump(exclude_none=True)
    if "date" in fields:
        fields["date"] = to_datetime(fields["date"])
    return serialize(update_by_id("reminder", reminder["_id"], fields))


@router.delete("/by-id/{reminder_id}")
def delete_reminder(reminder_id: str, user=Depends(get_current_user)):
    reminder = get_owned_reminder(reminder_id, user)
    delete_by_id("reminder", reminder["_id"])
    return {"message": "Deleted successfully"}
