import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from pymongo.errors import PyMongoError

from auth import acting_account_id, get_current_user
from cycle_predictor import InvalidPeriodDays, cycle_reminders, predict_cycle
from database import db, create_document, find_by_id, update_by_id, delete_by_id, serialize, to_datetime, to_object_id
from schemas import Cycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cycles", tags=["cycles"])

CALENDAR_FIELDS = ("period_days", "fertile_window", "ovulation_date")


class CyclePayload(BaseModel):
    period_days: List[date]
    notes: Optional[str] = None
    customer_id: Optional[str] = None


class CycleUpdatePayload(BaseModel):
    period_days: Optional[List[date]] = None
    notes: Optional[str] = None
    is_predicted: Optional[bool] = None


def derived_fields(period_days: List[date]) -> dict:
    try:
        prediction = predict_cycle(period_days)
    except InvalidPeriodDays as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "period_days": [to_datetime(d) for d in period_days],
        "ovulation_date": to_datetime(prediction.ovulation_date),
        "fertile_window": [to_datetime(d) for d in prediction.fertile_window],
    }


def present_cycle(cycle: dict) -> dict:
    item = serialize(cycle)
    # calendar days are exposed as plain dates
    for field in CALENDAR_FIELDS:
        value = item.get(field)
        if isinstance(value, list):
            item[field] = [v[:10] for v in value]
        elif isinstance(value, str):
            item[field] = value[:10]
    return item


def insert_cycle_with_reminders(cycle: dict) -> dict:
    """Insert the cycle and its two reminders, undoing the partial write on failure."""
    cycle_id = create_document("cycle", cycle)
    reminder_ids = []
    try:
        for reminder in cycle_reminders(cycle["customer_id"], cycle["period_days"], cycle["ovulation_date"].date()):
            reminder["date"] = to_datetime(reminder["date"])
            reminder_ids.append(create_document("reminder", reminder))
    except PyMongoError:
        logger.exception("Reminder creation failed for cycle %s, rolling back", cycle_id)
        if reminder_ids:
            db["reminder"].delete_many({"_id": {"$in": [to_object_id(i) for i in reminder_ids]}})
        db["cycle"].delete_one({"_id": to_object_id(cycle_id)})
        raise
    logger.info("Created cycle %s with reminders %s", cycle_id, reminder_ids)
    return db["cycle"].find_one({"_id": to_object_id(cycle_id)})


def get_owned_cycle(cycle_id: str, user: dict) -> dict:
    cycle = find_by_id("cycle", cycle_id)
    if not cycle:
        raise HTTPException(status_code=404, detail="Cycle not found")
    acting_account_id(cycle.get("customer_id"), user)
    return cycle


@router.post("", status_code=201)
def create_cycle(payload: CyclePayload, user=Depends(get_current_user)):
    customer_id = acting_account_id(payload.customer_id, user)
    cycle = Cycle(customer_id=customer_id, notes=payload.notes, is_predicted=False,
                  **derived_fields(payload.period_days)).model_dump()
    return present_cycle(insert_cycle_with_reminders(cycle))


@router.get("/by-customer/{customer_id}")
def cycles_by_customer(customer_id: str, user=Depends(get_current_user)):
    acting_account_id(customer_id, user)
    docs = db["cycle"].find({"customer_id": customer_id}).sort("created_at", -1)
    return [present_cycle(d) for d in docs]


@router.get("/by-id/{cycle_id}")
def get_cycle(cycle_id: str, user=Depends(get_current_user)):
    return present_cycle(get_owned_cycle(cycle_id, user))


@router.put("/by-id/{cycle_id}")
def update_cycle(cycle_id: str, payload: CycleUpdatePayload, user=Depends(get_current_user)):
    cycle = get_owned_cycle(cycle_id, user)
    fields = payload.model_dump(exclude_none=True, exclude={"period_days"})
    if payload.period_days is not None:
        # derived dates are replaced wholesale, never merged
        fields.update(derived_fields(payload.period_days))
    return present_cycle(update_by_id("cycle", cycle["_id"], fields))


@router.delete("/by-id/{cycle_id}")
def delete_cycle(cycle_id: str, user=Depends(get_current_user)):
    cycle = get_owned_cycle(cycle_id, user)
    return {"deleted": delete_by_id("cycle", cycle["_id"]) is not None}
