import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import require_roles
from config import APP_TIMEZONE
from counselors import counselor_for_account, counselors_by_id
from database import db, create_document, find_by_id, update_by_id, delete_by_id, serialize
from schemas import ConsultationSchedule, ScheduleStatus
from slot_matcher import InvalidSlotQuery, day_window, localize, match_available_counselors, slot_window

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schedules", tags=["schedules"])


class SchedulePayload(BaseModel):
    counselor_id: str
    start_time: datetime
    end_time: datetime
    price: float = Field(..., ge=0)
    status: ScheduleStatus = "available"
    note: Optional[str] = None


class ScheduleUpdatePayload(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    price: Optional[float] = Field(None, ge=0)
    status: Optional[ScheduleStatus] = None
    note: Optional[str] = None


def with_counselors(schedules: List[dict]) -> List[dict]:
    joined = counselors_by_id(s.get("counselor_id") for s in schedules)
    return [{**s, "counselor": joined.get(str(s.get("counselor_id")))} for s in schedules]


@router.get("/filter")
def schedules_by_counselor_and_date(counselor_id: Optional[str] = None, date: Optional[str] = None,
                                    user=Depends(require_roles("Customer", "Counselor", "Admin"))):
    if not counselor_id or not date:
        raise HTTPException(status_code=400, detail="Missing counselor_id or date")
    try:
        start, end = day_window(date, APP_TIMEZONE)
    except InvalidSlotQuery as e:
        raise HTTPException(status_code=400, detail=str(e))
    docs = list(db["consultationschedule"].find(
        {"counselor_id": counselor_id, "start_time": {"$gte": start, "$lt": end}}).sort("start_time", 1))
    return serialize(with_counselors(docs))


@router.get("/available-counselors")
def available_counselors(date: Optional[str] = None, start_time: Optional[str] = None,
                         end_time: Optional[str] = None,
                         user=Depends(require_roles("Customer", "Admin"))):
    try:
        start, end = slot_window(date, start_time, end_time, APP_TIMEZONE)
    except InvalidSlotQuery as e:
        raise HTTPException(status_code=400, detail=str(e))
    docs = list(db["consultationschedule"].find(
        {"status": "available", "start_time": {"$gte": start, "$lt": end}}).sort("start_time", 1))
    return serialize(match_available_counselors(with_counselors(docs), start, end))


@router.get("")
def list_schedules(user=Depends(require_roles("Admin", "Counselor"))):
    docs = list(db["consultationschedule"].find().sort("start_time", 1))
    return serialize(with_counselors(docs))


@router.get("/by-account/{account_id}")
def schedules_by_account(account_id: str, user=Depends(require_roles("Admin", "Counselor"))):
    profile = counselor_for_account(account_id)
    if not profile:
        return []
    docs = list(db["consultationschedule"].find({"counselor_id": str(profile["_id"])}).sort("start_time", 1))
    return serialize(with_counselors(docs))


@router.post("", status_code=201)
def create_schedule(payload: SchedulePayload, user=Depends(require_roles("Admin"))):
    counselor = find_by_id("counselor", payload.counselor_id)
    if not counselor:
        raise HTTPException(status_code=404, detail="Counselor not found")
    start = localize(payload.start_time, APP_TIMEZONE)
    end = localize(payload.end_time, APP_TIMEZONE)
    if end <= start:
        raise HTTPException(status_code=400, detail="end_time must be after start_time")
    data = payload.model_dump()
    data.update(counselor_id=str(counselor["_id"]), start_time=start, end_time=end)
    sid = create_document("consultationschedule", ConsultationSchedule(**data))
    return serialize(find_by_id("consultationschedule", sid))


@router.put("/{schedule_id}")
def update_schedule(schedule_id: str, payload: ScheduleUpdatePayload,
                    user=Depends(require_roles("Admin", "Customer"))):
    fields = payload.model_dump(exclude_none=True)
    for key in ("start_time", "end_time"):
        if key in fields:
            fields[key] = localize(fields[key], APP_TIMEZONE)
    schedule = update_by_id("consultationschedule", schedule_id, fields)
    if not schedule:
        raise HTTPException(status_code=404, detail="Schedule not found")
    if "status" in fields:
        logger.info("Schedule %s set to %s by %s", schedule_id, fields["status"], user["_id"])
    return serialize(schedule)


@router.delete("/{schedule_id}")
def delete_schedule(schedule_id: str, user=Depends(require_roles("Admin"))):
    if delete_by_id("consultationschedule", schedule_id) is None:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return {"message": "Schedule deleted successfully"}
