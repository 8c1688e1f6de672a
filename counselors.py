from typing import Dict, Iterable, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from accounts import accounts_by_id, author_summary
from auth import get_current_user, require_roles
from database import db, create_document, find_by_id, serialize, to_object_id
from schemas import Counselor

router = APIRouter(prefix="/api/counselors", tags=["counselors"])


class CounselorPayload(BaseModel):
    account_id: str
    bio: Optional[str] = None
    specialty: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0, le=80)


def counselors_by_id(counselor_ids: Iterable) -> Dict[str, dict]:
    """Counselor profiles keyed by id, each with its account summary under ``account``."""
    oids = [o for o in (to_object_id(c) for c in set(map(str, counselor_ids))) if o]
    if not oids:
        return {}
    profiles = list(db["counselor"].find({"_id": {"$in": oids}}))
    accounts = accounts_by_id(p.get("account_id") for p in profiles)
    return {str(p["_id"]): {**p, "account": author_summary(accounts.get(str(p.get("account_id"))))}
            for p in profiles}


def counselor_for_account(account_id: str) -> Optional[dict]:
    return db["counselor"].find_one({"account_id": account_id})


@router.get("")
def list_counselors():
    profiles = list(db["counselor"].find())
    joined = counselors_by_id(p["_id"] for p in profiles)
    return [serialize(joined[str(p["_id"])]) for p in profiles]


@router.get("/{counselor_id}")
def get_counselor(counselor_id: str):
    joined = counselors_by_id([counselor_id])
    if not joined:
        raise HTTPException(status_code=404, detail="Counselor not found")
    return serialize(next(iter(joined.values())))


@router.post("", status_code=201)
def create_counselor(payload: CounselorPayload, user=Depends(require_roles("Admin"))):
    account = find_by_id("account", payload.account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    if account.get("role") != "Counselor":
        raise HTTPException(status_code=400, detail="Account does not have the Counselor role")
    account_id = str(account["_id"])
    if counselor_for_account(account_id):
        raise HTTPException(status_code=400, detail="Counselor profile already exists")
    cid = create_document("counselor", Counselor(**{**payload.model_dump(), "account_id": account_id}))
    return serialize(counselors_by_id([cid])[cid])


@router.get("/by-account/{account_id}")
def get_counselor_by_account(account_id: str, user=Depends(get_current_user)):
    profile = counselor_for_account(account_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Counselor not found")
    return serialize(counselors_by_id([profile["_id"]])[str(profile["_id"])])
