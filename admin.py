import logging
import re
from datetime import timedelta
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from accounts import email_taken, get_account_or_404, new_account, set_active
from auth import require_roles
from database import db, delete_by_id, now_utc, pagination, serialize, update_by_id
from schemas import ROLES, Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_roles("Admin"))])


class UserCreatePayload(BaseModel):
    name: str
    email: str
    password: str
    role: Role = "Customer"
    is_active: bool = True


class UserUpdatePayload(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class RolePayload(BaseModel):
    role: str


def user_query(search: str, role: Optional[str], status: Optional[str]) -> dict:
    query = {}
    if search:
        pattern = re.escape(search)
        query["$or"] = [{"name": {"$regex": pattern, "$options": "i"}},
                        {"email": {"$regex": pattern, "$options": "i"}}]
    if role and role != "all":
        query["role"] = role
    if status == "active":
        query["is_active"] = True
    elif status == "inactive":
        query["is_active"] = False
    return query


@router.get("/users")
def list_users(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100), search: str = "",
               role: Optional[str] = None, status: Optional[Literal["active", "inactive", "all"]] = None):
    query = user_query(search, role, status)
    total = db["account"].count_documents(query)
    docs = db["account"].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    return {"users": [serialize(d) for d in docs], "pagination": pagination(total, page, limit)}


@router.get("/users/{user_id}")
def get_user(user_id: str):
    account = serialize(get_account_or_404(user_id))
    account["posts_count"] = db["post"].count_documents({"account_id": user_id})
    account["comments_count"] = db["comment"].count_documents({"account_id": user_id})
    return account


@router.post("/users", status_code=201)
def create_user(payload: UserCreatePayload):
    email = payload.email.strip().lower()
    if email_taken(email):
        raise HTTPException(status_code=400, detail="Email already exists")
    account = new_account(payload.name, email, payload.password, payload.role)
    if not payload.is_active:
        account = update_by_id("account", account["_id"], {"is_active": False})
    return serialize(account)


@router.put("/users/{user_id}")
def update_user(user_id: str, payload: UserUpdatePayload):
    # passwords are changed through the account endpoint only
    account = get_account_or_404(user_id)
    fields = payload.model_dump(exclude_none=True)
    if "email" in fields:
        fields["email"] = fields["email"].strip().lower()
        if email_taken(fields["email"], exclude_id=account["_id"]):
            raise HTTPException(status_code=400, detail="Email already exists")
    return serialize(update_by_id("account", user_id, fields))


@router.delete("/users/{user_id}")
def delete_user(user_id: str):
    if delete_by_id("account", user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Deleted account %s", user_id)
    return {"message": "User deleted successfully"}


@router.patch("/users/{user_id}/activate")
def activate_user(user_id: str):
    return set_active(user_id, True)


@router.patch("/users/{user_id}/deactivate")
def deactivate_user(user_id: str):
    return set_active(user_id, False)


@router.patch("/users/{user_id}/change-role")
def change_role(user_id: str, payload: RolePayload):
    if payload.role not in ROLES:
        raise HTTPException(status_code=400, detail="Invalid role")
    account = update_by_id("account", user_id, {"role": payload.role})
    if not account:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Account %s role changed to %s", user_id, payload.role)
    return serialize(account)


@router.get("/stats/users")
def user_stats():
    total = db["account"].count_documents({})
    active = db["account"].count_documents({"is_active": True})
    by_role = db["account"].aggregate([{"$group": {"_id": "$role", "count": {"$sum": 1}}}])

    now = now_utc()
    thirty_days_ago = now - timedelta(days=30)
    sixty_days_ago = now - timedelta(days=60)
    recent = db["account"].count_documents({"created_at": {"$gte": thirty_days_ago}})
    previous = db["account"].count_documents({"created_at": {"$gte": sixty_days_ago, "$lt": thirty_days_ago}})
    growth = ((recent - previous) / previous) * 100 if previous > 0 else 100.0

    return {
        "total_users": total,
        "active_users": active,
        "inactive_users": total - active,
        "users_by_role": {(r["_id"] or "unknown"): r["count"] for r in by_role},
        "recent_registrations": recent,
        "growth_rate": round(growth, 2),
    }
