import logging
from typing import Dict, Iterable, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from auth import create_token, get_current_user, hash_password, require_roles, verify_password
from database import db, create_document, find_by_id, update_by_id, delete_by_id, serialize, now_utc, to_object_id
from schemas import Account, Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


# --- Schemas for requests ---
class RegisterPayload(BaseModel):
    name: str
    email: str
    password: str
    # other roles are granted by an admin
    role: Literal["Customer"] = "Customer"
    image: Optional[str] = None
    gender: Optional[Literal["Male", "Female", "Other"]] = None
    phone: Optional[str] = None


class AccountCreatePayload(RegisterPayload):
    role: Role = "Customer"


class LoginPayload(BaseModel):
    email: str
    password: str


class CheckEmailPayload(BaseModel):
    email: str


class AccountUpdatePayload(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    image: Optional[str] = None
    gender: Optional[Literal["Male", "Female", "Other"]] = None
    phone: Optional[str] = None


# --- Helpers ---
def public_account(account: dict) -> dict:
    return {
        "_id": str(account.get("_id")),
        "name": account.get("name"),
        "email": account.get("email"),
        "role": account.get("role"),
        "image": account.get("image"),
        "gender": account.get("gender"),
    }


def accounts_by_id(account_ids: Iterable) -> Dict[str, dict]:
    oids = [o for o in (to_object_id(a) for a in set(map(str, account_ids))) if o]
    if not oids:
        return {}
    return {str(a["_id"]): a for a in db["account"].find({"_id": {"$in": oids}})}


def account_roles(account_ids: Iterable) -> Dict[str, str]:
    return {k: v.get("role") for k, v in accounts_by_id(account_ids).items()}


def author_summary(account: Optional[dict]) -> Optional[dict]:
    if not account:
        return None
    return {"_id": str(account["_id"]), "name": account.get("name"), "email": account.get("email"),
            "role": account.get("role"), "image": account.get("image")}


def email_taken(email: str, exclude_id=None) -> bool:
    query = {"email": email}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return db["account"].find_one(query) is not None


def new_account(name: str, email: str, password: str, role: str, **extra) -> dict:
    """Build an account document. Counselors are verified on creation."""
    account = Account(
        name=name,
        email=email.strip().lower(),
        password_hash=hash_password(password),
        role=role,
        **extra,
    ).model_dump()
    account["is_verified"] = role == "Counselor"
    account["_id"] = to_object_id(create_document("account", account))
    return account


def get_account_or_404(account_id: str) -> dict:
    account = find_by_id("account", account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


# --- Routes ---
@router.post("/register", status_code=201)
def register(payload: RegisterPayload):
    if not payload.email.strip() or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    if email_taken(payload.email.strip().lower()):
        raise HTTPException(status_code=400, detail="Email already registered")
    account = new_account(**payload.model_dump())
    logger.info("Registered %s account %s", account["role"], account["_id"])
    return {"message": "Registration successful", "token": create_token(account), "user": public_account(account)}


@router.post("/login")
def login(payload: LoginPayload):
    account = db["account"].find_one({"email": payload.email.strip().lower()})
    if not account or not verify_password(payload.password, account.get("password_hash")):
        logger.info("Failed login for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if account.get("is_active") is False:
        raise HTTPException(status_code=403, detail="Your account has been deactivated")
    update_by_id("account", account["_id"], {"last_login": now_utc()})
    return {"message": "Login successful", "token": create_token(account), "user": public_account(account)}


@router.post("/check-email")
def check_email(payload: CheckEmailPayload):
    email = payload.email.strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")
    exists = db["account"].count_documents({"email": email}) > 0
    return {"exists": exists, "allow_register": not exists}


@router.get("/me")
def me(user=Depends(get_current_user)):
    return {"user": serialize(user)}


@router.get("")
def list_accounts(user=Depends(require_roles("Admin"))):
    return [serialize(a) for a in db["account"].find().sort("created_at", -1)]


@router.post("", status_code=201)
def create_account(payload: AccountCreatePayload, user=Depends(require_roles("Admin"))):
    if email_taken(payload.email.strip().lower()):
        raise HTTPException(status_code=400, detail="Email already registered")
    return serialize(new_account(**payload.model_dump()))


@router.get("/{account_id}/posts")
def account_posts(account_id: str, user=Depends(get_current_user)):
    return [serialize(p) for p in db["post"].find({"account_id": account_id}).sort("created_at", -1)]


@router.get("/{account_id}")
def get_account(account_id: str, user=Depends(get_current_user)):
    return serialize(get_account_or_404(account_id))


@router.put("/{account_id}")
def update_account(account_id: str, payload: AccountUpdatePayload, user=Depends(get_current_user)):
    account = get_account_or_404(account_id)
    if str(user["_id"]) != str(account["_id"]) and user.get("role") != "Admin":
        raise HTTPException(status_code=403, detail="You can only update your own account")

    fields = payload.model_dump(exclude_none=True, exclude={"password"})
    if "email" in fields:
        fields["email"] = fields["email"].strip().lower()
        if email_taken(fields["email"], exclude_id=account["_id"]):
            raise HTTPException(status_code=400, detail="Email already registered")
    if payload.password:
        fields["password_hash"] = hash_password(payload.password)
    return serialize(update_by_id("account", account_id, fields))


@router.delete("/{account_id}")
def delete_account(account_id: str, user=Depends(require_roles("Admin"))):
    return {"deleted": delete_by_id("account", account_id) is not None}


def set_active(account_id: str, active: bool) -> dict:
    account = update_by_id("account", account_id, {"is_active": active})
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    logger.info("Account %s %s", account_id, "activated" if active else "deactivated")
    return serialize(account)


@router.patch("/{account_id}/activate")
def activate_account(account_id: str, user=Depends(require_roles("Admin"))):
    return set_active(account_id, True)


@router.patch("/{account_id}/deactivate")
def deactivate_account(account_id: str, user=Depends(require_roles("Admin"))):
    return set_active(account_id, False)
