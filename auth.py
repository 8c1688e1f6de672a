import logging
from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext

from config import JWT_SECRET, JWT_ALG, JWT_EXPIRE_MIN
from database import db, now_utc, to_object_id

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_token(account: dict, minutes: int = JWT_EXPIRE_MIN) -> str:
    payload = {
        "sub": str(account.get("_id")),
        "email": account["email"],
        "role": account.get("role"),
        "type": "access",
        "exp": now_utc() + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    if creds is None:
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")
    try:
        data = jwt.decode(creds.credentials, JWT_SECRET, algorithms=[JWT_ALG])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired.")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token.")
    if data.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type")

    oid = to_object_id(data.get("sub"))
    user = db["account"].find_one({"_id": oid}) if oid else None
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token. User not found.")
    if not user.get("is_active", True):
        logger.info("Rejected token for deactivated account %s", data.get("sub"))
        raise HTTPException(status_code=403, detail="Your account has been deactivated.")
    return user


def require_roles(*roles):
    def wrapper(user=Depends(get_current_user)):
        if user.get("role") in roles:
            return user
        raise HTTPException(status_code=403, detail="Access denied. Not authorized for this resource.")
    return wrapper


def acting_account_id(requested: Optional[str], user: dict) -> str:
    """The caller's id, or another account's when an Admin acts on its behalf."""
    caller = str(user["_id"])
    if requested and requested != caller and user.get("role") != "Admin":
        raise HTTPException(status_code=403, detail="You cannot act on behalf of another account")
    return requested or caller
