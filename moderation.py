"""
Admin moderation of posts and comments.

Comment status changes keep the parent post's cached counters in step:
``answer_count`` counts approved comments and ``has_expert_answer`` is set
once a Counselor's comment is approved. Both are recomputed on post reads by
``reconcile_post_counters``.
"""
import logging
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from accounts import account_roles, accounts_by_id, author_summary
from auth import get_current_user, require_roles
from comment_tree import EXPERT_ROLE
from config import APP_TIMEZONE
from database import db, find_by_id, update_by_id, serialize, now_utc, pagination, to_object_id
from moderation_workflow import (
    InvalidTransition,
    ModerationAction,
    ModerationStatus,
    enters_approved,
    leaves_approved,
    transition,
)
from slot_matcher import day_window

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/moderation", tags=["moderation"], dependencies=[Depends(require_roles("Admin"))])


class ModerationPayload(BaseModel):
    reason: Optional[str] = None


# --- Counter bookkeeping ---
def record_comment_approval(comment: dict):
    """Side effects of a comment becoming approved, wherever that happens."""
    update = {"$inc": {"answer_count": 1}}
    author = find_by_id("account", comment.get("account_id"))
    if author and author.get("role") == EXPERT_ROLE:
        update["$set"] = {"has_expert_answer": True}
    db["post"].update_one({"_id": to_object_id(comment.get("post_id"))}, update)


def record_comment_withdrawal(comment: dict):
    db["post"].update_one(
        {"_id": to_object_id(comment.get("post_id")), "answer_count": {"$gt": 0}},
        {"$inc": {"answer_count": -1}},
    )


def apply_comment_status_change(comment: dict, new_status: str):
    before = comment.get("status")
    if enters_approved(before, new_status):
        record_comment_approval(comment)
    elif leaves_approved(before, new_status):
        record_comment_withdrawal(comment)


def reconcile_post_counters(post: dict) -> dict:
    """Recompute answer_count / has_expert_answer from the approved comments."""
    approved = list(db["comment"].find({"post_id": str(post["_id"]), "status": "approved"}, {"account_id": 1}))
    roles = account_roles(c.get("account_id") for c in approved)
    answer_count = len(approved)
    has_expert = any(r == EXPERT_ROLE for r in roles.values())
    if post.get("answer_count") != answer_count or bool(post.get("has_expert_answer")) != has_expert:
        db["post"].update_one({"_id": post["_id"]},
                              {"$set": {"answer_count": answer_count, "has_expert_answer": has_expert}})
        post = {**post, "answer_count": answer_count, "has_expert_answer": has_expert}
    return post


# --- Listing ---
def list_by_status(collection: str, status: str, page: int, limit: int) -> dict:
    try:
        status = ModerationStatus(status).value
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid status")
    query = {"status": status}
    total = db[collection].count_documents(query)
    docs = list(db[collection].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit))
    authors = accounts_by_id(d.get("account_id") for d in docs)
    data = []
    for d in docs:
        item = serialize(d)
        item["author"] = author_summary(authors.get(str(d.get("account_id"))))
        if collection == "comment":
            post = find_by_id("post", d.get("post_id"))
            item["post"] = {"_id": str(post["_id"]), "title": post.get("title")} if post else None
        data.append(item)
    return {"data": data, "pagination": pagination(total, page, limit)}


@router.get("/posts/pending")
def pending_posts(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    return list_by_status("post", "pending", page, limit)


@router.get("/posts/{status}")
def posts_by_status(status: str, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    return list_by_status("post", status, page, limit)


@router.get("/comments/pending")
def pending_comments(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    return list_by_status("comment", "pending", page, limit)


@router.get("/comments/{status}")
def comments_by_status(status: str, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    return list_by_status("comment", status, page, limit)


# --- Transitions ---
def moderate(collection: str, doc_id: str, action: ModerationAction, moderator: dict,
             payload: Optional[ModerationPayload]) -> dict:
    label = collection.capitalize()
    doc = find_by_id(collection, doc_id)
    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    reason = payload.reason if payload else None
    try:
        changed, fields = transition(doc.get("status"), action, str(moderator["_id"]), now_utc(), reason)
    except InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not changed:
        return serialize(doc)

    updated = update_by_id(collection, doc_id, fields)
    if collection == "comment":
        apply_comment_status_change(doc, fields["status"])
    logger.info("%s %s: %s -> %s by %s", label, doc_id, doc.get("status"), fields["status"], moderator["_id"])
    return serialize(updated)


@router.post("/posts/{post_id}/{action}")
def moderate_post(post_id: str, action: ModerationAction, payload: Optional[ModerationPayload] = None,
                  user=Depends(get_current_user)):
    return moderate("post", post_id, action, user, payload)


@router.post("/comments/{comment_id}/{action}")
def moderate_comment(comment_id: str, action: ModerationAction, payload: Optional[ModerationPayload] = None,
                     user=Depends(get_current_user)):
    return moderate("comment", comment_id, action, user, payload)


# --- Dashboard ---
def status_counts(collection: str) -> dict:
    counts = {s.value: db[collection].count_documents({"status": s.value}) for s in ModerationStatus}
    counts["total"] = sum(counts.values())
    return counts


@router.get("/stats")
def moderation_stats():
    start_of_day, _ = day_window(now_utc().astimezone(ZoneInfo(APP_TIMEZONE)).strftime("%Y-%m-%d"), APP_TIMEZONE)
    total_users = db["account"].count_documents({})
    active_users = db["account"].count_documents({"is_active": True})
    today = {"created_at": {"$gte": start_of_day}}
    return {
        "posts": status_counts("post"),
        "comments": status_counts("comment"),
        "users": {"active": active_users, "inactive": total_users - active_users, "total": total_users},
        "activity": {
            "posts_today": db["post"].count_documents(today),
            "comments_today": db["comment"].count_documents(today),
            "users_today": db["account"].count_documents(today),
        },
    }
