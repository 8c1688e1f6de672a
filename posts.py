import logging
import re
from datetime import timedelta
from typing import List, Literal, Optional, Set

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from accounts import account_roles, accounts_by_id, author_summary
from auth import acting_account_id, get_current_user
from comment_tree import build_comment_tree, count_nodes, iter_nodes, paginate_roots
from comments import CommentPayload, VotePayload, create_comment, record_vote, with_author
from config import POST_EDIT_WINDOW_MIN, get_banned_words
from content_filter import moderation_status_for
from database import (
    db,
    as_utc,
    create_document,
    find_by_id,
    now_utc,
    pagination,
    serialize,
    to_object_id,
    update_by_id,
)
from moderation import reconcile_post_counters
from schemas import Post
import votes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["posts"])

STATUS_TEXT = {"pending": "Awaiting review", "approved": "Approved", "rejected": "Rejected", "flagged": "Flagged"}


# --- Schemas for requests ---
class PostPayload(BaseModel):
    title: str
    content: str
    category: str
    tags: List[str] = []
    is_anonymous: bool = False
    account_id: Optional[str] = None


class PostUpdatePayload(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    is_anonymous: Optional[bool] = None


class PostEditPayload(BaseModel):
    title: str
    content: str
    tags: Optional[List[str]] = None


# --- Helpers ---
def get_post_or_404(post_id: str) -> dict:
    post = find_by_id("post", post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


def require_owner_or_admin(post: dict, user: dict):
    if str(post.get("account_id")) != str(user["_id"]) and user.get("role") != "Admin":
        raise HTTPException(status_code=403, detail="You do not have permission to modify this post")


def within_edit_window(post: dict, now=None) -> bool:
    created = post.get("created_at")
    if created is None:
        return False
    now = now or now_utc()
    return now - as_utc(created) <= timedelta(minutes=POST_EDIT_WINDOW_MIN)


def present_post(post: dict, author: Optional[dict] = None) -> dict:
    item = votes.annotate(serialize(post))
    status = post.get("status")
    item["status_info"] = {
        "is_pending": status == "pending",
        "is_approved": status == "approved",
        "is_rejected": status == "rejected",
        "status_text": STATUS_TEXT.get(status, ""),
    }
    item["has_expert_answer"] = bool(post.get("has_expert_answer"))
    item["author"] = None if post.get("is_anonymous") else author_summary(author)
    return item


def listing_filter(category, tag, search, type_, account_id) -> dict:
    query = {"status": "approved"}
    if category:
        query["category"] = category
    if tag:
        query["tags"] = tag
    if search:
        query["title"] = {"$regex": re.escape(search), "$options": "i"}
    if type_ == "questions":
        query["has_expert_answer"] = {"$ne": True}
    elif type_ == "expert":
        query["has_expert_answer"] = True
    elif type_ == "following" and account_id:
        query["vote_up"] = account_id
    elif type_ == "myPosts" and account_id:
        query["account_id"] = account_id
        query["status"] = {"$in": ["approved", "pending"]}
    return query


def vote_score(post: dict) -> int:
    return votes.vote_stats(post.get("vote_up"), post.get("vote_down"))["raw_total"]


# --- Routes ---
@router.get("")
def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    sort: Literal["newest", "popular", "votes"] = "newest",
    type_: Literal["all", "questions", "expert", "following", "myPosts"] = Query("all", alias="type"),
    account_id: Optional[str] = None,
):
    query = listing_filter(category, tag, search, type_, account_id)
    total = db["post"].count_documents(query)
    skip = (page - 1) * limit
    if sort == "votes":
        # score is derived from the vote lists, so rank in memory
        docs = sorted(db["post"].find(query).sort("created_at", -1), key=vote_score, reverse=True)
        docs = docs[skip:skip + limit]
    else:
        field = "view_count" if sort == "popular" else "created_at"
        docs = list(db["post"].find(query).sort(field, -1).skip(skip).limit(limit))
    authors = accounts_by_id(d.get("account_id") for d in docs)
    posts = [present_post(d, authors.get(str(d.get("account_id")))) for d in docs]
    return {"posts": posts, "pagination": pagination(total, page, limit)}


@router.post("", status_code=201)
def create_post(payload: PostPayload, user=Depends(get_current_user),
                banned_words: Set[str] = Depends(get_banned_words)):
    if not payload.title.strip() or not payload.content.strip():
        raise HTTPException(status_code=400, detail="Title and content must not be empty")
    author_id = acting_account_id(payload.account_id, user)
    status = moderation_status_for(banned_words, payload.title, payload.content)
    post = Post(
        title=payload.title,
        content=payload.content,
        category=payload.category,
        tags=payload.tags,
        is_anonymous=payload.is_anonymous,
        account_id=author_id,
        status=status,
    ).model_dump()
    post["_id"] = to_object_id(create_document("post", post))
    if status == "pending":
        logger.info("Post %s held for review", post["_id"])
    return present_post(post, find_by_id("account", author_id))


@router.get("/{post_id}")
def get_post(post_id: str, account_id: Optional[str] = None):
    post = reconcile_post_counters(get_post_or_404(post_id))
    comments = list(db["comment"].find({"post_id": str(post["_id"]), "status": "approved"}))
    authors = accounts_by_id([c.get("account_id") for c in comments] + [post.get("account_id")])
    roles = {k: v.get("role") for k, v in authors.items()}
    tree = build_comment_tree(comments, roles, viewer_id=account_id)
    for node in iter_nodes(tree):
        node["author"] = author_summary(authors.get(str(node.get("account_id"))))
    result = present_post(post, authors.get(str(post.get("account_id"))))
    if account_id:
        result["user_vote"] = votes.user_vote(post.get("vote_up"), post.get("vote_down"), account_id)
    return {"post": result, "comments": tree}


@router.get("/{post_id}/comments")
def get_post_comments(post_id: str, account_id: Optional[str] = None,
                      page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    post = get_post_or_404(post_id)
    comments = list(db["comment"].find({"post_id": str(post["_id"]), "status": "approved"}))
    roles = account_roles(c.get("account_id") for c in comments)
    tree = build_comment_tree(comments, roles, viewer_id=account_id)
    page_items = paginate_roots(tree, page, limit)
    meta = pagination(len(tree), page, limit)
    meta["total_comments"] = count_nodes(tree)
    return {"comments": page_items, "pagination": meta}


def require_edit_allowed(post: dict, user: dict):
    """Content edits belong to the author, within the edit window."""
    if str(post.get("account_id")) != str(user["_id"]):
        raise HTTPException(status_code=403, detail="You do not have permission to edit this post")
    if not within_edit_window(post):
        raise HTTPException(status_code=403,
                            detail=f"Posts can only be edited within {POST_EDIT_WINDOW_MIN} minutes of publishing")


def content_edit_fields(post: dict, title: str, content: str, banned_words: Set[str]) -> dict:
    if not title.strip() or not content.strip():
        raise HTTPException(status_code=400, detail="Title and content must not be empty")
    fields = {"title": title, "content": content, "edited_at": now_utc()}
    if moderation_status_for(banned_words, title, content) == "pending":
        fields["status"] = "pending"
        logger.info("Edited post %s held for review", post["_id"])
    return fields


@router.put("/{post_id}")
@router.patch("/{post_id}")
def update_post(post_id: str, payload: PostUpdatePayload, user=Depends(get_current_user),
                banned_words: Set[str] = Depends(get_banned_words)):
    post = get_post_or_404(post_id)
    require_owner_or_admin(post, user)
    fields = payload.model_dump(exclude_none=True, exclude={"title", "content"})
    if payload.title is not None or payload.content is not None:
        # admins may correct content at any age
        if user.get("role") != "Admin":
            require_edit_allowed(post, user)
        title = payload.title if payload.title is not None else post.get("title", "")
        content = payload.content if payload.content is not None else post.get("content", "")
        fields.update(content_edit_fields(post, title, content, banned_words))
    if not fields:
        return present_post(post)
    updated = update_by_id("post", post["_id"], fields)
    return present_post(updated, find_by_id("account", updated.get("account_id")))


@router.put("/{post_id}/edit")
def edit_post(post_id: str, payload: PostEditPayload, user=Depends(get_current_user),
              banned_words: Set[str] = Depends(get_banned_words)):
    post = get_post_or_404(post_id)
    require_edit_allowed(post, user)
    fields = content_edit_fields(post, payload.title, payload.content, banned_words)
    if payload.tags is not None:
        fields["tags"] = payload.tags
    updated = update_by_id("post", post["_id"], fields)
    return {"message": "Post updated", "post": present_post(updated)}


@router.delete("/{post_id}")
def delete_post(post_id: str, user=Depends(get_current_user)):
    post = get_post_or_404(post_id)
    require_owner_or_admin(post, user)
    db["post"].delete_one({"_id": post["_id"]})
    removed = db["comment"].delete_many({"post_id": str(post["_id"])}).deleted_count
    logger.info("Deleted post %s with %d comments", post["_id"], removed)
    return {"message": "Post and its comments deleted"}


@router.post("/{post_id}/comments", status_code=201)
def add_comment(post_id: str, payload: CommentPayload, user=Depends(get_current_user),
                banned_words: Set[str] = Depends(get_banned_words)):
    if not payload.content or not payload.content.strip():
        raise HTTPException(status_code=400, detail="Comment content must not be empty or whitespace only")
    post_id = str(get_post_or_404(post_id)["_id"])
    parent_id = None
    if payload.parent_comment_id:
        parent_oid = to_object_id(payload.parent_comment_id)
        parent = db["comment"].find_one({"_id": parent_oid, "post_id": post_id}) if parent_oid else None
        if not parent:
            raise HTTPException(status_code=404, detail="Parent comment not found or invalid")
        parent_id = str(parent["_id"])
    author_id = acting_account_id(payload.account_id, user)
    comment = create_comment(post_id, payload.content, author_id, parent_id, banned_words)
    message = "Comment posted" if comment["status"] == "approved" else "Comment is awaiting moderation"
    return {"message": message, "comment": with_author(comment)}


@router.post("/{post_id}/vote")
def vote_post(post_id: str, payload: VotePayload, user=Depends(get_current_user)):
    post = get_post_or_404(post_id)
    voter = acting_account_id(payload.account_id, user)
    post = record_vote("post", post, voter, payload.vote_type)
    return {"post": serialize(post), "vote_stats": votes.vote_stats(post["vote_up"], post["vote_down"])}


@router.patch("/{post_id}/view")
def increment_view(post_id: str):
    oid = to_object_id(post_id)
    if not oid or db["post"].update_one({"_id": oid}, {"$inc": {"view_count": 1}}).matched_count == 0:
        raise HTTPException(status_code=404, detail="Post not found")
    return serialize(db["post"].find_one({"_id": oid}))