import logging
from typing import Optional, Set

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from accounts import accounts_by_id, author_summary
from auth import acting_account_id, get_current_user
from comment_tree import is_expert
from config import get_banned_words
from content_filter import moderation_status_for
from database import db, create_document, find_by_id, serialize, to_object_id, now_utc
from moderation import record_comment_approval
from schemas import Comment
import votes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/comments", tags=["comments"])


class CommentPayload(BaseModel):
    content: Optional[str] = None
    account_id: Optional[str] = None
    parent_comment_id: Optional[str] = None


class VotePayload(BaseModel):
    vote_type: Optional[str]
    account_id: Optional[str] = None


def with_author(doc: dict) -> dict:
    item = serialize(doc)
    item["author"] = author_summary(find_by_id("account", doc.get("account_id")))
    return item


def create_comment(post_id: str, content: Optional[str], account_id: str, parent_comment_id: Optional[str],
                   banned_words: Set[str]) -> dict:
    """Store a comment or reply, held as pending when it contains banned words."""
    if not content or not content.strip():
        raise HTTPException(status_code=400, detail="Comment content must not be empty or whitespace only")
    status = moderation_status_for(banned_words, content)
    comment = Comment(
        post_id=post_id,
        account_id=account_id,
        content=content,
        parent_comment_id=parent_comment_id,
        status=status,
    ).model_dump()
    comment["_id"] = to_object_id(create_document("comment", comment))
    if status == "approved":
        record_comment_approval(comment)
    else:
        logger.info("Comment %s on post %s held for review", comment["_id"], post_id)
    return comment


def record_vote(collection: str, doc: dict, voter_id: str, vote_type: Optional[str]) -> dict:
    try:
        up, down = votes.cast_vote(doc.get("vote_up"), doc.get("vote_down"), voter_id, vote_type)
    except votes.InvalidVote as e:
        raise HTTPException(status_code=400, detail=str(e))
    db[collection].update_one({"_id": doc["_id"]}, {"$set": {"vote_up": up, "vote_down": down, "updated_at": now_utc()}})
    logger.debug("%s %s vote by %s: %s", collection, doc["_id"], voter_id, vote_type)
    return {**doc, "vote_up": up, "vote_down": down}


@router.get("/{comment_id}/replies")
def get_replies(comment_id: str):
    parent = find_by_id("comment", comment_id)
    if not parent:
        raise HTTPException(status_code=404, detail="Comment not found")
    replies = list(db["comment"].find({"parent_comment_id": str(parent["_id"]), "status": "approved"}).sort("created_at", 1))
    authors = accounts_by_id(r.get("account_id") for r in replies)
    roles = {k: v.get("role") for k, v in authors.items()}
    result = []
    for r in replies:
        item = votes.annotate(serialize(r))
        item["author"] = author_summary(authors.get(str(r.get("account_id"))))
        item["is_expert_comment"] = is_expert(r.get("account_id"), roles)
        result.append(item)
    return result


@router.post("/{comment_id}/replies", status_code=201)
def reply_to_comment(comment_id: str, payload: CommentPayload, user=Depends(get_current_user),
                     banned_words: Set[str] = Depends(get_banned_words)):
    parent = find_by_id("comment", comment_id)
    if not parent:
        raise HTTPException(status_code=404, detail="Parent comment not found")
    author_id = acting_account_id(payload.account_id, user)
    reply = create_comment(parent["post_id"], payload.content, author_id, str(parent["_id"]), banned_words)
    message = "Reply posted" if reply["status"] == "approved" else "Reply is awaiting moderation"
    return {"message": message, "comment": with_author(reply)}


@router.post("/{comment_id}/vote")
def vote_comment(comment_id: str, payload: VotePayload, user=Depends(get_current_user)):
    comment = find_by_id("comment", comment_id)
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    voter = acting_account_id(payload.account_id, user)
    comment = record_vote("comment", comment, voter, payload.vote_type)
    return {"comment": serialize(comment), "vote_stats": votes.vote_stats(comment["vote_up"], comment["vote_down"])}
