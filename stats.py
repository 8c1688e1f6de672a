from fastapi import APIRouter

from database import db

router = APIRouter(prefix="/api/stats", tags=["stats"])

EXPERT_ROLES = ["Counselor", "Doctor"]
TRENDING_LIMIT = 5


@router.get("/community")
def community_stats():
    authors = set(db["post"].distinct("account_id")) | set(db["comment"].distinct("account_id"))
    discussions = db["post"].count_documents({"status": "approved"})

    expert_ids = [str(a["_id"]) for a in db["account"].find({"role": {"$in": EXPERT_ROLES}}, {"_id": 1})]
    expert_answers = db["comment"].count_documents({"account_id": {"$in": expert_ids}, "status": "approved"})

    tag_counts = list(db["post"].aggregate([
        {"$match": {"status": "approved"}},
        {"$unwind": "$tags"},
        {"$group": {"_id": "$tags", "posts": {"$sum": 1}}},
        {"$sort": {"posts": -1, "_id": 1}},
    ]))
    total_tags = sum(t["posts"] for t in tag_counts)
    trending = [
        {"name": t["_id"], "posts": t["posts"], "trend": f"+{round(t['posts'] / total_tags * 100, 1)}%"}
        for t in tag_counts[:TRENDING_LIMIT]
    ]

    return {
        "active_members": len(authors),
        "discussions": discussions,
        "expert_answers": expert_answers,
        "trending_topics": trending,
    }
