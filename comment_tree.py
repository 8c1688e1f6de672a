"""
Rebuild the threaded view of a post's comments.

Comments are stored flat with an optional ``parent_comment_id``. The tree is
rebuilt on every read from the approved comments of one post.
"""
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from database import as_utc, serialize
import votes

EXPERT_ROLE = "Counselor"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _created(comment: Mapping[str, Any]) -> datetime:
    value = comment.get("created_at")
    if not isinstance(value, datetime):
        return _EPOCH
    return as_utc(value)


def is_expert(account_id: Any, roles: Mapping[str, str]) -> bool:
    return roles.get(str(account_id)) == EXPERT_ROLE


def build_comment_tree(comments: Iterable[Mapping[str, Any]], roles: Mapping[str, str],
                       viewer_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return the root comments, each with its full ``replies`` subtree.

    Siblings are ordered oldest first. A reply whose parent is not among
    ``comments`` is dropped together with its own replies.
    """
    ordered = sorted(comments, key=_created)
    children = defaultdict(list)
    roots = []
    for c in ordered:
        parent = c.get("parent_comment_id")
        if parent:
            children[str(parent)].append(c)
        else:
            roots.append(c)

    def build(comment):
        node = votes.annotate(serialize(dict(comment)))
        node["is_expert_comment"] = is_expert(comment.get("account_id"), roles)
        if viewer_id:
            node["user_vote"] = votes.user_vote(comment.get("vote_up"), comment.get("vote_down"), viewer_id)
        node["replies"] = [build(r) for r in children.get(str(comment["_id"]), [])]
        return node

    return [build(r) for r in roots]


def count_nodes(tree: List[Dict[str, Any]]) -> int:
    return sum(1 + count_nodes(n.get("replies", [])) for n in tree)


def paginate_roots(tree: List[Dict[str, Any]], page: int, limit: int) -> List[Dict[str, Any]]:
    # pages are cut at root level only; a root always carries its whole thread
    start = (page - 1) * limit
    return tree[start:start + limit]


def iter_nodes(tree: List[Dict[str, Any]]):
    """Depth-first walk over every node of a built tree."""
    for node in tree:
        yield node
        yield from iter_nodes(node.get("replies", []))
