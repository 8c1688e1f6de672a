"""
Vote bookkeeping shared by posts and comments.

Each votable document keeps two lists of voter ids, ``vote_up`` and
``vote_down``. A voter holds at most one active vote; voting again replaces
the previous vote and a ``None`` vote retracts it.
"""
from typing import Dict, List, Optional, Tuple

VOTE_TYPES = ("up", "down")


class InvalidVote(ValueError):
    pass


def cast_vote(vote_up: List[str], vote_down: List[str], voter_id: str,
              vote_type: Optional[str]) -> Tuple[List[str], List[str]]:
    if vote_type is not None and vote_type not in VOTE_TYPES:
        raise InvalidVote("Invalid vote type (only up, down, or null)")
    voter_id = str(voter_id)
    up = [v for v in vote_up or [] if str(v) != voter_id]
    down = [v for v in vote_down or [] if str(v) != voter_id]
    if vote_type == "up":
        up.append(voter_id)
    elif vote_type == "down":
        down.append(voter_id)
    return up, down


def vote_stats(vote_up: List[str], vote_down: List[str]) -> Dict[str, int]:
    upvotes = len(vote_up or [])
    downvotes = len(vote_down or [])
    raw_total = upvotes - downvotes
    return {
        "upvotes": upvotes,
        "downvotes": downvotes,
        "raw_total": raw_total,
        # negative scores are kept for ranking but never displayed
        "display_total": max(0, raw_total),
    }


def user_vote(vote_up: List[str], vote_down: List[str], viewer_id: str) -> Optional[str]:
    viewer_id = str(viewer_id)
    if viewer_id in [str(v) for v in vote_up or []]:
        return "up"
    if viewer_id in [str(v) for v in vote_down or []]:
        return "down"
    return None


def annotate(doc: Dict) -> Dict:
    """Add vote_count / display_vote_count to a serialized post or comment."""
    stats = vote_stats(doc.get("vote_up"), doc.get("vote_down"))
    doc["vote_count"] = stats["raw_total"]
    doc["display_vote_count"] = stats["display_total"]
    return doc
