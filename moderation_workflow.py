"""
Moderation state machine shared by posts and comments.

    pending  --approve--> approved
    flagged  --approve--> approved
    pending|approved|flagged --reject--> rejected
    any      --flag-->    flagged

Approving something already approved changes nothing. Every other
transition stamps the acting moderator and the time.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

DEFAULT_REJECTION_REASON = "Content not suitable for the community"
DEFAULT_FLAG_REASON = "Flagged for review"


class ModerationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"


class ModerationAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    FLAG = "flag"


S = ModerationStatus
TRANSITIONS = {
    ModerationAction.APPROVE: ({S.PENDING, S.FLAGGED}, S.APPROVED),
    ModerationAction.REJECT: ({S.PENDING, S.APPROVED, S.FLAGGED}, S.REJECTED),
    ModerationAction.FLAG: (set(S), S.FLAGGED),
}
NOOPS = {(ModerationAction.APPROVE, S.APPROVED), (ModerationAction.REJECT, S.REJECTED)}


class InvalidTransition(ValueError):
    pass


def parse_status(value: Any) -> ModerationStatus:
    try:
        return ModerationStatus(value)
    except ValueError:
        raise InvalidTransition(f"Invalid status: {value}")


def transition(current: Any, action: Any, actor: Optional[str], now: datetime,
               reason: Optional[str] = None) -> Tuple[bool, Dict[str, Any]]:
    """Return (changed, fields to $set) for applying ``action`` to ``current``."""
    action = ModerationAction(action)
    status = parse_status(current or S.PENDING.value)
    if (action, status) in NOOPS:
        return False, {}
    allowed, target = TRANSITIONS[action]
    if status not in allowed:
        raise InvalidTransition(f"Cannot {action.value} content that is {status.value}")

    fields: Dict[str, Any] = {"status": target.value}
    if action is ModerationAction.FLAG:
        fields.update(flagged_at=now, flagged_by=actor, flag_reason=reason or DEFAULT_FLAG_REASON)
    else:
        fields.update(moderated_at=now, moderated_by=actor)
        if action is ModerationAction.REJECT:
            fields["rejection_reason"] = reason or DEFAULT_REJECTION_REASON
    return True, fields


def enters_approved(before: Any, after: Any) -> bool:
    return before != S.APPROVED.value and after == S.APPROVED.value


def leaves_approved(before: Any, after: Any) -> bool:
    return before == S.APPROVED.value and after != S.APPROVED.value
