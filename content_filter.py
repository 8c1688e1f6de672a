from typing import Iterable, Optional


def contains_banned_words(text: Optional[str], banned_words: Iterable[str]) -> bool:
    """Case-insensitive substring check. Substrings of longer words match too."""
    if not text:
        return False
    lower = text.lower()
    return any(word.lower() in lower for word in banned_words if word)


def moderation_status_for(banned_words: Iterable[str], *texts: Optional[str]) -> str:
    """Status a new piece of content is stored with: held for review or published."""
    words = list(banned_words)
    if any(contains_banned_words(t, words) for t in texts):
        return "pending"
    return "approved"
