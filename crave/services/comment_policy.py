# crave/services/comment_policy.py
"""
Client-side comment checks run before any network call.
Advisory only: any other client can skip them.
"""
from __future__ import annotations

import re

from crave.app.domain.errors import CommentValidationError

MAX_COMMENT_LENGTH = 500
MAX_URLS = 2

PROFANITY_LIST = (
    "fuck", "shit", "bitch", "damn", "ass", "bastard", "crap", "piss",
    "dick", "pussy", "cock", "cunt", "whore", "slut", "fag", "nigger",
    "retard", "rape", "nazi", "hitler",
    # leetspeak variants
    "f*ck", "sh*t", "b*tch", "a$$", "fuk", "fck", "sh!t", "b!tch",
    "fuq", "phuck", "shyt", "biatch", "bytch",
    # slurs
    "n*gger", "n1gger", "f*ggot", "faggot", "kike", "spic", "chink",
    # sexual content
    "porn", "xxx", "sex", "nude", "naked", "boobs", "tits", "penis",
    "vagina", "masturbate", "orgasm",
)

# Also legitimate substrings ("class", "glass"), matched on word boundaries only.
CONTEXT_SENSITIVE_WORDS = frozenset({"ass", "damn", "crap", "hell"})

SPAM_PHRASES = (
    "click here",
    "buy now",
    "limited time",
    "act now",
    "free money",
    "earn money fast",
    "work from home",
    "lose weight fast",
)

_URL_RE = re.compile(r"https?://[^\s]+", re.IGNORECASE)
_REPEATED_CHAR_RE = re.compile(r"(.)\1{10,}")

PROFANITY_MESSAGE = (
    "Your comment contains inappropriate language. "
    "Please revise your comment to be respectful to all users."
)
SPAM_MESSAGE = "Your comment appears to contain spam. Please revise and try again."


def _word_pattern(word: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)


def contains_profanity(text: str) -> bool:
    if not text:
        return False

    normalized = text.lower().strip()
    for word in PROFANITY_LIST:
        if word in CONTEXT_SENSITIVE_WORDS:
            if _word_pattern(word).search(normalized):
                return True
        elif word in normalized:
            return True
    return False


def filter_profanity(text: str) -> str:
    """Mask each profane word with asterisks of the same length."""
    if not text:
        return text

    filtered = text
    for word in PROFANITY_LIST:
        replacement = "*" * len(word)
        if word in CONTEXT_SENSITIVE_WORDS:
            filtered = _word_pattern(word).sub(replacement, filtered)
        else:
            filtered = re.sub(re.escape(word), replacement, filtered, flags=re.IGNORECASE)
    return filtered


def contains_spam(text: str) -> bool:
    if not text:
        return False

    normalized = text.lower()
    if len(_URL_RE.findall(normalized)) > MAX_URLS:
        return True
    if _REPEATED_CHAR_RE.search(text):
        return True
    return any(phrase in normalized for phrase in SPAM_PHRASES)


def validate_comment_text(text: str) -> str:
    """
    Validate a comment body and return it stripped.

    Raises:
        CommentValidationError: empty, too long, profane or spammy text
    """
    stripped = (text or "").strip()
    if not stripped:
        raise CommentValidationError("Comment cannot be empty.", code="empty")
    if len(stripped) > MAX_COMMENT_LENGTH:
        raise CommentValidationError(
            f"Comment is too long. Maximum {MAX_COMMENT_LENGTH} characters.",
            code="too_long",
        )
    if contains_profanity(stripped):
        raise CommentValidationError(PROFANITY_MESSAGE, code="profanity")
    if contains_spam(stripped):
        raise CommentValidationError(SPAM_MESSAGE, code="spam")
    return stripped
