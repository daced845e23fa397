"""
Interpretation of free-text oracle replies as game signals.

Every decision point that reads model output goes through exactly one function here:
1. is_exact_yes: classification checks (theme appropriateness, yes/no question) need a bare YES.
2. classify_answer: role-played answers are labelled yes/no/sometimes/unknown for logging.
3. detects_correct_guess: win heuristic for the player's question + oracle reply.
4. parse_progress / clamp_progress / fallback_progress: the 0-100 closeness estimate.
5. guess_matches_secret: local containment check for a typed final guess.

The matching is plain string work (trim, lowercase, exact or substring match against a small vocabulary).
"""
from __future__ import annotations

import re
from typing import Literal, Optional

AnswerLabel = Literal["yes", "no", "sometimes", "unknown"]

YES_RE = re.compile(r"\b(yes|yep|yeah)\b", re.IGNORECASE)
NO_RE = re.compile(r"\b(no|nope|nah)\b", re.IGNORECASE)
SOMETIMES_RE = re.compile(r"\b(sometimes|depends|partly)\b", re.IGNORECASE)
LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

WIN_WORDS = ("correct", "right")


def is_exact_yes(raw: str | None) -> bool:
    """True only when the whole reply is the word YES (case-insensitive, surrounding space ignored)."""
    return (raw or "").strip().upper() == "YES"


def classify_answer(raw: str | None) -> AnswerLabel:
    text = raw or ""
    if SOMETIMES_RE.search(text):
        return "sometimes"
    if YES_RE.search(text):
        return "yes"
    if NO_RE.search(text):
        return "no"
    return "unknown"


def detects_correct_guess(reply: str, question: str, secret: str) -> bool:
    """Win heuristic, kept literal: 'correct'/'right' anywhere in the reply, or the
    question names the secret and the reply contains 'yes'."""
    reply_l = (reply or "").lower()
    if any(word in reply_l for word in WIN_WORDS):
        return True
    secret_l = (secret or "").lower()
    if not secret_l:
        return False
    return secret_l in (question or "").lower() and "yes" in reply_l


def parse_progress(raw: str | None) -> Optional[int]:
    """Leading integer of the reply ("75", "80%"), or None when there is none."""
    m = LEADING_INT_RE.match(raw or "")
    if not m:
        return None
    return int(m.group(1))


def clamp_progress(value: float) -> int:
    return int(round(min(max(value, 0), 100)))


def fallback_progress(question_count: int, max_questions: int) -> int:
    if max_questions <= 0:
        return 0
    return clamp_progress(question_count / max_questions * 100)


def guess_matches_secret(guess: str, secret: str) -> bool:
    """Case-insensitive containment in either direction."""
    g = (guess or "").strip().lower()
    s = (secret or "").strip().lower()
    if not g or not s:
        return False
    return g in s or s in g
