"""Local theme gates applied before any oracle call."""
from __future__ import annotations

from .errors import ValidationRejected
from .state import GENERAL_THEME

MIN_THEME_LENGTH = 3
BLOCKED_WORDS = ("violence", "weapon", "drug", "adult", "explicit")


def validate_theme_locally(text: str | None) -> str:
    """Return the theme to use for this input, or raise ValidationRejected.

    Blank input selects the general theme. Gates run in order: length, then the
    lowercase substring denylist.
    """
    theme = (text or "").strip()
    if not theme:
        return GENERAL_THEME
    if len(theme) < MIN_THEME_LENGTH:
        raise ValidationRejected("Theme too short")
    lowered = theme.lower()
    if any(word in lowered for word in BLOCKED_WORDS):
        raise ValidationRejected("Please choose a family-friendly theme")
    return theme
