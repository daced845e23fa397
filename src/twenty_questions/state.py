"""
Round state for one Twenty Questions game.

- GameState: the single mutable record owned by GameController; replaced wholesale on new_game().
- Message: one conversation entry (user, ai or system) with a timestamp.
- Enums for the setup choices (Mode), the visible screen (Screen) and whose input is expected (Turn).
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

MAX_QUESTIONS = 20
GENERAL_THEME = "General"
DIFFICULTY_LABELS = {1: "Easy", 2: "Medium", 3: "Hard"}


class Mode(str, Enum):
    USER_GUESSES = "user-guesses"  # oracle picks the secret, player asks
    AI_GUESSES = "ai-guesses"      # player holds the secret, oracle asks

    @property
    def label(self) -> str:
        return "You're guessing" if self is Mode.USER_GUESSES else "AI is guessing"


class Role(str, Enum):
    USER = "user"
    AI = "ai"
    SYSTEM = "system"


class Screen(str, Enum):
    SETUP = "setup"
    GAME = "game"
    ENDED = "score"


class Turn(str, Enum):
    NONE = "none"
    USER_ASKS = "user_asks"                      # free-text question box
    USER_ANSWERS = "user_answers"                # yes / no / sometimes / idk
    USER_CONFIRMS_GUESS = "user_confirms_guess"  # "you guessed it" + yes / no / sometimes


ANSWER_LABELS = {
    "yes": "Yes",
    "no": "No",
    "sometimes": "Sometimes",
    "idk": "I don't know",
}

TURN_BUTTONS = {
    Turn.NONE: [],
    Turn.USER_ASKS: [],
    Turn.USER_ANSWERS: ["yes", "no", "sometimes", "idk"],
    Turn.USER_CONFIRMS_GUESS: ["guessed", "yes", "no", "sometimes"],
}


@dataclass
class Message:
    role: Role
    text: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {"role": self.role.value, "text": self.text, "timestamp": self.timestamp}


@dataclass
class RoundOutcome:
    won: bool
    message: str


@dataclass
class GameState:
    mode: Optional[Mode] = None
    theme: Optional[str] = GENERAL_THEME
    difficulty: int = 2
    question_count: int = 0
    max_questions: int = MAX_QUESTIONS
    conversation: List[Message] = field(default_factory=list)
    active: bool = False
    secret_object: Optional[str] = None
    progress: int = 0
    screen: Screen = Screen.SETUP
    turn: Turn = Turn.NONE
    outcome: Optional[RoundOutcome] = None
    pending_retry: Optional[str] = None

    @property
    def difficulty_label(self) -> str:
        return DIFFICULTY_LABELS.get(self.difficulty, "Medium")

    @property
    def is_general_theme(self) -> bool:
        return self.theme == GENERAL_THEME

    def add_message(self, role: Role, text: str) -> Message:
        msg = Message(role=role, text=text)
        self.conversation.append(msg)
        return msg

    def transcript_turns(self) -> List[Message]:
        """Conversation without system notices, in order."""
        return [m for m in self.conversation if m.role is not Role.SYSTEM]
