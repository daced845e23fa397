"""
Round controller: the Twenty Questions state machine over one GameState.

- GameController: owns one GameState and the process ScoreStore; every mutation goes through its actions.
  - Setup: select_mode / select_general_theme / set_custom_theme / set_difficulty, then start_round().
  - User guesses: ask_question() loops until a detected win or the question cap; final_guess()/give_up() end early.
  - AI guesses: respond() with yes/no/sometimes/idk drives question-or-guess; confirm_guess() settles a guess.
  - retry() re-runs the generative step that last failed; new_game() goes back to setup.
- Classification calls (theme check, yes/no check, progress) absorb oracle failures with a default.
  Generative calls (secret, question, answer, guess) report failures inline and wait for retry().
- A busy flag is held for the duration of every action; re-entry raises GameBusy.
"""
from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from functools import partial
from typing import Callable, Optional, Protocol

from . import prompting
from .config import SETTINGS
from .errors import GameBusy, InvalidAction, OracleError, OracleProtocolError, ValidationRejected
from .normalizer import (
    classify_answer,
    clamp_progress,
    detects_correct_guess,
    fallback_progress,
    guess_matches_secret,
    is_exact_yes,
    parse_progress,
)
from .scores import ScoreRecord, ScoreStore
from .state import (
    ANSWER_LABELS,
    DIFFICULTY_LABELS,
    GENERAL_THEME,
    TURN_BUTTONS,
    GameState,
    Mode,
    Role,
    RoundOutcome,
    Screen,
    Turn,
)
from .themes import validate_theme_locally


class Oracle(Protocol):
    def ask(self, messages: list[dict], temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> str: ...


class GameController:
    def __init__(
        self,
        oracle: Oracle,
        scores: ScoreStore,
        rng: random.Random | None = None,
        guess_threshold: int | None = None,
        guess_probability: float | None = None,
    ):
        self.log = logging.getLogger("GameController")
        self.oracle = oracle
        self.scores = scores
        self.rng = rng or random.Random()
        self.guess_threshold = SETTINGS.guess_threshold if guess_threshold is None else guess_threshold
        self.guess_probability = SETTINGS.guess_probability if guess_probability is None else guess_probability
        self.state = GameState()
        self._busy = False
        self._retry_step: Callable[[], None] | None = None

    # ---------------- Guards -----------------
    @property
    def busy(self) -> bool:
        return self._busy

    @contextmanager
    def _action(self):
        if self._busy:
            raise GameBusy("Still waiting for the oracle")
        self._busy = True
        try:
            yield self.state
        finally:
            self._busy = False

    def _require_screen(self, screen: Screen) -> None:
        if self.state.screen is not screen:
            raise InvalidAction(f"Not available on the {self.state.screen.value} screen")

    def _require_active(self, mode: Mode | None = None) -> None:
        st = self.state
        if not st.active:
            raise InvalidAction("No round in progress")
        if mode is not None and st.mode is not mode:
            raise InvalidAction(f"Only available when {mode.label.lower()}")

    def _require_turn(self, *turns: Turn) -> None:
        self._require_active()
        if self.state.turn not in turns:
            raise InvalidAction(f"Not expected now (turn={self.state.turn.value})")

    # ---------------- Setup screen -----------------
    def select_mode(self, mode: Mode | str) -> None:
        with self._action():
            self._require_screen(Screen.SETUP)
            try:
                self.state.mode = Mode(mode)
            except ValueError:
                raise ValidationRejected(f"Unknown role: {mode!r}") from None

    def select_general_theme(self) -> None:
        with self._action():
            self._require_screen(Screen.SETUP)
            self.state.theme = GENERAL_THEME

    def set_custom_theme(self, text: str | None) -> str:
        """Apply the local gates; a rejected theme blocks start until a valid one is chosen."""
        with self._action():
            self._require_screen(Screen.SETUP)
            try:
                theme = validate_theme_locally(text)
            except ValidationRejected:
                self.state.theme = None
                raise
            self.state.theme = theme
            return theme

    def set_difficulty(self, level: int | str) -> None:
        with self._action():
            self._require_screen(Screen.SETUP)
            try:
                value = int(level)
            except (TypeError, ValueError):
                raise ValidationRejected(f"Difficulty must be one of {sorted(DIFFICULTY_LABELS)}") from None
            if value not in DIFFICULTY_LABELS:
                raise ValidationRejected(f"Difficulty must be one of {sorted(DIFFICULTY_LABELS)}")
            self.state.difficulty = value

    @property
    def can_start(self) -> bool:
        return self.state.mode is not None and bool(self.state.theme)

    def start_round(self) -> None:
        with self._action() as st:
            self._require_screen(Screen.SETUP)
            if not self.can_start:
                raise InvalidAction("Choose a role and a theme first")
            if not st.is_general_theme and not self._theme_is_appropriate(st.theme):
                self.log.info("Theme %r not accepted by the oracle; using %s", st.theme, GENERAL_THEME)
                st.theme = GENERAL_THEME

            st.question_count = 0
            st.conversation = []
            st.progress = 0
            st.outcome = None
            st.secret_object = None
            self._clear_retry()

            if st.mode is Mode.USER_GUESSES:
                self._start_user_guesses()
            else:
                self._start_ai_guesses()

    def _start_user_guesses(self) -> None:
        st = self.state
        try:
            secret = self._ask(
                prompting.pick_secret_messages(st.theme, st.difficulty, st.difficulty_label),
                temperature=prompting.SECRET_TEMPERATURE,
            )
            if not secret:
                raise OracleProtocolError("Empty secret")
        except OracleError as exc:
            self.log.error("Secret selection failed: %s", exc)
            st.add_message(Role.SYSTEM, "Sorry, I had trouble starting the game. Please try again.")
            return
        st.secret_object = secret
        st.active = True
        st.screen = Screen.GAME
        st.turn = Turn.USER_ASKS
        st.add_message(
            Role.SYSTEM,
            f"I'm thinking of something{self._theme_suffix()}. Ask me yes/no questions to figure out "
            f"what it is! You have {st.max_questions} questions.",
        )
        self.log.info("Round started mode=%s theme=%s difficulty=%d", st.mode.value, st.theme, st.difficulty)
        self.log.debug("Secret chosen: %s", secret)

    def _start_ai_guesses(self) -> None:
        st = self.state
        st.active = True
        st.screen = Screen.GAME
        st.add_message(
            Role.SYSTEM,
            f"Think of something{self._theme_suffix()} and I'll try to guess it! I'll ask you yes/no questions.",
        )
        self.log.info("Round started mode=%s theme=%s difficulty=%d", st.mode.value, st.theme, st.difficulty)
        self._ask_question(counted=True)

    def _theme_suffix(self) -> str:
        return "" if self.state.is_general_theme else f" related to {self.state.theme}"

    # ---------------- User guesses -----------------
    def ask_question(self, text: str | None) -> None:
        with self._action() as st:
            self._require_turn(Turn.USER_ASKS)
            question = (text or "").strip()
            if not question:
                return
            if not self._is_yes_no_question(question):
                raise ValidationRejected("Please ask a yes/no question.")
            st.question_count += 1
            st.add_message(Role.USER, question)
            self._answer_question(question)

    def _answer_question(self, question: str) -> None:
        st = self.state
        try:
            reply = self._ask(prompting.answer_as_secret_messages(st.secret_object, question))
        except OracleError as exc:
            self._fail_inline(exc, "Sorry, I had trouble responding. Please try again.", "answer",
                              partial(self._answer_question, question))
            return
        self._clear_retry()
        st.turn = Turn.USER_ASKS
        st.add_message(Role.AI, reply)
        self.log.debug("Q%d %r -> %r (%s)", st.question_count, question, reply, classify_answer(reply))
        self._update_progress()

        if detects_correct_guess(reply, question, st.secret_object):
            self._end_round(True, f"Congratulations! You guessed it: {st.secret_object}")
        elif st.question_count >= st.max_questions:
            self._end_round(
                False,
                f"You've used all {st.max_questions} questions! The answer was: {st.secret_object}",
            )

    def final_guess(self, text: str | None) -> None:
        with self._action() as st:
            self._require_active(Mode.USER_GUESSES)
            guess = (text or "").strip()
            if not guess:
                return
            st.add_message(Role.USER, f"My final guess: {guess}")
            if guess_matches_secret(guess, st.secret_object):
                self._end_round(True, f"Correct! It was {st.secret_object}!")
            else:
                self._end_round(False, f"Sorry, it was {st.secret_object}. Better luck next time!")

    # ---------------- AI guesses -----------------
    def respond(self, answer: str) -> None:
        """Handle one answer button: yes / no / sometimes / idk."""
        with self._action() as st:
            self._require_active(Mode.AI_GUESSES)
            key = (answer or "").strip().lower()
            if key not in ANSWER_LABELS:
                raise ValidationRejected(f"Unknown answer: {answer!r}")
            self._require_turn(Turn.USER_ANSWERS, Turn.USER_CONFIRMS_GUESS)
            if key not in TURN_BUTTONS[st.turn]:
                raise InvalidAction(f"'{key}' is not an option right now")

            st.add_message(Role.USER, ANSWER_LABELS[key])
            self._update_progress()

            if key == "idk":
                # replacement question; the unanswered one is not charged
                self._ask_question(counted=False)
                return
            if self._should_guess():
                self._make_guess()
            else:
                self._ask_question(counted=True)

    def confirm_guess(self, correct: bool) -> None:
        with self._action() as st:
            self._require_turn(Turn.USER_CONFIRMS_GUESS)
            if correct:
                st.add_message(Role.USER, "Yes, you guessed it!")
                self._end_round(False, "I guessed it! Great game!")
            else:
                st.add_message(Role.USER, "No, keep guessing")
                self._ask_question(counted=True)

    def _should_guess(self) -> bool:
        return self.state.question_count >= self.guess_threshold or self.rng.random() < self.guess_probability

    def _ask_question(self, counted: bool) -> None:
        st = self.state
        if counted and st.question_count >= st.max_questions:
            self._end_round(False, f"I couldn't guess it in {st.max_questions} questions! What were you thinking of?")
            return
        number = st.question_count + 1 if counted else max(st.question_count, 1)
        messages = prompting.ask_question_messages(
            st.theme, st.difficulty, st.difficulty_label, st.transcript_turns(), number, st.max_questions,
        )
        try:
            question = self._ask(messages)
        except OracleError as exc:
            self._fail_inline(exc, "Sorry, I had trouble thinking of a question. Please try again.", "question",
                              partial(self._ask_question, counted))
            return
        self._clear_retry()
        st.add_message(Role.AI, question)
        if counted:
            st.question_count += 1
        st.turn = Turn.USER_ANSWERS
        self._update_progress()

    def _make_guess(self) -> None:
        st = self.state
        try:
            guess = self._ask(prompting.make_guess_messages(st.transcript_turns()))
        except OracleError as exc:
            self._fail_inline(exc, "Sorry, I had trouble making a guess. Please try again.", "guess", self._make_guess)
            return
        self._clear_retry()
        st.add_message(Role.AI, guess)
        st.turn = Turn.USER_CONFIRMS_GUESS

    # ---------------- Either mode -----------------
    def give_up(self, revealed: str | None = None) -> None:
        with self._action() as st:
            self._require_active()
            if st.mode is Mode.USER_GUESSES:
                self._end_round(False, f"The answer was: {st.secret_object}")
                return
            answer = (revealed or "").strip()
            self._end_round(False, f"Ah, it was {answer}! Good one!" if answer else "Thanks for playing!")

    def retry(self) -> None:
        with self._action():
            self._require_active()
            step = self._retry_step
            if step is None:
                raise InvalidAction("Nothing to retry")
            self.log.info("Retrying %s", self.state.pending_retry)
            step()

    def new_game(self) -> None:
        with self._action():
            self.state = GameState()
            self._clear_retry()

    def reset_scores(self) -> ScoreRecord:
        with self._action():
            return self.scores.reset()

    # ---------------- Oracle helpers -----------------
    def _ask(self, messages: list[dict], **options) -> str:
        self.log.debug("Oracle request: %s", messages[-1]["content"][:120].replace("\n", " "))
        return self.oracle.ask(messages, **options)

    def _theme_is_appropriate(self, theme: str) -> bool:
        try:
            return is_exact_yes(self._ask(prompting.theme_check_messages(theme)))
        except OracleError as exc:
            self.log.warning("Theme check failed (%s); falling back to %s", exc, GENERAL_THEME)
            return False

    def _is_yes_no_question(self, question: str) -> bool:
        try:
            return is_exact_yes(self._ask(prompting.yes_no_check_messages(question)))
        except OracleError as exc:
            self.log.warning("Yes/no check failed (%s); accepting question", exc)
            return True

    def _update_progress(self) -> None:
        st = self.state
        if len(st.conversation) < 2:
            st.progress = 0
            return
        value = None
        try:
            value = parse_progress(self._ask(prompting.progress_messages(st.transcript_turns())))
        except OracleError as exc:
            self.log.warning("Progress estimate failed (%s); using question count", exc)
        if value is None:
            st.progress = fallback_progress(st.question_count, st.max_questions)
        else:
            st.progress = clamp_progress(value)

    def _fail_inline(self, exc: Exception, message: str, label: str, step: Callable[[], None]) -> None:
        self.log.error("Oracle call for %s failed: %s", label, exc)
        st = self.state
        st.add_message(Role.SYSTEM, message)
        st.pending_retry = label
        st.turn = Turn.NONE
        self._retry_step = step

    def _clear_retry(self) -> None:
        self.state.pending_retry = None
        self._retry_step = None

    # ---------------- Round end -----------------
    def _end_round(self, won: bool, message: str) -> None:
        st = self.state
        if not st.active:
            self.log.warning("Round already ended; ignoring end(%s)", won)
            return
        st.active = False
        st.turn = Turn.NONE
        st.screen = Screen.ENDED
        self._clear_retry()
        st.add_message(Role.SYSTEM, message)
        st.outcome = RoundOutcome(won=won, message=message)
        self.scores.record_round(won)
        self.log.info("Round finished won=%s questions=%d mode=%s", won, st.question_count, st.mode.value)

    # ---------------- Export -----------------
    def allowed_actions(self) -> list[str]:
        st = self.state
        if st.screen is Screen.SETUP:
            return ["setup", "start"] if self.can_start else ["setup"]
        if not st.active:
            return ["new_game"]
        actions: list[str] = []
        if st.pending_retry:
            actions.append("retry")
        elif st.turn is Turn.USER_ASKS:
            actions.append("question")
        elif st.turn is Turn.USER_ANSWERS:
            actions.append("answer")
        elif st.turn is Turn.USER_CONFIRMS_GUESS:
            actions.extend(["guess_response", "answer"])
        if st.mode is Mode.USER_GUESSES:
            actions.append("final_guess")
        actions.extend(["give_up", "new_game"])
        return actions

    def snapshot(self) -> dict:
        """Return a JSON-ready view of the round for a front end."""
        st = self.state
        rec = self.scores.current()
        data = {
            "screen": st.screen.value,
            "mode": st.mode.value if st.mode else None,
            "mode_label": st.mode.label if st.mode else None,
            "theme": st.theme,
            "difficulty": st.difficulty,
            "difficulty_label": st.difficulty_label,
            "question_count": st.question_count,
            "max_questions": st.max_questions,
            "progress": st.progress,
            "active": st.active,
            "turn": st.turn.value,
            "buttons": list(TURN_BUTTONS[st.turn]),
            "actions": self.allowed_actions(),
            "can_start": self.can_start,
            "busy": self.busy,
            "pending_retry": st.pending_retry,
            "outcome": {"won": st.outcome.won, "message": st.outcome.message} if st.outcome else None,
            "conversation": [m.to_dict() for m in st.conversation],
            "scores": {**rec.to_dict(), "winPercentage": rec.win_percentage},
        }
        if st.mode is Mode.USER_GUESSES and st.screen is Screen.ENDED:
            data["secret"] = st.secret_object
        return data
