"""
Prompt builders for every oracle request a round can make.

Each template is a plain string with {PLACEHOLDER} tokens substituted per call.
Builders return chat-style message lists ready for OracleClient.ask().
"""
from __future__ import annotations

from typing import Dict, List, Sequence

from .state import GENERAL_THEME, Message, Role

THEME_CHECK_TEMPLATE = """Is "{THEME}" appropriate for a family-friendly 20 questions game? Consider if it's:
1. Family-appropriate (no violence, adult content, etc.)
2. Playable (has enough variety for 20 questions)
3. Clear and understandable

Respond with only "YES" or "NO"."""

PICK_SECRET_TEMPLATE = """You are running a 20 questions game. Pick a {SUBJECT} for the user to guess.

Difficulty level: {DIFFICULTY}

Respond with just the object/item you've chosen, nothing else. Make it {PICK_STYLE}."""

YES_NO_CHECK_TEMPLATE = (
    'Is the following question a yes/no question? Answer with "YES" or "NO" only.\n\n'
    'Question: "{QUESTION}"'
)

ANSWER_AS_SECRET_TEMPLATE = """You are the object "{SECRET}" in a 20 questions game. The user asked: "{QUESTION}"

Respond with only "Yes", "No", or "Sometimes" (if the answer depends on context). Be accurate and helpful. If the question is about guessing the exact object, say if they got it right or wrong."""

ASK_QUESTION_TEMPLATE = """You are playing 20 questions. You need to guess what the user is thinking of{THEME_NOTE}.

Difficulty: {DIFFICULTY} - {QUESTION_STYLE}

Previous conversation:
{TRANSCRIPT}

Question {QUESTION_NUMBER}/{MAX_QUESTIONS}. Ask a yes/no question to narrow down what they're thinking of. Be strategic and build on previous answers."""

MAKE_GUESS_TEMPLATE = """Based on this 20 questions conversation, make your best guess at what the user is thinking of:

{TRANSCRIPT}

Respond with: "Is it [your guess]?" - make only one specific guess."""

PROGRESS_TEMPLATE = """Analyze this 20 questions conversation and estimate how close we are to the answer. Return only a number between 0-100 representing the percentage of progress toward solving the puzzle.

Conversation:
{TRANSCRIPT}

Consider: How specific are the questions/answers getting? How much has been narrowed down? Return only the number."""

PICK_STYLES = {1: "easy and well-known", 2: "moderately challenging", 3: "difficult and obscure"}
QUESTION_STYLES = {1: "Ask simple, broad questions", 2: "Ask strategic questions", 3: "Ask clever, specific questions"}

SECRET_TEMPERATURE = 1.0
PROGRESS_WINDOW = 6


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def _system_only(content: str) -> List[Dict[str, str]]:
    return [{"role": "system", "content": content}]


def transcript_text(turns: Sequence[Message]) -> str:
    """Return one line per turn: 'AI: ...' / 'User: ...'. System notices are skipped."""
    lines = []
    for msg in turns:
        if msg.role is Role.SYSTEM:
            continue
        speaker = "AI" if msg.role is Role.AI else "User"
        lines.append(f"{speaker}: {msg.text}")
    return "\n".join(lines)


def theme_check_messages(theme: str) -> List[Dict[str, str]]:
    return _system_only(render_custom_prompt(THEME_CHECK_TEMPLATE, {"THEME": theme}))


def pick_secret_messages(theme: str, difficulty: int, difficulty_label: str) -> List[Dict[str, str]]:
    subject = (
        "random object, person, place, or concept"
        if theme == GENERAL_THEME
        else f"item from the theme: {theme}"
    )
    return _system_only(render_custom_prompt(PICK_SECRET_TEMPLATE, {
        "SUBJECT": subject,
        "DIFFICULTY": difficulty_label,
        "PICK_STYLE": PICK_STYLES.get(difficulty, PICK_STYLES[2]),
    }))


def yes_no_check_messages(question: str) -> List[Dict[str, str]]:
    return _system_only(render_custom_prompt(YES_NO_CHECK_TEMPLATE, {"QUESTION": question}))


def answer_as_secret_messages(secret: str, question: str) -> List[Dict[str, str]]:
    return _system_only(render_custom_prompt(ANSWER_AS_SECRET_TEMPLATE, {"SECRET": secret, "QUESTION": question}))


def ask_question_messages(
    theme: str,
    difficulty: int,
    difficulty_label: str,
    turns: Sequence[Message],
    question_number: int,
    max_questions: int,
) -> List[Dict[str, str]]:
    theme_note = "" if theme == GENERAL_THEME else f" (theme: {theme})"
    return _system_only(render_custom_prompt(ASK_QUESTION_TEMPLATE, {
        "THEME_NOTE": theme_note,
        "DIFFICULTY": difficulty_label,
        "QUESTION_STYLE": QUESTION_STYLES.get(difficulty, QUESTION_STYLES[2]),
        "TRANSCRIPT": transcript_text(turns) or "(none)",
        "QUESTION_NUMBER": str(question_number),
        "MAX_QUESTIONS": str(max_questions),
    }))


def make_guess_messages(turns: Sequence[Message]) -> List[Dict[str, str]]:
    return _system_only(render_custom_prompt(MAKE_GUESS_TEMPLATE, {"TRANSCRIPT": transcript_text(turns)}))


def progress_messages(turns: Sequence[Message]) -> List[Dict[str, str]]:
    recent = list(turns)[-PROGRESS_WINDOW:]
    return _system_only(render_custom_prompt(PROGRESS_TEMPLATE, {"TRANSCRIPT": transcript_text(recent)}))
