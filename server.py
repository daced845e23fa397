"""
Minimal Flask API that serves the oracle relay and the Twenty Questions game actions.

Endpoints:
- POST /api/oracle                        -> relay chat messages to the provider (server-side key)
- POST /api/games                         -> create a session on the setup screen (409 if game_id is taken)
- GET  /api/games/<id>                    -> current snapshot
- POST /api/games/<id>/setup              -> {mode?, theme?, difficulty?}
- POST /api/games/<id>/start              -> start the round
- POST /api/games/<id>/question           -> {question} (player guesses)
- POST /api/games/<id>/answer             -> {answer: yes|no|sometimes|idk} (AI guesses)
- POST /api/games/<id>/guess-response     -> {correct: bool} (AI guesses)
- POST /api/games/<id>/final-guess        -> {guess} (player guesses)
- POST /api/games/<id>/give-up            -> {answer?}
- POST /api/games/<id>/retry              -> re-run the step that failed
- POST /api/games/<id>/new                -> back to setup with a fresh round
- POST /api/games/<id>/reset-scores       -> zero the shared score record through the controller
- GET  /api/scores, POST /api/scores/reset

Each session holds a lock taken without blocking: a second action while one is waiting on the
oracle gets 409 busy. Sessions idle for longer than the configured TTL are dropped. The score
record is shared by every session and serialized by the lock inside ScoreStore.
"""
from __future__ import annotations

import logging
import os
import threading
import time
import uuid
from typing import Callable, Dict, Optional

from flask import Flask, jsonify, request

from src.twenty_questions.config import SETTINGS
from src.twenty_questions.errors import InvalidAction, ValidationRejected
from src.twenty_questions.game import GameController
from src.twenty_questions.oracle_client import OracleClient
from src.twenty_questions.relay import relay_bp
from src.twenty_questions.scores import ScoreStore
from src.twenty_questions.state import GENERAL_THEME

logging.basicConfig(
    level=getattr(logging, os.environ.get("TWENTYQ_LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = Flask(__name__)
app.register_blueprint(relay_bp)

games_lock = threading.Lock()
GAMES: Dict[str, dict] = {}
SCORES = ScoreStore(SETTINGS.scores_path)
_oracle_factory: Callable[[], object] = OracleClient


def set_oracle_factory(factory: Callable[[], object]) -> None:
    """Swap how new sessions reach the oracle (tests, alternative transports)."""
    global _oracle_factory
    _oracle_factory = factory


def _cleanup_stale_games(max_age_s: int = SETTINGS.session_ttl_s):
    now = time.time()
    with games_lock:
        expired = [gid for gid, sess in GAMES.items() if now - sess.get("updated_at", now) > max_age_s]
        for gid in expired:
            GAMES.pop(gid, None)
    if expired:
        logging.info("Dropped %d stale game session(s)", len(expired))


def _get_session(game_id: str) -> Optional[dict]:
    with games_lock:
        return GAMES.get(game_id)


def _serialize(session: dict) -> dict:
    data = session["controller"].snapshot()
    data["game_id"] = session["id"]
    return data


def _run_action(game_id: str, action: Callable[[GameController, dict], None]):
    """Apply one controller action under the session lock and return the snapshot response."""
    _cleanup_stale_games()
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    data = request.get_json(silent=True) or {}
    if not session["lock"].acquire(blocking=False):
        return jsonify({"error": "busy"}), 409
    try:
        controller: GameController = session["controller"]
        try:
            action(controller, data)
        except ValidationRejected as exc:
            return jsonify({"error": "validation_rejected", "message": str(exc), **_serialize(session)}), 422
        except InvalidAction as exc:
            return jsonify({"error": "invalid_action", "message": str(exc), **_serialize(session)}), 409
        session["updated_at"] = time.time()
        return jsonify(_serialize(session))
    finally:
        session["lock"].release()


# ---------------- Actions -----------------
def _apply_setup(controller: GameController, data: dict) -> None:
    if data.get("mode") is not None:
        controller.select_mode(data["mode"])
    if data.get("difficulty") is not None:
        controller.set_difficulty(data["difficulty"])
    if "theme" in data:
        theme = data.get("theme")
        if theme is None or str(theme).strip() in ("", GENERAL_THEME):
            controller.select_general_theme()
        else:
            controller.set_custom_theme(str(theme))


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


@app.route("/api/games", methods=["POST"])
def create_game():
    _cleanup_stale_games()
    data = request.get_json(silent=True) or {}
    game_id = data.get("game_id") or f"tq_{int(time.time())}_{uuid.uuid4().hex[:6]}"
    controller = GameController(oracle=_oracle_factory(), scores=SCORES)
    session = {
        "id": game_id,
        "controller": controller,
        "created_at": time.time(),
        "updated_at": time.time(),
        "lock": threading.Lock(),
    }
    with games_lock:
        if game_id in GAMES:
            return jsonify({"error": "game_id already exists"}), 409
        GAMES[game_id] = session
    logging.info("Created game session %s", game_id)
    return jsonify(_serialize(session)), 201


@app.route("/api/games/<game_id>", methods=["GET"])
def get_game(game_id: str):
    session = _get_session(game_id)
    if not session:
        return jsonify({"error": "not found"}), 404
    return jsonify(_serialize(session))


@app.route("/api/games/<game_id>/setup", methods=["POST"])
def setup_game(game_id: str):
    return _run_action(game_id, _apply_setup)


@app.route("/api/games/<game_id>/start", methods=["POST"])
def start_game(game_id: str):
    return _run_action(game_id, lambda c, d: c.start_round())


@app.route("/api/games/<game_id>/question", methods=["POST"])
def ask_question(game_id: str):
    return _run_action(game_id, lambda c, d: c.ask_question(d.get("question")))


@app.route("/api/games/<game_id>/answer", methods=["POST"])
def answer_question(game_id: str):
    return _run_action(game_id, lambda c, d: c.respond(d.get("answer") or ""))


@app.route("/api/games/<game_id>/guess-response", methods=["POST"])
def guess_response(game_id: str):
    return _run_action(game_id, lambda c, d: c.confirm_guess(_as_bool(d.get("correct"))))


@app.route("/api/games/<game_id>/final-guess", methods=["POST"])
def final_guess(game_id: str):
    return _run_action(game_id, lambda c, d: c.final_guess(d.get("guess")))


@app.route("/api/games/<game_id>/give-up", methods=["POST"])
def give_up(game_id: str):
    return _run_action(game_id, lambda c, d: c.give_up(d.get("answer")))


@app.route("/api/games/<game_id>/retry", methods=["POST"])
def retry(game_id: str):
    return _run_action(game_id, lambda c, d: c.retry())


@app.route("/api/games/<game_id>/new", methods=["POST"])
def new_game(game_id: str):
    return _run_action(game_id, lambda c, d: c.new_game())


@app.route("/api/games/<game_id>/reset-scores", methods=["POST"])
def reset_game_scores(game_id: str):
    return _run_action(game_id, lambda c, d: c.reset_scores())


def _scores_body(rec) -> dict:
    return {**rec.to_dict(), "winPercentage": rec.win_percentage}


@app.route("/api/scores", methods=["GET"])
def get_scores():
    return jsonify(_scores_body(SCORES.current()))


@app.route("/api/scores/reset", methods=["POST"])
def reset_scores():
    # Same path as GameController.reset_scores: ScoreStore.reset under the store lock.
    return jsonify(_scores_body(SCORES.reset()))


@app.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    # Prevent caching so the UI always sees the freshest round state
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return response


@app.route("/api/games/<path:path>", methods=["OPTIONS"])
def cors_preflight(path: str):
    return app.make_response(("", 204))


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 8000)), threaded=True)
