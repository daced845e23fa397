"""
Persisted win/loss counters.

The record lives in a JSON file under a fixed key:
    {"twentyQuestions_scores": {"gamesPlayed": 3, "gamesWon": 1}}
A missing file or key means a fresh {0, 0} record. Every mutation is written through immediately.
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, replace
from pathlib import Path

SCORES_KEY = "twentyQuestions_scores"

log = logging.getLogger("scores")


@dataclass
class ScoreRecord:
    games_played: int = 0
    games_won: int = 0

    @property
    def win_percentage(self) -> int:
        if self.games_played <= 0:
            return 0
        return round(self.games_won / self.games_played * 100)

    def to_dict(self) -> dict:
        return {"gamesPlayed": self.games_played, "gamesWon": self.games_won}

    @classmethod
    def from_dict(cls, data: dict) -> "ScoreRecord":
        return cls(
            games_played=int(data.get("gamesPlayed", 0) or 0),
            games_won=int(data.get("gamesWon", 0) or 0),
        )


class ScoreStore:
    """Owns one ScoreRecord and its backing file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        # Shared by every game session; held across each mutate-and-save.
        self.lock = threading.Lock()
        self.record = self.load()

    def current(self) -> ScoreRecord:
        """Copy of the record taken under the lock."""
        with self.lock:
            return replace(self.record)

    def load(self) -> ScoreRecord:
        if not self.path.exists():
            return ScoreRecord()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.exception("Failed to load scores from %s; starting fresh", self.path)
            return ScoreRecord()
        saved = raw.get(SCORES_KEY) if isinstance(raw, dict) else None
        if not isinstance(saved, dict):
            return ScoreRecord()
        try:
            return ScoreRecord.from_dict(saved)
        except (TypeError, ValueError):
            log.exception("Malformed score record in %s; starting fresh", self.path)
            return ScoreRecord()

    def save(self) -> None:
        """Write the record into the file, keeping any other keys. Callers hold ``lock``."""
        data: dict = {}
        if self.path.exists():
            try:
                existing = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(existing, dict):
                    data = existing
            except (OSError, ValueError):
                log.warning("Overwriting unreadable scores file %s", self.path)
        data[SCORES_KEY] = self.record.to_dict()
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def record_round(self, won: bool) -> ScoreRecord:
        with self.lock:
            self.record.games_played += 1
            if won:
                self.record.games_won += 1
            self.save()
            rec = replace(self.record)
        log.info("Scores updated played=%d won=%d", rec.games_played, rec.games_won)
        return rec

    def reset(self) -> ScoreRecord:
        with self.lock:
            self.record = ScoreRecord()
            self.save()
            rec = replace(self.record)
        log.info("Scores reset")
        return rec
