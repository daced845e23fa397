import json
import os
import tempfile
import threading
import unittest
from unittest.mock import patch

from src.twenty_questions.scores import SCORES_KEY, ScoreRecord, ScoreStore


class ScoreStoreTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = os.path.join(self._tmp.name, "scores.json")

    def test_missing_file_defaults_to_zero(self):
        store = ScoreStore(self.path)
        self.assertEqual(store.record.to_dict(), {"gamesPlayed": 0, "gamesWon": 0})
        self.assertFalse(os.path.exists(self.path))

    def test_win_then_loss_is_persisted_under_fixed_key(self):
        store = ScoreStore(self.path)
        store.record_round(True)
        store.record_round(False)
        with open(self.path, encoding="utf-8") as f:
            saved = json.load(f)
        self.assertEqual(saved[SCORES_KEY], {"gamesPlayed": 2, "gamesWon": 1})
        self.assertEqual(ScoreStore(self.path).record, ScoreRecord(games_played=2, games_won=1))

    def test_reset(self):
        store = ScoreStore(self.path)
        store.record_round(True)
        store.reset()
        self.assertEqual(ScoreStore(self.path).record.to_dict(), {"gamesPlayed": 0, "gamesWon": 0})

    def test_reset_waits_for_round_in_progress(self):
        store = ScoreStore(self.path)
        saving = threading.Event()
        release = threading.Event()
        real_save = store.save

        def slow_save():
            if not saving.is_set():
                saving.set()
                release.wait(5)
            real_save()

        with patch.object(store, "save", side_effect=slow_save):
            recorder = threading.Thread(target=store.record_round, args=(True,))
            recorder.start()
            self.assertTrue(saving.wait(5))
            resetter = threading.Thread(target=store.reset)
            resetter.start()
            resetter.join(0.2)
            self.assertTrue(resetter.is_alive())
            release.set()
            recorder.join(5)
            resetter.join(5)

        saved = ScoreStore(self.path).record
        self.assertLessEqual(saved.games_won, saved.games_played)
        self.assertEqual(saved, ScoreRecord())

    def test_concurrent_rounds_are_all_counted(self):
        store = ScoreStore(self.path)
        threads = [threading.Thread(target=store.record_round, args=(i % 2 == 0,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5)
        self.assertEqual(ScoreStore(self.path).record.to_dict(), {"gamesPlayed": 20, "gamesWon": 10})

    def test_unreadable_or_missing_key_starts_fresh(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("{not json")
        self.assertEqual(ScoreStore(self.path).record, ScoreRecord())
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"other": 1}, f)
        store = ScoreStore(self.path)
        self.assertEqual(store.record, ScoreRecord())
        store.record_round(False)
        with open(self.path, encoding="utf-8") as f:
            self.assertEqual(json.load(f)["other"], 1)

    def test_win_percentage(self):
        self.assertEqual(ScoreRecord().win_percentage, 0)
        self.assertEqual(ScoreRecord(games_played=3, games_won=2).win_percentage, 67)


if __name__ == "__main__":
    unittest.main()
