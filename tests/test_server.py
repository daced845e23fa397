import os
import tempfile
import threading
import unittest
from unittest.mock import patch

import server
from src.twenty_questions.scores import ScoreStore
from tests.fakes import ScriptedOracle


class GameApiTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        scores_patch = patch.object(server, "SCORES", ScoreStore(os.path.join(self._tmp.name, "scores.json")))
        scores_patch.start()
        self.addCleanup(scores_patch.stop)
        self.oracle = ScriptedOracle(secret="guitar", yesno="YES", answer="No", progress="30")
        server.set_oracle_factory(lambda: self.oracle)
        self.addCleanup(server.set_oracle_factory, server.OracleClient)
        self.client = server.app.test_client()

    def create(self) -> str:
        rsp = self.client.post("/api/games", json={})
        self.assertEqual(rsp.status_code, 201)
        body = rsp.get_json()
        self.assertEqual(body["screen"], "setup")
        self.addCleanup(server.GAMES.pop, body["game_id"], None)
        return body["game_id"]

    def test_user_guesses_round_over_http(self):
        gid = self.create()
        rsp = self.client.post(f"/api/games/{gid}/setup", json={"mode": "user-guesses", "theme": "General", "difficulty": 2})
        self.assertTrue(rsp.get_json()["can_start"])

        rsp = self.client.post(f"/api/games/{gid}/start")
        body = rsp.get_json()
        self.assertEqual(body["screen"], "game")
        self.assertEqual(body["turn"], "user_asks")
        self.assertNotIn("secret", body)

        body = self.client.post(f"/api/games/{gid}/question", json={"question": "Is it alive?"}).get_json()
        self.assertEqual(body["question_count"], 1)
        self.assertEqual(body["progress"], 30)
        self.assertEqual(body["conversation"][-1]["text"], "No")

        body = self.client.post(f"/api/games/{gid}/final-guess", json={"guess": "Guitar"}).get_json()
        self.assertFalse(body["active"])
        self.assertEqual(body["screen"], "score")
        self.assertTrue(body["outcome"]["won"])
        self.assertEqual(body["secret"], "guitar")
        self.assertEqual(body["scores"], {"gamesPlayed": 1, "gamesWon": 1, "winPercentage": 100})

        scores = self.client.get("/api/scores").get_json()
        self.assertEqual(scores["gamesWon"], 1)
        self.assertEqual(self.client.post("/api/scores/reset").get_json()["gamesPlayed"], 0)

    def test_rejected_theme_is_422_with_snapshot(self):
        gid = self.create()
        rsp = self.client.post(f"/api/games/{gid}/setup", json={"mode": "ai-guesses", "theme": "weapons"})
        self.assertEqual(rsp.status_code, 422)
        body = rsp.get_json()
        self.assertEqual(body["message"], "Please choose a family-friendly theme")
        self.assertFalse(body["can_start"])
        self.assertEqual(self.oracle.calls, [])

    def test_action_out_of_turn_is_409(self):
        gid = self.create()
        rsp = self.client.post(f"/api/games/{gid}/answer", json={"answer": "yes"})
        self.assertEqual(rsp.status_code, 409)
        self.assertEqual(rsp.get_json()["error"], "invalid_action")

    def test_busy_session_is_409(self):
        gid = self.create()
        lock: threading.Lock = server.GAMES[gid]["lock"]
        lock.acquire()
        try:
            rsp = self.client.post(f"/api/games/{gid}/start")
        finally:
            lock.release()
        self.assertEqual(rsp.status_code, 409)
        self.assertEqual(rsp.get_json(), {"error": "busy"})

    def test_existing_game_id_is_not_replaced(self):
        gid = self.create()
        original = server.GAMES[gid]
        rsp = self.client.post("/api/games", json={"game_id": gid})
        self.assertEqual(rsp.status_code, 409)
        self.assertIs(server.GAMES[gid], original)

    def test_session_reset_scores_goes_through_controller(self):
        gid = self.create()
        server.SCORES.record_round(True)
        body = self.client.post(f"/api/games/{gid}/reset-scores").get_json()
        self.assertEqual(body["scores"], {"gamesPlayed": 0, "gamesWon": 0, "winPercentage": 0})
        self.assertEqual(self.client.get("/api/scores").get_json()["gamesPlayed"], 0)

    def test_unknown_game_is_404(self):
        self.assertEqual(self.client.get("/api/games/nope").status_code, 404)
        self.assertEqual(self.client.post("/api/games/nope/start").status_code, 404)

    def test_ai_guesses_round_with_give_up(self):
        self.oracle = ScriptedOracle(question="Is it alive?")
        gid = self.create()
        self.client.post(f"/api/games/{gid}/setup", json={"mode": "ai-guesses"})
        body = self.client.post(f"/api/games/{gid}/start").get_json()
        self.assertEqual(body["buttons"], ["yes", "no", "sometimes", "idk"])
        body = self.client.post(f"/api/games/{gid}/answer", json={"answer": "idk"}).get_json()
        self.assertEqual(body["question_count"], 1)
        body = self.client.post(f"/api/games/{gid}/give-up", json={"answer": "a kite"}).get_json()
        self.assertEqual(body["outcome"]["message"], "Ah, it was a kite! Good one!")
        body = self.client.post(f"/api/games/{gid}/new").get_json()
        self.assertEqual(body["screen"], "setup")
        self.assertIsNone(body["mode"])


if __name__ == "__main__":
    unittest.main()
