import unittest
from unittest.mock import Mock

import requests

from src.twenty_questions.errors import OracleProtocolError, OracleUnavailable
from src.twenty_questions.oracle_client import OracleClient

MESSAGES = [{"role": "system", "content": "Pick something."}]


def _response(status=200, payload=None, json_error=False, reason="OK"):
    rsp = Mock()
    rsp.status_code = status
    rsp.ok = 200 <= status < 300
    rsp.reason = reason
    if json_error:
        rsp.json.side_effect = ValueError("no json")
    else:
        rsp.json.return_value = payload
    return rsp


def _completion(text):
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": text}}]}


class OracleClientTests(unittest.TestCase):
    def make(self, response=None, exc=None):
        session = Mock()
        if exc is not None:
            session.post.side_effect = exc
        else:
            session.post.return_value = response
        return OracleClient(url="http://relay.test/api/oracle", session=session), session

    def test_returns_trimmed_first_choice(self):
        client, session = self.make(_response(payload=_completion("  guitar \n")))
        self.assertEqual(client.ask(MESSAGES, temperature=1.0), "guitar")
        args, kwargs = session.post.call_args
        self.assertEqual(args[0], "http://relay.test/api/oracle")
        self.assertEqual(kwargs["json"], {"messages": MESSAGES, "temperature": 1.0})

    def test_max_tokens_is_forwarded(self):
        client, session = self.make(_response(payload=_completion("ok")))
        client.ask(MESSAGES, max_tokens=5)
        self.assertEqual(session.post.call_args.kwargs["json"]["max_tokens"], 5)

    def test_rejects_empty_or_bad_roles(self):
        client, session = self.make(_response(payload=_completion("ok")))
        with self.assertRaises(ValueError):
            client.ask([])
        with self.assertRaises(ValueError):
            client.ask([{"role": "tool", "content": "x"}])
        session.post.assert_not_called()

    def test_non_2xx_is_unavailable_with_status(self):
        client, _ = self.make(_response(status=429, payload={"error": {"error": {"message": "Rate limited"}}}, reason="Too Many Requests"))
        with self.assertRaises(OracleUnavailable) as ctx:
            client.ask(MESSAGES)
        self.assertEqual(ctx.exception.status, 429)
        self.assertIn("Rate limited", str(ctx.exception))

    def test_non_2xx_without_json_uses_reason(self):
        client, _ = self.make(_response(status=502, json_error=True, reason="Bad Gateway"))
        with self.assertRaises(OracleUnavailable) as ctx:
            client.ask(MESSAGES)
        self.assertEqual(ctx.exception.message, "Bad Gateway")

    def test_error_field_on_success_is_unavailable(self):
        client, _ = self.make(_response(payload={"error": "quota exceeded"}))
        with self.assertRaises(OracleUnavailable):
            client.ask(MESSAGES)

    def test_transport_failure_is_unavailable(self):
        client, _ = self.make(exc=requests.ConnectionError("refused"))
        with self.assertRaises(OracleUnavailable) as ctx:
            client.ask(MESSAGES)
        self.assertIsNone(ctx.exception.status)

    def test_malformed_bodies_are_protocol_errors(self):
        for rsp in (
            _response(json_error=True),
            _response(payload={"choices": []}),
            _response(payload={"choices": [{"message": {"content": None}}]}),
            _response(payload=["not", "a", "dict"]),
        ):
            with self.subTest(rsp=rsp):
                client, _ = self.make(rsp)
                with self.assertRaises(OracleProtocolError):
                    client.ask(MESSAGES)


if __name__ == "__main__":
    unittest.main()
