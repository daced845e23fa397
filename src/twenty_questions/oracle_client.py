"""
Oracle client: one chat request per call against the relay endpoint.

The relay hides the provider key and answers with the provider's native
chat-completion JSON; this module extracts the first choice's text. No retry,
no streaming, no batching. Callers decide locally whether a failure is
absorbed or reported.
"""
from __future__ import annotations

from typing import Dict, List, Optional
import logging

import requests

from .config import SETTINGS
from .errors import OracleProtocolError, OracleUnavailable

log = logging.getLogger("oracle_client")

ALLOWED_ROLES = {"system", "user", "assistant"}


class OracleClient:
    def __init__(self, url: str | None = None, timeout_s: float | None = None, session: requests.Session | None = None):
        self.url = url or SETTINGS.oracle_url
        self.timeout_s = timeout_s if timeout_s is not None else SETTINGS.oracle_timeout_s
        self.session = session or requests.Session()

    def ask(self, messages: List[Dict[str, str]], temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> str:
        """Send the conversation and return the trimmed completion text."""
        _check_messages(messages)
        body: dict = {"messages": [{"role": m["role"], "content": m["content"]} for m in messages]}
        if temperature is not None:
            body["temperature"] = temperature
        if max_tokens is not None:
            body["max_tokens"] = max_tokens

        try:
            rsp = self.session.post(self.url, json=body, timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise OracleUnavailable(f"Oracle request failed: {exc}") from exc

        if not rsp.ok:
            raise OracleUnavailable(_error_message(rsp), status=rsp.status_code)

        try:
            data = rsp.json()
        except ValueError as exc:
            raise OracleProtocolError("Oracle reply is not JSON") from exc

        if isinstance(data, dict) and data.get("error"):
            raise OracleUnavailable(_describe_error(data["error"]), status=rsp.status_code)

        text = _extract_text(data)
        if text is None:
            raise OracleProtocolError("Oracle reply has no choices[0].message.content")
        log.debug("Oracle replied (%d chars)", len(text))
        return text.strip()


def _check_messages(messages: List[Dict[str, str]]) -> None:
    if not messages:
        raise ValueError("At least one message is required.")
    for msg in messages:
        role = msg.get("role") if isinstance(msg, dict) else None
        if role not in ALLOWED_ROLES:
            raise ValueError(f"Unsupported message role: {role!r}")
        if not isinstance(msg.get("content"), str):
            raise ValueError("Message content must be a string.")


def _describe_error(err) -> str:
    if isinstance(err, dict):
        inner = err.get("error", err)
        if isinstance(inner, dict):
            return str(inner.get("message") or inner)
        return str(inner)
    return str(err)


def _error_message(rsp: requests.Response) -> str:
    try:
        data = rsp.json()
    except ValueError:
        return rsp.reason or f"HTTP {rsp.status_code}"
    if isinstance(data, dict) and data.get("error"):
        return _describe_error(data["error"])
    return rsp.reason or f"HTTP {rsp.status_code}"


def _extract_text(data) -> str | None:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    msg = first.get("message")
    if not isinstance(msg, dict):
        return None
    content = msg.get("content")
    return content if isinstance(content, str) else None
