"""
Chat relay: forwards {messages, ...sampling options} to the provider with the server-side key.

- POST only (405 otherwise); 500 when the key is not configured; 400 for bad JSON or messages.
- The model is fixed by configuration; known sampling options from the caller override the defaults.
- Provider status errors are relayed with their status and body; success returns the provider completion JSON.
"""
from __future__ import annotations

import logging
from functools import lru_cache

import openai
from flask import Blueprint, jsonify, request
from openai import OpenAI

from . import config

log = logging.getLogger("relay")

relay_bp = Blueprint("relay", __name__)

OVERRIDABLE_OPTIONS = ("temperature", "max_tokens", "n", "top_p", "presence_penalty", "frequency_penalty")


@lru_cache(maxsize=4)
def _client_for(api_key: str, base_url: str | None) -> OpenAI:
    return OpenAI(api_key=api_key, base_url=base_url or None)


def build_completion_payload(body: dict) -> dict:
    """Fixed model and default sampling, with caller-supplied sampling options applied on top."""
    settings = config.SETTINGS
    payload = {
        "model": settings.model,
        "messages": body["messages"],
        "max_tokens": settings.relay_max_tokens,
        "temperature": settings.relay_temperature,
        "n": settings.relay_n,
    }
    for key in OVERRIDABLE_OPTIONS:
        if body.get(key) is not None:
            payload[key] = body[key]
    return payload


@relay_bp.route("/api/oracle", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
def oracle_proxy():
    if request.method != "POST":
        return jsonify({"error": "Method Not Allowed"}), 405

    settings = config.SETTINGS
    if not settings.openai_api_key:
        log.error("Relay called without a provider key configured")
        return jsonify({"error": "OpenAI API key not configured"}), 500

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Invalid JSON body"}), 400
    messages = body.get("messages")
    if not isinstance(messages, list):
        return jsonify({"error": "Invalid messages format"}), 400

    payload = build_completion_payload(body)
    client = _client_for(settings.openai_api_key, settings.openai_base_url)
    try:
        rsp = client.chat.completions.create(**payload)
    except openai.APIStatusError as exc:
        log.warning("Provider returned %s", exc.status_code)
        return jsonify({"error": exc.body}), exc.status_code
    except openai.OpenAIError as exc:
        log.exception("Provider request failed")
        return jsonify({"error": str(exc)}), 500
    return jsonify(rsp.model_dump()), 200
