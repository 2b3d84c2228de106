"""
LLM client wrappers.

This module talks to the two classification backends over httpx:

- Anthropic Messages API: returns free text; the JSON object is located
  with extract_json_object().
- OpenAI-compatible Chat Completions API: asked for
  response_format={"type": "json_object"}, so the content is parsed as is.

Both return the parsed JSON object as a dict.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import Config
from .errors import ClassificationError, ConfigurationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------


def _balanced_object_end(text: str, start: int) -> int:
    """
    Return the index of the '}' closing the object opened at text[start],
    or -1 if it is never closed. Braces inside JSON strings are ignored.
    """
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i

    return -1


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Extract the first balanced JSON object from raw model text.

    The model might respond with:
    - pure JSON
    - JSON wrapped in ```json ... ```
    - leading/trailing commentary, possibly containing stray braces

    Each '{' is tried in order; the first one that closes and decodes to a
    JSON object wins.

    Raises:
        ClassificationError: if the text contains no such object.
    """
    if not text or not text.strip():
        raise ClassificationError("Empty response from model when JSON was expected.")

    start = text.find("{")
    while start != -1:
        end = _balanced_object_end(text, start)
        if end != -1:
            try:
                obj = json.loads(text[start : end + 1])
            except json.JSONDecodeError:
                obj = None
            if isinstance(obj, dict):
                return obj
        start = text.find("{", start + 1)

    raise ClassificationError("Could not locate a JSON object in the model response.")


def _parse_json_body(text: str) -> Dict[str, Any]:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise ClassificationError(f"Model response is not valid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise ClassificationError("Model response JSON is not an object.")
    return obj


async def _post_json(
    http: httpx.AsyncClient,
    url: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    backend: str,
) -> Dict[str, Any]:
    try:
        resp = await http.post(url, headers=headers, json=payload)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.exception("HTTP error calling %s: %s", backend, e)
        raise ClassificationError(f"HTTP error from {backend} API: {e}") from e

    try:
        data = resp.json()
    except ValueError as e:
        logger.exception("Failed to decode JSON from %s HTTP response: %s", backend, e)
        raise ClassificationError(f"Invalid JSON from {backend} HTTP response.") from e

    if not isinstance(data, dict):
        raise ClassificationError(f"Unexpected structure in {backend} response.")
    return data


# ---------------------------------------------------------------------------
# Anthropic Messages
# ---------------------------------------------------------------------------


async def call_anthropic_json(
    config: Config,
    http: httpx.AsyncClient,
    messages: List[Dict[str, str]],
    max_tokens: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Call the Anthropic Messages API and pull a JSON object out of its text.

    Raises:
        ConfigurationError: if ANTHROPIC_API_KEY is not set.
        ClassificationError: on HTTP errors or when no JSON object is found.
    """
    if not config.anthropic_api_key:
        raise ConfigurationError("ANTHROPIC_API_KEY is not set in config.")

    headers = {
        "Content-Type": "application/json",
        "x-api-key": config.anthropic_api_key,
        "anthropic-version": config.anthropic_version,
    }
    payload: Dict[str, Any] = {
        "model": config.anthropic_model_name,
        "max_tokens": max_tokens or config.classifier_max_tokens,
        "messages": messages,
    }

    logger.info("Calling Anthropic model=%s", config.anthropic_model_name)
    data = await _post_json(http, config.anthropic_api_url, headers, payload, "Anthropic")

    blocks = data.get("content")
    if not isinstance(blocks, list) or not blocks:
        raise ClassificationError("No content blocks in Anthropic response.")

    text = "".join(
        b.get("text") or "" for b in blocks if isinstance(b, dict) and b.get("type", "text") == "text"
    )
    logger.debug("Anthropic raw text (first 500 chars): %s", text[:500])

    return extract_json_object(text)


# ---------------------------------------------------------------------------
# OpenAI Chat Completions
# ---------------------------------------------------------------------------


async def call_openai_json(
    config: Config,
    http: httpx.AsyncClient,
    messages: List[Dict[str, str]],
    max_tokens: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Call an OpenAI-compatible chat completion API in JSON mode.

    Raises:
        ConfigurationError: if OPENAI_API_KEY is not set.
        ClassificationError: on HTTP errors or a non-JSON message body.
    """
    if not config.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is not set in config.")

    headers = {
        "Authorization": f"Bearer {config.openai_api_key}",
        "Content-Type": "application/json",
    }
    payload: Dict[str, Any] = {
        "model": config.openai_model_name,
        "messages": messages,
        "max_tokens": max_tokens or config.classifier_max_tokens,
        "response_format": {"type": "json_object"},
    }

    logger.info("Calling OpenAI model=%s", config.openai_model_name)
    data = await _post_json(http, config.openai_api_url, headers, payload, "OpenAI")

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ClassificationError("Unexpected structure in OpenAI response.") from e

    if isinstance(content, dict):
        return content
    if not isinstance(content, str):
        raise ClassificationError(f"OpenAI content is neither string nor dict: {type(content)}")

    logger.debug("OpenAI raw content (first 500 chars): %s", content[:500])
    return _parse_json_body(content)
