"""Recover a JSON object from free-form model output."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

from health_agent.errors import MalformedResponse
from health_agent.tools.redact import redact

logger = logging.getLogger(__name__)

_JSON_FENCE_PATTERN = re.compile(
    r"```[ \t]*(?:json|javascript|js)?[ \t]*\n?(.*?)```", re.DOTALL | re.IGNORECASE
)
_STRAY_FENCE_PATTERN = re.compile(
    r"^\s*```[ \t]*(?:json|javascript|js)?[ \t]*\n?|\n?```\s*$", re.IGNORECASE
)


def _strip_code_fence(text: str) -> str:
    match = _JSON_FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    # Unbalanced fences: an opening marker without a close, or vice versa
    return _STRAY_FENCE_PATTERN.sub("", text).strip()


def _decode_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def _repair_source(raw_text: str, candidate: str) -> str:
    # A fence that holds no braces was prose; the object lies outside it
    return candidate if "{" in candidate else raw_text


def extract(raw_text: str | None) -> Dict[str, Any]:
    """Return the JSON object embedded in ``raw_text``.

    Fences are stripped first and the remainder decoded directly. A decoded
    value that is not an object (an array, a bare string) is rejected as is.
    Failing a direct decode, a single repair pass decodes the span between the
    first ``{`` and the last ``}`` so conversational prose around the object is
    discarded. Anything else raises ``MalformedResponse`` carrying the original
    text.
    """

    if not raw_text or not raw_text.strip():
        raise MalformedResponse(raw_text, "empty response")

    candidate = _strip_code_fence(raw_text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        pass
    else:
        if isinstance(data, dict):
            return data
        logger.warning("Model response decoded to %s, not an object", type(data).__name__)
        raise MalformedResponse(raw_text, "top-level JSON value is not an object")

    source = _repair_source(raw_text, candidate)
    start = source.find("{")
    end = source.rfind("}")
    if start != -1 and end > start:
        data = _decode_object(source[start : end + 1])
        if data is not None:
            logger.debug("Recovered JSON object after discarding surrounding prose")
            return data

    logger.warning("Model response did not contain a decodable JSON object")
    logger.debug("Undecodable response: %s", redact(raw_text)[:500])
    raise MalformedResponse(raw_text, "no JSON object found")
