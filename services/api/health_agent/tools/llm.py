"""Provider boundary: one prompt in, raw model text out.

The active provider is read from ``LLM_PROVIDER`` on every call so tests and
operators can switch it without reloading settings. Every failure surfaces
as ``ProviderUnavailable``; callers never see SDK exceptions.
"""

from __future__ import annotations

import base64
import logging
import os
from typing import Any, Dict, List, Optional

import requests

from health_agent.config import settings
from health_agent.errors import ProviderUnavailable
from health_agent.tools.http import OutboundDomainError, safe_post_json

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a careful health assistant that answers with a single JSON object."
GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MEDIA_TYPE = "image/jpeg"
_DISABLED = {"", "none", "disabled"}


def _resolve_provider() -> str:
    return os.getenv("LLM_PROVIDER", settings.llm_provider).strip().lower()


def _timeout() -> float:
    return float(os.getenv("LLM_TIMEOUT_S", settings.llm_timeout_s))


def _temperature() -> float:
    return float(os.getenv("LLM_TEMPERATURE", settings.llm_temperature))


def _call_ollama(prompt: str, image: Optional[bytes], media_type: Optional[str]) -> str:
    model = os.getenv("OLLAMA_MODEL", settings.ollama_model)
    try:
        import ollama  # type: ignore

        message: Dict[str, Any] = {"role": "user", "content": prompt}
        if image:
            message["images"] = [image]
        logger.debug("Calling Ollama model %s", model)
        response = ollama.chat(
            model=model,
            messages=[{"role": "system", "content": SYSTEM_PROMPT}, message],
            format="json",
            options={"temperature": _temperature()},
        )
    except Exception as exc:  # pragma: no cover - depends on external runtime
        logger.warning("Ollama generation failed: %s", exc)
        raise ProviderUnavailable("ollama", str(exc)) from exc
    return (response.get("message") or {}).get("content") or ""


def _call_openai(prompt: str, image: Optional[bytes], media_type: Optional[str]) -> str:
    model = os.getenv("OPENAI_MODEL", settings.openai_model)
    api_key = os.getenv("OPENAI_API_KEY", settings.openai_api_key or "")
    if not api_key:
        logger.warning("OPENAI_API_KEY missing; cannot call OpenAI")
        raise ProviderUnavailable("openai", "missing API key")

    content: Any = prompt
    if image:
        encoded = base64.b64encode(image).decode("ascii")
        content = [
            {"type": "text", "text": prompt},
            {
                "type": "image_url",
                "image_url": {"url": f"data:{media_type or DEFAULT_MEDIA_TYPE};base64,{encoded}"},
            },
        ]
    try:
        from openai import OpenAI  # type: ignore

        client = OpenAI(api_key=api_key, timeout=_timeout())
        logger.debug("Calling OpenAI model %s", model)
        chat = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": content},
            ],
            temperature=_temperature(),
            response_format={"type": "json_object"},
        )
    except Exception as exc:  # pragma: no cover - depends on external runtime
        logger.warning("OpenAI generation failed: %s", exc)
        raise ProviderUnavailable("openai", str(exc)) from exc
    if not chat.choices:
        logger.warning("OpenAI generation returned no choices")
        return ""
    return chat.choices[0].message.content or ""


def _gemini_text(body: Dict[str, Any]) -> str:
    candidates = body.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


def _call_gemini(prompt: str, image: Optional[bytes], media_type: Optional[str]) -> str:
    model = os.getenv("GEMINI_MODEL", settings.gemini_model)
    api_key = os.getenv("GEMINI_API_KEY", settings.gemini_api_key or "")
    if not api_key:
        logger.warning("GEMINI_API_KEY missing; cannot call Gemini")
        raise ProviderUnavailable("gemini", "missing API key")

    parts: List[Dict[str, Any]] = [{"text": prompt}]
    if image:
        parts.append(
            {
                "inline_data": {
                    "mime_type": media_type or DEFAULT_MEDIA_TYPE,
                    "data": base64.b64encode(image).decode("ascii"),
                }
            }
        )
    payload = {
        "system_instruction": {"parts": [{"text": SYSTEM_PROMPT}]},
        "contents": [{"role": "user", "parts": parts}],
        "generationConfig": {
            "temperature": _temperature(),
            "responseMimeType": "application/json",
        },
    }
    try:
        logger.debug("Calling Gemini model %s", model)
        response = safe_post_json(
            GEMINI_ENDPOINT.format(model=model),
            payload,
            headers={"x-goog-api-key": api_key},
            timeout=_timeout(),
        )
        response.raise_for_status()
        body = response.json()
    except (requests.RequestException, OutboundDomainError, ValueError) as exc:
        logger.warning("Gemini generation failed: %s", exc)
        raise ProviderUnavailable("gemini", str(exc)) from exc
    return _gemini_text(body)


_PROVIDERS = {
    "ollama": _call_ollama,
    "openai": _call_openai,
    "gemini": _call_gemini,
}


def generate(
    prompt: str, image: Optional[bytes] = None, media_type: Optional[str] = None
) -> str:
    """Send ``prompt`` (and an optional image) to the configured provider."""

    provider = _resolve_provider()
    if provider in _DISABLED:
        raise ProviderUnavailable(provider or "none", "no LLM provider configured")
    call = _PROVIDERS.get(provider)
    if call is None:
        logger.warning("Unknown LLM provider '%s'", provider)
        raise ProviderUnavailable(provider, "unknown provider")

    text = call(prompt, image, media_type)
    if not text or not text.strip():
        raise ProviderUnavailable(provider, "empty response")
    return text


__all__ = ["generate"]
