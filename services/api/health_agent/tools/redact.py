"""Redact personal identifiers before text reaches the logs."""

import re

_CREDIT_CARD_RE = re.compile(r"\b\d{4}[\s\-]?\d{4}[\s\-]?\d{4}[\s\-]?\d{4}\b")
_SSN_RE = re.compile(r"\b\d{3}[\s\-]\d{2}[\s\-]\d{4}\b")
_PHONE_RE = re.compile(r"(?:\+?\d{1,3}[\s\-]?)?\(?\b\d{3}\)?[\s\-]?\d{3}[\s\-]?\d{4}\b")
_EMAIL_RE = re.compile(r"[\w\.-]+@[\w\.-]+\.\w+")
_WHITESPACE_RE = re.compile(r"\s+")


def redact(text: str | None) -> str:
    if not text:
        return ""
    red = _CREDIT_CARD_RE.sub("[credit-card]", text)
    red = _SSN_RE.sub("[ssn]", red)
    red = _EMAIL_RE.sub("[email]", red)
    red = _PHONE_RE.sub("[phone]", red)
    return _WHITESPACE_RE.sub(" ", red).strip()


def preview(text: str | None, limit: int = 80) -> str:
    """Redacted, truncated form used when logging user instructions."""
    red = redact(text)
    return red if len(red) <= limit else red[:limit].rstrip() + "..."
