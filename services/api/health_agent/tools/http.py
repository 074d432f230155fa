from __future__ import annotations

import ipaddress
import os
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

import requests


class OutboundDomainError(RuntimeError):
    """Raised when a provider URL is outside the outbound allow-list."""


def _parse_allowlist(spec: str | None = None) -> set[str]:
    raw = spec if spec is not None else os.getenv("OUTBOUND_ALLOWLIST", "")
    return {item.strip().lower() for item in raw.split(",") if item.strip()}


def _host_matches(host: str, allowed: Iterable[str]) -> bool:
    host_lc = host.lower()
    return any(host_lc == entry or host_lc.endswith(f".{entry}") for entry in allowed)


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def check_url(url: str, allowlist: Iterable[str] | None = None) -> str:
    """Return the URL host after enforcing scheme and allow-list rules.

    An explicit ``allowlist`` overrides ``OUTBOUND_ALLOWLIST``. An empty
    allow-list permits every host; IP literals must be listed exactly while
    domain names also admit their subdomains.
    """

    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported URL scheme: {parsed.scheme!r}")

    host = parsed.hostname or ""
    allowed = (
        {item.strip().lower() for item in allowlist if item.strip()}
        if allowlist is not None
        else _parse_allowlist()
    )
    if not allowed:
        return host

    permitted = host.lower() in allowed if _is_ip(host) else _host_matches(host, allowed)
    if not permitted:
        label = "IP" if _is_ip(host) else "Domain"
        raise OutboundDomainError(
            f"{label} '{host}' is not permitted (allowed: {', '.join(sorted(allowed))})"
        )
    return host


def safe_request(
    method: str,
    url: str,
    *,
    allowlist: Iterable[str] | None = None,
    headers: Mapping[str, str] | None = None,
    **kwargs: Any,
) -> requests.Response:
    """Perform an HTTP request to an allow-listed host without following redirects."""

    check_url(url, allowlist)
    if kwargs.pop("allow_redirects", False):
        raise ValueError(
            "safe_request does not allow automatic redirects; handle redirects manually."
        )
    return requests.request(
        method.upper(), url, headers=headers, allow_redirects=False, **kwargs
    )


def safe_post_json(
    url: str,
    payload: Mapping[str, Any],
    *,
    allowlist: Iterable[str] | None = None,
    headers: Mapping[str, str] | None = None,
    **kwargs: Any,
) -> requests.Response:
    merged = {"Content-Type": "application/json", **(headers or {})}
    return safe_request(
        "POST", url, allowlist=allowlist, headers=merged, json=dict(payload), **kwargs
    )


__all__ = ["OutboundDomainError", "check_url", "safe_request", "safe_post_json"]
