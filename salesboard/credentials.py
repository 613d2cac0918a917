"""Turn environment-provided credentials into an injectable cookie bundle."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from typing import Any, Mapping

from salesboard.errors import ConfigurationError
from salesboard.logging_config import get_logger

LOGGER = get_logger(__name__)

ENDPOINT_ENV = "BROWSERLESS_WS"
COOKIES_ENV = "UPS_COOKIES_JSON"
DEFAULT_COOKIE_DOMAIN = "app.upseller.com"

_SAME_SITE = {
    "strict": "Strict",
    "lax": "Lax",
    "none": "None",
    "no_restriction": "None",
    "unspecified": "Lax",
}
_WRAPPING_QUOTES = re.compile(r'^"+|"+$')


@dataclass(frozen=True)
class CredentialBundle:
    endpoint: str
    cookies: tuple[dict[str, Any], ...]

    @property
    def cookie_names(self) -> list[str]:
        return [cookie["name"] for cookie in self.cookies]


def _normalize_same_site(value: Any) -> str:
    if not isinstance(value, str):
        return "Lax"
    return _SAME_SITE.get(value.strip().lower(), "Lax")


def normalize_cookies(
    cookies: list[Any],
    *,
    default_domain: str = DEFAULT_COOKIE_DOMAIN,
) -> list[dict[str, Any]]:
    """Fill cookie defaults and drop entries without a name or a value."""

    normalized: list[dict[str, Any]] = []
    for raw in cookies:
        if not isinstance(raw, dict):
            continue
        name = raw.get("name")
        value = raw.get("value")
        if not name or value in (None, ""):
            continue
        cookie: dict[str, Any] = {
            "name": str(name),
            "value": str(value),
            "domain": raw.get("domain") or default_domain,
            "path": raw.get("path") or "/",
            "httpOnly": bool(raw.get("httpOnly")),
            "secure": raw.get("secure") is not False,
            "sameSite": _normalize_same_site(raw.get("sameSite")),
        }
        expires = raw.get("expires", raw.get("expirationDate"))
        if isinstance(expires, (int, float)) and not isinstance(expires, bool) and expires > 0:
            cookie["expires"] = float(expires)
        if cookie["sameSite"] == "None":
            # Chromium rejects SameSite=None cookies that are not Secure.
            cookie["secure"] = True
        normalized.append(cookie)
    return normalized


def parse_cookie_json(raw: str) -> list[Any]:
    """Parse the serialized cookie array, tolerating shell-quoting leftovers."""

    trimmed = _WRAPPING_QUOTES.sub("", raw.strip())
    try:
        cookies = json.loads(trimmed)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{COOKIES_ENV} não é um JSON válido de array") from exc
    if not isinstance(cookies, list):
        raise ConfigurationError(f"{COOKIES_ENV} deve ser um array JSON")
    return cookies


def read_credentials(
    environ: Mapping[str, str] | None = None,
    *,
    default_domain: str = DEFAULT_COOKIE_DOMAIN,
) -> CredentialBundle:
    """Validate the endpoint and cookie bundle without opening a connection."""

    env = os.environ if environ is None else environ
    endpoint = (env.get(ENDPOINT_ENV) or "").strip()
    raw_cookies = (env.get(COOKIES_ENV) or "").strip()
    if not endpoint:
        raise ConfigurationError(f"{ENDPOINT_ENV} ausente")
    if not raw_cookies:
        raise ConfigurationError(f"{COOKIES_ENV} ausente")

    parsed = parse_cookie_json(raw_cookies)
    cookies = normalize_cookies(parsed, default_domain=default_domain)
    dropped = len(parsed) - len(cookies)
    if dropped:
        LOGGER.info("Dropped %d cookie(s) without name or value", dropped)
    if not cookies:
        raise ConfigurationError(f"{COOKIES_ENV} não contém cookies com nome e valor")

    return CredentialBundle(endpoint=endpoint, cookies=tuple(cookies))


__all__ = [
    "COOKIES_ENV",
    "CredentialBundle",
    "ENDPOINT_ENV",
    "normalize_cookies",
    "parse_cookie_json",
    "read_credentials",
]
