"""Canonical username keys, display-name validity and profile certification.

Two canonicalization rules have been used for registry keys over time:

* version 1 stripped whitespace and lowercased, so hyphens and punctuation
  survived (``"DJ-Nova"`` -> ``"dj-nova"``);
* version 2 (current) keeps only ``[A-Za-z0-9]`` and lowercases
  (``"DJ-Nova"`` -> ``"djnova"``).

Stored ``chat_username_normalized`` values may have been produced by either
rule, so callers recompute keys through :func:`normalize_username` instead of
trusting stored fields.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional

NORMALIZATION_VERSION = 2
MIN_DISPLAY_LENGTH = 2
MAX_DISPLAY_LENGTH = 20
RESERVED_USERNAMES = frozenset({"channel", "admin", "system", "moderator", "mod"})

_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]+")
_WHITESPACE = re.compile(r"\s+")
_DISPLAY_NAME = re.compile(r"[A-Za-z0-9]+(?: [A-Za-z0-9]+)*")
_INSTAGRAM_URL = re.compile(r"instagram\.com/([^/]+)", re.IGNORECASE)
_HANDLE_TRIM = " \t\r\n/@"


def normalize_username(display_name: str) -> str:
    """Current canonical key: drop everything outside [A-Za-z0-9], then lowercase."""
    return _NON_ALPHANUMERIC.sub("", display_name or "").lower()


def legacy_normalize_username(display_name: str) -> str:
    return _WHITESPACE.sub("", display_name or "").lower()


CANONICALIZERS: Dict[int, Callable[[str], str]] = {
    1: legacy_normalize_username,
    2: normalize_username,
}


def canonicalize(display_name: str, version: int = NORMALIZATION_VERSION) -> str:
    try:
        rule = CANONICALIZERS[version]
    except KeyError as exc:
        raise ValueError(f"Unknown normalization version: {version}") from exc
    return rule(display_name)


def is_canonical_key(key: Optional[str]) -> bool:
    return bool(key) and normalize_username(key) == key


def has_valid_characters(display_name: Optional[str]) -> bool:
    """True when the name is letter/digit groups separated by single spaces."""
    if not display_name:
        return False
    return _DISPLAY_NAME.fullmatch(display_name.strip()) is not None


def username_problem(display_name: Optional[str]) -> Optional[str]:
    """Return why a requested display name cannot be registered, or None."""
    trimmed = (display_name or "").strip()
    if len(trimmed) < MIN_DISPLAY_LENGTH or len(trimmed) > MAX_DISPLAY_LENGTH:
        return f"Username must be {MIN_DISPLAY_LENGTH}-{MAX_DISPLAY_LENGTH} characters."
    if not has_valid_characters(trimmed):
        return "Use letters, numbers, and single spaces only."
    key = normalize_username(trimmed)
    if len(key) < MIN_DISPLAY_LENGTH:
        return f"Username must contain at least {MIN_DISPLAY_LENGTH} letters or numbers."
    if key in RESERVED_USERNAMES:
        return "This username is reserved."
    return None


def is_valid_display_name(display_name: Optional[str]) -> bool:
    return username_problem(display_name) is None


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def emails_match(left: Optional[str], right: Optional[str]) -> bool:
    return bool(left) and bool(right) and normalize_email(left) == normalize_email(right)


def extract_instagram_handle(value: str) -> str:
    """Reduce an instagram URL or ``@handle`` to the bare handle."""
    cleaned = value.strip().split("?", 1)[0].rstrip("/")
    match = _INSTAGRAM_URL.search(cleaned)
    handle = match.group(1) if match else cleaned
    return handle.strip(_HANDLE_TRIM)


@dataclass(frozen=True)
class CertifiedProfile:
    """The fields a fully repaired pending profile must carry."""

    profile_id: str
    display_name: str
    canonical_key: str
    source: str


def _first_present(*values: Optional[str]) -> tuple[str, str]:
    labels = ("chat_username", "chat_username_normalized", "dj_name", "id")
    for label, value in zip(labels, values):
        if isinstance(value, str) and value.strip():
            return value.strip(), label
    return "", "id"


def certify_profile(
    profile_id: str,
    chat_username: Optional[str],
    chat_username_normalized: Optional[str],
    dj_name: Optional[str] = None,
) -> CertifiedProfile:
    """Compute the repaired form of a pending profile from its raw fields.

    Certification is stable under its own output: feeding back the certified
    display name and key yields the same result, which keeps every repair task
    idempotent and order-independent.
    """
    source, label = _first_present(chat_username, chat_username_normalized, dj_name, profile_id)
    key = normalize_username(source)
    display = source if has_valid_characters(source) else key
    certified_id = key if "-" in profile_id and key else profile_id
    return CertifiedProfile(
        profile_id=certified_id,
        display_name=display,
        canonical_key=key,
        source=label,
    )


__all__ = [
    "CANONICALIZERS",
    "CertifiedProfile",
    "MAX_DISPLAY_LENGTH",
    "MIN_DISPLAY_LENGTH",
    "NORMALIZATION_VERSION",
    "RESERVED_USERNAMES",
    "canonicalize",
    "certify_profile",
    "emails_match",
    "extract_instagram_handle",
    "has_valid_characters",
    "is_canonical_key",
    "is_valid_display_name",
    "legacy_normalize_username",
    "normalize_email",
    "normalize_username",
    "username_problem",
]
