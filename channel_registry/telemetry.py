"""Structured registry events fanned out to in-process listeners and the log."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Any, Callable, Dict, List

logger = logging.getLogger("channel_registry.telemetry")


@dataclass(frozen=True)
class RegistryEvent:
    name: str
    payload: Dict[str, Any]


_listeners: List[Callable[[RegistryEvent], None]] = []
_lock = RLock()


def register_listener(listener: Callable[[RegistryEvent], None]) -> None:
    """Register an in-process listener (used in tests)."""
    with _lock:
        _listeners.append(listener)


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> None:
    """Emit a registry event; listeners see raw fields, the log line is masked."""
    event = RegistryEvent(name=name, payload=dict(fields))

    with _lock:
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    structured = {"event": name, **_mask(fields)}
    logger.info("TELEMETRY %s", json.dumps(structured, default=_json_default, sort_keys=True))


def mask_email(value: str) -> str:
    local, sep, domain = value.partition("@")
    if not sep:
        return value
    visible = local[:1]
    return f"{visible}***@{domain}"


def _mask(fields: Dict[str, Any]) -> Dict[str, Any]:
    masked: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            masked[key] = value.isoformat()
        elif isinstance(value, str) and key.endswith("email"):
            masked[key] = mask_email(value)
        else:
            masked[key] = value
    return masked


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


__all__ = [
    "RegistryEvent",
    "clear_listeners",
    "emit_event",
    "mask_email",
    "register_listener",
]
