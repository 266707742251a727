"""Provide structured feed logging helpers with mode-tagged JSON events."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from feedrank.request_context import fetch_request_id
from feedrank.server_config import DEFAULT_FEED_LOG_PROFILE


SUPPORTED_LOG_MODES = ("focused", "verbose")
_ALL_MODES = list(SUPPORTED_LOG_MODES)
_PREFIX_RE = re.compile(r"^\[(?P<scope>[^\]]+)\]\s*(?P<body>.*)$")
_REQUEST_PREFIX_RE = re.compile(r"^\[[^\]]+\]\[(?P<request_id>[^\]]+)\]")
_LEADING_BLOCKS_RE = re.compile(r"^(?:\[[^\]]+\])+\s*")


@dataclass(frozen=True)
class _EventRule:
    """Map a message needle to stable event and view modes."""

    needle: str
    event: str
    modes: tuple[str, ...]


_EVENT_RULES = (
    _EventRule("[feed] request", "feed.request", ("focused", "verbose")),
    _EventRule("[feed] composed", "feed.composed", ("focused", "verbose")),
    _EventRule("[feed] weights fallback", "feed.weights_fallback", ("focused", "verbose")),
    _EventRule("[feed] unknown preset", "feed.preset_fallback", ("verbose",)),
    _EventRule("[interactions] recorded", "interactions.recorded", ("verbose",)),
    _EventRule("[interactions] cleared", "interactions.cleared", ("focused", "verbose")),
    _EventRule("[profiles] corrupt", "profiles.corrupt", ("focused", "verbose")),
    _EventRule("[related] done", "related.done", ("focused", "verbose")),
)


def normalize_log_mode(mode: str | None) -> str:
    """Normalize mode names and fail safely to ``verbose``."""
    raw = (mode or "").strip().lower()
    if raw in SUPPORTED_LOG_MODES:
        return raw
    return "verbose"


def payload_visible_in_mode(payload: dict[str, Any], mode: str | None) -> bool:
    """Return True when a structured log payload should be visible in mode."""
    selected = normalize_log_mode(mode)
    level = str(payload.get("level") or "").upper()
    if level in {"WARNING", "ERROR", "CRITICAL"}:
        return True
    modes = payload.get("modes")
    if not isinstance(modes, list) or not modes:
        return selected == "verbose"
    return selected in modes


def _extract_request_id(record: logging.LogRecord, message: str) -> str | None:
    """Resolve request id from record extras, message prefix, or request context."""
    from_extra = getattr(record, "request_id", None)
    if isinstance(from_extra, str) and from_extra.strip():
        return from_extra.strip()

    matched = _REQUEST_PREFIX_RE.match(message)
    if matched:
        value = matched.group("request_id").strip()
        if value:
            return value

    return fetch_request_id()


def _extract_fields(message: str) -> dict[str, str]:
    """Extract best-effort ``key=value`` tokens from message text."""
    cleaned = _LEADING_BLOCKS_RE.sub("", message).strip()
    if not cleaned:
        return {}

    fields: dict[str, str] = {}
    for token in cleaned.split():
        if "=" not in token:
            continue
        key, value = token.split("=", 1)
        key = key.strip()
        value = value.strip().strip(",")
        if not key:
            continue
        fields[key] = value
    return fields


def _derive_event_name(message: str) -> str:
    """Derive a fallback event name from message prefix."""
    matched = _PREFIX_RE.match(message)
    if not matched:
        return "feedrank.log"
    scope = matched.group("scope").strip().lower().replace("-", "_")
    if not scope:
        return "feedrank.log"
    return f"{scope}.info"


def _classify_event(message: str, levelno: int) -> tuple[str, list[str]]:
    """Classify a log event and assign target viewing modes."""
    for rule in _EVENT_RULES:
        if rule.needle in message:
            modes = _ALL_MODES if levelno >= logging.WARNING else list(rule.modes)
            return rule.event, modes

    if levelno >= logging.WARNING:
        return _derive_event_name(message), _ALL_MODES
    return _derive_event_name(message), ["verbose"]


class FeedJsonFormatter(logging.Formatter):
    """Render feed log records as JSON objects with mode tags."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON line."""
        message = record.getMessage()
        event, modes = _classify_event(message, record.levelno)
        request_id = _extract_request_id(record, message)
        fields = _extract_fields(message)

        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "event": event,
            "message": message,
            "modes": modes,
        }
        if request_id:
            payload["request_id"] = request_id
        if fields:
            payload["context"] = fields
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, separators=(",", ":"))


class _ModeFilter(logging.Filter):
    """Drop records that are not visible in the selected view mode."""

    def __init__(self, mode: str) -> None:
        super().__init__()
        self.mode = mode

    def filter(self, record: logging.LogRecord) -> bool:
        event, modes = _classify_event(record.getMessage(), record.levelno)
        return payload_visible_in_mode(
            {"level": record.levelname, "event": event, "modes": modes}, self.mode
        )


def configure_feed_logging(profile: str | None = None) -> str:
    """Configure root logger with JSON formatter and return normalized mode."""
    selected = normalize_log_mode(profile or DEFAULT_FEED_LOG_PROFILE)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.INFO)

    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(FeedJsonFormatter())
    handler.addFilter(_ModeFilter(selected))
    root_logger.addHandler(handler)
    return selected
