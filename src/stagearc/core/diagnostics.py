"""Operation diagnostics: envelope schema + optional JSONL sink.

The sink subscribes to the process EventBus once and self-filters when
diagnostics are disabled, so toggling `diagnostics.enabled` needs no restart.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from stagearc.core.config import ConfigResolver
from stagearc.core.errors import ConfigError
from stagearc.core.events import get_event_bus
from stagearc.core.logging import get_logger

_logger = get_logger(__name__)

_ENVELOPE_KEYS = frozenset({"event", "component", "operation", "timestamp", "data"})


def build_envelope(
    *,
    event: str,
    component: str,
    operation: str,
    data: dict[str, Any],
) -> dict[str, Any]:
    """Build the diagnostics envelope.

    Schema:
        {
          "event": "<string>",
          "component": "<string>",
          "operation": "<string>",
          "timestamp": "<iso8601 utc, trailing Z>",
          "data": { ... }
        }
    """
    ts = datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")
    return {
        "event": event,
        "component": component,
        "operation": operation,
        "timestamp": ts,
        "data": data,
    }


def is_envelope(obj: Any) -> bool:
    return (
        isinstance(obj, dict)
        and set(obj.keys()) == _ENVELOPE_KEYS
        and isinstance(obj.get("data"), dict)
    )


def is_diagnostics_enabled(resolver: ConfigResolver) -> bool:
    """Return whether diagnostics are enabled (key: diagnostics.enabled).

    Invalid values are treated as disabled with a warning.
    """
    try:
        return resolver.resolve_bool("diagnostics.enabled", False)
    except ConfigError as e:
        _logger.warning(f"{e}; treating diagnostics as disabled")
        return False


_SINK: Any = None


def install_jsonl_sink(*, resolver: ConfigResolver) -> bool:
    """Install the JSONL diagnostics subscriber (idempotent).

    Sink path: `diagnostics.path`. Returns True if this call installed it.
    """
    global _SINK
    if _SINK is not None:
        return False

    def _on_any_event(event: str, data: dict[str, Any]) -> None:
        if not is_diagnostics_enabled(resolver):
            return

        out_path = resolver.resolve_path("diagnostics.path")
        if out_path is None:
            _logger.warning("diagnostics.path is not set; cannot write diagnostics JSONL.")
            return

        payload = data
        if not is_envelope(data):
            payload = build_envelope(event=event, component="unknown", operation="unknown", data=data)

        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            line = json.dumps(payload, ensure_ascii=True, separators=(",", ":"), sort_keys=True)
            with out_path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except (OSError, TypeError, ValueError) as e:
            _logger.warning(f"Diagnostics sink write failed: {type(e).__name__}: {e}")

    get_event_bus().subscribe_all(_on_any_event)
    _SINK = _on_any_event
    return True


def uninstall_jsonl_sink() -> None:
    """Remove the JSONL subscriber installed by install_jsonl_sink."""
    global _SINK
    if _SINK is None:
        return
    get_event_bus().unsubscribe_all(_SINK)
    _SINK = None
