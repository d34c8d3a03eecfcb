"""LogBus: publish/subscribe channel for log records.

Subscribers register for one level name or for every record ("*").
Publishing is fail-safe: a subscriber that raises never breaks the logger.
"""

from __future__ import annotations

import contextlib
import sys
import time
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field

ALL_LEVELS = "*"

LogCallback = Callable[["LogRecord"], None]


@dataclass(frozen=True)
class LogRecord:
    level_name: str
    plain: str
    logger_name: str
    created: float = field(default_factory=time.time)


class LogBus:
    def __init__(self) -> None:
        self._subs: dict[str, list[LogCallback]] = {}

    def subscribe(self, level_name: str, cb: LogCallback) -> None:
        self._subs.setdefault(level_name.upper(), []).append(cb)

    def unsubscribe(self, level_name: str, cb: LogCallback) -> None:
        key = level_name.upper()
        subs = self._subs.get(key, [])
        if cb in subs:
            subs.remove(cb)
        if not subs:
            self._subs.pop(key, None)

    def subscribe_all(self, cb: LogCallback) -> None:
        self.subscribe(ALL_LEVELS, cb)

    def unsubscribe_all(self, cb: LogCallback) -> None:
        self.unsubscribe(ALL_LEVELS, cb)

    def subscriber_count(self) -> int:
        return sum(len(v) for v in self._subs.values())

    def publish(self, record: LogRecord) -> None:
        targets = list(self._subs.get(ALL_LEVELS, []))
        targets += self._subs.get(record.level_name.upper(), [])
        for cb in targets:
            try:
                cb(record)
            except Exception:
                # Do not route through the logger here: it would recurse.
                with contextlib.suppress(Exception):
                    sys.stderr.write(
                        "LogBus subscriber raised; suppressed.\n" + traceback.format_exc()
                    )

    def clear(self) -> None:
        self._subs.clear()


_LOG_BUS: LogBus | None = None


def get_log_bus() -> LogBus:
    global _LOG_BUS
    if _LOG_BUS is None:
        _LOG_BUS = LogBus()
    return _LOG_BUS
