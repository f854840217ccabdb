from __future__ import annotations

import json
import logging
import threading
from collections import Counter
from typing import Any, Dict, Optional

__all__ = ["Diagnostics", "configure_logging"]

logger = logging.getLogger(__name__)

# Events that indicate a slow path or an unexpected condition get WARNING,
# everything else is DEBUG noise.
_EVENT_LEVELS: Dict[str, int] = {
    "prediction_fallback": logging.WARNING,
}


class Diagnostics:
    """Thread-safe event counter that forwards each event to a logger.

    Models and tuners record events here instead of printing, so the core
    stays silent unless logging is configured, and tests can inspect counts
    directly:

        diag = Diagnostics()
        model = GaussianProcessRegression(diagnostics=diag)
        ...
        assert diag.count("prediction_fallback") == 0
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log if log is not None else logger
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def record(self, event: str, **fields: Any) -> None:
        with self._lock:
            self._counts[event] += 1
        level = _EVENT_LEVELS.get(event, logging.DEBUG)
        if self._log.isEnabledFor(level):
            detail = ", ".join(f"{k}={v}" for k, v in sorted(fields.items()))
            self._log.log(level, "%s: %s", event, detail, extra={"event": event})

    def count(self, event: str) -> int:
        with self._lock:
            return int(self._counts[event])

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

    def __repr__(self) -> str:
        return f"Diagnostics({self.counts()!r})"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key in ("event", "fold", "evaluation"):
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        return json.dumps(payload)


def configure_logging(level: str = "INFO") -> None:
    """Send sensible_models log records to stderr as JSON lines."""
    level_value = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    pkg_logger = logging.getLogger("sensible_models")
    pkg_logger.setLevel(level_value)
    pkg_logger.addHandler(handler)
