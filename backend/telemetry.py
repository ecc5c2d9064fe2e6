"""Request diagnostics: bounded in-memory event log with a windowed summary."""

import logging
import os
import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from text_utils import normalize_whitespace

logger = logging.getLogger(__name__)

MAX_DIAGNOSTIC_ENTRIES = 1000


def diagnostics_echo_enabled() -> bool:
    return (os.getenv("DIAGNOSTICS_ECHO", "0") or "0").strip().lower() in (
        "1", "true", "yes", "on",
    )


class DiagnosticLog:
    """Ring buffer of ``{timestamp, prompt_id, event, data}`` entries.

    Appends are guarded by a lock; handlers may run on FastAPI's thread pool.
    """

    def __init__(self, max_entries: int = MAX_DIAGNOSTIC_ENTRIES):
        self.max_entries = max(1, int(max_entries))
        self._entries: deque = deque(maxlen=self.max_entries)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def log(self, prompt_id: str, event: str, data: Optional[dict] = None) -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "prompt_id": prompt_id,
            "event": normalize_whitespace(event or "event") or "event",
            "data": data or {},
        }
        with self._lock:
            self._entries.append(entry)
        if diagnostics_echo_enabled():
            logger.debug("[diag] %s %s: %s", prompt_id, entry["event"], entry["data"])

    def get_logs(self, prompt_id: Optional[str] = None) -> list[dict[str, Any]]:
        with self._lock:
            entries = list(self._entries)
        if prompt_id:
            return [e for e in entries if e["prompt_id"] == prompt_id]
        return entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def summary(self, hours: int = 24, limit: int = 6) -> dict:
        h = max(1, min(168, int(hours or 24)))
        n = max(1, min(25, int(limit or 6)))
        now_utc = datetime.now(timezone.utc)
        cutoff = now_utc - timedelta(hours=h)

        counts: dict[str, int] = {}
        recent: deque = deque(maxlen=n)
        for entry in self.get_logs():
            ts = datetime.fromisoformat(entry["timestamp"])
            if ts < cutoff:
                continue
            counts[entry["event"]] = counts.get(entry["event"], 0) + 1
            recent.append(entry)

        started = counts.get("enhancement_started", 0)
        failed = counts.get("enhancement_failed", 0)
        failure_rate = round((failed / started) * 100.0, 2) if started > 0 else 0.0

        return {
            "status": "ok",
            "now_utc": now_utc.isoformat(),
            "window_hours": h,
            "entries": len(self),
            "max_entries": self.max_entries,
            "counts": counts,
            "failure_rate_percent": failure_rate,
            "contract_retry_count": counts.get("contract_retry", 0),
            "provider_retry_count": counts.get("provider_retry", 0),
            "recent": list(recent),
        }
