"""
Storystone Logging System

Job lines for the terminal, plus opt-in JSONL traces of storage operations
and upstream calls (DEBUG_STORAGE / DEBUG_API_CALLS) for troubleshooting.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

ANSI = {
    "green": "\033[92m",
    "blue": "\033[94m",
    "yellow": "\033[93m",
    "red": "\033[91m",
    "cyan": "\033[96m",
}
ANSI_RESET = "\033[0m"


class StorystoneLogger:
    """
    Pipeline event logger.

    Terminal: one timestamped line per job event (received, completed,
    failed, segment). Traces: one JSON object per line, written only for
    the trace kinds enabled in settings.
    """

    def __init__(self, debug_mode: bool = False, settings=None):
        self.debug_mode = debug_mode
        self.settings = settings
        self._trace_files: Dict[str, Path] = {}
        self._events = logging.getLogger("storystone.events")

        if settings and (settings.debug_storage or settings.debug_api_calls):
            trace_dir = Path(settings.debug_log_dir)
            trace_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            if settings.debug_storage:
                self._trace_files["storage"] = trace_dir / f"storage_{stamp}.jsonl"
            if settings.debug_api_calls:
                self._trace_files["upstream"] = trace_dir / f"api_calls_{stamp}.jsonl"

        if debug_mode:
            self._events.setLevel(logging.DEBUG)

    def _print(self, emoji: str, message: str, color: str = ""):
        code = ANSI.get(color, "")
        line = f"[{datetime.now().strftime('%H:%M:%S')}] {emoji} {message}"
        print(f"{code}{line}{ANSI_RESET}" if code else line)

    def _trace(self, kind: str, record: Dict[str, Any]):
        """Append a record to the trace file of `kind` (no-op when disabled)"""
        trace_file = self._trace_files.get(kind)
        if trace_file is None:
            return
        record = {"timestamp": datetime.now().isoformat(), "type": kind, **record}
        try:
            with open(trace_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, default=str) + "\n")
        except OSError as e:
            self._events.warning(f"⚠️ Could not write {kind} trace: {e}")

    # ===== Job events =====

    def job_received(self, job_type: str, subject_id: str, details: str = ""):
        """A story start, continuation or ingestion was requested"""
        suffix = f" - {details}" if details else ""
        self._print("📨", f"Job received: {job_type} ({subject_id[:22]}){suffix}", "cyan")
        self._events.debug(f"received {job_type} subject={subject_id} {details}".rstrip())

    def job_completed(self, job_type: str, subject_id: str, duration: Optional[float] = None):
        timing = f" in {duration:.1f}s" if duration else ""
        self._print("✅", f"Job completed: {job_type} ({subject_id[:22]}){timing}", "green")
        self._events.debug(f"completed {job_type} subject={subject_id} duration={duration}")

    def job_failed(self, job_type: str, subject_id: str, error: str):
        self._print("❌", f"Job failed: {job_type} ({subject_id[:22]}) - {error}", "red")
        self._events.debug(f"failed {job_type} subject={subject_id} error={error}")

    def segment_generated(self, story_id: str, count: int, phase: str, segment: str):
        """Preview of a new segment; `count` is the segment count before it"""
        preview = segment if len(segment) <= 80 else segment[:80] + "..."
        self._print("📖", f"Segment {count} ({phase}) → \"{preview}\"", "blue")
        self._events.debug(f"segment story={story_id} count={count} phase={phase} length={len(segment)}")

    # ===== Traces =====

    def storage_operation(self, operation: str, path: str, data_summary: str,
                          size_bytes: int = 0, duration: Optional[float] = None):
        """Firebase write / transaction"""
        if "storage" not in self._trace_files:
            return
        took = f" in {duration * 1000:.0f}ms" if duration else ""
        self._print("💾", f"Storage {operation.upper()} → {path} ({size_bytes} bytes){took}", "yellow")
        self._trace("storage", {
            "operation": operation,
            "path": path,
            "summary": data_summary,
            "size_bytes": size_bytes,
            "duration_seconds": duration,
        })

    def storage_read(self, path: str, result_summary: str, size_bytes: int = 0,
                     duration: Optional[float] = None):
        if "storage" not in self._trace_files:
            return
        took = f" in {duration * 1000:.0f}ms" if duration else ""
        self._print("📖", f"Storage READ ← {path} ({size_bytes} bytes){took}", "blue")
        self._trace("storage", {
            "operation": "read",
            "path": path,
            "summary": result_summary,
            "size_bytes": size_bytes,
            "duration_seconds": duration,
        })

    def upstream_call(self, service: str, operation: str, latency: Optional[float] = None,
                      status: str = "success", detail: str = ""):
        """Qloo / tag classifier / Gemini call"""
        if "upstream" not in self._trace_files:
            return
        ok = status == "success"
        took = f" in {latency:.1f}s" if latency else ""
        extra = f" ({detail})" if detail else ""
        self._print("🤖" if ok else "⚠️", f"API {service}/{operation}: {status}{took}{extra}",
                    "green" if ok else "yellow")
        self._trace("upstream", {
            "service": service,
            "operation": operation,
            "latency_seconds": latency,
            "status": status,
            "detail": detail,
        })


# Global logger instance
_logger: Optional[StorystoneLogger] = None


def get_logger(settings=None) -> StorystoneLogger:
    """Get global logger instance"""
    global _logger
    if _logger is None:
        debug_mode = os.getenv("DEBUG_MODE", "false").lower() == "true"
        _logger = StorystoneLogger(debug_mode=debug_mode, settings=settings)
    return _logger


def init_logger(debug_mode: bool = False, settings=None):
    """Initialize logger with specific debug mode and settings"""
    global _logger
    _logger = StorystoneLogger(debug_mode=debug_mode, settings=settings)
    return _logger
