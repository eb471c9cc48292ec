"""Append-only JSONL audit trail for pipeline and agent runs."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
import json

PIPELINE_START = "pipeline.start"
PIPELINE_COMPLETE = "pipeline.complete"
PIPELINE_ERROR = "pipeline.error"
AGENTS_START = "agents.start"
AGENTS_COMPLETE = "agents.complete"
AGENTS_ERROR = "agents.error"
RATE_LIMIT_REJECTED = "rate_limit.rejected"

EVENTS = (
    PIPELINE_START,
    PIPELINE_COMPLETE,
    PIPELINE_ERROR,
    AGENTS_START,
    AGENTS_COMPLETE,
    AGENTS_ERROR,
    RATE_LIMIT_REJECTED,
)


@dataclass
class AuditLog:
    """One JSON object per line: ``{"timestamp", "event", "data"}``.

    Timestamps are UTC ISO-8601. Only the run events in ``EVENTS`` are accepted.
    """

    path: Path

    def log(self, event: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if event not in EVENTS:
            raise ValueError(f"Unknown audit event: {event}")
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "event": event,
            "data": dict(data or {}),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, default=str) + "\n")
        return record

    def read(self, limit: Optional[int] = None, event: Optional[str] = None) -> List[Dict[str, Any]]:
        """Most recent records last; ``event`` filters by name before ``limit`` applies."""
        if not self.path.exists():
            return []
        records = [
            json.loads(line)
            for line in self.path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]
        if event is not None:
            records = [r for r in records if r.get("event") == event]
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records
