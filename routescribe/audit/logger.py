"""
Audit Logger: JSON-lines trail of documentation requests.

One record per successful /analyze, /document or /render call: timestamp,
request id, endpoint, controller unit, the methods that were documented,
and the duration. Records can be read back filtered by endpoint or unit,
and summarized per endpoint for /health.
"""

from __future__ import annotations

import json
import logging
import time
from collections import defaultdict
from pathlib import Path
from typing import Any, Iterator

from routescribe.config import settings
from routescribe.models.api_models import AuditEntry

logger = logging.getLogger("routescribe.audit")


class AuditLogger:
    """Appends request records to a JSON-lines file and reads them back."""

    def __init__(self, log_path: str | Path | None = None) -> None:
        self.log_path = Path(log_path or settings.audit_log_path)

    def log(self, entry: AuditEntry) -> None:
        record = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            **entry.model_dump(),
        }
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit log: {e}")

    def _records(self) -> Iterator[dict[str, Any]]:
        if not self.log_path.exists():
            return
        try:
            with open(self.log_path, encoding="utf-8") as f:
                for number, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        yield json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning(f"Skipping malformed audit line {number} in {self.log_path}")
        except OSError as e:
            logger.error(f"Failed to read audit log: {e}")

    def read_recent(
        self,
        count: int = 50,
        endpoint: str | None = None,
        unit: str | None = None,
    ) -> list[dict[str, Any]]:
        """Most recent records, oldest first, optionally only one endpoint or controller unit."""
        entries = [
            record
            for record in self._records()
            if (endpoint is None or record.get("endpoint") == endpoint)
            and (unit is None or record.get("unit") == unit)
        ]
        return entries[-count:] if count > 0 else []

    def totals(self) -> dict[str, dict[str, float]]:
        """Per endpoint: request count, documented method count, mean duration."""
        requests: dict[str, int] = defaultdict(int)
        methods: dict[str, int] = defaultdict(int)
        durations: dict[str, float] = defaultdict(float)
        for record in self._records():
            endpoint = record.get("endpoint", "unknown")
            requests[endpoint] += 1
            methods[endpoint] += len(record.get("methods") or [])
            durations[endpoint] += float(record.get("duration_ms") or 0.0)
        return {
            endpoint: {
                "requests": count,
                "methods": methods[endpoint],
                "avg_duration_ms": round(durations[endpoint] / count, 2),
            }
            for endpoint, count in sorted(requests.items())
        }
