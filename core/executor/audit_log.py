"""
core/executor/audit_log.py
Trilha de auditoria append-only do executor (uma linha JSON por execução).
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from core.constants import AUDIT_LOG_PATH


class AuditLog:
    """Append de linhas ``{"time": ..., ...}``; seguro entre threads."""

    def __init__(self, path: Optional[Path | str] = None) -> None:
        self.path = Path(path) if path else AUDIT_LOG_PATH
        self._lock = threading.Lock()

    def append(self, entry: dict[str, Any]) -> None:
        line = json.dumps(
            {"time": datetime.now(timezone.utc).isoformat(), **entry},
            default=str,
        )
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")

    def read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        with self.path.open(encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]
