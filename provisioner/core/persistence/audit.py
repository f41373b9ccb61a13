"""
Audit log — append-only execution history.

Every attempted capability writes an ExecutionRecord, and every run
ends with a RunRecord, as one JSON line each in an NDJSON file. The
file is never rewritten, truncated or rotated by the tool.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated

from pydantic import Field, TypeAdapter, ValidationError

from provisioner.core.models.record import ExecutionRecord, RunRecord

logger = logging.getLogger(__name__)

# Default location, relative to the config root
DEFAULT_AUDIT_DIR = ".state"
DEFAULT_AUDIT_FILE = "audit.ndjson"

AuditEntry = Annotated[ExecutionRecord | RunRecord, Field(discriminator="entry_type")]
_ENTRY = TypeAdapter(AuditEntry)


class AuditWriter:
    """Append-only audit log writer.

    Each call to write() appends a single JSON line to the log file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: ExecutionRecord | RunRecord) -> None:
        """Append an entry. A write failure is logged, never raised."""
        data = entry.model_dump(mode="json")
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
                f.flush()
            logger.debug("Audit entry written: %s/%s", entry.entry_type, entry.run_id)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[ExecutionRecord | RunRecord]:
        """Read all entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries: list[ExecutionRecord | RunRecord] = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(_ENTRY.validate_json(line))
                    except ValidationError as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit log: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[ExecutionRecord | RunRecord]:
        """Read the most recent N entries."""
        return self.read_all()[-n:] if n > 0 else []

    def read_run(self, run_id: str) -> list[ExecutionRecord | RunRecord]:
        """Every entry of one run, in write order."""
        return [e for e in self.read_all() if e.run_id == run_id]
