"""Bounded on-disk log of event executions."""

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Any, List


logger = logging.getLogger(__name__)


@dataclass
class ExecutionAuditEntry:
    """One execution attempt."""
    event_id: str
    event_name: str
    timestamp: str  # ISO format
    outcome: str  # success, partial_success, failed
    phase: str  # resolve, persist, dispatch
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExecutionAuditEntry':
        return cls(**data)


class AuditLog:
    """Keeps the most recent execution entries, oldest evicted first."""

    def __init__(self, log_file: str = "state/execution_log.json", max_entries: int = 100):
        """
        Initialize audit log.

        Args:
            log_file: Path to the JSON file
            max_entries: Maximum number of entries kept
        """
        self.log_file = Path(log_file)
        self.max_entries = max_entries
        self._entries: List[ExecutionAuditEntry] = []
        self._load()

    def _load(self):
        if not self.log_file.exists():
            logger.info("No existing execution log found, starting fresh")
            return

        try:
            with open(self.log_file, 'r') as f:
                data = json.load(f)
            self._entries = [ExecutionAuditEntry.from_dict(item) for item in data][-self.max_entries:]
            logger.info(f"Loaded {len(self._entries)} execution log entries from {self.log_file}")
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.error(f"Error loading execution log: {e}, starting fresh")
            self._entries = []

    def _save(self):
        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, 'w') as f:
                json.dump([entry.to_dict() for entry in self._entries], f, indent=2)
        except IOError as e:
            logger.error(f"Error saving execution log: {e}")

    def append(self, entry: ExecutionAuditEntry) -> None:
        self._entries.append(entry)
        if len(self._entries) > self.max_entries:
            del self._entries[:len(self._entries) - self.max_entries]
        self._save()

    def entries(self) -> List[ExecutionAuditEntry]:
        """Entries oldest first."""
        return list(self._entries)

    def recent(self, limit: int = 10) -> List[ExecutionAuditEntry]:
        """Most recent entries, newest first."""
        return list(reversed(self._entries[-limit:])) if limit > 0 else []

    def clear(self) -> None:
        self._entries = []
        self._save()

    def __len__(self) -> int:
        return len(self._entries)
