"""Console event journal.

Every upload, fetch and settings change is appended as one JSON object per
line to a daily file under <log_directory>/events/date=YYYY-MM-DD/console.jsonl.
Entries that belong to an upload session carry its id at the top level so a
single session's history can be pulled back out.
"""

import json
import logging
import threading
from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ppe_console.config import get_settings

logger = logging.getLogger(__name__)

CATEGORIES = frozenset({"upload", "fetch", "analytics", "history", "auth", "settings", "app"})
LEVELS = ("INFO", "WARNING", "ERROR")

JOURNAL_DIR = "events"
JOURNAL_FILE = "console.jsonl"
PARTITION_PREFIX = "date="


@dataclass
class EntryFilter:
    """Criteria an entry must meet to be returned; None matches anything."""

    level: str | None = None
    category: str | None = None
    event: str | None = None
    session_id: str | None = None
    search: str | None = None

    def matches(self, entry: dict[str, Any]) -> bool:
        if self.level and str(entry.get("level", "")).upper() != self.level.upper():
            return False
        if self.category and entry.get("category") != self.category:
            return False
        if self.event and entry.get("event") != self.event:
            return False
        if self.session_id and entry.get("session_id") != self.session_id:
            return False
        if self.search:
            needle = self.search.lower()
            haystack = f"{entry.get('message', '')} {entry.get('event', '')}".lower()
            if needle not in haystack:
                return False
        return True


def partition_date(path: Path) -> str | None:
    """The YYYY-MM-DD a journal file belongs to, from its date= directory."""
    name = path.parent.name
    if not name.startswith(PARTITION_PREFIX):
        return None
    value = name[len(PARTITION_PREFIX) :]
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return None
    return value


class LogService:
    """Appends console events to the journal and reads them back."""

    def __init__(self) -> None:
        self._write_lock = threading.Lock()

    def _journal_root(self) -> Path:
        return Path(get_settings().log_directory) / JOURNAL_DIR

    def _journal_file(self, day: str) -> Path:
        partition = self._journal_root() / f"{PARTITION_PREFIX}{day}"
        partition.mkdir(parents=True, exist_ok=True)
        return partition / JOURNAL_FILE

    def log(
        self,
        level: str,
        category: str,
        event: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append one event to today's journal file.

        Args:
            level: INFO, WARNING or ERROR
            category: One of CATEGORIES
            event: Machine-readable event name (snake_case)
            message: Human-readable message
            metadata: Extra fields; a "session_id" here is also stored on the entry

        Raises:
            ValueError: If the level or category is unknown
        """
        level = level.upper()
        if level not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        if category not in CATEGORIES:
            raise ValueError(f"Unknown log category: {category}")

        now = datetime.now(UTC)
        entry: dict[str, Any] = {
            "timestamp": now.isoformat(),
            "level": level,
            "category": category,
            "event": event,
            "message": message,
        }
        if metadata:
            if metadata.get("session_id"):
                entry["session_id"] = metadata["session_id"]
            entry["metadata"] = metadata

        logger.log(logging.getLevelName(level), "[%s] %s: %s", category, event, message)

        line = json.dumps(entry, default=str)
        with self._write_lock:
            with open(self._journal_file(now.strftime("%Y-%m-%d")), "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def info(
        self,
        category: str,
        event: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.log("INFO", category, event, message, metadata)

    def warning(
        self,
        category: str,
        event: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.log("WARNING", category, event, message, metadata)

    def error(
        self,
        category: str,
        event: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.log("ERROR", category, event, message, metadata)

    def journal_files(self) -> list[Path]:
        """Journal files, newest day first."""
        root = self._journal_root()
        if not root.exists():
            return []
        files = [p for p in root.glob(f"{PARTITION_PREFIX}*/{JOURNAL_FILE}") if partition_date(p)]
        return sorted(files, key=lambda p: partition_date(p) or "", reverse=True)

    @staticmethod
    def _read_file(journal_file: Path) -> Iterator[dict[str, Any]]:
        # Lines cut short by a crash mid-write are skipped
        try:
            with open(journal_file, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entry = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if isinstance(entry, dict):
                        yield entry
        except OSError:
            logger.warning("Could not read journal file %s", journal_file, exc_info=True)

    def read_log_entries(
        self,
        date: str | None = None,
        level: str | None = None,
        category: str | None = None,
        event: str | None = None,
        session_id: str | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 100,
    ) -> dict[str, Any]:
        """Filtered journal entries, newest first, one page at a time.

        Args:
            date: Only this UTC day (YYYY-MM-DD); an unparseable date matches nothing
            level: INFO/WARNING/ERROR, case-insensitive
            category: Exact category
            event: Exact event name
            session_id: Only entries of this upload session
            search: Case-insensitive substring of the message or event name
            offset: Entries to skip
            limit: Maximum entries to return

        Returns:
            Dict with entries, total, offset and limit
        """
        files = self.journal_files()
        if date:
            files = [f for f in files if partition_date(f) == date]

        criteria = EntryFilter(
            level=level, category=category, event=event, session_id=session_id, search=search
        )
        matched = [entry for f in files for entry in self._read_file(f) if criteria.matches(entry)]
        matched.sort(key=lambda e: str(e.get("timestamp", "")), reverse=True)

        return {
            "entries": matched[offset : offset + limit],
            "total": len(matched),
            "offset": offset,
            "limit": limit,
        }

    def get_log_stats(self) -> dict[str, Any]:
        """Totals across the whole journal, broken down by level, category and event."""
        levels: Counter[str] = Counter()
        categories: Counter[str] = Counter()
        events: Counter[str] = Counter()
        sessions: set[str] = set()
        today = datetime.now(UTC).strftime("%Y-%m-%d")
        today_entries = 0

        files = self.journal_files()
        for journal_file in files:
            day = partition_date(journal_file)
            for entry in self._read_file(journal_file):
                levels[str(entry.get("level", "UNKNOWN"))] += 1
                categories[str(entry.get("category", "unknown"))] += 1
                events[str(entry.get("event", "unknown"))] += 1
                if entry.get("session_id"):
                    sessions.add(str(entry["session_id"]))
                if day == today:
                    today_entries += 1

        days = sorted(d for d in (partition_date(f) for f in files) if d)
        return {
            "total_entries": sum(levels.values()),
            "today_entries": today_entries,
            "level_counts": dict(levels),
            "category_counts": dict(categories),
            "event_counts": dict(events.most_common()),
            "upload_sessions": len(sessions),
            "date_range": {
                "earliest": days[0] if days else None,
                "latest": days[-1] if days else None,
            },
            "file_count": len(files),
        }


_log_service: LogService | None = None


def get_log_service() -> LogService:
    """Get the singleton LogService instance."""
    global _log_service
    if _log_service is None:
        _log_service = LogService()
    return _log_service
