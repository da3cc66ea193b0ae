"""Persistent store of learned signal to field type mappings."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional, Protocol

from .form_models import FieldType, parse_field_type
from .io_utils import read_json, write_json

MAX_LEARNED_ENTRIES = 500


@dataclass(slots=True)
class LearnedEntry:
    signals: str
    field_type: FieldType
    timestamp: float = 0.0

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["field_type"] = self.field_type.value
        return payload


class LearnedEntriesStore(Protocol):
    async def get_learned_entries(self) -> List[LearnedEntry]:
        ...

    async def store_learned_entry(self, signals: str, field_type: FieldType) -> None:
        ...


class MemoryLearningStore:
    """In-process store; entries vanish with the process."""

    def __init__(self, entries: Optional[List[LearnedEntry]] = None) -> None:
        self._entries: List[LearnedEntry] = list(entries or [])

    async def get_learned_entries(self) -> List[LearnedEntry]:
        return list(self._entries)

    async def store_learned_entry(self, signals: str, field_type: FieldType) -> None:
        self._entries = _merge_entry(self._entries, signals, field_type)

    async def clear(self) -> None:
        self._entries = []

    async def count(self) -> int:
        return len(self._entries)


class JsonLearningStore:
    """Learned entries kept in a JSON file, newest last."""

    def __init__(self, path: Path, logger: Optional[logging.Logger] = None) -> None:
        self.path = Path(path)
        self.logger = logger or logging.getLogger(__name__)

    async def get_learned_entries(self) -> List[LearnedEntry]:
        try:
            raw = read_json(self.path, default=[])
        except (OSError, ValueError) as exc:
            self.logger.warning("Could not read learned entries from %s: %s", self.path, exc)
            return []
        entries: List[LearnedEntry] = []
        for item in raw or []:
            if not isinstance(item, dict):
                continue
            field_type = parse_field_type(item.get("field_type"))
            signals = item.get("signals")
            if field_type is None or not signals:
                continue
            entries.append(
                LearnedEntry(
                    signals=str(signals),
                    field_type=field_type,
                    timestamp=float(item.get("timestamp") or 0.0),
                )
            )
        return entries

    async def store_learned_entry(self, signals: str, field_type: FieldType) -> None:
        entries = _merge_entry(await self.get_learned_entries(), signals, field_type)
        write_json(self.path, [entry.to_dict() for entry in entries])
        self.logger.debug("Stored learned entry %r -> %s", signals, field_type.value)

    async def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

    async def count(self) -> int:
        return len(await self.get_learned_entries())


def _merge_entry(
    entries: List[LearnedEntry], signals: str, field_type: FieldType
) -> List[LearnedEntry]:
    if not signals.strip():
        return entries
    merged = [entry for entry in entries if entry.signals != signals]
    merged.append(LearnedEntry(signals=signals, field_type=field_type, timestamp=time.time()))
    return merged[-MAX_LEARNED_ENTRIES:]


__all__ = [
    "MAX_LEARNED_ENTRIES",
    "LearnedEntry",
    "LearnedEntriesStore",
    "MemoryLearningStore",
    "JsonLearningStore",
]
