"""Run directories and JSON persistence."""

from __future__ import annotations

import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

DATA_DIR = Path.cwd() / "data"


@dataclass(slots=True, frozen=True)
class RunPaths:
    """Where one CLI run keeps its reports and log file."""

    run_id: str
    base_dir: Path

    def build_path(self, filename: str) -> Path:
        return self.base_dir / filename


def generate_run_id() -> str:
    return f"{datetime.now(timezone.utc):%Y%m%d-%H%M%S}-{secrets.token_hex(2)}"


def prepare_run_directory(
    run_id: Optional[str] = None, data_dir: Optional[Path] = None
) -> RunPaths:
    run_id = run_id or generate_run_id()
    base_dir = (data_dir or DATA_DIR) / run_id
    base_dir.mkdir(parents=True, exist_ok=True)
    return RunPaths(run_id=run_id, base_dir=base_dir)


def write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, ensure_ascii=False)
    return path


def read_json(path: Path, default: Any = None) -> Any:
    """Load JSON from ``path``; ``default`` when the file does not exist."""
    if not path.exists():
        return default
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


__all__ = [
    "DATA_DIR",
    "RunPaths",
    "generate_run_id",
    "prepare_run_directory",
    "write_json",
    "read_json",
]
