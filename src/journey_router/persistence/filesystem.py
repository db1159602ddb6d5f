"""File-based persistence for the distance cache."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

from ..config import settings

DISTANCE_CACHE_FILENAME = "waypoint_distances.jsonl"


class FileStorage:
    """Thin wrapper around the data root for append-only JSON Lines files."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.cache_root = self.root / "cache"
        self.cache_root.mkdir(parents=True, exist_ok=True)

    def append_json_line(self, path: Path, record: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":")) + "\n"
        # One write per record in append mode, so concurrent writers never interleave a line.
        with path.open("a", encoding="utf-8") as handle:
            handle.write(line)

    def read_lines_from(self, path: Path, offset: int = 0) -> tuple[list[str], int]:
        """Complete lines after byte ``offset`` and the offset just past them.

        A trailing line without its newline is still being written and is left
        for the next read.
        """
        if not path.exists():
            return [], offset
        with path.open("rb") as handle:
            handle.seek(offset)
            data = handle.read()
        end = data.rfind(b"\n") + 1
        lines = [line.decode("utf-8") for line in data[:end].splitlines() if line.strip()]
        return lines, offset + end


class FileDistanceCache:
    """Distance records appended to ``<data_root>/cache/waypoint_distances.jsonl``.

    Each line is ``{"origin_id", "destination_id", "distance"}``. The first line
    for a pair wins. Lines appended by other processes sharing the data root
    are picked up on the next miss or put.
    """

    def __init__(self, storage: FileStorage | None = None) -> None:
        self.storage = storage or FileStorage()
        self.path = self.storage.cache_root / DISTANCE_CACHE_FILENAME
        self._lock = threading.Lock()
        self._records: dict[tuple[int, int], float] = {}
        self._offset = 0
        with self._lock:
            self._refresh()

    def _refresh(self) -> None:
        lines, self._offset = self.storage.read_lines_from(self.path, self._offset)
        for line in lines:
            try:
                row = json.loads(line)
                key = (int(row["origin_id"]), int(row["destination_id"]))
                self._records.setdefault(key, float(row["distance"]))
            except (KeyError, ValueError, TypeError) as e:
                logging.warning(f"Skipping invalid distance record in {self.path}: {e}")

    def get(self, origin_id: int, destination_id: int) -> Optional[float]:
        key = (origin_id, destination_id)
        with self._lock:
            value = self._records.get(key)
            if value is None:
                self._refresh()
                value = self._records.get(key)
            return value

    def put(self, origin_id: int, destination_id: int, distance: float) -> None:
        key = (origin_id, destination_id)
        with self._lock:
            self._refresh()
            if key in self._records:
                return
            self.storage.append_json_line(
                self.path,
                {"origin_id": origin_id, "destination_id": destination_id, "distance": float(distance)},
            )
            self._records[key] = float(distance)

    def __len__(self) -> int:
        return len(self._records)
