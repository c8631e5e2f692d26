from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional

from .face_types import AttendanceRecord


class AttendanceStore:
    """JSON-backed check-in log grouped by user id.

    Each user's check-ins are kept in time order. Recording the same
    ``event_id`` twice is a no-op.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._check_ins: Dict[str, List[AttendanceRecord]] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists() or not self.path.read_text(encoding="utf-8").strip():
            self._check_ins = {}
            return
        data = json.loads(self.path.read_text(encoding="utf-8"))
        self._check_ins = {
            str(entry["user_id"]): [
                AttendanceRecord.from_dict(item) for item in entry.get("check_ins", [])
            ]
            for entry in data
        }

    def _persist(self) -> None:
        payload = [
            {
                "user_id": user_id,
                "check_ins": [record.to_dict() for record in records],
            }
            for user_id, records in sorted(self._check_ins.items())
        ]
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def record(self, check_in: AttendanceRecord) -> bool:
        records = self._check_ins.setdefault(check_in.user_id, [])
        if any(existing.event_id == check_in.event_id for existing in records):
            return False
        records.append(check_in)
        records.sort(key=lambda r: r.timestamp_utc)
        self._persist()
        return True

    def history(self, user_id: Optional[str] = None) -> List[AttendanceRecord]:
        if user_id is not None:
            return list(self._check_ins.get(user_id, []))
        merged = [r for records in self._check_ins.values() for r in records]
        return sorted(merged, key=lambda r: r.timestamp_utc)

    def last_check_in(self, user_id: str) -> Optional[AttendanceRecord]:
        records = self._check_ins.get(user_id)
        return records[-1] if records else None
