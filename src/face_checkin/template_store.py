from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional


class TemplateStore:
    """JSON-backed store of flattened template sets keyed by user id."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._users: Dict[str, Dict[str, object]] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            self._users = {}
            return
        raw = self.path.read_text(encoding="utf-8").strip()
        if not raw:
            self._users = {}
            return
        data = json.loads(raw)
        # A user entry without a template set still counts as enrolled so
        # verification reports it as malformed instead of missing.
        self._users = {
            str(entry["user_id"]): entry.get("face_templates") or {} for entry in data
        }

    def _persist(self) -> None:
        payload = [
            {"user_id": user_id, "face_templates": templates}
            for user_id, templates in sorted(self._users.items())
        ]
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def list_users(self) -> List[str]:
        return sorted(self._users.keys())

    def has_user(self, user_id: str) -> bool:
        return user_id in self._users

    def load(self, user_id: str) -> Optional[Dict[str, object]]:
        return self._users.get(user_id)

    def save(self, user_id: str, flattened: Dict[str, object]) -> None:
        # Re-enrollment replaces the whole set.
        self._users[user_id] = flattened
        self._persist()

    def delete_user(self, user_id: str) -> bool:
        if user_id not in self._users:
            return False
        del self._users[user_id]
        self._persist()
        return True
