"""JSON file storage.

All state is stored in flat JSON files under a configurable base directory.
There is no database or ORM; reads and writes go through plain helper
methods that load and dump JSON.

Directory layout:

    {base}/
      characters/
        {character_id}.json   ← CharacterState
      messages/
        {character_id}.json   ← append-only ConversationMessage list
      activity.json           ← ActivityEntry list (symptom / food logs)

The store itself does no locking; read-modify-write of character state is
serialized per id by RelationshipStateMachine.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from wellmate.models import ActivityEntry, CharacterState, ConversationMessage, ensure_aware

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._chars_root = base_path / "characters"
        self._msgs_root = base_path / "messages"
        self._chars_root.mkdir(parents=True, exist_ok=True)
        self._msgs_root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _checked_id(self, character_id: str) -> str:
        if not _SAFE_ID.match(character_id):
            raise ValueError(f"Invalid character id: {character_id!r}")
        return character_id

    def _state_file(self, character_id: str) -> Path:
        return self._chars_root / f"{self._checked_id(character_id)}.json"

    def _messages_file(self, character_id: str) -> Path:
        return self._msgs_root / f"{self._checked_id(character_id)}.json"

    def _activity_file(self) -> Path:
        return self._base / "activity.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    # ------------------------------------------------------------------
    # Character state
    # ------------------------------------------------------------------

    def get_state(self, character_id: str) -> CharacterState | None:
        path = self._state_file(character_id)
        if not path.exists():
            return None
        return CharacterState.model_validate_json(path.read_text(encoding="utf-8"))

    def save_state(self, state: CharacterState) -> None:
        self._state_file(state.id).write_text(
            state.model_dump_json(indent=2), encoding="utf-8"
        )

    # ------------------------------------------------------------------
    # Messages (append-only)
    # ------------------------------------------------------------------

    def _load_messages(self, character_id: str) -> list[ConversationMessage]:
        path = self._messages_file(character_id)
        if not path.exists():
            return []
        return [ConversationMessage.model_validate(m) for m in self._read_json(path)]

    def append_message(self, message: ConversationMessage) -> None:
        existing = self._load_messages(message.character_id)
        existing.append(message)
        self._write_json(
            self._messages_file(message.character_id),
            [m.model_dump(mode="json") for m in existing],
        )

    def query_messages(
        self,
        character_id: str,
        *,
        limit: int | None = None,
        order: Literal["asc", "desc"] = "asc",
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[ConversationMessage]:
        """Return messages for a character.

        `order="desc"` returns newest first; `limit` applies after ordering,
        so `limit=10, order="desc"` yields the ten most recent messages.
        """
        messages = self._load_messages(character_id)
        if since is not None:
            since = ensure_aware(since)
            messages = [m for m in messages if m.timestamp >= since]
        if until is not None:
            until = ensure_aware(until)
            messages = [m for m in messages if m.timestamp <= until]
        messages.sort(key=lambda m: m.timestamp, reverse=(order == "desc"))
        if limit is not None:
            messages = messages[:max(0, limit)]
        return messages

    def recent_messages(self, character_id: str, limit: int) -> list[ConversationMessage]:
        """The `limit` most recent messages, oldest first."""
        return list(reversed(self.query_messages(character_id, limit=limit, order="desc")))

    def delete_all_messages(self, character_id: str) -> None:
        self._messages_file(character_id).unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    def get_activity(self, since: datetime | None = None) -> list[ActivityEntry]:
        path = self._activity_file()
        if not path.exists():
            return []
        entries = [ActivityEntry.model_validate(e) for e in self._read_json(path)]
        if since is not None:
            since = ensure_aware(since)
            entries = [e for e in entries if e.logged_at >= since]
        return entries

    def append_activity(self, entry: ActivityEntry) -> None:
        existing = self.get_activity()
        existing.append(entry)
        self._write_json(
            self._activity_file(),
            [e.model_dump(mode="json") for e in existing],
        )
