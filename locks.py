"""
Durable lock store.

locks.json schema:
    {
      "groupNames": {threadID: name},
      "nicknames":  {threadID: {memberID: nick}},
      "emojis":     {},                       (reserved)
      "antiOut":    {},                       (reserved)
      "groupPics":  {threadID: {"file": path, "url": source}}
    }

Absence of a key means "not locked"; presence means enforcement is active.
Every mutation goes through LockStore and is persisted immediately; the bot
also saves on a fixed interval. Saves are whole-document overwrites.
"""

import os
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from errors import PersistenceWarning

logger = logging.getLogger("lockbot")


@dataclass
class GroupPic:
    file: str
    url: str

    def to_dict(self) -> dict:
        return {"file": self.file, "url": self.url}


@dataclass
class LockSet:
    group_names: Dict[str, str] = field(default_factory=dict)
    nicknames: Dict[str, Dict[str, str]] = field(default_factory=dict)
    group_pics: Dict[str, GroupPic] = field(default_factory=dict)
    emojis: dict = field(default_factory=dict)
    anti_out: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "groupNames": dict(self.group_names),
            "nicknames": {tid: dict(m) for tid, m in self.nicknames.items()},
            "emojis": dict(self.emojis),
            "antiOut": dict(self.anti_out),
            "groupPics": {tid: p.to_dict() for tid, p in self.group_pics.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LockSet":
        if not isinstance(data, dict):
            raise ValueError(f"locks document must be an object, got {type(data).__name__}")
        pics = {}
        for tid, raw in (data.get("groupPics") or {}).items():
            pics[str(tid)] = GroupPic(file=str(raw.get("file") or ""), url=str(raw.get("url") or ""))
        return cls(
            group_names={str(k): str(v) for k, v in (data.get("groupNames") or {}).items()},
            nicknames={
                str(tid): {str(uid): str(nick) for uid, nick in (members or {}).items()}
                for tid, members in (data.get("nicknames") or {}).items()
            },
            group_pics=pics,
            emojis=dict(data.get("emojis") or {}),
            anti_out=dict(data.get("antiOut") or {}),
        )


class LockStore:
    """Owns the process-wide LockSet and its file on disk.

    Accessors hold an RLock so a save never serializes a half-applied mutation.
    Readers get copies, never live references into the LockSet.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()
        self.locks = LockSet()

    # -------- Persistence --------
    def load(self) -> LockSet:
        """Load locks.json; a missing or corrupt file yields an empty LockSet."""
        with self._lock:
            if not self.path.exists():
                logger.warning(f"{PersistenceWarning.__name__}: {self.path} not found, using defaults.")
                self.locks = LockSet()
                return self.locks
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                self.locks = LockSet.from_dict(data)
            except (OSError, ValueError, AttributeError, TypeError) as e:
                logger.warning(f"{PersistenceWarning.__name__}: could not load {self.path} ({e}), using defaults.")
                self.locks = LockSet()
            return self.locks

    def save(self) -> bool:
        """Best-effort whole-document write. Never raises."""
        with self._lock:
            try:
                payload = json.dumps(self.locks.to_dict(), indent=2, ensure_ascii=False)
                tmp = self.path.with_suffix(self.path.suffix + ".tmp")
                tmp.write_text(payload, encoding="utf-8")
                os.replace(tmp, self.path)
                return True
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Failed saving locks: {e}")
                return False

    # -------- Group names --------
    def get_group_name(self, thread_id: str) -> Optional[str]:
        with self._lock:
            return self.locks.group_names.get(thread_id)

    def set_group_name(self, thread_id: str, name: str):
        with self._lock:
            self.locks.group_names[thread_id] = name
            self.save()

    def remove_group_name(self, thread_id: str) -> bool:
        with self._lock:
            existed = self.locks.group_names.pop(thread_id, None) is not None
            self.save()
            return existed

    # -------- Nicknames --------
    def get_nickname(self, thread_id: str, member_id: str) -> Optional[str]:
        with self._lock:
            return self.locks.nicknames.get(thread_id, {}).get(member_id)

    def get_nicknames(self, thread_id: str) -> Dict[str, str]:
        with self._lock:
            return dict(self.locks.nicknames.get(thread_id, {}))

    def set_nicknames(self, thread_id: str, mapping: Dict[str, str]):
        """Replace the whole per-member map for a thread."""
        with self._lock:
            self.locks.nicknames[thread_id] = dict(mapping)
            self.save()

    def remove_nicknames(self, thread_id: str) -> bool:
        with self._lock:
            existed = self.locks.nicknames.pop(thread_id, None) is not None
            self.save()
            return existed

    # -------- Group pictures --------
    def get_group_pic(self, thread_id: str) -> Optional[GroupPic]:
        with self._lock:
            pic = self.locks.group_pics.get(thread_id)
            return GroupPic(pic.file, pic.url) if pic else None

    def set_group_pic(self, thread_id: str, file: str, url: str):
        with self._lock:
            self.locks.group_pics[thread_id] = GroupPic(file=str(file), url=url)
            self.save()

    def remove_group_pic(self, thread_id: str) -> bool:
        with self._lock:
            existed = self.locks.group_pics.pop(thread_id, None) is not None
            self.save()
            return existed

    # -------- Aggregates for status --------
    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {
                "groupNames": len(self.locks.group_names),
                "nicknames": len(self.locks.nicknames),
                "groupPics": len(self.locks.group_pics),
            }
