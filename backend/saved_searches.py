"""
Saved searches: user-named filter states.

save_search / delete_search are pure list operations. Persistence goes
through a store object handed to the caller (the server owns one
JsonSavedSearchStore), never through module-level state.
"""

import copy
import json
import os
import sys
import threading

from validators import require_list, require_mapping


def save_search(saved, name, filters) -> list[dict]:
    """
    Append {name, filters} to a copy of saved.

    Names are not deduplicated: two searches may share a name.
    A blank name saves nothing and returns an unchanged copy.
    """
    saved = require_list(saved, "saved_searches")
    filters = require_mapping(filters, "filters")
    clean_name = str(name or "").strip()
    if not clean_name:
        return list(saved)
    return list(saved) + [{"name": clean_name, "filters": copy.deepcopy(dict(filters))}]


def delete_search(saved, index) -> list[dict]:
    """Remove the entry at index. Any index outside the list is a no-op."""
    saved = require_list(saved, "saved_searches")
    try:
        position = int(index)
    except (TypeError, ValueError):
        return list(saved)
    return [entry for i, entry in enumerate(saved) if i != position]


class JsonSavedSearchStore:
    """
    Saved searches for every user in one JSON file:

      {"<user_id>": [{"name": ..., "filters": {...}}, ...], ...}

    Last write wins. A missing or unreadable file reads as empty.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read_all(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            print(f"[WARN] Could not read saved searches from {self.path}: {exc}", file=sys.stderr)
            return {}
        if not isinstance(data, dict):
            print(f"[WARN] Ignoring malformed saved searches file {self.path}", file=sys.stderr)
            return {}
        return data

    def load(self, user_id: str) -> list[dict]:
        with self._lock:
            entries = self._read_all().get(str(user_id), [])
        if not isinstance(entries, list):
            return []
        return [e for e in entries if isinstance(e, dict) and "name" in e and "filters" in e]

    def save(self, user_id: str, searches: list[dict]) -> None:
        searches = require_list(searches, "saved_searches")
        with self._lock:
            data = self._read_all()
            data[str(user_id)] = searches
            # Serialize before touching disk; the file holds every user's searches.
            encoded = json.dumps(data, indent=2, ensure_ascii=False)
            parent = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(parent, exist_ok=True)
            tmp_path = self.path + ".tmp"
            with open(tmp_path, "w", encoding="utf-8") as fh:
                fh.write(encoded)
            os.replace(tmp_path, self.path)
