from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import List

from macrobius_tutor.learning.models import LearningSession
from macrobius_tutor.learning.serialization import session_from_dict, session_to_dict


class SessionJsonlStore:
    """Append-only JSONL archive of closed learning sessions, one session per line."""

    def __init__(self, path: Path):
        """Ensure the backing directory exists and record the JSONL filepath."""
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write_lock = threading.Lock()

    def load(self) -> List[LearningSession]:
        """Read all archived sessions from disk in the order they were closed."""
        if not self.path.exists():
            return []
        sessions: List[LearningSession] = []
        with self.path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if not line.strip():
                    continue
                sessions.append(session_from_dict(json.loads(line)))
        return sessions

    def append(self, session: LearningSession) -> None:
        """Write one closed session to the end of the archive. Existing lines are never rewritten."""
        if not session.is_closed:
            raise ValueError(f"Only closed sessions can be archived: {session.session_id}")
        line = json.dumps(session_to_dict(session))
        with self._write_lock:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line)
                handle.write("\n")
