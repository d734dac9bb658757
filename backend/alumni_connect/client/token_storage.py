"""
Where the client keeps its session token between process runs.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class MemoryTokenStorage:
    """Keeps the session for the lifetime of the process only."""

    def __init__(self):
        self._session: Optional[dict] = None

    def load(self) -> Optional[dict]:
        return self._session

    def save(self, session: dict) -> None:
        self._session = dict(session)

    def clear(self) -> None:
        self._session = None


class FileTokenStorage:
    """Persists the session as JSON so that a later run can restore it."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return None
        if not isinstance(data, dict) or "access_token" not in data:
            return None
        return data

    def save(self, session: dict) -> None:
        """Write the session readable by the owner only; it holds a bearer token."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps(session))
        # os.open only applies the mode to new files
        os.chmod(self.path, 0o600)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
