"""Temporary storage for current captures.

Names are uuid-based so sessions running in parallel processes can share a
directory.
"""

from __future__ import annotations

import logging
import tempfile
import uuid
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class TempStore:
    def __init__(self, temp_dir: str | Path | None = None, opts: dict[str, Any] | None = None):
        self.opts: dict[str, Any] = {"suffix": ".png", "prefix": "capture_", **(opts or {})}
        base = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir()) / "visual-session"
        self.dir = base / f"run_{uuid.uuid4().hex[:8]}"
        self.dir.mkdir(parents=True, exist_ok=True)
        self._paths: list[Path] = []

    def path(self, **opts: Any) -> str:
        """Return a fresh, unused file path inside the store."""
        merged = {**self.opts, **opts}
        path = self.dir / f"{merged['prefix']}{uuid.uuid4().hex}{merged['suffix']}"
        self._paths.append(path)
        return str(path)

    @property
    def paths(self) -> list[str]:
        return [str(p) for p in self._paths]

    def cleanup(self) -> None:
        for path in self._paths:
            path.unlink(missing_ok=True)
        self._paths.clear()
        try:
            self.dir.rmdir()
        except OSError as e:
            logger.debug("Temp dir %s not removed: %s", self.dir, e)
