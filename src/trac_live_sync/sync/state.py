"""Live sync state persistence layer.

A single JSON file holds the live sync settings together with the two
mappings the engine maintains:

* ``liveSyncHashes`` -- path -> fingerprint of the last published content.
* ``backlinkPublishState`` -- path -> remote page the path was published to.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Dict-based state** -- state is a plain ``dict`` so the engine can
  mutate the mappings during a cycle and persist once at the end.
  Unknown keys survive a load/save round trip.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .models import SyncSettings

logger = logging.getLogger(__name__)

HASHES_KEY = "liveSyncHashes"
BACKLINKS_KEY = "backlinkPublishState"


def empty_state() -> dict[str, Any]:
    """Return a fresh state dict with default settings and no mappings."""
    state = SyncSettings().to_state()
    state[HASHES_KEY] = {}
    state[BACKLINKS_KEY] = {}
    return state


class StateStore:
    """Load and save the live sync state file.

    Args:
        path: Location of the JSON state file.  Its parent directory is
            created on first save.
        defaults: Persisted-form settings (camelCase keys) used for keys
            the file does not define.  Values in the file always win.
    """

    def __init__(
        self, path: Path, defaults: dict[str, Any] | None = None
    ) -> None:
        self._path = path
        self._defaults = dict(defaults or {})

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        """Load state from disk.

        Returns:
            The state dict.  Missing keys (or a missing file) are filled
            with defaults; both mappings are always present.
        """
        state = empty_state()
        state.update(self._defaults)
        if not self._path.exists():
            return state
        with open(self._path, encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(
                f"State file {self._path} must contain a JSON object"
            )
        state.update(data)
        # ``null`` mappings appear in hand-edited files
        for key in (HASHES_KEY, BACKLINKS_KEY):
            if not isinstance(state.get(key), dict):
                state[key] = {}
        return state

    def save(self, state: dict[str, Any]) -> None:
        """Persist *state* to disk atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Saved live sync state to %s", self._path)
