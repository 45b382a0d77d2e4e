"""User-facing notices for a headless service.

There is no UI to pop a notice in, so notices go to the log at INFO and
the most recent ones are kept for the ``live_sync_status`` tool.
"""

import logging
from collections import deque
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class LogNotifier:
    """Log each notice and remember the last *history* of them."""

    def __init__(self, history: int = 20) -> None:
        self._recent: deque[tuple[str, str]] = deque(maxlen=history)

    def notify(self, message: str) -> None:
        logger.info("%s", message)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        self._recent.append((stamp, message))

    def recent(self) -> list[tuple[str, str]]:
        """Return ``(utc_timestamp, message)`` pairs, oldest first."""
        return list(self._recent)
