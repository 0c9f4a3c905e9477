from collections import deque
from dataclasses import dataclass, field
from datetime import datetime

from finance_tracker.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Notice:
    level: str  # "info" | "warning" | "error"
    message: str
    created_at: datetime = field(default_factory=datetime.now)


class Notifier:
    """Transient, user-visible notices. Old notices fall off once ``limit`` is reached."""

    def __init__(self, limit: int = 50) -> None:
        self._notices: deque[Notice] = deque(maxlen=limit)

    def _push(self, level: str, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self._notices.append(notice)
        return notice

    def info(self, message: str) -> Notice:
        logger.info("[NOTICE] %s", message)
        return self._push("info", message)

    def warn(self, message: str) -> Notice:
        logger.warning("[NOTICE] %s", message)
        return self._push("warning", message)

    def error(self, message: str) -> Notice:
        logger.error("[NOTICE] %s", message)
        return self._push("error", message)

    def recent(self) -> list[Notice]:
        return list(self._notices)

    def drain(self) -> list[Notice]:
        notices = list(self._notices)
        self._notices.clear()
        return notices
