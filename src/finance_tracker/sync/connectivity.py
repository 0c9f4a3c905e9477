from collections.abc import Callable

from finance_tracker.logger import get_logger

logger = get_logger(__name__)


class Connectivity:
    """Online/offline flag with an edge-triggered "became online" hook."""

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._on_online: list[Callable[[], object]] = []

    @property
    def online(self) -> bool:
        return self._online

    def on_online(self, callback: Callable[[], object]) -> None:
        self._on_online.append(callback)

    def set_online(self, online: bool) -> bool:
        """Update the flag. Returns True when this call was an offline -> online transition."""
        was_online = self._online
        self._online = online
        if online == was_online:
            return False

        logger.info("[NET] Connectivity changed: %s", "online" if online else "offline")
        if not online:
            return False
        for callback in list(self._on_online):
            callback()
        return True
