"""Publish/subscribe notification of committed scheduled-entry changes"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryChangeEvent:
    """Emitted once per committed lifecycle operation"""

    operation: str
    owner_id: str
    entry_ids: Tuple[uuid.UUID, ...] = field(default_factory=tuple)
    group_id: Optional[uuid.UUID] = None


Subscriber = Callable[[EntryChangeEvent], None]


class ChangeNotifier:
    """Fan-out of change events to subscribers (cache invalidation, read models)"""

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it"""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: EntryChangeEvent) -> None:
        # Runs after commit; subscriber errors are logged and skipped
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Change subscriber failed", extra={"step": event.operation})
