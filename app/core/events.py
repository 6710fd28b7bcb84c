"""
Domain events emitted on state changes.

The engine only emits. Delivery (push, email, in-app) belongs to whatever
subscribes to the dispatcher.
"""
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    occurred_at: datetime

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.name, **asdict(self)}


@dataclass(frozen=True)
class VerificationTriggered(DomainEvent):
    session_id: int
    employee_id: int
    expires_at: datetime
    triggered_by: Optional[int] = None


@dataclass(frozen=True)
class VerificationResolved(DomainEvent):
    session_id: int
    employee_id: int
    status: str
    face_match_score: Optional[float] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class FraudAlertRaised(DomainEvent):
    alert_id: int
    employee_id: int
    alert_type: str
    severity: str
    description: str


@dataclass(frozen=True)
class GeofenceEntered(DomainEvent):
    employee_id: int
    geofence_id: int
    distance_m: float


@dataclass(frozen=True)
class GeofenceLeft(DomainEvent):
    employee_id: int
    geofence_id: int
    distance_m: Optional[float] = None


EventHandler = Callable[[DomainEvent], None]


@dataclass
class _Subscription:
    handler: EventHandler
    event_types: Optional[tuple] = field(default=None)


class EventDispatcher:
    """In-process publish/subscribe. A failing handler never reaches the emitter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: List[_Subscription] = []

    def subscribe(self, handler: EventHandler, *event_types: Type[DomainEvent]) -> None:
        with self._lock:
            self._subscriptions.append(_Subscription(handler, event_types or None))

    def unsubscribe(self, handler: EventHandler) -> None:
        with self._lock:
            self._subscriptions = [s for s in self._subscriptions if s.handler != handler]

    def emit(self, event: DomainEvent) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)

        for sub in subscriptions:
            if sub.event_types and not isinstance(event, sub.event_types):
                continue
            try:
                sub.handler(event)
            except Exception:
                logger.exception("Event handler %r failed for %s", sub.handler, event.name)


def log_event(event: DomainEvent) -> None:
    logger.info("Domain event %s: %s", event.name, event.to_dict())


dispatcher = EventDispatcher()
dispatcher.subscribe(log_event)
