"""
Broadcast hub — fans out post mutation events to every connected observer.

The hub is built once by the app factory and handed to whoever needs it.
It starts uninitialised; `init()` is called from the lifespan hook once the
transport layer is up. Until then `get_channel()` (and therefore `publish()`)
raises, since broadcasting before there is a transport is a programming error.

Delivery is best-effort: observers connected at publish time get the event,
late joiners never see it, and an observer whose send fails is dropped.
"""
import asyncio
import logging
from typing import Any, Optional, Protocol

from livefeed.telemetry import BROADCAST_OBSERVERS, EVENTS_BROADCAST_TOTAL

logger = logging.getLogger(__name__)


class HubNotInitialized(RuntimeError):
    pass


class Observer(Protocol):
    async def send(self, event: dict[str, Any]) -> None: ...


class BroadcastHub:
    def __init__(self) -> None:
        self._observers: Optional[set[Observer]] = None

    @property
    def initialized(self) -> bool:
        return self._observers is not None

    def init(self) -> None:
        if self._observers is None:
            self._observers = set()
            logger.info("Broadcast hub initialised")

    def close(self) -> None:
        self._observers = None
        BROADCAST_OBSERVERS.set(0)

    def get_channel(self) -> set[Observer]:
        if self._observers is None:
            raise HubNotInitialized("Broadcast hub not initialised — call init() at startup")
        return self._observers

    def connect(self, observer: Observer) -> None:
        channel = self.get_channel()
        channel.add(observer)
        BROADCAST_OBSERVERS.set(len(channel))
        logger.debug("Observer connected (%d total)", len(channel))

    def disconnect(self, observer: Observer) -> None:
        if self._observers is None:
            return
        self._observers.discard(observer)
        BROADCAST_OBSERVERS.set(len(self._observers))
        logger.debug("Observer disconnected (%d left)", len(self._observers))

    async def publish(self, event: dict[str, Any]) -> int:
        """Send `event` to the current observers; returns successful deliveries."""
        observers = list(self.get_channel())
        if not observers:
            return 0

        results = await asyncio.gather(
            *(observer.send(event) for observer in observers),
            return_exceptions=True,
        )

        delivered = 0
        for observer, result in zip(observers, results):
            if isinstance(result, BaseException):
                logger.warning("Dropping observer %r after failed send: %s", observer, result)
                self.disconnect(observer)
            else:
                delivered += 1

        EVENTS_BROADCAST_TOTAL.labels(action=event.get("action", "unknown")).inc()
        return delivered
