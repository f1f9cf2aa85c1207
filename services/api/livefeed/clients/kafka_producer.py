"""
Async Kafka producer relaying post mutation events.

When enabled, the relay is connected to the broadcast hub like any other
observer, so every `{action, post}` event the hub publishes is also written
to the `post-events` topic for downstream consumers.
"""
import json
import logging
from typing import Any, Optional

from aiokafka import AIOKafkaProducer

logger = logging.getLogger(__name__)


class KafkaEventRelay:
    def __init__(self, bootstrap_servers: str, topic: str) -> None:
        self.topic = topic
        self._bootstrap_servers = bootstrap_servers
        self._producer: Optional[AIOKafkaProducer] = None

    async def start(self) -> None:
        self._producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            acks="all",          # wait for all in-sync replicas
            enable_idempotence=True,
        )
        await self._producer.start()
        logger.info("Kafka producer started → %s", self._bootstrap_servers)

    async def stop(self) -> None:
        if self._producer:
            await self._producer.stop()
            self._producer = None

    async def send(self, event: dict[str, Any]) -> None:
        if self._producer is None:
            raise RuntimeError("Kafka producer not initialised")
        await self._producer.send_and_wait(self.topic, event)
        logger.debug("Relayed %s event to '%s'", event.get("action"), self.topic)
