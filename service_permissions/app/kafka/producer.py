"""
Kafka producer used to publish audit records.

kafka-python is synchronous; send() and the acknowledgement wait both run in
a worker thread so a slow broker never blocks the event loop.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

from kafka import KafkaProducer
from kafka.errors import KafkaError

from shared.errors import QueueUnavailableError
from shared.logging import get_logger


def _encode_value(value: Dict[str, Any]) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def _encode_key(key: Optional[str]) -> Optional[bytes]:
    return key.encode("utf-8") if key else None


class KafkaProducerManager:
    """Owns the producer connection and publishes with broker acknowledgement."""

    def __init__(self, bootstrap_servers: str, publish_timeout: float = 10.0):
        self.bootstrap_servers = bootstrap_servers
        self.publish_timeout = publish_timeout
        self.logger = get_logger("permissions.kafka.producer")
        self.producer: Optional[KafkaProducer] = None

    @property
    def started(self) -> bool:
        return self.producer is not None

    async def start(self):
        """Connect to the brokers.

        Raises ``QueueUnavailableError`` when no broker is reachable; callers
        decide whether that is fatal.
        """
        try:
            self.producer = KafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                value_serializer=_encode_value,
                key_serializer=_encode_key,
                # An audit record counts as delivered only once every replica has it
                acks="all",
                # send() blocks on metadata and buffer space for at most this long
                max_block_ms=int(self.publish_timeout * 1000),
                retries=3,
                linger_ms=10,
                compression_type="gzip"
            )
        except KafkaError as e:
            self.logger.error("Audit producer could not connect", bootstrap_servers=self.bootstrap_servers,
                              error=str(e))
            raise QueueUnavailableError(str(e), {"bootstrap_servers": self.bootstrap_servers}) from e

        self.logger.info("Audit producer connected", bootstrap_servers=self.bootstrap_servers)

    async def stop(self):
        """Flush pending records and disconnect."""
        if self.producer is None:
            return

        producer, self.producer = self.producer, None
        producer.flush()
        producer.close()
        self.logger.info("Audit producer closed")

    async def send_message(
        self,
        topic: str,
        message: Dict[str, Any],
        key: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> bool:
        """Publish ``message`` and wait for the acknowledgement.

        Returns False when the broker rejects or times out; raises only when
        the producer was never started.
        """
        if self.producer is None:
            raise QueueUnavailableError("Producer not started", {"topic": topic})

        kafka_headers: List[Tuple[str, bytes]] = [(k, v.encode("utf-8")) for k, v in (headers or {}).items()]

        try:
            metadata = await asyncio.to_thread(
                self._publish_blocking, self.producer, topic, message, key, kafka_headers
            )
        except KafkaError as e:
            self.logger.error("Audit publish failed", topic=topic, error=str(e))
            return False

        self.logger.debug("Audit record published", topic=topic, partition=metadata.partition,
                          offset=metadata.offset)
        return True

    def _publish_blocking(
        self,
        producer: KafkaProducer,
        topic: str,
        message: Dict[str, Any],
        key: Optional[str],
        headers: List[Tuple[str, bytes]],
    ):
        future = producer.send(topic=topic, value=message, key=key, headers=headers)
        return future.get(timeout=self.publish_timeout)
