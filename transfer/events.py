"""
Lifecycle event envelope and emitters.

Events are published at most once and never block or undo the data path:
publish() catches every delivery failure and reports it through the
returned PublishOutcome.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import aiohttp

from common.logging_config import get_logger
from transfer import config

logger = get_logger(__name__)

KAFKA_JSON_CONTENT_TYPE = "application/vnd.kafka.json.v2+json"


class EventType(str, Enum):
    UPLOAD_STARTED = "file.upload.started"
    CHUNK_CREATED = "file.chunk.created"
    UPLOAD_COMPLETED = "file.upload.completed"
    UPLOAD_FAILED = "file.upload.failed"
    DOWNLOAD_COMPLETED = "file.download.completed"
    FILE_DELETED = "file.deleted"


@dataclass(frozen=True)
class LifecycleEvent:
    """
    Envelope shared by every event on the lifecycle topic.
    """
    type: EventType
    source: str
    data: Dict[str, Any]
    key: str
    id: str = field(default_factory=lambda: f"evt_{uuid.uuid4().hex}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "data": self.data,
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")


def new_event(
    event_type: EventType,
    key: str,
    data: Dict[str, Any],
    source: Optional[str] = None
) -> LifecycleEvent:
    """
    Build an event for the lifecycle topic.

    Args:
        event_type: Kind of milestone
        key: Partition key (chunk id for chunk events, file id otherwise)
        data: Event payload
        source: Emitting service name, defaults to TRANSFER_EVENT_SOURCE
    """
    return LifecycleEvent(
        type=event_type,
        source=source or config.EVENT_SOURCE,
        data=data,
        key=key,
    )


@dataclass(frozen=True)
class PublishOutcome:
    """Result of one publish attempt."""
    event_id: str
    event_type: EventType
    delivered: bool
    error: Optional[str] = None


class HttpEventEmitter:
    """
    Publishes events to a Kafka REST proxy topic over HTTP.

    One aiohttp session is shared by all requests; it is created lazily on
    the first publish and closed on shutdown.
    """

    def __init__(
        self,
        bus_url: str,
        topic: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.bus_url = bus_url.rstrip("/")
        self.topic = topic or config.EVENT_TOPIC
        self.timeout = timeout if timeout is not None else config.EVENT_TIMEOUT_SECONDS
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def topic_url(self) -> str:
        return f"{self.bus_url}/topics/{self.topic}"

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def publish(self, event: LifecycleEvent) -> PublishOutcome:
        payload = {"records": [{"key": event.key, "value": event.to_dict()}]}

        try:
            session = self._ensure_session()
            async with session.post(
                self.topic_url,
                data=json.dumps(payload),
                headers={"Content-Type": KAFKA_JSON_CONTENT_TYPE},
            ) as resp:
                if resp.status >= 300:
                    body = await resp.text()
                    raise aiohttp.ClientResponseError(
                        resp.request_info,
                        resp.history,
                        status=resp.status,
                        message=body[:200],
                    )
        except asyncio.TimeoutError:
            return self._failed(event, f"publish timed out after {self.timeout}s")
        except Exception as e:
            return self._failed(event, str(e) or type(e).__name__)

        logger.debug(f"Published {event.type.value} [event_id={event.id}, key={event.key}]")
        return PublishOutcome(event_id=event.id, event_type=event.type, delivered=True)

    def _failed(self, event: LifecycleEvent, error: str) -> PublishOutcome:
        logger.warning(
            f"Event publish failed: {event.type.value} [event_id={event.id}, key={event.key}]: {error}"
        )
        return PublishOutcome(event_id=event.id, event_type=event.type, delivered=False, error=error)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


class LoggingEventEmitter:
    """
    Emitter used when no bus is configured. Events only reach the log and
    are reported as undelivered.
    """

    async def publish(self, event: LifecycleEvent) -> PublishOutcome:
        logger.info(f"Event (no bus configured): {event.type.value} {json.dumps(event.data, default=str)}")
        return PublishOutcome(
            event_id=event.id,
            event_type=event.type,
            delivered=False,
            error="no event bus configured",
        )

    async def close(self) -> None:
        return None


def create_event_emitter(bus_url: Optional[str] = None):
    """
    Pick the emitter for the configured bus URL.
    """
    bus_url = config.EVENT_BUS_URL if bus_url is None else bus_url
    if not bus_url:
        logger.warning("TRANSFER_EVENT_BUS_URL not set, lifecycle events will only be logged")
        return LoggingEventEmitter()
    logger.info(f"Publishing lifecycle events to {bus_url} topic={config.EVENT_TOPIC}")
    return HttpEventEmitter(bus_url)
