"""SSE manager — in-process broadcaster for ingestion job updates."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

logger = logging.getLogger(__name__)

_DEFAULT_CLIENT_BUFFER = 100


class SSEManager:
    """Fans job events out to connected Server-Sent-Events clients.

    Every subscriber owns a bounded asyncio.Queue. A client that falls more
    than ``client_buffer`` events behind is disconnected.
    """

    def __init__(self, client_buffer: int = _DEFAULT_CLIENT_BUFFER) -> None:
        self._client_buffer = client_buffer
        self._queues: list[asyncio.Queue[str | None]] = []

    async def subscribe(self) -> AsyncGenerator[str, None]:
        """Yield formatted SSE messages until shutdown or disconnect."""
        queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=self._client_buffer)
        self._queues.append(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    async def broadcast(self, event_type: str, data: dict[str, Any]) -> None:
        message = f"event: {event_type}\ndata: {json.dumps(data, default=str)}\n\n"
        lagging: list[asyncio.Queue[str | None]] = []

        for queue in self._queues:
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                lagging.append(queue)

        for queue in lagging:
            logger.warning("SSE client fell %d events behind, disconnecting", self._client_buffer)
            self._queues.remove(queue)
            _drain(queue)
            queue.put_nowait(None)

    async def shutdown(self) -> None:
        for queue in self._queues:
            _drain(queue)
            queue.put_nowait(None)
        self._queues.clear()

    @property
    def client_count(self) -> int:
        return len(self._queues)


def _drain(queue: asyncio.Queue[str | None]) -> None:
    while not queue.empty():
        queue.get_nowait()
