"""
Channel handlers — the delivery extension point of the queue.

Provides:
- ChannelError: structured error for channel registration/delivery
- BatchHandler: delivers a group of items sharing (channel, channel_id)
- SingleHandler: per-item fallback for anything a batch handler left untouched
- ChannelHandler: convenience base implementing both capabilities
- FunctionHandler: wraps plain (sync or async) callables as a handler
- ChannelRegistry: channel name → handler lookup, resolved at startup

A channel may register a handler implementing either capability or both.
"""
from __future__ import annotations

import abc
import inspect
from typing import Any, Callable, Optional, Sequence

import structlog

from models.schemas import QueueItem

logger = structlog.get_logger()


# ══════════════════════════════════════════════════════════════
#  ERRORS
# ══════════════════════════════════════════════════════════════

class ChannelError(Exception):
    """Base exception for all channel operations."""

    def __init__(self, message: str, channel: str = ""):
        self.channel = channel
        super().__init__(message)


# ══════════════════════════════════════════════════════════════
#  CAPABILITIES
# ══════════════════════════════════════════════════════════════

class BatchHandler(abc.ABC):
    """Delivers every item of one (channel, channel_id) group in a single call.

    Mark each item touched with ``item.mark_success()`` or
    ``item.mark_failed()``; untouched items fall through to the single handler.
    """

    @abc.abstractmethod
    async def process_batch(self, items: Sequence[QueueItem], channel: str, channel_id: int) -> None:
        ...


class SingleHandler(abc.ABC):
    """Delivers one item. Must mark it success/failed, or reschedule it itself."""

    @abc.abstractmethod
    async def process_one(self, item: QueueItem) -> None:
        ...


class ChannelHandler(BatchHandler, SingleHandler):
    """Base for channels that support both batch and single delivery."""


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class FunctionHandler:
    """
    Adapts plain callables to the handler capabilities.

        registry.register("email", FunctionHandler(batch=send_many, single=send_one))

    Either callable may be sync or async. Only the capabilities given are exposed.
    """

    def __init__(
        self,
        batch: Optional[Callable[[Sequence[QueueItem], str, int], Any]] = None,
        single: Optional[Callable[[QueueItem], Any]] = None,
    ):
        if batch is None and single is None:
            raise ChannelError("FunctionHandler needs a batch or a single callable")
        self._batch = batch
        self._single = single

    @property
    def supports_batch(self) -> bool:
        return self._batch is not None

    @property
    def supports_single(self) -> bool:
        return self._single is not None

    async def process_batch(self, items: Sequence[QueueItem], channel: str, channel_id: int) -> None:
        await _maybe_await(self._batch(items, channel, channel_id))

    async def process_one(self, item: QueueItem) -> None:
        await _maybe_await(self._single(item))


# ══════════════════════════════════════════════════════════════
#  CHANNEL REGISTRY
# ══════════════════════════════════════════════════════════════

class ChannelRegistry:
    def __init__(self):
        self._batch: dict[str, Any] = {}
        self._single: dict[str, Any] = {}

    def register(self, channel: str, handler: Any) -> None:
        """Register ``handler`` for ``channel``, replacing any previous one."""
        if not channel:
            raise ChannelError("Channel name is required")

        if isinstance(handler, FunctionHandler):
            batch = handler if handler.supports_batch else None
            single = handler if handler.supports_single else None
        else:
            batch = handler if isinstance(handler, BatchHandler) else None
            single = handler if isinstance(handler, SingleHandler) else None

        if batch is None and single is None:
            raise ChannelError(
                f"{type(handler).__name__} implements neither BatchHandler nor SingleHandler",
                channel,
            )

        self.unregister(channel)
        if batch is not None:
            self._batch[channel] = batch
        if single is not None:
            self._single[channel] = single
        logger.info("channel_handler_registered",
                    channel=channel,
                    handler=type(handler).__name__,
                    batch=batch is not None,
                    single=single is not None)

    def unregister(self, channel: str) -> None:
        self._batch.pop(channel, None)
        self._single.pop(channel, None)

    def batch_handler(self, channel: str) -> Optional[Any]:
        return self._batch.get(channel)

    def single_handler(self, channel: str) -> Optional[Any]:
        return self._single.get(channel)

    def has_handler(self, channel: str) -> bool:
        return channel in self._batch or channel in self._single

    def channels(self) -> list[str]:
        return sorted(set(self._batch) | set(self._single))
