"""
Strategies for moving an upstream SSE body to the outbound response.

Both strategies hand chunks through exactly as the upstream transport yields
them. `PassthroughRelay` iterates the upstream body directly from the response
iterator. `PumpRelay` drives the upstream read loop from a detached task and
feeds the response through a bounded channel, for runtimes where the body must
be actively pumped once the handler has returned.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

import httpx

from shiftcraft.errors import StreamTruncationError

logger = logging.getLogger(__name__)

OnClose = Callable[[], Awaitable[None]]

# Environment markers of short-lived function runtimes.
FUNCTION_RUNTIME_MARKERS = (
    "FUNCTION_TARGET",
    "K_SERVICE",
    "AWS_LAMBDA_FUNCTION_NAME",
    "NETLIFY",
)

_EOF = object()


class StreamRelay(Protocol):
    """Turns an open upstream response into an outbound body iterator."""

    def relay(self, upstream: httpx.Response, on_close: OnClose) -> AsyncIterator[bytes]:
        ...


class PassthroughRelay:
    """Hands the upstream body to the outbound response as is."""

    def relay(self, upstream: httpx.Response, on_close: OnClose) -> AsyncIterator[bytes]:
        return self._body(upstream, on_close)

    async def _body(
        self, upstream: httpx.Response, on_close: OnClose
    ) -> AsyncIterator[bytes]:
        try:
            async for chunk in upstream.aiter_raw():
                yield chunk
        finally:
            await on_close()


class StreamChannel:
    """
    Connected writable/readable pair backed by a bounded queue.

    The writer calls `write`, then either `close` or `abort`. The reader
    iterates the channel; an abort surfaces as `StreamTruncationError` on the
    next read, and chunks still queued at that point are dropped.
    """

    def __init__(self, maxsize: int = 8) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize)
        self._error: Optional[BaseException] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, chunk: bytes) -> None:
        if self._closed:
            raise RuntimeError("write to a closed stream channel")
        await self._queue.put(chunk)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_EOF)

    def abort(self, exc: BaseException) -> None:
        if self._closed:
            return
        self._closed = True
        self._error = exc
        try:
            self._queue.put_nowait(_EOF)
        except asyncio.QueueFull:
            # The reader sees the error on its next read.
            pass

    def __aiter__(self) -> "StreamChannel":
        return self

    async def __anext__(self) -> bytes:
        item = await self._queue.get()
        if self._error is not None:
            raise StreamTruncationError(str(self._error)) from self._error
        if item is _EOF:
            raise StopAsyncIteration
        return item


class PumpRelay:
    """Copies the upstream body into a `StreamChannel` from a detached task."""

    def __init__(self, buffer_chunks: int = 8) -> None:
        self.buffer_chunks = buffer_chunks

    def relay(self, upstream: httpx.Response, on_close: OnClose) -> AsyncIterator[bytes]:
        channel = StreamChannel(self.buffer_chunks)
        task = asyncio.create_task(self._pump(upstream, channel, on_close))
        return self._read(channel, task)

    async def _pump(
        self, upstream: httpx.Response, channel: StreamChannel, on_close: OnClose
    ) -> None:
        count = 0
        try:
            async for chunk in upstream.aiter_raw():
                await channel.write(chunk)
                count += 1
            await channel.close()
            logger.debug("Pump finished after %d chunks", count)
        except asyncio.CancelledError:
            channel.abort(StreamTruncationError("stream cancelled"))
            raise
        except Exception as e:
            logger.warning("Pump aborted after %d chunks: %s", count, e)
            channel.abort(e)
        finally:
            await on_close()

    async def _read(
        self, channel: StreamChannel, task: asyncio.Task
    ) -> AsyncIterator[bytes]:
        try:
            async for chunk in channel:
                yield chunk
        finally:
            if not task.done():
                task.cancel()


def detect_function_runtime() -> bool:
    """True when running inside a short-lived function invocation."""
    return any(os.environ.get(name) for name in FUNCTION_RUNTIME_MARKERS)


def select_stream_relay(mode: str = "auto", buffer_chunks: int = 8) -> StreamRelay:
    if mode == "auto":
        mode = "pump" if detect_function_runtime() else "passthrough"
    if mode == "passthrough":
        return PassthroughRelay()
    if mode == "pump":
        return PumpRelay(buffer_chunks=buffer_chunks)
    raise ValueError(f"Unknown stream mode: {mode}")
