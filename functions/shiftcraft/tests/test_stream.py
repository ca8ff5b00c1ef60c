import asyncio
import os
import unittest
from unittest.mock import patch

import httpx

from shiftcraft.errors import StreamTruncationError
from shiftcraft.stream import (
    PassthroughRelay,
    PumpRelay,
    StreamChannel,
    select_stream_relay,
)

SSE_CHUNKS = [
    b'event: message_start\ndata: {"type": "message_start"}\n\n',
    b"data: a\n\n",
    b"data: b\n\n",
    b'event: message_stop\ndata: {"type": "message_stop"}\n\n',
]


async def _open_upstream(body_factory) -> httpx.Response:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body_factory())

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    request = client.build_request("POST", "https://upstream.test/v1/messages")
    return await client.send(request, stream=True)


def _chunks(chunks):
    async def body():
        for chunk in chunks:
            yield chunk

    return body


class _CloseRecorder:
    def __init__(self, upstream: httpx.Response | None = None) -> None:
        self.upstream = upstream
        self.calls = 0
        self.event = asyncio.Event()

    async def __call__(self) -> None:
        self.calls += 1
        if self.upstream is not None:
            await self.upstream.aclose()
        self.event.set()


class PassthroughRelayTests(unittest.IsolatedAsyncioTestCase):
    async def test_chunks_arrive_unchanged_and_in_order(self):
        upstream = await _open_upstream(_chunks(SSE_CHUNKS))
        on_close = _CloseRecorder(upstream)

        received = [chunk async for chunk in PassthroughRelay().relay(upstream, on_close)]

        self.assertEqual(received, SSE_CHUNKS)
        self.assertEqual(on_close.calls, 1)

    async def test_early_close_releases_upstream(self):
        upstream = await _open_upstream(_chunks(SSE_CHUNKS))
        on_close = _CloseRecorder(upstream)

        body = PassthroughRelay().relay(upstream, on_close)
        first = await body.__anext__()
        await body.aclose()

        self.assertEqual(first, SSE_CHUNKS[0])
        self.assertEqual(on_close.calls, 1)


class PumpRelayTests(unittest.IsolatedAsyncioTestCase):
    async def test_chunks_arrive_unchanged_and_in_order(self):
        upstream = await _open_upstream(_chunks(SSE_CHUNKS))
        on_close = _CloseRecorder(upstream)

        received = [chunk async for chunk in PumpRelay().relay(upstream, on_close)]

        self.assertEqual(received, SSE_CHUNKS)
        await asyncio.wait_for(on_close.event.wait(), timeout=1)

    async def test_order_preserved_with_small_buffer(self):
        chunks = [f"data: {i}\n\n".encode() for i in range(50)]
        upstream = await _open_upstream(_chunks(chunks))
        on_close = _CloseRecorder(upstream)

        relay = PumpRelay(buffer_chunks=2)
        received = [chunk async for chunk in relay.relay(upstream, on_close)]

        self.assertEqual(received, chunks)

    async def test_upstream_read_failure_truncates_stream(self):
        async def failing_body():
            yield SSE_CHUNKS[0]
            raise httpx.ReadError("connection reset by peer")

        upstream = await _open_upstream(failing_body)
        on_close = _CloseRecorder(upstream)

        with self.assertRaises(StreamTruncationError) as ctx:
            async for _ in PumpRelay().relay(upstream, on_close):
                pass

        self.assertIsInstance(ctx.exception.__cause__, httpx.ReadError)
        await asyncio.wait_for(on_close.event.wait(), timeout=1)

    async def test_reader_going_away_cancels_pump(self):
        hold = asyncio.Event()

        async def slow_body():
            yield SSE_CHUNKS[0]
            await hold.wait()
            yield SSE_CHUNKS[1]

        upstream = await _open_upstream(slow_body)
        on_close = _CloseRecorder(upstream)

        body = PumpRelay().relay(upstream, on_close)
        first = await body.__anext__()
        await body.aclose()

        self.assertEqual(first, SSE_CHUNKS[0])
        await asyncio.wait_for(on_close.event.wait(), timeout=1)
        self.assertFalse(hold.is_set())


class StreamChannelTests(unittest.IsolatedAsyncioTestCase):
    async def test_close_ends_iteration_after_queued_chunks(self):
        channel = StreamChannel(maxsize=4)
        await channel.write(b"one")
        await channel.write(b"two")
        await channel.close()

        self.assertEqual([c async for c in channel], [b"one", b"two"])

    async def test_abort_on_full_channel_still_reaches_reader(self):
        channel = StreamChannel(maxsize=1)
        await channel.write(b"one")
        channel.abort(RuntimeError("write side failed"))

        with self.assertRaises(StreamTruncationError):
            await channel.__anext__()

    async def test_write_after_close_is_rejected(self):
        channel = StreamChannel()
        await channel.close()
        with self.assertRaises(RuntimeError):
            await channel.write(b"late")


class SelectStreamRelayTests(unittest.TestCase):
    def test_explicit_modes(self):
        self.assertIsInstance(select_stream_relay("passthrough"), PassthroughRelay)
        relay = select_stream_relay("pump", buffer_chunks=3)
        self.assertIsInstance(relay, PumpRelay)
        self.assertEqual(relay.buffer_chunks, 3)

    def test_auto_picks_pump_inside_function_runtime(self):
        with patch.dict(os.environ, {"K_SERVICE": "relay"}, clear=True):
            self.assertIsInstance(select_stream_relay("auto"), PumpRelay)

    def test_auto_picks_passthrough_on_long_lived_server(self):
        with patch.dict(os.environ, {}, clear=True):
            self.assertIsInstance(select_stream_relay("auto"), PassthroughRelay)

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            select_stream_relay("duplex")


if __name__ == "__main__":
    unittest.main()
