"""
Relay gateway for the Anthropic Messages API.

Endpoints served through this module:
- POST /api/claude-proxy  { "messages": [...], "stream": true|false, ... }
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from starlette.background import BackgroundTask
from starlette.responses import Response, StreamingResponse

from shiftcraft.config import Settings
from shiftcraft.errors import ConfigurationError, UpstreamUnreachableError
from shiftcraft.stream import StreamRelay

logger = logging.getLogger(__name__)

MESSAGES_PATH = "/v1/messages"

PASSTHROUGH_FIELDS = (
    "temperature",
    "top_p",
    "top_k",
    "stop_sequences",
    "tools",
    "tool_choice",
    "metadata",
)

JSON_MEDIA_TYPE = "application/json"
SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def build_upstream_payload(
    body: dict[str, Any],
    default_model: str,
    default_max_tokens: int,
) -> dict[str, Any]:
    """
    Shape a caller body into an upstream Messages request.

    Only known fields are forwarded. Passthrough tuning fields are copied when
    the caller sent them, whatever their value; nothing is synthesized.
    """
    payload: dict[str, Any] = {
        "model": body.get("model") or default_model,
        "max_tokens": body.get("max_tokens") or default_max_tokens,
        "messages": body.get("messages") or [],
    }
    if body.get("system"):
        payload["system"] = body["system"]
    if body.get("stream"):
        payload["stream"] = True
    for field in PASSTHROUGH_FIELDS:
        if field in body:
            payload[field] = body[field]
    return payload


class RelayGateway:
    """Dispatches one upstream call per inbound request."""

    def __init__(
        self,
        settings: Settings,
        stream_relay: StreamRelay,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not settings.anthropic_api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY not configured")
        self.settings = settings
        self.stream_relay = stream_relay
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.anthropic_base_url,
            timeout=httpx.Timeout(
                self.settings.upstream_timeout,
                connect=self.settings.upstream_connect_timeout,
            ),
            transport=self.transport,
        )

    def _headers(self, stream: bool) -> dict[str, str]:
        headers = {
            "x-api-key": self.settings.anthropic_api_key or "",
            "anthropic-version": self.settings.anthropic_version,
        }
        if stream:
            # Raw chunks are relayed untouched, so they must not be compressed.
            headers["accept-encoding"] = "identity"
        return headers

    async def relay(self, body: dict[str, Any]) -> Response:
        payload = build_upstream_payload(
            body,
            default_model=self.settings.default_model,
            default_max_tokens=self.settings.default_max_tokens,
        )
        stream = bool(payload.get("stream"))
        client = self._client()
        request = client.build_request(
            "POST", MESSAGES_PATH, json=payload, headers=self._headers(stream)
        )

        try:
            upstream = await client.send(request, stream=stream)
        except httpx.TransportError as e:
            await client.aclose()
            logger.error("Upstream request failed: %s", e)
            raise UpstreamUnreachableError("Upstream request failed", detail=str(e))

        logger.info(
            "Upstream responded %s (model=%s stream=%s)",
            upstream.status_code,
            payload["model"],
            stream,
        )

        if stream:
            return self._stream_response(client, upstream)

        await client.aclose()
        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            media_type=JSON_MEDIA_TYPE,
        )

    def _stream_response(
        self, client: httpx.AsyncClient, upstream: httpx.Response
    ) -> StreamingResponse:
        closed = False

        async def close_upstream() -> None:
            nonlocal closed
            if closed:
                return
            closed = True
            await upstream.aclose()
            await client.aclose()
            logger.info("Upstream stream closed")

        body = self.stream_relay.relay(upstream, close_upstream)
        return StreamingResponse(
            body,
            status_code=upstream.status_code,
            headers=dict(SSE_HEADERS),
            background=BackgroundTask(close_upstream),
        )
