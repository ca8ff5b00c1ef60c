"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

import httpx
from fastapi import Depends

from shiftcraft.config import Settings, get_settings
from shiftcraft.kv import KeyValueFacade
from shiftcraft.relay import RelayGateway
from shiftcraft.storage import InMemoryKeyValueStore, KeyValueStore, S3KeyValueStore
from shiftcraft.stream import StreamRelay, select_stream_relay

_kv_store: KeyValueStore | None = None


def get_kv_store() -> KeyValueStore:
    """
    Return a singleton store so in-memory state persists across requests.
    """
    global _kv_store
    if _kv_store:
        return _kv_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.blob_bucket:
        _kv_store = InMemoryKeyValueStore()
    else:
        _kv_store = S3KeyValueStore(
            bucket=settings.blob_bucket,
            namespace=settings.blob_store_name,
            region=settings.blob_region,
            endpoint=settings.blob_endpoint,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )
    return _kv_store


def get_kv_facade(store: KeyValueStore = Depends(get_kv_store)) -> KeyValueFacade:
    return KeyValueFacade(store)


def get_upstream_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for upstream calls; None selects httpx's network transport."""
    return None


def get_stream_relay(settings: Settings = Depends(get_settings)) -> StreamRelay:
    return select_stream_relay(settings.stream_mode, settings.pump_buffer_chunks)


def get_relay_gateway(
    settings: Settings = Depends(get_settings),
    stream_relay: StreamRelay = Depends(get_stream_relay),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
) -> RelayGateway:
    """Build the gateway; raises ConfigurationError when the credential is unset."""
    return RelayGateway(settings, stream_relay, transport=transport)
