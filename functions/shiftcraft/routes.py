"""
HTTP routes for the relay service.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from starlette.responses import Response

from shiftcraft.dependencies import get_kv_facade, get_relay_gateway
from shiftcraft.errors import ClientError
from shiftcraft.kv import KeyValueFacade
from shiftcraft.relay import RelayGateway
from shiftcraft.schemas import (
    DeleteResponse,
    GetResponse,
    ListResponse,
    SetBatchResponse,
    SetResponse,
    StorageRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _preflight() -> Response:
    return Response(status_code=200, headers=PREFLIGHT_HEADERS)


@router.options("/claude-proxy")
def claude_proxy_preflight():
    return _preflight()


@router.post("/claude-proxy")
async def claude_proxy(
    request: Request,
    gateway: RelayGateway = Depends(get_relay_gateway),
):
    """
    Forward a Messages request upstream and return its JSON or SSE body.
    """
    try:
        body = await request.json()
    except ValueError:
        raise ClientError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ClientError("Invalid JSON body", detail="expected a JSON object")
    return await gateway.relay(body)


@router.options("/storage-proxy")
def storage_proxy_preflight():
    return _preflight()


def _require_key(payload: StorageRequest) -> str:
    if not payload.key:
        raise ClientError(f"Missing key for action: {payload.action}")
    return payload.key


@router.post("/storage-proxy")
def storage_proxy(
    payload: StorageRequest,
    kv: KeyValueFacade = Depends(get_kv_facade),
):
    action = payload.action
    if action == "get":
        key = _require_key(payload)
        return GetResponse(key=key, value=kv.get(key))

    if action == "set":
        key = _require_key(payload)
        kv.set(key, payload.value)
        return SetResponse(key=key, value=payload.value)

    if action == "delete":
        key = _require_key(payload)
        kv.delete(key)
        return DeleteResponse(key=key)

    if action == "list":
        return ListResponse(keys=kv.list(payload.prefix), prefix=payload.prefix or None)

    if action == "set-batch":
        result = kv.set_batch(entry.model_dump() for entry in payload.entries)
        if result.failed:
            logger.warning(
                "set-batch applied %d entries, %d failed",
                result.count,
                len(result.failed),
            )
        return SetBatchResponse(
            success=result.success, count=result.count, failed=result.failed
        )

    raise ClientError(f"Unknown action: {action}")
