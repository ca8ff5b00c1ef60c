"""
Pydantic schemas for the storage route.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class BatchEntry(BaseModel):
    key: Optional[str] = None
    value: Any = None


class StorageRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Optional[str] = None
    key: Optional[str] = None
    value: Any = None
    prefix: Optional[str] = None
    entries: list[BatchEntry] = []


class GetResponse(BaseModel):
    key: str
    value: Any


class SetResponse(BaseModel):
    key: str
    value: Any
    success: bool = True


class DeleteResponse(BaseModel):
    key: str
    deleted: bool = True


class ListResponse(BaseModel):
    keys: list[str]
    prefix: Optional[str] = None


class SetBatchResponse(BaseModel):
    success: bool
    count: int
    failed: list[str] = []


class HealthResponse(BaseModel):
    status: str
    upstream_configured: bool
