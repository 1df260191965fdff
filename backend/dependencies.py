"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException

from backend.changes import ChangeBroker, InMemoryChangeBroker, RedisChangeBroker
from backend.config import get_settings
from backend.db import InMemoryStoreClient, SqlStoreClient, StoreClient
from backend.procedures import ProcedureRunner
from backend.records import RecordService
from backend.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_store_client: StoreClient | None = None
_storage_client: StorageClient | None = None
_change_broker: ChangeBroker | None = None


def get_store_client() -> StoreClient:
    """
    Return a singleton store client so rows persist across requests.
    """
    global _store_client
    if _store_client:
        return _store_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _store_client = InMemoryStoreClient()
    else:
        _store_client = SqlStoreClient(settings.database_url)
    return _store_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.s3_public_base_url,
        )
    return _storage_client


def get_change_broker() -> ChangeBroker:
    """
    Return a singleton broker for publishing change events.
    """
    global _change_broker
    if _change_broker:
        return _change_broker

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _change_broker = RedisChangeBroker(
            url=settings.redis_url,
            prefix=settings.redis_channel_prefix,
        )
    else:
        _change_broker = InMemoryChangeBroker(prefix=settings.redis_channel_prefix)
    return _change_broker


def get_record_service() -> RecordService:
    return RecordService(get_store_client(), get_change_broker())


def get_procedure_runner() -> ProcedureRunner:
    return ProcedureRunner(get_record_service(), get_settings())


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    The auth provider in front of this service forwards the verified user id.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing authenticated user")
    return x_user_id.strip()
