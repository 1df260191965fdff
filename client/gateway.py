"""
Remote store gateway.

Thin wrapper over the backend's REST, storage, function and change feed
surfaces. Every call returns a `Result`; nothing raises past this module and
nothing is retried.

Two implementations share the `Gateway` protocol: `HttpGateway` talks to the
FastAPI service over HTTP with `requests`, `InProcessGateway` drives the
backend services directly (local runs and tests).
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Optional, Protocol

import requests
from redis import exceptions as redis_exceptions

from backend.changes import (
    ChangeBroker,
    InMemoryChangeBroker,
    RedisChangeBroker,
    Subscription,
)
from backend.config import Settings
from backend.db import InMemoryStoreClient
from backend.procedures import ProcedureError, ProcedureRunner, UnknownProcedureError
from backend.records import (
    RecordNotFoundError,
    RecordService,
    RecordValidationError,
    UnknownTableError,
)
from backend.storage import (
    InMemoryStorageClient,
    StorageClient,
    StorageUploadError,
    UnknownBucketError,
    check_upload,
)
from client.config import ClientSettings, get_client_settings
from client.errors import (
    AuthError,
    GatewayError,
    NotFoundError,
    RemoteError,
    StorageError,
    StoreConnectionError,
    ValidationError,
)
from client.result import Result
from client.session import SessionContext

logger = logging.getLogger(__name__)

DEFAULT_ORDER = "created_at.desc"


class Gateway(Protocol):
    def query(
        self,
        session: SessionContext,
        table: str,
        filters: Optional[dict] = None,
        order: str = DEFAULT_ORDER,
    ) -> Result[list[dict]]:
        ...

    def insert(self, session: SessionContext, table: str, record: dict) -> Result[dict]:
        ...

    def update(
        self, session: SessionContext, table: str, record_id: str, changes: dict
    ) -> Result[dict]:
        ...

    def upload_binary(
        self,
        session: SessionContext,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> Result[str]:
        ...

    def invoke_function(
        self, session: SessionContext, name: str, payload: Optional[dict] = None
    ) -> Result[Any]:
        ...

    def subscribe(self, session: SessionContext, table: str) -> Result[Subscription]:
        ...


def _as_result(method: Callable[..., Any]) -> Callable[..., Result]:
    """Turns the `GatewayError`s a call raises into failed results."""

    @functools.wraps(method)
    def wrapper(*args, **kwargs) -> Result:
        try:
            return Result.success(method(*args, **kwargs))
        except GatewayError as e:
            logger.debug("%s failed: %s", method.__name__, e)
            return Result.failure(e)

    return wrapper


def _detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        detail = body.get("error") or body.get("detail")
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return str(body)


class HttpGateway:
    """Gateway over the backend's HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        http: Optional[requests.Session] = None,
        change_broker: Optional[ChangeBroker] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()
        self.change_broker = change_broker

    def _headers(self, session: SessionContext) -> dict:
        headers = {"X-User-Id": session.require_user()}
        if session.access_token:
            headers["Authorization"] = f"Bearer {session.access_token}"
        return headers

    def _send(self, method: str, path: str, session: SessionContext, **kwargs):
        headers = {**self._headers(session), **kwargs.pop("headers", {})}
        try:
            return self.http.request(
                method,
                f"{self.base_url}{path}",
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise StoreConnectionError(f"Could not reach the backend: {e}") from e

    @staticmethod
    def _check(response: requests.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        message = _detail(response)
        if status in (401, 403):
            raise AuthError(message, status)
        if status in (400, 409, 422):
            raise ValidationError(message, status)
        if status == 404:
            raise NotFoundError(message, status)
        raise RemoteError(message, status)

    @_as_result
    def query(
        self,
        session: SessionContext,
        table: str,
        filters: Optional[dict] = None,
        order: str = DEFAULT_ORDER,
    ) -> list[dict]:
        params = {**(filters or {}), "order": order}
        response = self._send("GET", f"/rest/{table}", session, params=params)
        self._check(response)
        return response.json()

    @_as_result
    def insert(self, session: SessionContext, table: str, record: dict) -> dict:
        response = self._send("POST", f"/rest/{table}", session, json=record)
        self._check(response)
        return response.json()

    @_as_result
    def update(
        self, session: SessionContext, table: str, record_id: str, changes: dict
    ) -> dict:
        response = self._send(
            "PATCH", f"/rest/{table}/{record_id}", session, json=changes
        )
        self._check(response)
        return response.json()

    @_as_result
    def upload_binary(
        self,
        session: SessionContext,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        response = self._send(
            "POST",
            f"/storage/{bucket}/{path}",
            session,
            data=data,
            headers={"Content-Type": content_type or "application/octet-stream"},
        )
        if response.status_code == 401:
            raise AuthError(_detail(response), response.status_code)
        if response.status_code >= 400:
            raise StorageError(_detail(response), response.status_code)
        return response.json()["url"]

    @_as_result
    def invoke_function(
        self, session: SessionContext, name: str, payload: Optional[dict] = None
    ) -> Any:
        response = self._send("POST", f"/functions/{name}", session, json=payload or {})
        if response.status_code == 401:
            raise AuthError(_detail(response), response.status_code)
        if response.status_code == 404:
            raise NotFoundError(_detail(response), response.status_code)
        if response.status_code >= 400:
            raise RemoteError(_detail(response), response.status_code)
        return response.json()

    @_as_result
    def subscribe(self, session: SessionContext, table: str) -> Subscription:
        user_id = session.require_user()
        if self.change_broker is None:
            raise StoreConnectionError("Change feed is not configured")
        try:
            return self.change_broker.subscribe(table, user_id)
        except redis_exceptions.RedisError as e:
            raise StoreConnectionError(f"Could not open change feed: {e}") from e


class InProcessGateway:
    """
    Gateway that calls the backend services in the same process.

    Errors are mapped to the same taxonomy `HttpGateway` derives from status
    codes.
    """

    def __init__(
        self,
        records: RecordService,
        storage: StorageClient,
        runner: ProcedureRunner,
    ):
        self.records = records
        self.storage = storage
        self.runner = runner

    @classmethod
    def in_memory(
        cls,
        settings: Optional[Settings] = None,
        predict: Optional[Callable[..., str]] = None,
    ) -> "InProcessGateway":
        settings = settings or Settings(use_in_memory_backends=True)
        records = RecordService(
            InMemoryStoreClient(),
            InMemoryChangeBroker(prefix=settings.redis_channel_prefix),
        )
        return cls(
            records=records,
            storage=InMemoryStorageClient(),
            runner=ProcedureRunner(records, settings, predict=predict),
        )

    @_as_result
    def query(
        self,
        session: SessionContext,
        table: str,
        filters: Optional[dict] = None,
        order: str = DEFAULT_ORDER,
    ) -> list[dict]:
        user_id = session.require_user()
        column, _, direction = order.partition(".")
        try:
            return self.records.query(
                table,
                user_id,
                filters=filters,
                order_by=column,
                descending=direction != "asc",
            )
        except UnknownTableError as e:
            raise NotFoundError(str(e), 404) from e
        except RecordValidationError as e:
            raise ValidationError(str(e), 400) from e

    @_as_result
    def insert(self, session: SessionContext, table: str, record: dict) -> dict:
        user_id = session.require_user()
        try:
            return self.records.insert(table, user_id, record)
        except UnknownTableError as e:
            raise NotFoundError(str(e), 404) from e
        except RecordValidationError as e:
            raise ValidationError(str(e), 400) from e

    @_as_result
    def update(
        self, session: SessionContext, table: str, record_id: str, changes: dict
    ) -> dict:
        user_id = session.require_user()
        try:
            return self.records.update(table, user_id, record_id, changes)
        except (UnknownTableError, RecordNotFoundError) as e:
            raise NotFoundError(str(e), 404) from e
        except RecordValidationError as e:
            raise ValidationError(str(e), 400) from e

    @_as_result
    def upload_binary(
        self,
        session: SessionContext,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        user_id = session.require_user()
        try:
            check_upload(bucket, path, user_id, len(data))
            return self.storage.upload_bytes(bucket, path, data, content_type=content_type)
        except UnknownBucketError as e:
            raise NotFoundError(str(e), 404) from e
        except StorageUploadError as e:
            raise StorageError(str(e)) from e

    @_as_result
    def invoke_function(
        self, session: SessionContext, name: str, payload: Optional[dict] = None
    ) -> Any:
        user_id = session.require_user()
        try:
            return self.runner.invoke(name, user_id, payload)
        except UnknownProcedureError as e:
            raise NotFoundError(str(e), 404) from e
        except ProcedureError as e:
            raise RemoteError(str(e), 500) from e
        except Exception as e:
            logger.exception("Error in %s function", name)
            raise RemoteError(str(e), 500) from e

    @_as_result
    def subscribe(self, session: SessionContext, table: str) -> Subscription:
        return self.records.broker.subscribe(table, session.require_user())


def build_gateway(settings: Optional[ClientSettings] = None) -> HttpGateway:
    """HTTP gateway configured from the environment."""
    settings = settings or get_client_settings()
    broker = None
    if settings.redis_url:
        broker = RedisChangeBroker(
            url=settings.redis_url, prefix=settings.redis_channel_prefix
        )
    return HttpGateway(
        settings.api_base_url,
        timeout=settings.request_timeout,
        change_broker=broker,
    )
