"""
HTTP routes for the backend API.
"""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from backend.dependencies import (
    get_current_user_id,
    get_procedure_runner,
    get_record_service,
    get_storage_client,
)
from backend.procedures import ProcedureError, ProcedureRunner, UnknownProcedureError
from backend.records import (
    RecordNotFoundError,
    RecordService,
    RecordValidationError,
    UnknownTableError,
)
from backend.schemas import FunctionErrorResponse, UploadResponse
from backend.storage import (
    StorageClient,
    StoragePermissionError,
    StorageUploadError,
    UnknownBucketError,
    UploadTooLargeError,
    check_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ORDER_PATTERN = re.compile(r"^(?P<column>[a-z_]+)\.(?P<direction>asc|desc)$")
RESERVED_QUERY_PARAMS = {"order"}


def _parse_order(order: str) -> tuple[str, bool]:
    match = ORDER_PATTERN.match(order)
    if not match:
        raise HTTPException(status_code=400, detail=f"Invalid order: {order}")
    return match.group("column"), match.group("direction") == "desc"


@router.get("/rest/{table}")
def list_records(
    table: str,
    request: Request,
    order: str = Query("created_at.desc"),
    user_id: str = Depends(get_current_user_id),
    records: RecordService = Depends(get_record_service),
):
    """
    Rows of `table` owned by the caller. Every query parameter other than
    `order` is an equality filter.
    """
    order_by, descending = _parse_order(order)
    filters = {
        key: value
        for key, value in request.query_params.items()
        if key not in RESERVED_QUERY_PARAMS
    }
    try:
        return records.query(
            table, user_id, filters=filters, order_by=order_by, descending=descending
        )
    except UnknownTableError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RecordValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/rest/{table}", status_code=201)
def create_record(
    table: str,
    record: dict,
    user_id: str = Depends(get_current_user_id),
    records: RecordService = Depends(get_record_service),
):
    try:
        return records.insert(table, user_id, record)
    except UnknownTableError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RecordValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/rest/{table}/{record_id}")
def update_record(
    table: str,
    record_id: str,
    changes: dict,
    user_id: str = Depends(get_current_user_id),
    records: RecordService = Depends(get_record_service),
):
    try:
        return records.update(table, user_id, record_id, changes)
    except (UnknownTableError, RecordNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RecordValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/storage/{bucket}/{path:path}", response_model=UploadResponse)
async def upload_object(
    bucket: str,
    path: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    storage: StorageClient = Depends(get_storage_client),
):
    data = await request.body()
    try:
        check_upload(bucket, path, user_id, len(data))
    except UnknownBucketError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoragePermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except UploadTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except StorageUploadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        url = storage.upload_bytes(
            bucket, path, data, content_type=request.headers.get("content-type")
        )
    except StorageUploadError as e:
        logger.error("Upload of %s/%s failed: %s", bucket, path, e)
        raise HTTPException(status_code=502, detail=str(e))
    return UploadResponse(url=url)


@router.post("/functions/{name}")
async def invoke_function(
    name: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    runner: ProcedureRunner = Depends(get_procedure_runner),
):
    """
    Runs a privileged procedure. Failures are always `500` with
    `{"error": ..., "success": false}`.
    """
    try:
        payload = await request.json() if await request.body() else {}
        result = runner.invoke(name, user_id, payload)
    except UnknownProcedureError as e:
        return JSONResponse(
            status_code=404, content=FunctionErrorResponse(error=str(e)).model_dump()
        )
    except ProcedureError as e:
        logger.warning("Function %s failed: %s", name, e)
        return JSONResponse(
            status_code=500, content=FunctionErrorResponse(error=str(e)).model_dump()
        )
    except Exception as e:
        logger.exception("Error in %s function", name)
        return JSONResponse(
            status_code=500, content=FunctionErrorResponse(error=str(e)).model_dump()
        )
    return JSONResponse(content=result)
