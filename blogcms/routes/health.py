"""Liveness and storage health."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from blogcms.deps import get_storage
from blogcms.storage.base import Storage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(storage: Storage = Depends(get_storage)):
    try:
        storage_ok = storage.ping()
    except Exception as exc:
        logger.warning(f"Storage ping failed: {exc}")
        storage_ok = False

    return JSONResponse(
        status_code=200 if storage_ok else 503,
        content={
            "status": "ok" if storage_ok else "degraded",
            "storage": storage.name,
        },
    )
