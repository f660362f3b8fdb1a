"""Diagnostic listing of the staging and converted directories."""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from .service import StorageManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["storage"])


def _storage(request: Request) -> StorageManager:
    return request.app.state.storage


@router.get("/check-files")
async def check_files(request: Request) -> JSONResponse:
    """List the current contents of the staging and converted directories.

    Returns:
        Directory listings and paths, or a 500 with the error message if a
        directory cannot be read.
    """
    storage = _storage(request)
    try:
        contents = storage.list_contents()
    except OSError as exc:
        logger.error("check-files failed: %s", exc)
        return JSONResponse({"status": "error", "error": str(exc)}, status_code=500)

    return JSONResponse({
        "status": "healthy",
        "uploadFiles": contents["upload"],
        "convertedFiles": contents["converted"],
        "directories": {
            "uploadDir": str(storage.upload_dir),
            "convertedDir": str(storage.converted_dir),
        },
    })
