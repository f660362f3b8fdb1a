"""FastAPI router for the HEIC → JPEG conversion endpoint."""
import logging
from typing import List, Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from dropheic.uploads.service import UploadIntake, discard

from .schemas import BatchResult
from .service import BatchConversionService, ConversionGate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["conversion"])


@router.post("/convert", response_model=BatchResult, response_model_exclude_none=True)
async def convert(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
):
    """Convert up to ten uploaded HEIC/HEIF files to JPEG.

    Files are validated and staged first; any intake error rejects the whole
    request with a 400 before conversion starts. Conversion failures are
    reported per file in ``errors`` and never fail the request.

    Args:
        files: Multipart ``files`` field.

    Returns:
        BatchResult with download URLs for converted files.
    """
    logger.info("Received conversion request")
    state = request.app.state
    gate: ConversionGate = state.gate
    intake: UploadIntake = state.intake
    batch: BatchConversionService = state.batch

    if not gate.try_enter():
        return JSONResponse(
            {"success": False, "error": "Server is shutting down"}, status_code=503
        )

    try:
        staged = await intake.accept(files or [])
        try:
            return await run_in_threadpool(batch.run, staged)
        except Exception as exc:
            discard(staged)
            logger.exception("Conversion process error: %s", exc)
            body = {"success": False, "error": "Conversion process failed"}
            if not state.config.is_production:
                body["details"] = str(exc)
            return JSONResponse(body, status_code=500)
    finally:
        gate.leave()
