from typing import Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from asset_review.services.file_manager import UploadRejected, check_content_type, save_temp_upload
from asset_review.services.review_handler import ReviewHandler, ReviewRequestError, UploadedImage
from asset_review.services.vision_client import VisionAPIError
from asset_review.utils.config import MAX_UPLOAD_BYTES
from asset_review.utils.logger import get_logger


router = APIRouter(prefix="/api", tags=["review"])
logger = get_logger("review-route")


def _error(status_code: int, message: str, details: Optional[str] = None) -> JSONResponse:
    body = {"error": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


@router.post("/review")
def review(
    request: Request,
    file: Optional[UploadFile] = File(None),
    asset_type: Optional[str] = Form(None, alias="assetType"),
):
    """
    multipart/form-data: file (image), assetType (string).
    200 → {ghostMode: false, result: {...}} or {ghostMode: true, message}
    """
    if file is None:
        return _error(400, "No image file provided")
    if not (asset_type or "").strip():
        return _error(400, "Asset type is required")

    try:
        mime = check_content_type(file.content_type)
        temp_path = save_temp_upload(
            file.file, file.filename, max_bytes=MAX_UPLOAD_BYTES, upload_dir=request.app.state.upload_dir,
        )
    except UploadRejected as e:
        return _error(e.status_code, e.message)

    handler = ReviewHandler(request.app.state.store, request.app.state.vision)
    upload = UploadedImage(path=temp_path, file_name=file.filename or temp_path.name, mime_type=mime)
    try:
        return handler.handle(upload, asset_type)
    except ReviewRequestError as e:
        return _error(e.status_code, e.message)
    except VisionAPIError as e:
        logger.error("Review failed for %s: %s", upload.file_name, e)
        return _error(500, "Failed to review asset", str(e))
    except Exception as e:  # noqa: BLE001
        logger.exception("Review failed for %s", upload.file_name)
        return _error(500, "Failed to review asset", str(e))


@router.get("/asset-types")
def list_asset_types(request: Request):
    """Names and descriptions for the submitter's asset-type picker."""
    types = request.app.state.store.list_asset_types()
    return [{"name": t.name, "description": t.description} for t in types]
