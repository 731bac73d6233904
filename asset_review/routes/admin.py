from datetime import date
from typing import Iterable, Literal, Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, Request, UploadFile, status

from asset_review.models.schemas import (
    AssetType,
    AssetTypeCreate,
    AssetTypeUpdate,
    GhostModeSettings,
    GhostModeUpdate,
    ReferenceImage,
    SubmissionRecord,
    SubmissionStats,
)
from asset_review.services.file_manager import UploadRejected, check_content_type, storage_name
from asset_review.services.review_handler import best_effort
from asset_review.services.supabase_client import ReviewStore
from asset_review.utils.config import ADMIN_API_KEY, MAX_UPLOAD_BYTES, REFERENCE_BUCKET
from asset_review.utils.logger import get_logger


logger = get_logger("admin")


def require_admin_key(authorization: str | None = Header(default=None)):
    if not ADMIN_API_KEY:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server not configured: ADMIN_API_KEY missing")
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = authorization.removeprefix("Bearer ").strip()
    if token != ADMIN_API_KEY:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")


def get_store(request: Request) -> ReviewStore:
    return request.app.state.store


router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])


def _asset_type_or_404(store: ReviewStore, name: str) -> AssetType:
    asset_type = store.get_asset_type(name)
    if asset_type is None:
        raise HTTPException(status_code=404, detail=f'Asset type "{name}" not found')
    return asset_type


def _reference_rows(refs: Iterable[ReferenceImage]) -> list[dict]:
    return [r.model_dump(by_alias=True) for r in refs]


# =============================
# Asset types
# =============================
@router.get("/asset-types", response_model=list[AssetType])
def list_asset_types(store: ReviewStore = Depends(get_store)):
    return store.list_asset_types()


@router.post("/asset-types", response_model=AssetType, status_code=201)
def create_asset_type(body: AssetTypeCreate, store: ReviewStore = Depends(get_store)):
    name = body.name.strip()
    if store.get_asset_type(name) is not None:
        raise HTTPException(status_code=409, detail=f'Asset type "{name}" already exists')
    created = store.create_asset_type(AssetType(**{**body.model_dump(), "name": name}))
    logger.info("Created asset type %s", name)
    return created


@router.get("/asset-types/{name}", response_model=AssetType)
def get_asset_type(name: str, store: ReviewStore = Depends(get_store)):
    return _asset_type_or_404(store, name)


@router.put("/asset-types/{name}", response_model=AssetType)
def update_asset_type(name: str, body: AssetTypeUpdate, store: ReviewStore = Depends(get_store)):
    existing = _asset_type_or_404(store, name)
    patch = body.model_dump(exclude_unset=True)
    if not patch:
        return existing
    updated = store.update_asset_type(name, patch)
    if updated is None:
        raise HTTPException(status_code=404, detail=f'Asset type "{name}" not found')
    logger.info("Updated asset type %s: %s", name, sorted(patch))
    return updated


@router.delete("/asset-types/{name}")
def delete_asset_type(name: str, store: ReviewStore = Depends(get_store)):
    existing = _asset_type_or_404(store, name)
    store.delete_asset_type(name)
    for ref in existing.reference_images:
        best_effort("Reference image removal", store.remove_object, REFERENCE_BUCKET, ref.storage_path)
    logger.info("Deleted asset type %s", name)
    return {"deleted": name}


# =============================
# Reference images
# =============================
@router.post("/asset-types/{name}/reference-images", response_model=AssetType, status_code=201)
def upload_reference_image(name: str, file: UploadFile = File(...), store: ReviewStore = Depends(get_store)):
    asset_type = _asset_type_or_404(store, name)
    try:
        mime = check_content_type(file.content_type)
    except UploadRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    blob = file.file.read(MAX_UPLOAD_BYTES + 1)
    if len(blob) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")
    if not blob:
        raise HTTPException(status_code=400, detail="Empty file")

    file_name = file.filename or "reference"
    path = f"{name}/{storage_name(file_name)}"
    try:
        store.upload_object(REFERENCE_BUCKET, path, blob, mime)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Reference upload failed for %s", name)
        raise HTTPException(status_code=500, detail=str(exc))

    refs = [*asset_type.reference_images, ReferenceImage(file_name=file_name, storage_path=path)]
    updated = store.update_asset_type(name, {"reference_images": _reference_rows(refs)})
    logger.info("Added reference image %s to %s (%d total)", file_name, name, len(refs))
    return updated or asset_type


@router.delete("/asset-types/{name}/reference-images/{file_name}", response_model=AssetType)
def delete_reference_image(name: str, file_name: str, store: ReviewStore = Depends(get_store)):
    asset_type = _asset_type_or_404(store, name)
    match = next((r for r in asset_type.reference_images if r.file_name == file_name), None)
    if match is None:
        raise HTTPException(status_code=404, detail=f'Reference image "{file_name}" not found')

    refs = [r for r in asset_type.reference_images if r is not match]
    updated = store.update_asset_type(name, {"reference_images": _reference_rows(refs)})
    best_effort("Reference image removal", store.remove_object, REFERENCE_BUCKET, match.storage_path)
    return updated or asset_type


# =============================
# Submissions
# =============================
class SubmissionFilters:
    def __init__(
        self,
        asset_type: Optional[str] = None,
        result: Optional[Literal["pass", "fail"]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ):
        if date_from and date_to and date_from > date_to:
            raise HTTPException(status_code=400, detail="date_from must not be after date_to")
        self.asset_type = asset_type
        self.result = result
        self.date_from = date_from
        self.date_to = date_to

    def as_kwargs(self) -> dict:
        return {
            "asset_type": self.asset_type,
            "result": self.result,
            "date_from": self.date_from,
            "date_to": self.date_to,
        }


def summarize(records: Iterable[SubmissionRecord]) -> SubmissionStats:
    stats = SubmissionStats()
    for r in records:
        stats.total += 1
        bucket = stats.by_asset_type.setdefault(r.asset_type, {"total": 0, "passed": 0, "failed": 0})
        bucket["total"] += 1
        if r.result == "pass":
            stats.passed += 1
            bucket["passed"] += 1
        else:
            stats.failed += 1
            bucket["failed"] += 1
    stats.pass_rate = round(stats.passed / stats.total, 3) if stats.total else 0.0
    return stats


@router.get("/submissions", response_model=list[SubmissionRecord])
def list_submissions(
    filters: SubmissionFilters = Depends(),
    limit: int = Query(100, ge=1, le=1000),
    store: ReviewStore = Depends(get_store),
):
    return store.list_submissions(**filters.as_kwargs(), limit=limit)


@router.get("/submissions/stats", response_model=SubmissionStats)
def submission_stats(filters: SubmissionFilters = Depends(), store: ReviewStore = Depends(get_store)):
    return summarize(store.list_submissions(**filters.as_kwargs(), limit=10000))


# =============================
# Settings
# =============================
@router.get("/settings/ghost-mode", response_model=GhostModeSettings)
def get_ghost_mode(store: ReviewStore = Depends(get_store)):
    return store.get_ghost_mode()


@router.put("/settings/ghost-mode", response_model=GhostModeSettings)
def set_ghost_mode(body: GhostModeUpdate, store: ReviewStore = Depends(get_store)):
    current = store.get_ghost_mode()
    # counter restarts whenever ghost mode is switched on
    updated = GhostModeSettings(
        enabled=body.enabled,
        submission_count=0 if body.enabled else current.submission_count,
    )
    store.set_ghost_mode(updated)
    logger.info("Ghost mode %s", "enabled" if body.enabled else "disabled")
    return updated
