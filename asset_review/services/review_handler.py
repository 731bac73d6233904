from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol

from asset_review.models.schemas import (
    AssetType,
    GhostModeSettings,
    ReviewOutcome,
    ReviewResult,
    SubmissionRecord,
)
from asset_review.services.file_manager import remove_temp, storage_name
from asset_review.services.supabase_client import ReviewStore
from asset_review.services.vision_client import ImageInput, fetch_reference_images
from asset_review.utils.config import REFERENCE_BUCKET, SIGNED_URL_TTL_S, SUBMISSIONS_BUCKET
from asset_review.utils.logger import get_logger


logger = get_logger("review-handler")


GHOST_MODE_MESSAGE = "Submission received and is under review."
DEFAULT_PASS_MESSAGE = "Your asset meets the brand guidelines."
DEFAULT_FAIL_MESSAGE = "Your asset does not meet the brand guidelines. Please review the violations and resubmit."


class ReviewRequestError(ValueError):
    """Client-side problem with the request; nothing has been persisted."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class Reviewer(Protocol):
    def review(self, guidelines: str, references: Iterable[ImageInput], image: ImageInput) -> ReviewOutcome: ...


@dataclass(frozen=True)
class UploadedImage:
    path: Path  # temporary local copy, removed once the request is handled
    file_name: str
    mime_type: str


@dataclass(frozen=True)
class StepResult:
    """Outcome of a step whose failure must not abort the review."""

    ok: bool
    value: Any = None
    error: Optional[str] = None


def best_effort(step: str, fn: Callable[..., Any], *args, **kwargs) -> StepResult:
    try:
        return StepResult(ok=True, value=fn(*args, **kwargs))
    except Exception as e:
        logger.error("%s failed (continuing): %s", step, e)
        return StepResult(ok=False, error=str(e))


def custom_message(outcome: ReviewOutcome, asset_type: AssetType) -> str:
    if outcome.passed:
        return asset_type.pass_message or DEFAULT_PASS_MESSAGE
    return asset_type.fail_message or DEFAULT_FAIL_MESSAGE


def shape_response(outcome: ReviewOutcome, asset_type: AssetType, ghost_mode: GhostModeSettings) -> dict[str, Any]:
    """What the submitter sees. Ghost mode hides the outcome entirely."""
    if ghost_mode.enabled:
        return {"ghostMode": True, "message": GHOST_MODE_MESSAGE}
    result = ReviewResult(
        passed=outcome.passed,
        confidence=outcome.confidence,
        violations=outcome.violations,
        summary=outcome.summary,
        custom_message=custom_message(outcome, asset_type),
    )
    return {"ghostMode": False, "result": result.model_dump(by_alias=True)}


class ReviewHandler:
    """
    One review end to end: validate, look up guidelines, run inference,
    then persist the file and the submission best-effort and shape the reply.
    Only validation errors (ReviewRequestError) and inference failures
    (VisionAPIError) escape; the temporary upload is removed on every path.
    """

    def __init__(
        self,
        store: ReviewStore,
        vision: Reviewer,
        submissions_bucket: str = SUBMISSIONS_BUCKET,
        reference_bucket: str = REFERENCE_BUCKET,
        signed_url_ttl_s: int = SIGNED_URL_TTL_S,
    ) -> None:
        self.store = store
        self.vision = vision
        self.submissions_bucket = submissions_bucket
        self.reference_bucket = reference_bucket
        self.signed_url_ttl_s = signed_url_ttl_s

    def handle(self, upload: Optional[UploadedImage], asset_type_name: Optional[str]) -> dict[str, Any]:
        try:
            return self._handle(upload, asset_type_name)
        finally:
            remove_temp(upload.path if upload else None)

    def _handle(self, upload: Optional[UploadedImage], asset_type_name: Optional[str]) -> dict[str, Any]:
        if upload is None:
            raise ReviewRequestError("No image file provided")
        name = (asset_type_name or "").strip()
        if not name:
            raise ReviewRequestError("Asset type is required")

        asset_type = self.store.get_asset_type(name)
        if asset_type is None:
            raise ReviewRequestError(f'Asset type "{name}" not found')

        blob = upload.path.read_bytes()
        references = fetch_reference_images(asset_type.reference_images, self._download_reference)
        outcome = self.vision.review(asset_type.guidelines, references, ImageInput(blob, upload.mime_type))

        stored = best_effort("Submission file upload", self._store_file, upload, blob)
        record = SubmissionRecord(
            asset_type=asset_type.name,
            file_name=upload.file_name,
            file_url=stored.value if stored.ok else "",
            result="pass" if outcome.passed else "fail",
            confidence_score=outcome.confidence,
            violations=outcome.violations,
        )
        saved = best_effort("Submission record write", self.store.insert_submission, record)

        ghost_mode = self.read_ghost_mode()
        if ghost_mode.enabled:
            best_effort("Ghost mode counter update", self.store.set_ghost_mode, GhostModeSettings(
                enabled=True, submission_count=ghost_mode.submission_count + 1,
            ))

        logger.info(
            "Reviewed %s as %s: result=%s confidence=%d ghost=%s stored=%s recorded=%s",
            upload.file_name, asset_type.name, record.result, outcome.confidence,
            ghost_mode.enabled, stored.ok, saved.ok,
        )
        return shape_response(outcome, asset_type, ghost_mode)

    def read_ghost_mode(self) -> GhostModeSettings:
        step = best_effort("Ghost mode lookup", self.store.get_ghost_mode)
        return step.value if step.ok and step.value is not None else GhostModeSettings()

    def _download_reference(self, storage_path: str) -> bytes:
        return self.store.download_object(self.reference_bucket, storage_path)

    def _store_file(self, upload: UploadedImage, blob: bytes) -> str:
        path = storage_name(upload.file_name)
        self.store.upload_object(self.submissions_bucket, path, blob, upload.mime_type)
        return self.store.signed_url(self.submissions_bucket, path, self.signed_url_ttl_s)
