import pytest

from asset_review.models.schemas import GhostModeSettings, ReferenceImage, ReviewOutcome
from asset_review.services.review_handler import (
    DEFAULT_FAIL_MESSAGE,
    DEFAULT_PASS_MESSAGE,
    GHOST_MODE_MESSAGE,
    ReviewHandler,
    ReviewRequestError,
    UploadedImage,
    best_effort,
    shape_response,
)
from asset_review.services.vision_client import VisionAPIError

from conftest import PNG_BYTES, FakeVision


@pytest.fixture
def upload(upload_dir):
    path = upload_dir / "tmp-upload.png"
    path.write_bytes(PNG_BYTES)
    return UploadedImage(path=path, file_name="logo.png", mime_type="image/png")


def _handler(store, vision):
    return ReviewHandler(store, vision, submissions_bucket="subs", reference_bucket="refs", signed_url_ttl_s=60)


def test_passing_review_is_returned_and_recorded(store, vision, upload):
    body = _handler(store, vision).handle(upload, "logo")

    assert body == {
        "ghostMode": False,
        "result": {
            "pass": True,
            "confidence": 92,
            "violations": [],
            "summary": "Clean logo on white.",
            "customMessage": "Logo approved for use.",
        },
    }
    assert len(store.submissions) == 1
    record = store.submissions[0]
    assert record.asset_type == "logo"
    assert record.file_name == "logo.png"
    assert record.result == "pass"
    assert record.confidence_score == 92
    assert record.file_url.startswith("https://storage.test/subs/")
    assert record.file_url.endswith("-logo.png?expires=60")
    assert vision.calls[0]["guidelines"] == "Logo must be horizontal. Official colors only."
    assert vision.calls[0]["image"].content == PNG_BYTES


def test_failing_review_uses_fail_message(store, upload):
    outcome = ReviewOutcome(passed=False, confidence=81, violations=["Logo is vertical"], summary="Vertical")

    body = _handler(store, FakeVision(outcome)).handle(upload, "logo")

    assert body["result"]["pass"] is False
    assert body["result"]["violations"] == ["Logo is vertical"]
    assert body["result"]["customMessage"] == "Logo needs changes before use."
    assert store.submissions[0].result == "fail"
    assert store.submissions[0].violations == ["Logo is vertical"]


def test_default_messages_when_asset_type_has_none(logo, passing_outcome):
    bare = logo.model_copy(update={"pass_message": None, "fail_message": ""})
    failed = passing_outcome.model_copy(update={"passed": False})

    assert shape_response(passing_outcome, bare, GhostModeSettings())["result"]["customMessage"] == DEFAULT_PASS_MESSAGE
    assert shape_response(failed, bare, GhostModeSettings())["result"]["customMessage"] == DEFAULT_FAIL_MESSAGE


def test_ghost_mode_hides_outcome_but_records_and_counts(store, vision, upload):
    store.ghost = GhostModeSettings(enabled=True, submission_count=4)

    body = _handler(store, vision).handle(upload, "logo")

    assert body == {"ghostMode": True, "message": GHOST_MODE_MESSAGE}
    assert len(store.submissions) == 1
    assert store.submissions[0].result == "pass"
    assert store.ghost.submission_count == 5


def test_ghost_mode_off_leaves_counter(store, vision, upload):
    store.ghost = GhostModeSettings(enabled=False, submission_count=7)

    _handler(store, vision).handle(upload, "logo")

    assert store.ghost.submission_count == 7


def test_unknown_asset_type_is_rejected_without_inference(store, vision, upload):
    with pytest.raises(ReviewRequestError) as exc:
        _handler(store, vision).handle(upload, "banner")

    assert exc.value.status_code == 400
    assert exc.value.message == 'Asset type "banner" not found'
    assert vision.calls == []
    assert store.submissions == []
    assert not upload.path.exists()


@pytest.mark.parametrize("name", [None, "", "   "])
def test_missing_asset_type_is_rejected(store, vision, upload, name):
    with pytest.raises(ReviewRequestError, match="Asset type is required"):
        _handler(store, vision).handle(upload, name)


def test_missing_upload_is_rejected(store, vision):
    with pytest.raises(ReviewRequestError, match="No image file provided"):
        _handler(store, vision).handle(None, "logo")


def test_vision_failure_persists_nothing(store, upload):
    vision = FakeVision(error=VisionAPIError("Vision API returned 503: overloaded", status_code=503))

    with pytest.raises(VisionAPIError):
        _handler(store, vision).handle(upload, "logo")

    assert store.submissions == []
    assert store.objects == {}
    assert not upload.path.exists()


def test_storage_failure_still_records_without_url(store, vision, upload):
    store.fail.add("upload_object")

    body = _handler(store, vision).handle(upload, "logo")

    assert body["result"]["pass"] is True
    assert store.submissions[0].file_url == ""


def test_record_failure_still_returns_result(store, vision, upload):
    store.fail.add("insert_submission")

    body = _handler(store, vision).handle(upload, "logo")

    assert body["ghostMode"] is False
    assert body["result"]["confidence"] == 92


def test_unreadable_ghost_setting_counts_as_disabled(store, vision, upload):
    store.ghost = GhostModeSettings(enabled=True, submission_count=1)
    store.fail.add("get_ghost_mode")

    body = _handler(store, vision).handle(upload, "logo")

    assert body["ghostMode"] is False
    assert store.ghost.submission_count == 1


def test_ghost_counter_failure_is_tolerated(store, vision, upload):
    store.ghost = GhostModeSettings(enabled=True)
    store.fail.add("set_ghost_mode")

    body = _handler(store, vision).handle(upload, "logo")

    assert body["ghostMode"] is True


def test_reference_images_are_sent_and_bad_ones_skipped(store, vision, upload, logo):
    store.asset_types["logo"] = logo.model_copy(update={"reference_images": [
        ReferenceImage(file_name="good.png", storage_path="logo/good.png"),
        ReferenceImage(file_name="gone.png", storage_path="logo/gone.png"),
    ]})
    store.objects[("refs", "logo/good.png")] = b"reference"

    _handler(store, vision).handle(upload, "logo")

    refs = vision.calls[0]["references"]
    assert [r.content for r in refs] == [b"reference"]


def test_temp_file_removed_after_success(store, vision, upload):
    _handler(store, vision).handle(upload, "logo")
    assert not upload.path.exists()


def test_best_effort_captures_error():
    def boom():
        raise RuntimeError("storage down")

    step = best_effort("upload", boom)

    assert step.ok is False
    assert step.error == "storage down"
    assert best_effort("add", lambda a, b: a + b, 2, 3).value == 5
