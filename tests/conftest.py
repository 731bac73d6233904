from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from asset_review.main import create_app
from asset_review.models.schemas import AssetType, GhostModeSettings, ReviewOutcome, SubmissionRecord
from asset_review.services.supabase_client import window_bounds


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeStore:
    """In-memory ReviewStore. Operations named in `fail` raise like an unreachable Supabase."""

    def __init__(self, asset_types=(), ghost: Optional[GhostModeSettings] = None):
        self.asset_types: dict[str, AssetType] = {a.name: a for a in asset_types}
        self.ghost = ghost or GhostModeSettings()
        self.submissions: list[SubmissionRecord] = []
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail: set[str] = set()

    def _check(self, op: str) -> None:
        if op in self.fail:
            raise RuntimeError(f"{op} unavailable")

    def get_asset_type(self, name):
        self._check("get_asset_type")
        return self.asset_types.get(name)

    def list_asset_types(self):
        return [self.asset_types[k] for k in sorted(self.asset_types)]

    def create_asset_type(self, asset_type):
        self.asset_types[asset_type.name] = asset_type
        return asset_type

    def update_asset_type(self, name, patch: dict[str, Any]):
        existing = self.asset_types.get(name)
        if existing is None:
            return None
        updated = AssetType.from_row({**existing.to_row(), **patch})
        self.asset_types[name] = updated
        return updated

    def delete_asset_type(self, name):
        return self.asset_types.pop(name, None) is not None

    def get_ghost_mode(self):
        self._check("get_ghost_mode")
        return self.ghost

    def set_ghost_mode(self, settings):
        self._check("set_ghost_mode")
        self.ghost = settings
        return settings

    def insert_submission(self, record):
        self._check("insert_submission")
        saved = record.model_copy(update={
            "id": len(self.submissions) + 1,
            "submitted_at": record.submitted_at or datetime.now(timezone.utc),
        })
        self.submissions.append(saved)
        return saved

    def list_submissions(self, *, asset_type=None, result=None, date_from=None, date_to=None, limit=100):
        lo, hi = window_bounds(date_from, date_to)
        out = []
        for s in sorted(self.submissions, key=lambda r: r.submitted_at, reverse=True):
            if asset_type and s.asset_type != asset_type:
                continue
            if result and s.result != result:
                continue
            if lo and s.submitted_at < datetime.fromisoformat(lo):
                continue
            if hi and s.submitted_at > datetime.fromisoformat(hi):
                continue
            out.append(s)
        return out[:limit]

    def upload_object(self, bucket, path, blob, content_type):
        self._check("upload_object")
        self.objects[(bucket, path)] = blob

    def signed_url(self, bucket, path, expires_in):
        return f"https://storage.test/{bucket}/{path}?expires={expires_in}"

    def download_object(self, bucket, path):
        self._check("download_object")
        return self.objects[(bucket, path)]

    def remove_object(self, bucket, path):
        self.objects.pop((bucket, path), None)


class FakeVision:
    def __init__(self, outcome: Optional[ReviewOutcome] = None, error: Optional[Exception] = None):
        self.outcome = outcome
        self.error = error
        self.calls = []

    def review(self, guidelines, references, image):
        self.calls.append({"guidelines": guidelines, "references": list(references), "image": image})
        if self.error is not None:
            raise self.error
        return self.outcome


@pytest.fixture
def logo():
    return AssetType(
        name="logo",
        description="Brand logos and marks",
        guidelines="Logo must be horizontal. Official colors only.",
        pass_message="Logo approved for use.",
        fail_message="Logo needs changes before use.",
    )


@pytest.fixture
def store(logo):
    return FakeStore([logo])


@pytest.fixture
def passing_outcome():
    return ReviewOutcome(passed=True, confidence=92, violations=[], summary="Clean logo on white.")


@pytest.fixture
def vision(passing_outcome):
    return FakeVision(outcome=passing_outcome)


@pytest.fixture
def upload_dir(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    return d


@pytest.fixture
def client(store, vision, upload_dir):
    return TestClient(create_app(store=store, vision=vision, upload_dir=upload_dir))
