from datetime import date, datetime, time, timezone
from typing import Any, Optional, Protocol

from supabase import create_client

from asset_review.models.schemas import AssetType, GhostModeSettings, SubmissionRecord
from asset_review.utils.config import SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY
from asset_review.utils.logger import get_logger


logger = get_logger("supabase-client")


ASSET_TYPES_TABLE = "asset_types"
SETTINGS_TABLE = "app_settings"
SUBMISSIONS_TABLE = "submissions"
GHOST_MODE_KEY = "ghost_mode"


_client = None


def is_configured() -> bool:
    return bool(SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY)


def get_client():
    global _client
    if _client is not None:
        return _client
    if not is_configured():
        raise RuntimeError("Supabase not configured: set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
    _client = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
    logger.info("Supabase client created for %s", SUPABASE_URL)
    return _client


class ReviewStore(Protocol):
    """Guideline store, settings, submission log and object store behind one seam."""

    def get_asset_type(self, name: str) -> Optional[AssetType]: ...
    def list_asset_types(self) -> list[AssetType]: ...
    def create_asset_type(self, asset_type: AssetType) -> AssetType: ...
    def update_asset_type(self, name: str, patch: dict[str, Any]) -> Optional[AssetType]: ...
    def delete_asset_type(self, name: str) -> bool: ...
    def get_ghost_mode(self) -> GhostModeSettings: ...
    def set_ghost_mode(self, settings: GhostModeSettings) -> GhostModeSettings: ...
    def insert_submission(self, record: SubmissionRecord) -> SubmissionRecord: ...
    def list_submissions(
        self,
        *,
        asset_type: Optional[str] = None,
        result: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
    ) -> list[SubmissionRecord]: ...
    def upload_object(self, bucket: str, path: str, blob: bytes, content_type: str) -> None: ...
    def signed_url(self, bucket: str, path: str, expires_in: int) -> str: ...
    def download_object(self, bucket: str, path: str) -> bytes: ...
    def remove_object(self, bucket: str, path: str) -> None: ...


def window_bounds(date_from: Optional[date], date_to: Optional[date]) -> tuple[Optional[str], Optional[str]]:
    """Inclusive [start of date_from, end of date_to] in UTC, as ISO strings."""
    lo = datetime.combine(date_from, time.min, tzinfo=timezone.utc).isoformat() if date_from else None
    hi = datetime.combine(date_to, time.max, tzinfo=timezone.utc).isoformat() if date_to else None
    return lo, hi


class SupabaseStore:
    """
    ReviewStore over Supabase tables and storage buckets.
    Every method raises on a Supabase error; callers decide whether that is fatal.
    """

    def __init__(self, client=None) -> None:
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_client()
        return self._client

    # asset types

    def get_asset_type(self, name: str) -> Optional[AssetType]:
        res = self.client.table(ASSET_TYPES_TABLE).select("*").eq("name", name).limit(1).execute()
        rows = res.data or []
        return AssetType.from_row(rows[0]) if rows else None

    def list_asset_types(self) -> list[AssetType]:
        res = self.client.table(ASSET_TYPES_TABLE).select("*").order("name").execute()
        return [AssetType.from_row(r) for r in res.data or []]

    def create_asset_type(self, asset_type: AssetType) -> AssetType:
        res = self.client.table(ASSET_TYPES_TABLE).insert(asset_type.to_row()).execute()
        rows = res.data or []
        return AssetType.from_row(rows[0]) if rows else asset_type

    def update_asset_type(self, name: str, patch: dict[str, Any]) -> Optional[AssetType]:
        res = self.client.table(ASSET_TYPES_TABLE).update(patch).eq("name", name).execute()
        rows = res.data or []
        return AssetType.from_row(rows[0]) if rows else None

    def delete_asset_type(self, name: str) -> bool:
        res = self.client.table(ASSET_TYPES_TABLE).delete().eq("name", name).execute()
        return bool(res.data)

    # settings

    def get_ghost_mode(self) -> GhostModeSettings:
        res = (
            self.client.table(SETTINGS_TABLE)
            .select("setting_value")
            .eq("setting_key", GHOST_MODE_KEY)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        if not rows or not rows[0].get("setting_value"):
            return GhostModeSettings()
        return GhostModeSettings.model_validate(rows[0]["setting_value"])

    def set_ghost_mode(self, settings: GhostModeSettings) -> GhostModeSettings:
        self.client.table(SETTINGS_TABLE).upsert(
            {
                "setting_key": GHOST_MODE_KEY,
                "setting_value": settings.model_dump(),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="setting_key",
        ).execute()
        return settings

    # submissions

    def insert_submission(self, record: SubmissionRecord) -> SubmissionRecord:
        res = self.client.table(SUBMISSIONS_TABLE).insert(record.to_row()).execute()
        rows = res.data or []
        return SubmissionRecord.from_row(rows[0]) if rows else record

    def list_submissions(
        self,
        *,
        asset_type: Optional[str] = None,
        result: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
    ) -> list[SubmissionRecord]:
        q = self.client.table(SUBMISSIONS_TABLE).select("*")
        if asset_type:
            q = q.eq("asset_type", asset_type)
        if result:
            q = q.eq("result", result)
        lo, hi = window_bounds(date_from, date_to)
        if lo:
            q = q.gte("submitted_at", lo)
        if hi:
            q = q.lte("submitted_at", hi)
        res = q.order("submitted_at", desc=True).limit(limit).execute()
        return [SubmissionRecord.from_row(r) for r in res.data or []]

    # object storage

    def upload_object(self, bucket: str, path: str, blob: bytes, content_type: str) -> None:
        self.client.storage.from_(bucket).upload(path, blob, {"content-type": content_type})

    def signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        res = self.client.storage.from_(bucket).create_signed_url(path, expires_in)
        # older storage clients return signedURL, newer ones also signedUrl
        return res.get("signedURL") or res.get("signedUrl") or ""

    def download_object(self, bucket: str, path: str) -> bytes:
        return self.client.storage.from_(bucket).download(path)

    def remove_object(self, bucket: str, path: str) -> None:
        self.client.storage.from_(bucket).remove([path])
