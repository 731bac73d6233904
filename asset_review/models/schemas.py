from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReferenceImage(BaseModel):
    """An example of a compliant asset, stored in the reference bucket."""

    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName")
    storage_path: str = Field(..., alias="storagePath")


class AssetType(BaseModel):
    name: str
    description: Optional[str] = None
    guidelines: str = ""
    reference_images: List[ReferenceImage] = Field(default_factory=list)
    pass_message: Optional[str] = None
    fail_message: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AssetType":
        # reference_images is a jsonb column and comes back null on older rows
        data = dict(row)
        data["reference_images"] = data.get("reference_images") or []
        data["guidelines"] = data.get("guidelines") or ""
        return cls.model_validate(data)

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump(exclude={"reference_images"})
        row["reference_images"] = [r.model_dump(by_alias=True) for r in self.reference_images]
        return row


class AssetTypeCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    guidelines: str = Field(..., min_length=1)
    pass_message: Optional[str] = None
    fail_message: Optional[str] = None


class AssetTypeUpdate(BaseModel):
    description: Optional[str] = None
    guidelines: Optional[str] = None
    pass_message: Optional[str] = None
    fail_message: Optional[str] = None


class GhostModeSettings(BaseModel):
    enabled: bool = False
    submission_count: int = 0


class GhostModeUpdate(BaseModel):
    enabled: bool


class ReviewOutcome(BaseModel):
    """What the vision model concluded about one image."""

    passed: bool
    confidence: int = Field(..., ge=0, le=100)
    violations: List[str] = Field(default_factory=list)
    summary: str = ""


class ReviewResult(BaseModel):
    """Client-facing result, shown when ghost mode is off."""

    model_config = ConfigDict(populate_by_name=True)

    passed: bool = Field(..., alias="pass")
    confidence: int = Field(..., ge=0, le=100)
    violations: List[str] = Field(default_factory=list)
    summary: str = ""
    custom_message: str = Field("", alias="customMessage")


class SubmissionRecord(BaseModel):
    id: str | int | None = None
    asset_type: str
    file_name: str
    file_url: str = ""
    result: Literal["pass", "fail"]
    confidence_score: int = Field(..., ge=0, le=100)
    violations: List[str] = Field(default_factory=list)
    submitted_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SubmissionRecord":
        data = dict(row)
        data["file_url"] = data.get("file_url") or ""
        data["violations"] = data.get("violations") or []
        return cls.model_validate(data)

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(exclude={"id", "submitted_at"})


class SubmissionStats(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    pass_rate: float = 0.0
    by_asset_type: dict[str, dict[str, int]] = Field(default_factory=dict)
