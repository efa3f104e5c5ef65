"""Pydantic schemas for the transcode pipeline.

Field aliases follow the document store's camelCase layout
(``createdAt``, ``videoProcessingStatus.jobId`` ...); Python code uses the
snake_case names.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from video_processor.modules.transcoding.models import JobState, ProcessingState

# Tolerance for float sums such as 0.1 + 0.9
_CROP_EPSILON = 1e-9


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_document_id(value: Any) -> Any:
    # bool is an int subclass; a document id is never a boolean
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


class CropRect(BaseModel):
    """Normalized crop rectangle, interpreted against the source frame.

    Rectangles reaching past the right or bottom edge are rejected rather
    than clamped.
    """
    x: float = Field(..., ge=0, le=1)
    y: float = Field(..., ge=0, le=1)
    width: float = Field(..., gt=0, le=1)
    height: float = Field(..., gt=0, le=1)

    @model_validator(mode="after")
    def check_within_frame(self) -> "CropRect":
        if self.x + self.width > 1 + _CROP_EPSILON:
            raise ValueError("Crop x + width must not exceed 1")
        if self.y + self.height > 1 + _CROP_EPSILON:
            raise ValueError("Crop y + height must not exceed 1")
        return self


class Preset(BaseModel):
    """Named ffmpeg profile, e.g. ``{"args": ["-vf", "scale=-2:720"]}``."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    args: tuple[str, ...] = Field(..., description="Raw ffmpeg output arguments")
    label: Optional[str] = Field(None, description="Label shown in the admin UI")
    enable_crop: bool = Field(False, alias="enableCrop")


class EnqueueRequest(BaseModel):
    """Body of the enqueue endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    collection: str = Field(..., min_length=1)
    document_id: str = Field(..., alias="id", min_length=1)
    preset: str = Field(..., min_length=1)
    crop: Optional[CropRect] = None

    @field_validator("document_id", mode="before")
    @classmethod
    def normalize_id(cls, value: Any) -> Any:
        return _coerce_document_id(value)


class VideoJob(EnqueueRequest):
    """One unit of queued transcode work.

    Serialized with ``model_dump(by_alias=True)`` as the Celery task payload.
    """
    auto_replace_original: bool = Field(False, alias="autoReplaceOriginal")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class RemoveVariantRequest(BaseModel):
    """Body of the remove-variant endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    collection: str = Field(..., min_length=1)
    document_id: str = Field(..., alias="id", min_length=1)
    preset: Optional[str] = Field(None, min_length=1)
    variant_id: Optional[str] = Field(None, alias="variantId", min_length=1)
    variant_index: Optional[int] = Field(None, alias="variantIndex", ge=0)

    @field_validator("document_id", "variant_id", mode="before")
    @classmethod
    def normalize_id(cls, value: Any) -> Any:
        return _coerce_document_id(value)

    @field_validator("variant_index", mode="before")
    @classmethod
    def parse_index(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("variantIndex must be a non-negative integer")
        if isinstance(value, str):
            if not value.isdigit():
                raise ValueError("variantIndex must be a non-negative integer")
            return int(value)
        return value

    @model_validator(mode="after")
    def require_selector(self) -> "RemoveVariantRequest":
        if self.variant_index is None and not self.variant_id and not self.preset:
            raise ValueError(
                "preset, variantId or variantIndex must be provided to remove a variant."
            )
        return self


class ReplaceOriginalRequest(BaseModel):
    """Body of the replace-original endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    collection: str = Field(..., min_length=1)
    document_id: str = Field(..., alias="id", min_length=1)
    preset: Optional[str] = Field(None, min_length=1)
    variant_id: Optional[str] = Field(None, alias="variantId", min_length=1)

    @field_validator("document_id", "variant_id", mode="before")
    @classmethod
    def normalize_id(cls, value: Any) -> Any:
        return _coerce_document_id(value)


class VariantRecord(BaseModel):
    """One transcoded output stored in the document's ``variants`` list."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    preset: str
    url: str
    path: str
    size: int
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    bitrate: Optional[int] = None
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class VideoProcessingStatus(BaseModel):
    """Status projection written to ``videoProcessingStatus``."""
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    preset: str
    state: ProcessingState
    progress: Optional[float] = None
    updated_at: str = Field(default_factory=utc_now_iso, alias="updatedAt")

    def to_document(self) -> dict:
        data = self.model_dump(by_alias=True, mode="json")
        # "failed" carries no progress value
        if self.progress is None:
            data.pop("progress")
        return data


def build_processing_status(
    job_id: str,
    preset: str,
    state: ProcessingState,
    progress: Optional[float] = None,
) -> dict:
    """Document representation of a processing status."""
    return VideoProcessingStatus(
        job_id=job_id,
        preset=preset,
        state=state,
        progress=progress,
    ).to_document()


class JobRecord(BaseModel):
    """Queue-side bookkeeping for one job."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    state: JobState
    progress: float = 0
    data: dict = Field(default_factory=dict)
    failed_reason: Optional[str] = Field(None, alias="failedReason")
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")
    finished_at: Optional[str] = Field(None, alias="finishedAt")


class EnqueueResponse(BaseModel):
    """Response of the enqueue endpoint."""
    id: str
    state: str = ProcessingState.QUEUED.value


class JobStatusResponse(BaseModel):
    """Response of the status endpoint."""
    id: str
    state: JobState
    progress: float


class DocumentResponse(BaseModel):
    """Response of the remove-variant and replace-original endpoints."""
    success: bool = True
    doc: dict


class PlaybackSource(BaseModel):
    """A playable URL for a video document."""
    src: str
    type: Optional[str] = None
    preset: Optional[str] = None
