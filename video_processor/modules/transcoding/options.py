"""Options supplied by the host application.

Presets, queue settings, access hooks, the path resolver and auto-enqueue
behaviour. Validated once at construction; the API process and the worker
process load the same object.
"""

import importlib
import importlib.util
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from video_processor.modules.transcoding.schemas import Preset


class CollectionConfig(BaseModel):
    """Upload configuration of one host collection."""
    model_config = ConfigDict(populate_by_name=True)

    slug: str
    static_dir: Optional[str] = Field(None, alias="staticDir")
    mime_types: list[str] = Field(default_factory=list, alias="mimeTypes")


class QueueConfig(BaseModel):
    """Queue overrides; unset values fall back to Settings."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1)
    redis_url: Optional[str] = Field(None, alias="redisUrl")
    concurrency: Optional[int] = Field(None, gt=0)


@dataclass
class AccessArgs:
    """Arguments handed to an access hook."""
    request: Any = None
    collection: Optional[str] = None
    document_id: Optional[str] = None
    preset: Optional[str] = None
    variant_id: Optional[str] = None
    variant_index: Optional[int] = None


AccessHook = Callable[[AccessArgs], Union[bool, Awaitable[bool]]]


@dataclass
class AccessControl:
    """Optional authorization hooks; a missing hook allows the operation."""
    enqueue: Optional[AccessHook] = None
    remove_variant: Optional[AccessHook] = None
    replace_original: Optional[AccessHook] = None


class VideoProcessorOptions(BaseModel):
    """Host-facing configuration of the video processor.

    Example::

        options = VideoProcessorOptions(
            presets={
                "mobile360": {"label": "360p Mobile", "args": ["-vf", "scale=-2:360"]},
                "hd1080": {"label": "Full HD 1080p", "args": ["-vf", "scale=-2:1080"]},
            },
            queue={"concurrency": 1},
            auto_enqueue=True,
            auto_enqueue_preset="hd1080",
        )
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    presets: dict[str, Preset]
    queue: QueueConfig = Field(default_factory=QueueConfig)
    access: AccessControl = Field(default_factory=AccessControl)
    # Callable[[ResolvePathsArgs], ResolvedPaths]; None uses default_resolve_paths
    resolve_paths: Optional[Callable[..., Any]] = Field(None, alias="resolvePaths")
    auto_enqueue: bool = Field(False, alias="autoEnqueue")
    auto_enqueue_preset: Optional[str] = Field(None, alias="autoEnqueuePreset")
    auto_replace_original: bool = Field(False, alias="autoReplaceOriginal")
    collections: dict[str, CollectionConfig] = Field(default_factory=dict)
    default_crf: Optional[int] = Field(None, alias="defaultCrf", ge=0, le=63)

    @field_validator("presets")
    @classmethod
    def require_presets(cls, value: dict[str, Preset]) -> dict[str, Preset]:
        if not value:
            raise ValueError("At least one preset must be defined.")
        return value

    @field_validator("collections", mode="before")
    @classmethod
    def index_collections(cls, value: Any) -> Any:
        # Accept a list of collection configs keyed by their slug
        if isinstance(value, (list, tuple)):
            indexed = {}
            for item in value:
                slug = item.slug if isinstance(item, CollectionConfig) else item["slug"]
                indexed[slug] = item
            return indexed
        return value

    @model_validator(mode="after")
    def check_auto_enqueue(self) -> "VideoProcessorOptions":
        if self.auto_enqueue:
            if not self.auto_enqueue_preset:
                raise ValueError("auto_enqueue_preset is required when auto_enqueue is enabled.")
            if self.auto_enqueue_preset not in self.presets:
                raise ValueError(
                    f"auto_enqueue_preset `{self.auto_enqueue_preset}` is not a configured preset. "
                    f"Available presets: {', '.join(self.presets)}"
                )
        return self

    def get_preset(self, name: str) -> Optional[Preset]:
        return self.presets.get(name)

    def get_collection_config(self, slug: str) -> Optional[CollectionConfig]:
        return self.collections.get(slug)

    def admin_preset_map(self) -> dict[str, dict]:
        """Preset metadata exposed to admin clients."""
        return {
            name: {"label": preset.label or name, "enableCrop": preset.enable_crop}
            for name, preset in self.presets.items()
        }


def load_options(import_path: str) -> VideoProcessorOptions:
    """Load a VideoProcessorOptions object by import path.

    Accepts ``package.module:attribute``, ``package.module`` (attribute
    ``options``) or a path to a ``.py`` file exporting ``options``.

    Raises:
        ValueError: If the target is missing or is not a valid options object.
    """
    module_path, _, attribute = import_path.partition(":")
    attribute = attribute or "options"

    if module_path.endswith(".py") or os.sep in module_path:
        file_path = os.path.abspath(module_path)
        if not os.path.isfile(file_path):
            raise ValueError(f"Worker config file not found: {file_path}")
        spec = importlib.util.spec_from_file_location("video_processor_worker_config", file_path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
    else:
        module = importlib.import_module(module_path)

    candidate = getattr(module, attribute, None)
    if candidate is None:
        raise ValueError(f"`{import_path}` does not export `{attribute}`.")
    if isinstance(candidate, VideoProcessorOptions):
        return candidate
    if isinstance(candidate, dict) and "presets" in candidate:
        return VideoProcessorOptions.model_validate(candidate)

    raise ValueError(
        "Invalid worker options module. Ensure it exports VideoProcessorOptions."
    )
