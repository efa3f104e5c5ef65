"""State enums and document field names for the transcode pipeline."""

from enum import Enum


class ProcessingState(str, Enum):
    """State of the processing status projected onto a document."""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobState(str, Enum):
    """State of a job record in the queue."""
    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_JOB_STATES = frozenset({JobState.COMPLETED, JobState.FAILED})

# Document fields owned by the pipeline
VARIANTS_FIELD = "variants"
PROCESSING_STATUS_FIELD = "videoProcessingStatus"

# Metadata copied from a variant onto the document by replace-original,
# keyed by variant attribute -> document field
REPLACE_ORIGINAL_FIELDS = {
    "size": "filesize",
    "duration": "duration",
    "width": "width",
    "height": "height",
    "bitrate": "bitrate",
}

# Progress checkpoints
PROGRESS_PICKED_UP = 5
PROGRESS_PROBED = 15
PROGRESS_TOOL_CEILING = 95
PROGRESS_TOOL_SCALE = 0.7
PROGRESS_DONE = 100

DEFAULT_CONTAINER_EXTENSION = ".mp4"
