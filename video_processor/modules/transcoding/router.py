"""API Router for the video queue."""

from fastapi import APIRouter, Depends, Request, status

from video_processor.modules.transcoding.schemas import (
    DocumentResponse,
    EnqueueRequest,
    EnqueueResponse,
    JobStatusResponse,
    RemoveVariantRequest,
    ReplaceOriginalRequest,
)
from video_processor.modules.transcoding.service import VideoProcessingService

router = APIRouter(prefix="/video-queue", tags=["video-queue"])


def get_video_service(request: Request) -> VideoProcessingService:
    """Dependency returning the app's VideoProcessingService."""
    return request.app.state.video_service


@router.post("/enqueue", response_model=EnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def enqueue(
    data: EnqueueRequest,
    request: Request,
    service: VideoProcessingService = Depends(get_video_service),
) -> EnqueueResponse:
    """Queue a transcode of a document into a preset."""
    return await service.enqueue(data, request)


@router.get("/status", response_model=JobStatusResponse, include_in_schema=False)
async def get_status_without_id(
    service: VideoProcessingService = Depends(get_video_service),
) -> JobStatusResponse:
    return await service.get_status(None)


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_status(
    job_id: str,
    service: VideoProcessingService = Depends(get_video_service),
) -> JobStatusResponse:
    """Get the queue state and progress of a job."""
    return await service.get_status(job_id)


@router.post("/remove-variant", response_model=DocumentResponse)
async def remove_variant(
    data: RemoveVariantRequest,
    request: Request,
    service: VideoProcessingService = Depends(get_video_service),
) -> DocumentResponse:
    """Delete a variant file and remove it from the document."""
    doc = await service.remove_variant(data, request)
    return DocumentResponse(doc=doc)


@router.post("/replace-original", response_model=DocumentResponse)
async def replace_original(
    data: ReplaceOriginalRequest,
    request: Request,
    service: VideoProcessingService = Depends(get_video_service),
) -> DocumentResponse:
    """Promote a variant over the document's original file."""
    doc = await service.replace_original_file(data, request)
    return DocumentResponse(doc=doc)
