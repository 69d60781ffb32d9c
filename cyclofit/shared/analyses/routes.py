"""Analysis routes: upload a riding video, browse and delete past analyses."""

import logging
from contextlib import contextmanager
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError

from cyclofit.shared.analyses.database import BIKE_TYPES
from cyclofit.shared.analyses.schemas import (
    AnalysisDetailResponse,
    AnalysisListResponse,
    KeyframeListResponse,
    KeyframeUrlResponse,
    MessageResponse,
    ProcessResponse,
    UrlResponse,
)
from cyclofit.shared.analyses.service import (
    AnalysisNotFoundError,
    AnalysisService,
    AssetNotFoundError,
    build_analysis_detail,
    build_analysis_result,
    build_list_item,
    get_analysis_service,
)
from cyclofit.shared.auth.database import User
from cyclofit.shared.auth.dependencies import get_current_user
from cyclofit.shared.config.settings import Settings, get_settings
from cyclofit.shared.errors import server_error
from cyclofit.shared.pose_estimation.pose_service import (
    DEFAULT_QUALITY,
    PoseServiceClient,
    PoseServiceError,
    get_pose_client,
)
from cyclofit.shared.storage.object_store import ObjectStoreError
from cyclofit.shared.upload_video.upload_video import accept_video_file, read_video_bytes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


@contextmanager
def lookup_errors(settings: Settings, message: str):
    """Translate service lookups into 404 (missing/not owned) or 500 (storage)."""
    try:
        yield
    except (AnalysisNotFoundError, AssetNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (ObjectStoreError, SQLAlchemyError) as e:
        logger.error(f"{message}: {str(e)}", exc_info=True)
        raise server_error(settings, message, e)


def parse_height(value: Optional[str]) -> float:
    if value is None or not str(value).strip():
        raise ValueError("User height is required")
    try:
        height = float(value)
    except ValueError:
        raise ValueError("User height must be a number")
    if height <= 0:
        raise ValueError("User height must be positive")
    return height


def parse_quality(value: Optional[str]) -> int:
    if value is None or not str(value).strip():
        return DEFAULT_QUALITY
    try:
        return int(value)
    except ValueError:
        raise ValueError("Quality must be an integer")


# Sync on purpose: FastAPI runs it in the threadpool, so the long pose
# service call does not block the event loop.
@router.post("/process", response_model=ProcessResponse)
def process_video(
    video: Optional[UploadFile] = File(None),
    user_height_cm: Optional[str] = Form(None),
    quality: Optional[str] = Form(None),
    bike_type: str = Form("road"),
    current_user: User = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
    pose_client: PoseServiceClient = Depends(get_pose_client),
    settings: Settings = Depends(get_settings),
):
    """
    Upload a riding video, have it analysed and store the result.

    multipart/form-data fields: video, user_height_cm, quality, bike_type
    """
    if video is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No video file uploaded")

    try:
        height = parse_height(user_height_cm)
        quality_value = parse_quality(quality)
        if bike_type not in BIKE_TYPES:
            raise ValueError(f"Invalid bike type: {bike_type}. Must be one of {', '.join(BIKE_TYPES)}")
        file_info = accept_video_file(video)
        video_bytes = read_video_bytes(video, settings.MAX_UPLOAD_BYTES)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(
        f"Processing video for user {current_user.id}: {file_info['filename']} "
        f"({len(video_bytes)} bytes, {file_info['content_type']}), height {height} cm, bike {bike_type}"
    )

    try:
        ai_payload = pose_client.process_video(
            video_bytes,
            user_height_cm=height,
            quality=quality_value,
            bike_type=bike_type,
            filename=file_info["filename"],
            content_type=file_info["content_type"],
        )
    except PoseServiceError as e:
        raise server_error(settings, e.message, e.__cause__ or e, status_code=e.status_code)

    try:
        analysis = service.save_analysis(
            user_id=current_user.id,
            video_bytes=video_bytes,
            content_type=file_info["content_type"],
            filename=file_info["filename"],
            user_height_cm=height,
            bike_type=bike_type,
            ai_payload=ai_payload,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (ObjectStoreError, SQLAlchemyError) as e:
        logger.error(f"Error saving analysis: {str(e)}", exc_info=True)
        raise server_error(settings, "Error processing video", e)

    return ProcessResponse(
        message="Video processed successfully",
        analysisId=analysis.id,
        analysisResult=build_analysis_result(analysis),
    )


@router.get("", response_model=AnalysisListResponse)
def list_analyses(
    current_user: User = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    """The caller's analyses, newest first."""
    with lookup_errors(settings, "Error fetching analyses"):
        analyses = service.list_for_user(current_user.id)
    return {"analyses": [build_list_item(a) for a in analyses]}


@router.get("/{analysis_id}", response_model=AnalysisDetailResponse)
def get_analysis(
    analysis_id: str,
    current_user: User = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    with lookup_errors(settings, "Error fetching analysis"):
        analysis = service.require(analysis_id, current_user.id)
    return {"analysis": build_analysis_detail(analysis)}


@router.get("/{analysis_id}/processed-video", response_model=UrlResponse)
def get_processed_video(
    analysis_id: str,
    current_user: User = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    with lookup_errors(settings, "Error getting processed video"):
        url = service.get_video_url(analysis_id, current_user.id, "processed")
    return {"url": url}


@router.get("/{analysis_id}/original-video", response_model=UrlResponse)
def get_original_video(
    analysis_id: str,
    current_user: User = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    """Only legacy analyses kept the original upload; newer ones answer 404."""
    with lookup_errors(settings, "Error getting original video"):
        url = service.get_video_url(analysis_id, current_user.id, "original")
    return {"url": url}


@router.get("/{analysis_id}/keyframes", response_model=KeyframeListResponse)
def get_keyframes(
    analysis_id: str,
    current_user: User = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    with lookup_errors(settings, "Error getting keyframes"):
        keyframes = service.get_keyframe_urls(analysis_id, current_user.id)
    return {"keyframes": keyframes}


@router.get("/{analysis_id}/keyframes/{index}", response_model=KeyframeUrlResponse)
def get_keyframe(
    analysis_id: str,
    index: int,
    current_user: User = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    with lookup_errors(settings, "Error getting keyframe"):
        keyframe = service.get_keyframe_url(analysis_id, current_user.id, index)
    return keyframe


@router.delete("/{analysis_id}", response_model=MessageResponse)
def delete_analysis(
    analysis_id: str,
    current_user: User = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    with lookup_errors(settings, "Error deleting analysis"):
        deleted = service.delete_analysis(analysis_id, current_user.id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Analysis not found")
    return {"message": "Analysis deleted successfully"}
